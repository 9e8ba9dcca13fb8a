"""
Environment block — a rig's environment variables in the user's shell profile.

Variables are written as one tagged block per rig, so re-installing
replaces the block in place and uninstalling removes exactly what the
rig added.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from agent_rig.core.config.settings import Settings
from agent_rig.core.engine.blocks import TaggedBlockPatcher
from agent_rig.core.models.result import OperationResult, UnitKind

logger = logging.getLogger(__name__)

ENV_UNIT = "profile"


@dataclass(frozen=True)
class ShellInfo:
    name: str  # bash, zsh, fish
    profile_path: Path


def detect_shell(settings: Settings) -> ShellInfo:
    """Pick the startup file for the user's login shell.

    Anything that isn't fish or bash is treated as zsh.
    """
    shell = settings.shell
    home = settings.user_home
    if shell.endswith("/fish"):
        return ShellInfo("fish", home / ".config" / "fish" / "config.fish")
    if shell.endswith("/bash"):
        return ShellInfo("bash", home / ".bashrc")
    return ShellInfo("zsh", home / ".zshrc")


def _quote(value: str) -> str:
    """Double-quote ``value``; ``$VAR`` references still expand in the shell."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def format_env_lines(environment: Mapping[str, str], shell: str) -> list[str]:
    if shell == "fish":
        return [f"set -gx {key} {_quote(value)}" for key, value in environment.items()]
    return [f"export {key}={_quote(value)}" for key, value in environment.items()]


class EnvironmentWriter:
    """Writes and removes per-rig environment blocks."""

    def __init__(self, settings: Settings, patcher: TaggedBlockPatcher | None = None):
        self._settings = settings
        self._patcher = patcher or TaggedBlockPatcher()

    def shell(self) -> ShellInfo:
        return detect_shell(self._settings)

    def write(self, rig_name: str, environment: Mapping[str, str]) -> OperationResult:
        """Insert or replace the rig's block in the detected profile."""
        info = self.shell()
        path = info.profile_path
        try:
            content = path.read_text(encoding="utf-8") if path.is_file() else ""
            existed = self._patcher.has(rig_name, content)
            block = self._patcher.format(rig_name, format_env_lines(environment, info.name))
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(self._patcher.upsert(rig_name, content, block), encoding="utf-8")
        except OSError as e:
            return OperationResult.failure(UnitKind.ENVIRONMENT, ENV_UNIT, f"{path}: {e}")

        verb = "updated" if existed else "wrote"
        logger.info("%s %d variables for %s in %s", verb.capitalize(), len(environment), rig_name, path)
        return OperationResult.applied(
            UnitKind.ENVIRONMENT,
            ENV_UNIT,
            f"{verb} {', '.join(environment)} in {path} ({info.name})",
            metadata={"profile_path": str(path)},
        )

    def remove(self, rig_name: str, profile_path: Path | str) -> OperationResult:
        path = Path(profile_path)
        if not path.is_file():
            return OperationResult.skipped(UnitKind.ENVIRONMENT, ENV_UNIT, f"{path} not found")
        try:
            content, removed = self._patcher.remove(rig_name, path.read_text(encoding="utf-8"))
            if not removed:
                return OperationResult.skipped(UnitKind.ENVIRONMENT, ENV_UNIT, f"no block in {path}")
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            return OperationResult.failure(UnitKind.ENVIRONMENT, ENV_UNIT, f"{path}: {e}")
        return OperationResult.applied(UnitKind.ENVIRONMENT, ENV_UNIT, f"removed block from {path}")
