"""
Runtime settings — where state lives and how long external calls may take.

Settings are read once from the environment by the CLI entrypoint and
passed down explicitly. Nothing below the use-case layer reads
``os.environ`` directly.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_HOME_DIR = ".agent-rig"
STATE_FILE = "state.json"


class Timeouts(BaseModel):
    """Upper bounds (seconds) for every suspension point."""

    command: float = 30.0      # one platform CLI invocation
    tool_install: float = 120.0
    tool_check: float = 5.0
    phase: float = 600.0       # one adapter phase call, covering all its units
    clone: float = 60.0


class Settings(BaseModel):
    """Process-wide configuration for one agent-rig invocation."""

    home: Path = Field(default_factory=lambda: Path.home() / DEFAULT_HOME_DIR)
    project_root: Path = Field(default_factory=Path.cwd)
    user_home: Path = Field(default_factory=Path.home)
    shell: str = ""
    timeouts: Timeouts = Field(default_factory=Timeouts)

    @property
    def state_path(self) -> Path:
        return self.home / STATE_FILE


_TIMEOUT_ENV = {
    "command": "AGENT_RIG_COMMAND_TIMEOUT",
    "tool_install": "AGENT_RIG_TOOL_TIMEOUT",
    "tool_check": "AGENT_RIG_CHECK_TIMEOUT",
    "phase": "AGENT_RIG_PHASE_TIMEOUT",
    "clone": "AGENT_RIG_CLONE_TIMEOUT",
}


def load_settings(
    environ: Mapping[str, str] | None = None,
    project_root: Path | None = None,
) -> Settings:
    """Build Settings from environment variables.

    Args:
        environ: Mapping to read from (default: ``os.environ``).
        project_root: Directory behavioral assets are installed into
            (default: current working directory).
    """
    env = os.environ if environ is None else environ

    user_home = Path(env["HOME"]) if env.get("HOME") else Path.home()
    home = Path(env["AGENT_RIG_HOME"]) if env.get("AGENT_RIG_HOME") else user_home / DEFAULT_HOME_DIR

    timeouts: dict[str, float] = {}
    for field_name, var in _TIMEOUT_ENV.items():
        raw = env.get(var)
        if not raw:
            continue
        try:
            value = float(raw)
        except ValueError:
            logger.warning("Ignoring %s=%r — not a number", var, raw)
            continue
        if value <= 0:
            logger.warning("Ignoring %s=%r — must be positive", var, raw)
            continue
        timeouts[field_name] = value

    return Settings(
        home=home,
        project_root=(project_root or Path.cwd()).resolve(),
        user_home=user_home,
        shell=env.get("SHELL", ""),
        timeouts=Timeouts(**timeouts),
    )
