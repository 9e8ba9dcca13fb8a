"""
Rig sources — where a rig manifest comes from.

A source is either a local directory or a GitHub repository. GitHub
sources are shallow-cloned into a temporary directory for the duration
of one command and removed afterwards.
"""

from __future__ import annotations

import logging
import re
import shutil
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from agent_rig.adapters.shell.command import run_command
from agent_rig.core.config.loader import ConfigError

logger = logging.getLogger(__name__)

_GITHUB_URL = re.compile(r"^https?://github\.com/([^/]+)/([^/.]+)")
_GITHUB_SHORTHAND = re.compile(r"^([a-zA-Z0-9_.-]+)/([a-zA-Z0-9_.-]+)$")


@dataclass(frozen=True)
class RigSource:
    """A resolved source string.

    ``kind`` is ``"local"`` (``path`` set) or ``"github"`` (``owner``,
    ``repo`` and ``url`` set).
    """

    kind: str
    path: str | None = None
    owner: str | None = None
    repo: str | None = None
    url: str | None = None

    @property
    def is_local(self) -> bool:
        return self.kind == "local"

    @classmethod
    def local(cls, path: str) -> RigSource:
        return cls(kind="local", path=path)

    @classmethod
    def github(cls, owner: str, repo: str) -> RigSource:
        return cls(
            kind="github",
            owner=owner,
            repo=repo,
            url=f"https://github.com/{owner}/{repo}.git",
        )


def resolve_source(text: str) -> RigSource:
    """Classify a source argument.

    Explicit paths (``/``, ``./``, ``../``) are always local. Otherwise a
    GitHub URL wins, then anything that exists on disk, then the
    ``owner/repo`` shorthand. Whatever remains is treated as a local path.
    """
    if text.startswith(("/", "./", "../")):
        return RigSource.local(text)

    match = _GITHUB_URL.match(text)
    if match:
        return RigSource.github(match.group(1), match.group(2))

    if Path(text).exists():
        return RigSource.local(text)

    match = _GITHUB_SHORTHAND.match(text)
    if match:
        return RigSource.github(match.group(1), match.group(2))

    return RigSource.local(text)


async def clone(source: RigSource, timeout: float = 60.0) -> Path:
    """Shallow-clone a GitHub source into a new temporary directory."""
    dest = Path(tempfile.mkdtemp(prefix=f"agent-rig-{source.repo}-"))
    logger.info("Cloning %s into %s", source.url, dest)
    result = await run_command(
        "git", ["clone", "--depth", "1", source.url, str(dest)], timeout=timeout
    )
    if not result.ok:
        shutil.rmtree(dest, ignore_errors=True)
        raise ConfigError(f"Failed to clone {source.url}: {result.output}")
    return dest


@asynccontextmanager
async def materialize(source: RigSource, timeout: float = 60.0) -> AsyncIterator[Path]:
    """Yield a local directory holding the rig; clean up clones on exit.

    Raises:
        ConfigError: The local path does not exist or the clone failed.
    """
    if source.is_local:
        path = Path(source.path).expanduser()
        if not path.is_dir():
            raise ConfigError(f"Rig directory not found: {source.path}")
        yield path
        return

    dest = await clone(source, timeout)
    try:
        yield dest
    finally:
        shutil.rmtree(dest, ignore_errors=True)
        logger.debug("Removed clone %s", dest)
