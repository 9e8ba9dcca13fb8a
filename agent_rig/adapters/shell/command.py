"""
Shell command runner — the one place subprocesses are spawned.

Platform adapters and the tool installer build on these helpers. Every
call is bounded by a timeout; a process that outlives it is killed and
reaped. The helpers never raise: failures come back in the CommandResult.

Children run in their own session, so a timeout kills the whole process
group. Installers such as ``curl ... | sh`` fork grandchildren that would
otherwise keep the output pipes open after the direct child is gone.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of one subprocess invocation."""

    ok: bool
    output: str = ""
    return_code: int | None = None
    timed_out: bool = False
    duration_ms: int = 0


def _kill(process: asyncio.subprocess.Process) -> None:
    """SIGKILL the process group led by ``process``."""
    with contextlib.suppress(ProcessLookupError, PermissionError):
        os.killpg(process.pid, signal.SIGKILL)
    with contextlib.suppress(ProcessLookupError):
        process.kill()


async def _communicate(
    process: asyncio.subprocess.Process,
    timeout: float,
    label: str,
    start: float,
) -> CommandResult:
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.CancelledError:
        # the caller's own deadline expired; don't leave the group behind
        _kill(process)
        raise
    except asyncio.TimeoutError:
        _kill(process)
        await process.wait()
        logger.warning("Timed out after %ss: %s", timeout, label)
        return CommandResult(
            ok=False,
            output=f"timed out after {timeout:g}s",
            timed_out=True,
            duration_ms=int((time.monotonic() - start) * 1000),
        )

    elapsed_ms = int((time.monotonic() - start) * 1000)
    text = (
        stdout.decode("utf-8", errors="replace") + stderr.decode("utf-8", errors="replace")
    ).strip()
    ok = process.returncode == 0
    logger.debug("%s → rc=%s (%dms)", label, process.returncode, elapsed_ms)
    return CommandResult(
        ok=ok,
        output=text if text or ok else f"exited with code {process.returncode}",
        return_code=process.returncode,
        duration_ms=elapsed_ms,
    )


async def run_command(cmd: str, args: list[str], timeout: float = 30.0) -> CommandResult:
    """Run ``cmd args...`` without a shell and capture combined output."""
    label = " ".join([cmd, *args])
    logger.debug("Executing: %s", label)
    start = time.monotonic()
    try:
        process = await asyncio.create_subprocess_exec(
            cmd,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except FileNotFoundError:
        return CommandResult(ok=False, output=f"command not found: {cmd}")
    except OSError as e:
        return CommandResult(ok=False, output=f"cannot run {cmd}: {e}")
    return await _communicate(process, timeout, label, start)


async def run_shell(script: str, timeout: float = 30.0) -> CommandResult:
    """Run ``script`` through ``sh -c``."""
    logger.debug("Executing (sh): %s", script)
    start = time.monotonic()
    try:
        process = await asyncio.create_subprocess_shell(
            script,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except OSError as e:
        return CommandResult(ok=False, output=f"cannot run shell: {e}")
    return await _communicate(process, timeout, script, start)
