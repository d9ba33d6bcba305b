"""Subprocess helpers for ssh, ssh-agent and the key helper."""

import asyncio
import os
import signal
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from .exceptions import ProcessError
from .logging import get_logger

logger = get_logger(__name__)

# Grace period between SIGTERM and SIGKILL when stopping a child
DEFAULT_STOP_TIMEOUT = 5.0


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a finished command"""

    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined output, for error messages"""
        return (self.stdout + self.stderr).strip()


def build_env(*overlays: Mapping[str, str]) -> dict[str, str]:
    """Current process environment with ``overlays`` applied in order.

    ``os.environ`` itself is never modified.
    """
    env = dict(os.environ)
    for overlay in overlays:
        env.update(overlay)
    return env


async def run_command(
    argv: Sequence[str], env: Mapping[str, str] | None = None
) -> CommandResult:
    """Run a command to completion and capture its output.

    Args:
        argv: Program and arguments
        env: Full environment for the child (inherits ours if None)

    Returns:
        CommandResult with decoded stdout/stderr

    Raises:
        ProcessError: If the program cannot be started
    """
    logger.debug("Running command", program=argv[0])
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=dict(env) if env is not None else None,
        )
    except OSError as e:
        raise ProcessError(f"Failed to start {argv[0]}: {e}") from e

    try:
        stdout, stderr = await process.communicate()
    except asyncio.CancelledError:
        await stop_process(process)
        raise

    return CommandResult(
        argv=tuple(argv),
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )


async def stop_process(
    process: asyncio.subprocess.Process, timeout: float = DEFAULT_STOP_TIMEOUT
) -> int | None:
    """Stop a child process gracefully, force killing it after ``timeout``.

    Returns:
        The exit code, or None if it could not be collected
    """
    if process.returncode is not None:
        return process.returncode

    try:
        process.terminate()
    except ProcessLookupError:
        pass

    try:
        return await asyncio.wait_for(process.wait(), timeout=timeout)
    except TimeoutError:
        logger.warning(
            "Process did not terminate gracefully, force killing", pid=process.pid
        )

    try:
        process.kill()
    except ProcessLookupError:
        pass
    return await process.wait()


def kill_pid(pid: int) -> bool:
    """Send SIGKILL to a process we did not spawn directly.

    Returns:
        True if the signal was delivered
    """
    try:
        os.kill(pid, signal.SIGKILL)
    except ProcessLookupError:
        logger.warning("Process already gone", pid=pid)
        return False
    except OSError as e:
        logger.error("Failed to kill process", pid=pid, error=str(e))
        return False
    return True
