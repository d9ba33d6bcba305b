"""Tunnel driver that runs the system ssh client."""

import asyncio
from collections import deque

from ..agent.models import AgentHandle
from ..common.context import RunContext, wait_first
from ..common.exceptions import TunnelProcessError
from ..common.logging import get_logger
from ..common.process import DEFAULT_STOP_TIMEOUT, build_env, stop_process
from ..config import TunnelDescriptor

logger = get_logger(__name__)

# Characters of ssh stderr kept for error messages
STDERR_TAIL = 2000

# Seconds to wait for stderr EOF once ssh has exited; helpers such as a
# ProxyCommand can keep the pipe open after ssh is gone
STDERR_DRAIN_TIMEOUT = 1.0


def build_ssh_command(tunnel: TunnelDescriptor, ssh_command: str = "ssh") -> list[str]:
    """Build the ssh argv for one local forward.

    Example::

        ssh -o StrictHostKeyChecking=no -N user@example-host \\
            -L 127.0.0.1:2001:192.168.0.10:6443
    """
    argv = [
        ssh_command,
        "-o",
        "StrictHostKeyChecking=no",
        "-N",
        tunnel.destination,
        "-L",
        tunnel.forward_spec,
    ]
    if tunnel.private_key_path:
        argv.extend(["-i", tunnel.private_key_path])
    return argv


class SSHCommandDriver:
    """Holds a tunnel by keeping an ``ssh -N -L`` process running.

    Passphrase-protected keys must already be loaded into the agent whose
    handle is passed to ``hold``; ssh finds it through ``SSH_AUTH_SOCK``.
    """

    def __init__(self, ssh_command: str = "ssh", stop_timeout: float = DEFAULT_STOP_TIMEOUT):
        self.ssh_command = ssh_command
        self.stop_timeout = stop_timeout

    async def hold(
        self,
        ctx: RunContext,
        tunnel: TunnelDescriptor,
        agent: AgentHandle | None = None,
    ) -> None:
        """Run ssh until it exits or ``ctx`` is cancelled.

        Raises:
            TunnelProcessError: If ssh cannot be started or exits non-zero
        """
        argv = build_ssh_command(tunnel, self.ssh_command)
        env = build_env(agent.environment() if agent else {})
        log = logger.bind(name=tunnel.name)

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as e:
            raise TunnelProcessError(f"failed to start {self.ssh_command}: {e}") from e

        log.debug("ssh started", pid=process.pid, forward=tunnel.forward_spec)
        chunks: deque[bytes] = deque()
        stderr_task = asyncio.ensure_future(_read_tail(process.stderr, chunks))
        exited = asyncio.ensure_future(process.wait())
        try:
            cancelled = await wait_first(ctx, exited)
        finally:
            if not exited.done():
                # Cancelled by the run or from outside: do not leave ssh behind
                log.debug("Stopping ssh", pid=process.pid)
                await stop_process(process, self.stop_timeout)
                await exited
            await _finish_reading(stderr_task)
        stderr = b"".join(chunks).decode(errors="replace")[-STDERR_TAIL:]

        if cancelled:
            return
        returncode = exited.result()

        if returncode != 0:
            raise TunnelProcessError(
                f"ssh exited with status {returncode}: {stderr.strip()}",
                returncode=returncode,
                output=stderr,
            )


async def _read_tail(stream: asyncio.StreamReader | None, chunks: deque[bytes]) -> None:
    """Read ``stream`` to EOF, keeping roughly the last STDERR_TAIL bytes"""
    if stream is None:
        return
    size = 0
    while True:
        chunk = await stream.read(4096)
        if not chunk:
            return
        chunks.append(chunk)
        size += len(chunk)
        while len(chunks) > 1 and size - len(chunks[0]) >= STDERR_TAIL:
            size -= len(chunks.popleft())


async def _finish_reading(task: "asyncio.Future[None]") -> None:
    try:
        await asyncio.wait_for(task, timeout=STDERR_DRAIN_TIMEOUT)
    except TimeoutError:
        logger.debug("ssh stderr still open after exit, giving up on it")
