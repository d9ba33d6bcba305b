"""Supervision of all configured tunnels."""

import asyncio
from collections.abc import Sequence

from .agent.controller import SSHAgent
from .agent.models import AgentHandle
from .common.context import RunContext
from .common.exceptions import ConfigurationError
from .common.logging import get_logger
from .config import ManagerConfig, TunnelDescriptor, TunnelType
from .tunnels.interfaces import TunnelDriver
from .tunnels.native import NativeTunnelDriver
from .tunnels.worker import TunnelWorker
from .tunnels.wrapped import SSHCommandDriver

logger = get_logger(__name__)


class TunnelSupervisor:
    """Runs one worker per tunnel until the run context is cancelled.

    When an ssh-agent is attached it is started, and its keys registered,
    before any worker is launched. Failures there abort the run; failures of
    individual tunnels afterwards are only logged and retried by their
    workers.
    """

    def __init__(
        self,
        tunnels: Sequence[TunnelDescriptor],
        driver: TunnelDriver,
        agent: SSHAgent | None = None,
        restart_delay: float = 0.0,
    ):
        self.tunnels = list(tunnels)
        self.driver = driver
        self.agent = agent
        self.restart_delay = restart_delay
        self.workers: list[TunnelWorker] = []

    async def run(self, ctx: RunContext) -> None:
        """Supervise every tunnel until ``ctx`` is cancelled.

        Raises:
            AgentError: If the ssh-agent cannot be started or a key cannot
                be registered
        """
        if not self.tunnels:
            logger.warning("No tunnels configured")
            return

        handle = await self._prepare_agent()

        self.workers = [
            TunnelWorker(tunnel, self.driver, handle, self.restart_delay)
            for tunnel in self.tunnels
        ]
        logger.info("Starting tunnels", count=len(self.workers))

        async with asyncio.TaskGroup() as tg:
            if self.agent is not None:
                tg.create_task(self.agent.watch(ctx), name="ssh-agent-watch")
            for worker in self.workers:
                tg.create_task(worker.run(ctx), name=f"tunnel-{worker.name}")

        logger.info("All tunnels stopped")

    async def _prepare_agent(self) -> AgentHandle | None:
        if self.agent is None:
            return None

        handle = await self.agent.start()
        try:
            registered = await self.agent.register_keys(self.tunnels)
        except BaseException:
            self.agent.terminate()
            raise
        logger.info("ssh-agent ready", keys=registered)
        return handle


def create_supervisor(config: ManagerConfig) -> TunnelSupervisor:
    """Build the supervisor matching ``config.type``.

    Raises:
        ConfigurationError: If the tunnel type is unknown
        KeyLoadError: If a native tunnel's key cannot be loaded
    """
    if config.type == TunnelType.NATIVE:
        return TunnelSupervisor(
            config.tunnels,
            NativeTunnelDriver(config.tunnels),
            restart_delay=config.restart_delay,
        )
    if config.type == TunnelType.WRAPPED:
        return TunnelSupervisor(
            config.tunnels,
            SSHCommandDriver(config.ssh_command),
            agent=SSHAgent(config.ssh_agent_command, config.ssh_add_command),
            restart_delay=config.restart_delay,
        )
    raise ConfigurationError(f"unknown type {config.type!r}")
