"""Restart loop keeping a single tunnel alive."""

import asyncio

from ..agent.models import AgentHandle
from ..common.context import RunContext
from ..common.logging import get_logger
from ..config import TunnelDescriptor
from .interfaces import TunnelDriver

logger = get_logger(__name__)


class TunnelWorker:
    """Holds one tunnel open for the life of a run.

    Every time the driver gives up while the run is still active the tunnel
    is started again, with no retry limit. Only cancellation of the run
    context stops the worker.
    """

    def __init__(
        self,
        tunnel: TunnelDescriptor,
        driver: TunnelDriver,
        agent: AgentHandle | None = None,
        restart_delay: float = 0.0,
    ):
        """Initialize TunnelWorker.

        Args:
            tunnel: Tunnel to keep open
            driver: Driver used for each attempt
            agent: ssh-agent the driver should use, if any
            restart_delay: Seconds to wait between attempts (0 restarts
                immediately)
        """
        self.tunnel = tunnel
        self.driver = driver
        self.agent = agent
        self.restart_delay = restart_delay
        self.attempts = 0
        self.failures = 0

    @property
    def name(self) -> str:
        return self.tunnel.name

    async def run(self, ctx: RunContext) -> None:
        """Run attempts until ``ctx`` is cancelled"""
        log = logger.bind(name=self.tunnel.name)
        try:
            while not ctx.cancelled:
                self.attempts += 1
                log.info("Starting tunnel", attempt=self.attempts)
                try:
                    await self.driver.hold(ctx, self.tunnel, self.agent)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    if ctx.cancelled:
                        break
                    self.failures += 1
                    log.error("Tunnel failed", error=str(e), error_type=type(e).__name__)
                else:
                    if ctx.cancelled:
                        break
                    self.failures += 1
                    log.warning("Tunnel exited unexpectedly")

                log.info("Tunnel finished, restarting", delay=self.restart_delay)
                if await ctx.sleep(self.restart_delay):
                    break
        finally:
            log.info("Stopping tunnel")
