"""Protocol interfaces for tunnel drivers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..agent.models import AgentHandle
    from ..common.context import RunContext
    from ..config import TunnelDescriptor


class TunnelDriver(Protocol):
    """Something that can hold one tunnel open."""

    async def hold(
        self,
        ctx: RunContext,
        tunnel: TunnelDescriptor,
        agent: AgentHandle | None = None,
    ) -> None:
        """Keep ``tunnel`` open until it fails or ``ctx`` is cancelled.

        Returning, cleanly or by raising, means the tunnel is down.
        """
        ...
