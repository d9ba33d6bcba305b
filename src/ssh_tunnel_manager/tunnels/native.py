"""In-process tunnel driver built on asyncssh."""

import asyncio
from collections.abc import Iterable
from typing import Any

import asyncssh

from ..agent.models import AgentHandle
from ..common.context import RunContext, wait_first
from ..common.exceptions import KeyLoadError, TunnelError
from ..common.logging import get_logger
from ..common.utils import read_passphrase
from ..config import TunnelDescriptor

logger = get_logger(__name__)

DEFAULT_KEEPALIVE_INTERVAL = 30
DEFAULT_CONNECT_TIMEOUT = 30


def load_client_key(tunnel: TunnelDescriptor) -> asyncssh.SSHKey | None:
    """Load the private key a tunnel authenticates with.

    Returns:
        The decrypted key, or None if the tunnel does not name one

    Raises:
        KeyLoadError: If the key or its passphrase cannot be read
    """
    if not tunnel.private_key_path:
        return None

    passphrase = None
    if tunnel.passphrase_path:
        try:
            passphrase = read_passphrase(tunnel.passphrase_path)
        except OSError as e:
            raise KeyLoadError(f"failed to read passphrase file: {e}") from e

    try:
        return asyncssh.read_private_key(tunnel.private_key_path, passphrase)
    except (OSError, asyncssh.KeyImportError, asyncssh.KeyEncryptionError) as e:
        raise KeyLoadError(f"failed to load private key {tunnel.private_key_path}: {e}") from e


class NativeTunnelDriver:
    """Holds tunnels over asyncssh connections managed in this process.

    Each tunnel authenticates with its own key, decrypted once at
    construction. The ssh-agent handle is never used.
    """

    def __init__(
        self,
        tunnels: Iterable[TunnelDescriptor] = (),
        keepalive_interval: int = DEFAULT_KEEPALIVE_INTERVAL,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ):
        """Initialize NativeTunnelDriver.

        Args:
            tunnels: Tunnels whose keys should be loaded up front
            keepalive_interval: Seconds between ssh keepalive requests
            connect_timeout: Seconds allowed for connecting and logging in

        Raises:
            KeyLoadError: If any tunnel's key cannot be loaded
        """
        self.keepalive_interval = keepalive_interval
        self.connect_timeout = connect_timeout
        self._keys: dict[str, asyncssh.SSHKey] = {}
        for tunnel in tunnels:
            key = load_client_key(tunnel)
            if key is not None:
                self._keys[tunnel.name] = key

    def connect_options(self, tunnel: TunnelDescriptor) -> dict[str, Any]:
        """Keyword arguments for ``asyncssh.connect``"""
        options: dict[str, Any] = {
            "username": tunnel.user,
            "known_hosts": None,
            "keepalive_interval": self.keepalive_interval,
            "connect_timeout": self.connect_timeout,
        }
        key = self._keys.get(tunnel.name)
        if key is None and tunnel.private_key_path:
            key = load_client_key(tunnel)
            if key is not None:
                self._keys[tunnel.name] = key
        if key is not None:
            options["client_keys"] = [key]
        return options

    async def hold(
        self,
        ctx: RunContext,
        tunnel: TunnelDescriptor,
        agent: AgentHandle | None = None,
    ) -> None:
        """Connect, forward the local port and wait for the link to drop.

        Raises:
            TunnelError: If the connection or the listener cannot be set up
        """
        log = logger.bind(name=tunnel.name)
        options = self.connect_options(tunnel)

        connecting = asyncio.ensure_future(asyncssh.connect(tunnel.host, **options))
        try:
            if await wait_first(ctx, connecting):
                log.debug("Cancelled while connecting", host=tunnel.host)
                return
            conn = connecting.result()
        except (OSError, asyncssh.Error) as e:
            raise TunnelError(f"failed to connect to {tunnel.host}: {e}") from e
        finally:
            if not connecting.done():
                await _abandon_connect(connecting)

        try:
            try:
                listener = await conn.forward_local_port(
                    tunnel.bind_ip, tunnel.bind_port, tunnel.host_ip, tunnel.host_port
                )
            except (OSError, asyncssh.Error) as e:
                raise TunnelError(f"failed to forward {tunnel.forward_spec}: {e}") from e

            log.debug("Forward established", forward=tunnel.forward_spec)
            closed = asyncio.ensure_future(conn.wait_closed())
            try:
                await wait_first(ctx, closed)
            finally:
                listener.close()
                if not closed.done():
                    closed.cancel()
        finally:
            conn.close()
            await conn.wait_closed()


async def _abandon_connect(connecting: "asyncio.Future[asyncssh.SSHClientConnection]") -> None:
    # The connect may finish before the cancel lands; close what it made
    connecting.cancel()
    await asyncio.wait({connecting})
    if connecting.cancelled() or connecting.exception() is not None:
        return
    connecting.result().close()
