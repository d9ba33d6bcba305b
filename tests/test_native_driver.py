"""Tests for the asyncssh tunnel driver."""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import asyncssh
import pytest

from ssh_tunnel_manager.common.context import RunContext
from ssh_tunnel_manager.common.exceptions import KeyLoadError, TunnelError
from ssh_tunnel_manager.tunnels.native import NativeTunnelDriver, load_client_key


class FakeConnection:
    """Minimal stand-in for asyncssh.SSHClientConnection."""

    def __init__(self, forward_error=None):
        self.listener = Mock()
        self.forward_error = forward_error
        self.forwards = []
        self._closed = asyncio.Event()

    async def forward_local_port(self, listen_host, listen_port, dest_host, dest_port):
        if self.forward_error:
            raise self.forward_error
        self.forwards.append((listen_host, listen_port, dest_host, dest_port))
        return self.listener

    def drop(self):
        self._closed.set()

    def close(self):
        self._closed.set()

    async def wait_closed(self):
        await self._closed.wait()

    @property
    def closed(self):
        return self._closed.is_set()


@pytest.fixture
def mock_connect():
    with patch(
        "ssh_tunnel_manager.tunnels.native.asyncssh.connect", new_callable=AsyncMock
    ) as mock:
        yield mock


class TestLoadClientKey:
    """Test load_client_key."""

    def test_no_key(self, make_tunnel):
        assert load_client_key(make_tunnel()) is None

    @patch("ssh_tunnel_manager.tunnels.native.asyncssh.read_private_key")
    def test_passphrase_is_trimmed(self, mock_read, make_tunnel, key_files):
        key_path, passphrase_path = key_files
        tunnel = make_tunnel(private_key_path=key_path, passphrase_path=passphrase_path)

        key = load_client_key(tunnel)

        assert key is mock_read.return_value
        mock_read.assert_called_once_with(key_path, "s3cret")

    @patch("ssh_tunnel_manager.tunnels.native.asyncssh.read_private_key")
    def test_key_without_passphrase(self, mock_read, make_tunnel, key_files):
        key_path, _ = key_files

        load_client_key(make_tunnel(private_key_path=key_path))

        mock_read.assert_called_once_with(key_path, None)

    def test_garbage_key(self, make_tunnel, tmp_path):
        key_path = tmp_path / "broken"
        key_path.write_text("not a key")

        with pytest.raises(KeyLoadError, match="failed to load private key"):
            load_client_key(make_tunnel(private_key_path=str(key_path)))

    @patch(
        "ssh_tunnel_manager.tunnels.native.asyncssh.read_private_key",
        side_effect=asyncssh.KeyEncryptionError("Incorrect passphrase"),
    )
    def test_wrong_passphrase(self, mock_read, make_tunnel, key_files):
        key_path, passphrase_path = key_files

        with pytest.raises(KeyLoadError, match="Incorrect passphrase"):
            load_client_key(make_tunnel(private_key_path=key_path, passphrase_path=passphrase_path))

    def test_missing_passphrase_file(self, make_tunnel, key_files, tmp_path):
        key_path, _ = key_files
        tunnel = make_tunnel(private_key_path=key_path, passphrase_path=str(tmp_path / "gone"))

        with pytest.raises(KeyLoadError, match="failed to read passphrase file"):
            load_client_key(tunnel)


class TestNativeTunnelDriver:
    """Test NativeTunnelDriver."""

    @patch("ssh_tunnel_manager.tunnels.native.asyncssh.read_private_key")
    def test_keys_loaded_once_per_tunnel(self, mock_read, make_tunnel, key_files):
        key_path, passphrase_path = key_files
        tunnel = make_tunnel(private_key_path=key_path, passphrase_path=passphrase_path)
        driver = NativeTunnelDriver([tunnel, make_tunnel(name="plain")])

        options = driver.connect_options(tunnel)
        driver.connect_options(tunnel)

        assert mock_read.call_count == 1
        assert options["client_keys"] == [mock_read.return_value]
        assert options["username"] == "deploy"
        assert options["known_hosts"] is None

    def test_options_without_key(self, make_tunnel):
        options = NativeTunnelDriver().connect_options(make_tunnel())

        assert "client_keys" not in options
        assert options["keepalive_interval"] == 30
        assert options["connect_timeout"] == 30

    @pytest.mark.asyncio
    async def test_hold_forwards_until_cancelled(self, make_tunnel, mock_connect):
        conn = FakeConnection()
        mock_connect.return_value = conn
        ctx = RunContext()

        task = asyncio.create_task(NativeTunnelDriver().hold(ctx, make_tunnel()))
        await asyncio.sleep(0.01)
        assert not task.done()
        ctx.cancel()
        await asyncio.wait_for(task, timeout=1.0)

        mock_connect.assert_awaited_once()
        assert mock_connect.await_args.args == ("bastion.example.com",)
        assert conn.forwards == [("127.0.0.1", 15432, "10.0.0.5", 5432)]
        conn.listener.close.assert_called_once()
        assert conn.closed

    @pytest.mark.asyncio
    async def test_hold_returns_when_connection_drops(self, make_tunnel, mock_connect):
        conn = FakeConnection()
        mock_connect.return_value = conn
        ctx = RunContext()

        task = asyncio.create_task(NativeTunnelDriver().hold(ctx, make_tunnel()))
        await asyncio.sleep(0.01)
        conn.drop()
        await asyncio.wait_for(task, timeout=1.0)

        assert not ctx.cancelled
        conn.listener.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_cancel_while_connecting_returns_promptly(self, make_tunnel, mock_connect):
        started = asyncio.Event()
        interrupted = asyncio.Event()

        async def slow_connect(host, **options):
            started.set()
            try:
                await asyncio.sleep(120)
            except asyncio.CancelledError:
                interrupted.set()
                raise

        mock_connect.side_effect = slow_connect
        ctx = RunContext()

        task = asyncio.create_task(NativeTunnelDriver().hold(ctx, make_tunnel()))
        await asyncio.wait_for(started.wait(), timeout=1.0)
        ctx.cancel()

        await asyncio.wait_for(task, timeout=1.0)
        assert interrupted.is_set()

    def test_connect_timeout_is_bounded(self, make_tunnel):
        options = NativeTunnelDriver(connect_timeout=5).connect_options(make_tunnel())

        assert options["connect_timeout"] == 5

    @pytest.mark.asyncio
    async def test_connect_failure(self, make_tunnel, mock_connect):
        mock_connect.side_effect = OSError("Connection refused")

        with pytest.raises(TunnelError, match="failed to connect to bastion.example.com"):
            await NativeTunnelDriver().hold(RunContext(), make_tunnel())

    @pytest.mark.asyncio
    async def test_auth_failure(self, make_tunnel, mock_connect):
        mock_connect.side_effect = asyncssh.PermissionDenied("Permission denied")

        with pytest.raises(TunnelError, match="Permission denied"):
            await NativeTunnelDriver().hold(RunContext(), make_tunnel())

    @pytest.mark.asyncio
    async def test_forward_failure_closes_connection(self, make_tunnel, mock_connect):
        conn = FakeConnection(forward_error=OSError("Address already in use"))
        mock_connect.return_value = conn

        with pytest.raises(TunnelError, match="failed to forward 127.0.0.1:15432:10.0.0.5:5432"):
            await NativeTunnelDriver().hold(RunContext(), make_tunnel())

        assert conn.closed
