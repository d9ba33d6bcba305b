"""Tests for the command-line interface."""

from unittest.mock import AsyncMock, Mock, patch

import pytest
from typer.testing import CliRunner

from ssh_tunnel_manager.cli import app, serve
from ssh_tunnel_manager.common.context import RunContext
from ssh_tunnel_manager.common.exceptions import AgentStartError, ConfigurationError
from ssh_tunnel_manager.config import ManagerConfig

runner = CliRunner()

CONFIG = """\
type: wrapped
defaultUser: ops
defaultBindIP: 127.0.0.1
tunnels:
  - name: api
    host: bastion
    hostIP: 192.168.0.10
    hostPort: 6443
    bindPort: 2001
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "tunnels.yaml"
    path.write_text(CONFIG)
    return str(path)


@pytest.fixture
def mock_setup_logging():
    with patch("ssh_tunnel_manager.cli.setup_logging") as mock:
        yield mock


class TestCheckCommand:
    """Test the check command."""

    def test_prints_effective_config(self, config_file):
        result = runner.invoke(app, ["check", "--config", config_file])

        assert result.exit_code == 0
        assert "name: api" in result.output
        assert "user: ops" in result.output
        assert "bindIP: 127.0.0.1" in result.output

    def test_invalid_config(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("tunnels:\n  - name: api\n")

        result = runner.invoke(app, ["check", "-c", str(path)])

        assert result.exit_code == 1
        assert "Configuration is not valid" in result.output


class TestRunCommand:
    """Test the run command."""

    def test_runs_supervisor(self, config_file, mock_setup_logging):
        with patch("ssh_tunnel_manager.cli.serve", new_callable=AsyncMock) as mock_serve:
            result = runner.invoke(
                app, ["run", "--config", config_file, "--log-level", "DEBUG", "--json-logs"]
            )

        assert result.exit_code == 0
        mock_setup_logging.assert_called_once_with(level="DEBUG", json_format=True, log_file=None)
        config = mock_serve.await_args.args[0]
        assert isinstance(config, ManagerConfig)
        assert config.tunnels[0].name == "api"

    def test_config_error_exits(self, tmp_path, mock_setup_logging):
        with patch("ssh_tunnel_manager.cli.serve", new_callable=AsyncMock) as mock_serve:
            result = runner.invoke(app, ["run", "--config", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 1
        mock_serve.assert_not_awaited()

    def test_fatal_startup_error_exits(self, config_file, mock_setup_logging):
        with patch(
            "ssh_tunnel_manager.cli.serve",
            new_callable=AsyncMock,
            side_effect=AgentStartError("error running ssh-agent: not found"),
        ):
            result = runner.invoke(app, ["run", "--config", config_file])

        assert result.exit_code == 1

    def test_no_arguments_shows_help(self):
        result = runner.invoke(app, [])

        assert "run" in result.output
        assert "check" in result.output


class TestServe:
    """Test serve."""

    @pytest.mark.asyncio
    async def test_runs_supervisor_with_context(self, make_tunnel):
        supervisor = Mock()
        supervisor.run = AsyncMock()
        ctx = RunContext()
        config = ManagerConfig(tunnels=[make_tunnel()])

        with patch("ssh_tunnel_manager.cli.create_supervisor", return_value=supervisor):
            await serve(config, ctx)

        supervisor.run.assert_awaited_once_with(ctx)

    @pytest.mark.asyncio
    async def test_supervisor_errors_propagate(self, make_tunnel):
        supervisor = Mock()
        supervisor.run = AsyncMock(side_effect=ConfigurationError("unknown type"))

        with patch("ssh_tunnel_manager.cli.create_supervisor", return_value=supervisor):
            with pytest.raises(ConfigurationError):
                await serve(ManagerConfig(tunnels=[make_tunnel()]), RunContext())
