"""Command-line interface for SSH tunnel manager."""

import asyncio
import sys
from typing import Optional

import typer

from .common.context import RunContext
from .common.exceptions import TunnelManagerError
from .common.logging import get_logger, setup_logging
from .config import ManagerConfig, load_config
from .manager import create_supervisor

app = typer.Typer(
    name="ssh-tunnel-manager",
    help="Keep a set of SSH local-forward tunnels alive.",
    no_args_is_help=True,
)

logger = get_logger(__name__)


@app.command()
def run(
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to ssh-tunnel-manager config file"
    ),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Also write logs to this file"),
) -> None:
    """Start every configured tunnel and keep them up until interrupted."""
    setup_logging(level=log_level, json_format=json_logs, log_file=log_file)
    logger.info("Options", config=config_file, log_level=log_level)

    try:
        config = load_config(config_file)
    except TunnelManagerError as e:
        logger.error("Failed to load config", error=str(e))
        sys.exit(1)

    logger.info("Configuration:\n" + config.dump())

    try:
        asyncio.run(serve(config))
    except TunnelManagerError as e:
        logger.error("Tunnel manager failed", error=str(e))
        sys.exit(1)


@app.command()
def check(
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to ssh-tunnel-manager config file"
    ),
) -> None:
    """Validate a config file and print the effective configuration."""
    try:
        config = load_config(config_file)
    except TunnelManagerError as e:
        typer.echo(f"Configuration is not valid: {e}", err=True)
        sys.exit(1)
    typer.echo(config.dump(), nl=False)


async def serve(config: ManagerConfig, ctx: RunContext | None = None) -> None:
    """Run the supervisor for ``config`` until SIGINT or SIGTERM.

    Raises:
        TunnelManagerError: On fatal startup errors
    """
    ctx = ctx or RunContext()
    supervisor = create_supervisor(config)

    ctx.install_signal_handlers()
    try:
        await supervisor.run(ctx)
    finally:
        ctx.remove_signal_handlers()


def main() -> None:
    app()
