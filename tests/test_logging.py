"""Test logging configuration."""

import logging
import sys
from pathlib import Path

import structlog
from structlog.testing import LogCapture

from ssh_tunnel_manager.common.logging import get_logger, setup_logging


class TestLogging:
    """Test logging functionality."""

    def setup_method(self) -> None:
        """Setup before each test - reset logging configuration."""
        structlog.reset_defaults()
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

    def teardown_method(self) -> None:
        structlog.reset_defaults()

    def test_setup_logging_default(self) -> None:
        """Test default logging setup."""
        setup_logging()
        logger = get_logger("test")
        assert logger is not None
        assert hasattr(logger, "info")
        assert hasattr(logger, "error")
        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_with_level(self) -> None:
        """Test logging setup with custom level."""
        setup_logging(level="debug")
        assert logging.getLogger().level == logging.DEBUG

    def test_asyncssh_logger_is_quieted(self) -> None:
        """asyncssh chatter stays at WARNING unless a higher level is asked for."""
        setup_logging(level="DEBUG")
        assert logging.getLogger("asyncssh").level == logging.WARNING

        setup_logging(level="ERROR")
        assert logging.getLogger("asyncssh").level == logging.ERROR

    def test_setup_logging_json_format(self) -> None:
        """Test logging setup with JSON format."""
        setup_logging(json_format=True)
        logger = get_logger("test")

        cap = LogCapture()
        structlog.configure(processors=[cap])

        logger.info("Tunnel failed", name="db", error="boom")

        assert len(cap.entries) == 1
        assert cap.entries[0]["event"] == "Tunnel failed"
        assert cap.entries[0]["name"] == "db"

    def test_setup_logging_with_file(self, tmp_path: Path) -> None:
        """Test logging setup with file output."""
        log_file = tmp_path / "tunnels.log"
        setup_logging(log_file=str(log_file))

        python_logger = logging.getLogger("test_file")
        python_logger.info("test message")

        for handler in logging.getLogger().handlers:
            handler.flush()

        assert log_file.exists()
        assert "test message" in log_file.read_text()

    def test_console_handler_writes_to_stderr(self) -> None:
        """Console output must not mix with `check` output on stdout."""
        setup_logging()
        handler = logging.getLogger().handlers[0]

        assert isinstance(handler, logging.StreamHandler)
        assert handler.stream is sys.stderr
