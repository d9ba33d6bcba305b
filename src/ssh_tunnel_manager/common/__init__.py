"""Common utilities and shared functionality."""

from .context import RunContext, wait_first
from .exceptions import (
    AgentError,
    AgentOutputError,
    AgentStartError,
    ConfigurationError,
    KeyLoadError,
    KeyRegistrationError,
    ProcessError,
    TunnelError,
    TunnelManagerError,
    TunnelProcessError,
)
from .logging import get_logger, setup_logging
from .process import CommandResult, build_env, kill_pid, run_command, stop_process
from .utils import (
    MAX_PORT,
    MIN_PORT,
    read_passphrase,
    validate_non_empty_string,
)

__all__ = [
    # Context
    "RunContext",
    "wait_first",
    # Process management
    "CommandResult",
    "build_env",
    "kill_pid",
    "run_command",
    "stop_process",
    # Exceptions
    "TunnelManagerError",
    "ConfigurationError",
    "ProcessError",
    "AgentError",
    "AgentStartError",
    "AgentOutputError",
    "KeyRegistrationError",
    "KeyLoadError",
    "TunnelError",
    "TunnelProcessError",
    # Logging
    "get_logger",
    "setup_logging",
    # Utils
    "validate_non_empty_string",
    "read_passphrase",
    "MIN_PORT",
    "MAX_PORT",
]
