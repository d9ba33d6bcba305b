"""SSH Tunnel Manager - keep a fixed set of SSH local forwards alive."""

from .agent import AgentHandle, KeyIdentity, SSHAgent, parse_agent_output
from .common.context import RunContext
from .common.exceptions import (
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
from .common.logging import get_logger, setup_logging
from .config import ManagerConfig, TunnelDescriptor, TunnelType, load_config
from .manager import TunnelSupervisor, create_supervisor
from .tunnels import (
    NativeTunnelDriver,
    SSHCommandDriver,
    TunnelDriver,
    TunnelWorker,
    build_ssh_command,
)

__version__ = "0.1.0"


__all__ = [
    # Supervision
    "TunnelSupervisor",
    "create_supervisor",
    "RunContext",
    # Configuration
    "ManagerConfig",
    "TunnelDescriptor",
    "TunnelType",
    "load_config",
    # Tunnels
    "TunnelDriver",
    "TunnelWorker",
    "NativeTunnelDriver",
    "SSHCommandDriver",
    "build_ssh_command",
    # ssh-agent
    "SSHAgent",
    "AgentHandle",
    "KeyIdentity",
    "parse_agent_output",
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
]
