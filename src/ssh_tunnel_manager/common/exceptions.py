"""Custom exceptions for SSH tunnel manager."""


class TunnelManagerError(Exception):
    """Base exception for all SSH tunnel manager errors."""
    pass


class ConfigurationError(TunnelManagerError):
    """Raised when configuration is missing or invalid."""
    pass


class ProcessError(TunnelManagerError):
    """Raised when an external program cannot be started."""
    pass


class AgentError(TunnelManagerError):
    """Base exception for ssh-agent lifecycle failures."""
    pass


class AgentStartError(AgentError):
    """Raised when ssh-agent fails to start."""
    pass


class AgentOutputError(AgentError):
    """Raised when ssh-agent startup output cannot be parsed."""
    pass


class KeyRegistrationError(AgentError):
    """Raised when a private key cannot be added to the agent."""
    pass


class KeyLoadError(TunnelManagerError):
    """Raised when private key material cannot be loaded for a native tunnel."""
    pass


class TunnelError(TunnelManagerError):
    """Raised when a tunnel stops holding its forward."""
    pass


class TunnelProcessError(TunnelError):
    """Raised when an ssh tunnel process exits with a failure."""

    def __init__(self, message: str, returncode: int | None = None, output: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.output = output
