"""Tunnel drivers and the per-tunnel restart loop."""

from .interfaces import TunnelDriver
from .native import NativeTunnelDriver, load_client_key
from .worker import TunnelWorker
from .wrapped import SSHCommandDriver, build_ssh_command

__all__ = [
    "TunnelDriver",
    "TunnelWorker",
    "NativeTunnelDriver",
    "SSHCommandDriver",
    "build_ssh_command",
    "load_client_key",
]
