"""ssh-agent lifecycle for wrapped tunnels."""

from .controller import PASSPHRASE_ENV, SSHAgent
from .models import AgentHandle, KeyIdentity, distinct_key_identities
from .parser import parse_agent_output, tokenize

__all__ = [
    "SSHAgent",
    "AgentHandle",
    "KeyIdentity",
    "distinct_key_identities",
    "parse_agent_output",
    "tokenize",
    "PASSPHRASE_ENV",
]
