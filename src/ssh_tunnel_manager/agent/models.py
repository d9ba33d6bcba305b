"""Value types owned by the ssh-agent controller."""

from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

from ..config import TunnelDescriptor

AUTH_SOCK_ENV = "SSH_AUTH_SOCK"
AGENT_PID_ENV = "SSH_AGENT_PID"


class AgentHandle(BaseModel):
    """Connection details of a running ssh-agent."""

    model_config = ConfigDict(frozen=True)

    auth_sock: str = Field(min_length=1, description="Agent socket path")
    pid: int = Field(gt=0, description="Agent process id")

    def environment(self) -> dict[str, str]:
        """Variables that let ssh and ssh-add find this agent"""
        return {AUTH_SOCK_ENV: self.auth_sock, AGENT_PID_ENV: str(self.pid)}


class KeyIdentity(BaseModel):
    """A private key together with the file holding its passphrase."""

    model_config = ConfigDict(frozen=True)

    passphrase_path: str | None = None
    private_key_path: str | None = None

    @property
    def is_empty(self) -> bool:
        """Nothing to register unless both halves are present"""
        return not (self.passphrase_path and self.private_key_path)

    @classmethod
    def from_tunnel(cls, tunnel: TunnelDescriptor) -> "KeyIdentity":
        return cls(
            passphrase_path=tunnel.passphrase_path,
            private_key_path=tunnel.private_key_path,
        )


def distinct_key_identities(tunnels: Iterable[TunnelDescriptor]) -> list[KeyIdentity]:
    """Keys that need registering, each once, in first-seen order."""
    identities = dict.fromkeys(KeyIdentity.from_tunnel(tunnel) for tunnel in tunnels)
    return [identity for identity in identities if not identity.is_empty]
