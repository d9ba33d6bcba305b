"""Configuration models and loading for SSH tunnel manager."""

from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .common.exceptions import ConfigurationError
from .common.logging import get_logger
from .common.utils import MAX_PORT, MIN_PORT, validate_non_empty_string

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = "~/.ssh-tunnel-manager.yaml"

# Per-tunnel keys that fall back to a top-level default
_TUNNEL_DEFAULTS = {
    "user": "default_user",
    "bind_ip": "default_bind_ip",
    "private_key_path": "default_private_key_path",
    "passphrase_path": "default_passphrase_path",
}


class TunnelType(str, Enum):
    """How tunnels are driven."""

    NATIVE = "native"
    WRAPPED = "wrapped"


class TunnelDescriptor(BaseModel):
    """Validated, immutable description of one local forward."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="forbid",
    )

    name: str = Field(description="Unique tunnel name")
    user: str = Field(description="Remote login user")
    host: str = Field(description="SSH server to connect to")
    host_ip: str = Field(alias="hostIP", description="Address to reach from the SSH server")
    host_port: int = Field(alias="hostPort", ge=MIN_PORT, le=MAX_PORT, description="Port to reach from the SSH server")
    bind_ip: str = Field(alias="bindIP", description="Local address to listen on")
    bind_port: int = Field(alias="bindPort", ge=MIN_PORT, le=MAX_PORT, description="Local port to listen on")
    private_key_path: str | None = Field(default=None, alias="privateKeyPath")
    passphrase_path: str | None = Field(default=None, alias="passPhrasePath")

    @field_validator("name", "user", "host", "host_ip", "bind_ip", mode="before")
    @classmethod
    def validate_required(cls, v: Any, info: Any) -> Any:
        """Reject empty and missing values with the original field name"""
        if v is None or (isinstance(v, str) and not v.strip()):
            field = cls.model_fields[info.field_name]
            raise ValueError(f"{field.alias or info.field_name} is required")
        return v

    @field_validator("private_key_path", "passphrase_path", mode="before")
    @classmethod
    def normalize_path(cls, v: Any) -> Any:
        """Treat empty paths as unset and expand ``~``"""
        if isinstance(v, str):
            if not v.strip():
                return None
            return str(Path(v.strip()).expanduser())
        return v

    @model_validator(mode="after")
    def validate_key_pair(self) -> "TunnelDescriptor":
        if self.passphrase_path and not self.private_key_path:
            raise ValueError("privateKeyPath is required if passPhrasePath defined")
        return self

    @property
    def destination(self) -> str:
        """``user@host`` login target"""
        return f"{self.user}@{self.host}"

    @property
    def forward_spec(self) -> str:
        """Local forward in ssh ``-L`` syntax"""
        return f"{self.bind_ip}:{self.bind_port}:{self.host_ip}:{self.host_port}"


class ManagerConfig(BaseModel):
    """Top-level configuration file model."""

    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="forbid",
    )

    type: TunnelType = Field(default=TunnelType.NATIVE, description="native or wrapped")
    default_user: str | None = Field(default=None, alias="defaultUser")
    default_bind_ip: str | None = Field(default=None, alias="defaultBindIP")
    default_private_key_path: str | None = Field(default=None, alias="defaultPrivateKeyPath")
    default_passphrase_path: str | None = Field(default=None, alias="defaultPassPhrasePath")
    restart_delay: float = Field(
        default=0.0, ge=0.0, le=60.0, alias="restartDelay",
        description="Seconds to wait before restarting a failed tunnel",
    )
    ssh_command: str = Field(default="ssh", alias="sshCommand")
    ssh_agent_command: str = Field(default="ssh-agent", alias="sshAgentCommand")
    ssh_add_command: str = Field(default="ssh-add.exp", alias="sshAddCommand")
    tunnels: list[TunnelDescriptor] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def apply_tunnel_defaults(cls, data: Any) -> Any:
        """Fill unset per-tunnel fields from the top-level defaults"""
        if not isinstance(data, dict):
            return data
        tunnels = data.get("tunnels")
        if not isinstance(tunnels, list):
            return data

        defaults = {
            field: _lookup(data, default_name)
            for field, default_name in _TUNNEL_DEFAULTS.items()
        }
        filled = []
        for entry in tunnels:
            if isinstance(entry, dict):
                entry = dict(entry)
                for field, default in defaults.items():
                    if default and not _lookup(entry, field):
                        entry[cls._tunnel_key(entry, field)] = default
            filled.append(entry)
        return {**data, "tunnels": filled}

    @staticmethod
    def _tunnel_key(entry: dict[str, Any], field: str) -> str:
        # Keep whichever spelling the entry already uses
        alias = TunnelDescriptor.model_fields[field].alias
        if field in entry or alias is None:
            return field
        return alias

    @field_validator("ssh_command", "ssh_agent_command", "ssh_add_command")
    @classmethod
    def validate_command(cls, v: str, info: Any) -> str:
        return validate_non_empty_string(v, info.field_name)

    @model_validator(mode="after")
    def validate_unique_names(self) -> "ManagerConfig":
        names = {tunnel.name for tunnel in self.tunnels}
        if len(names) != len(self.tunnels):
            raise ValueError("overlapping tunnel names")
        return self

    def verify_paths(self) -> None:
        """Check that every referenced key and passphrase file exists.

        Raises:
            ConfigurationError: If a file is missing
        """
        missing = []
        for tunnel in self.tunnels:
            for path in (tunnel.private_key_path, tunnel.passphrase_path):
                if path and not Path(path).exists():
                    missing.append(f"file {path} does not exist")
        if missing:
            raise ConfigurationError(
                "config is not valid: " + "; ".join(dict.fromkeys(missing))
            )

    def dump(self) -> str:
        """Render the effective configuration as YAML for logging"""
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        return yaml.safe_dump(data, sort_keys=False)


def _lookup(data: dict[str, Any], field: str) -> Any:
    """Read a field by its python name or its alias"""
    model = TunnelDescriptor if field in TunnelDescriptor.model_fields else ManagerConfig
    alias = model.model_fields[field].alias
    if data.get(field):
        return data[field]
    if alias is not None:
        return data.get(alias)
    return None


def load_config(path: str | None = None) -> ManagerConfig:
    """Load, default and validate a configuration file.

    Args:
        path: YAML file to read (``~/.ssh-tunnel-manager.yaml`` if None)

    Returns:
        Validated ManagerConfig

    Raises:
        ConfigurationError: If the file cannot be read or is not valid
    """
    config_path = Path(path or DEFAULT_CONFIG_PATH).expanduser()
    logger.debug("Loading configuration", path=str(config_path))

    try:
        raw = config_path.read_text()
    except OSError as e:
        raise ConfigurationError(f"failed to read config file: {e}") from e

    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"failed to parse config file: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError("config file must contain a mapping")

    try:
        config = ManagerConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"config is not valid: {e}") from e

    config.verify_paths()
    logger.info("Configuration loaded", path=str(config_path), tunnels=len(config.tunnels))
    return config
