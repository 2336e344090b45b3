"""Type definitions for Remote Admin Tools."""

from __future__ import annotations

import dataclasses
import enum
from typing import Dict, Mapping, Optional, Union

import paramiko

from . import SSH_PORT
from .exceptions import ConfigIncompleteError, SSHCommandError

# System info snapshot, e.g. {"hostname": "box", "os": "Linux"}
SystemInfoSnapshot = Dict[str, str]


@dataclasses.dataclass
class ConnectionConfig:
    """Flat connection record as persisted in the settings file."""

    host: str = ""
    port: str = SSH_PORT
    username: str = ""
    password: str = ""

    def validate(self) -> None:
        """Raise `.ConfigIncompleteError` unless the record can be dialed."""
        if not self.host or not self.username:
            raise ConfigIncompleteError(
                "SSH configuration is incomplete: host and username are required"
            )
        try:
            port = int(self.port)
        except (TypeError, ValueError):
            port = 0
        if not 0 < port < 65536:
            raise ConfigIncompleteError(
                f"SSH configuration is incomplete: invalid port {self.port!r}"
            )

    @property
    def port_number(self) -> int:
        return int(self.port)

    @property
    def target(self) -> str:
        return f"{self.username}@{self.host}:{self.port}"

    def to_dict(self) -> Dict[str, str]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ConnectionConfig:
        """Build a record from a mapping, ignoring unknown keys.

        Missing keys take the default record's values.
        """
        defaults = cls()
        return cls(
            host=str(data.get("host", defaults.host) or ""),
            port=str(data.get("port", defaults.port) or ""),
            username=str(data.get("username", defaults.username) or ""),
            password=str(data.get("password", defaults.password) or ""),
        )


class HostKeyPolicy(enum.Enum):
    """Trust policy applied to the remote host identity."""

    ACCEPT_ANY = "accept-any"
    KNOWN_HOSTS = "known-hosts"


# Authentication methods: exactly one is presented per connection attempt.

@dataclasses.dataclass(frozen=True)
class PasswordAuth:
    secret: str = dataclasses.field(repr=False)


@dataclasses.dataclass(frozen=True)
class PublicKeyAuth:
    key: paramiko.PKey = dataclasses.field(repr=False)
    key_path: str = ""


@dataclasses.dataclass(frozen=True)
class AgentAuth:
    key_count: int


AuthMethod = Union[PasswordAuth, PublicKeyAuth, AgentAuth]


@dataclasses.dataclass(frozen=True)
class CommandOutcome:
    """Result of one remote command.

    ``output`` is the combined stdout/stderr and is kept on failure too.
    ``exit_status`` is None when the remote side never reported one.
    """

    command: str
    output: str
    exit_status: Optional[int]
    error_detail: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.exit_status == 0 and self.error_detail is None

    def raise_for_status(self) -> None:
        """Raise `.SSHCommandError` carrying the output if the command failed."""
        if self.succeeded:
            return
        detail = self.error_detail or f"exit status {self.exit_status}"
        raise SSHCommandError(
            f"Command {self.command!r} failed: {detail}",
            command=self.command,
            return_code=self.exit_status,
            output=self.output,
        )
