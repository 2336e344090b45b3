"""Authentication method selection: password, then SSH agent, then key files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional, Sequence, Tuple, Type

import paramiko

from .exceptions import NoAuthAvailableError
from .types import AgentAuth, AuthMethod, ConnectionConfig, PasswordAuth, PublicKeyAuth

logger = logging.getLogger("remote_admin_tools.auth")

# Candidate key files under ~/.ssh, in the order they are tried, each paired
# with the paramiko key class used to parse it.
DEFAULT_KEY_FILES: Tuple[Tuple[str, Type[paramiko.PKey]], ...] = (
    ("id_ed25519", paramiko.Ed25519Key),
    ("id_rsa", paramiko.RSAKey),
    ("id_ecdsa", paramiko.ECDSAKey),
)


class AuthResolver:
    """Picks exactly one authentication method for a connection attempt."""

    def __init__(
        self,
        home_dir: Optional[Path] = None,
        agent_factory: Callable[[], paramiko.Agent] = paramiko.Agent,
        key_files: Sequence[Tuple[str, Type[paramiko.PKey]]] = DEFAULT_KEY_FILES,
    ) -> None:
        """Initialize the resolver.

        Args:
            home_dir: Directory holding ``.ssh`` (default: the user's home)
            agent_factory: Callable returning an object with ``get_keys()``
                and ``close()``, normally `paramiko.Agent`
            key_files: Ordered (file name, key class) candidates under ``.ssh``
        """
        self.home_dir = home_dir
        self.agent_factory = agent_factory
        self.key_files = tuple(key_files)

    def resolve(self, config: ConnectionConfig) -> AuthMethod:
        """Return the first usable authentication method for *config*.

        Raises:
            NoAuthAvailableError: If no strategy produced a method
        """
        if config.password:
            logger.debug("[AUTH] Using password authentication for %s", config.target)
            return PasswordAuth(config.password)

        agent_method = self._try_agent()
        if agent_method is not None:
            logger.info(
                "[AUTH] Using SSH agent (%d key(s)) for %s",
                agent_method.key_count, config.target,
            )
            return agent_method

        key_method = self._try_key_files()
        if key_method is not None:
            logger.info("[AUTH] Using key file %s for %s", key_method.key_path, config.target)
            return key_method

        raise NoAuthAvailableError(
            f"No authentication method available for {config.target}: "
            f"configure a password or set up an SSH key"
        )

    def _try_agent(self) -> Optional[AgentAuth]:
        """Query the running SSH agent; None if it is absent or holds no keys."""
        try:
            agent = self.agent_factory()
        except (paramiko.SSHException, OSError) as exc:
            logger.debug("[AUTH] SSH agent unavailable: %s", exc)
            return None

        try:
            keys = agent.get_keys()
        except (paramiko.SSHException, OSError) as exc:
            logger.debug("[AUTH] SSH agent query failed: %s", exc)
            keys = ()
        finally:
            agent.close()

        if not keys:
            return None
        return AgentAuth(key_count=len(keys))

    def _ssh_dir(self) -> Path:
        return (self.home_dir if self.home_dir is not None else Path.home()) / ".ssh"

    def _try_key_files(self) -> Optional[PublicKeyAuth]:
        """Return the first unencrypted, parseable default key file."""
        ssh_dir = self._ssh_dir()

        for file_name, key_class in self.key_files:
            key_path = ssh_dir / file_name
            if not key_path.is_file():
                continue
            try:
                key = key_class.from_private_key_file(str(key_path))
            except paramiko.PasswordRequiredException:
                logger.info("[AUTH] Skipping passphrase-protected key %s", key_path)
                continue
            except (paramiko.SSHException, OSError, ValueError) as exc:
                logger.debug("[AUTH] Skipping unreadable key %s: %s", key_path, exc)
                continue
            return PublicKeyAuth(key=key, key_path=str(key_path))

        return None
