"""SSH connection management with selectable host key trust policy."""

from __future__ import annotations

import logging
import socket
import time
from typing import Any, Dict, Optional

import paramiko

from . import CONNECTION_TIMEOUT
from .auth import AuthResolver
from .exceptions import SSHConnectionError, SSHTimeoutError
from .types import (
    AgentAuth,
    AuthMethod,
    ConnectionConfig,
    HostKeyPolicy,
    PasswordAuth,
    PublicKeyAuth,
)

logger = logging.getLogger("remote_admin_tools.connection")


class SSHConnectionManager:
    """Owns one authenticated SSH connection to the host of a connection record."""

    def __init__(
        self,
        config: ConnectionConfig,
        timeout: float = CONNECTION_TIMEOUT,
        host_key_policy: HostKeyPolicy = HostKeyPolicy.ACCEPT_ANY,
        auth_resolver: Optional[AuthResolver] = None,
    ) -> None:
        """Initialize SSH connection manager.

        Args:
            config: Connection record (host, port, username, password)
            timeout: Dial, banner and authentication timeout in seconds (default: 10)
            host_key_policy: How the remote host identity is trusted
            auth_resolver: Chooses the authentication method (default: `AuthResolver`)
        """
        self.config = config
        self.timeout = timeout
        self.host_key_policy = host_key_policy
        self.auth_resolver = auth_resolver or AuthResolver()
        self.auth_method: Optional[AuthMethod] = None
        self.ssh_client: Optional[paramiko.SSHClient] = None

    @property
    def hostname(self) -> str:
        return self.config.host

    @property
    def username(self) -> str:
        return self.config.username

    @property
    def password(self) -> str:
        return self.config.password

    @property
    def port(self) -> int:
        return self.config.port_number

    def _new_ssh_client(self) -> paramiko.SSHClient:
        """Create an SSH client carrying the configured host key policy."""
        client = paramiko.SSHClient()
        if self.host_key_policy is HostKeyPolicy.KNOWN_HOSTS:
            client.load_system_host_keys()
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        return client

    @staticmethod
    def _auth_kwargs(method: AuthMethod) -> Dict[str, Any]:
        """Translate *method* into `paramiko.SSHClient.connect` arguments.

        Only the selected method is enabled so a single attempt is made.
        """
        kwargs: Dict[str, Any] = {"allow_agent": False, "look_for_keys": False}
        if isinstance(method, PasswordAuth):
            kwargs["password"] = method.secret
        elif isinstance(method, PublicKeyAuth):
            kwargs["pkey"] = method.key
        elif isinstance(method, AgentAuth):
            kwargs["allow_agent"] = True
        return kwargs

    def connect(self, context: str) -> None:
        """Establish the SSH connection.

        The authentication method is resolved before any network activity.

        Args:
            context: Description of the purpose of this connection,
                embedded into error messages.

        Raises:
            ConfigIncompleteError: If host, username or port is unusable
            NoAuthAvailableError: If no authentication method is available
            SSHConnectionError: If connection fails
            SSHTimeoutError: If connection times out
        """
        self.config.validate()
        self.auth_method = self.auth_resolver.resolve(self.config)

        target = self.config.target
        logger.info(
            "[CONNECT] [%s] Attempting SSH connection to %s (auth=%s, timeout=%ss) ...",
            context, target, type(self.auth_method).__name__, self.timeout,
        )
        start_time = time.time()

        # A previous connection is never reused.
        self.disconnect()
        client = self._new_ssh_client()

        try:
            client.connect(
                hostname=self.hostname,
                port=self.port,
                username=self.username,
                timeout=self.timeout,
                banner_timeout=self.timeout,
                auth_timeout=self.timeout,
                **self._auth_kwargs(self.auth_method),
            )
        except socket.timeout as e:
            client.close()
            elapsed = time.time() - start_time
            msg = (
                f"[{context}] connection failed: {self.hostname}:{self.port} timed out "
                f"after {elapsed:.1f}s (limit {self.timeout}s)"
            )
            logger.error("[CONNECT] TIMEOUT — %s", msg)
            raise SSHTimeoutError(msg) from e
        except paramiko.AuthenticationException as e:
            client.close()
            msg = f"[{context}] connection failed: authentication rejected for {target}: {e}"
            logger.error("[CONNECT] AUTH FAILED — %s", msg)
            raise SSHConnectionError(msg) from e
        except paramiko.SSHException as e:
            client.close()
            elapsed = time.time() - start_time
            msg = f"[{context}] connection failed: SSH error with {self.hostname}:{self.port}: {e}"
            logger.error("[CONNECT] SSH ERROR after %.2fs — %s", elapsed, msg)
            raise SSHConnectionError(msg) from e
        except OSError as e:
            client.close()
            elapsed = time.time() - start_time
            msg = f"[{context}] connection failed: network error with {self.hostname}:{self.port}: {e}"
            logger.error("[CONNECT] OS ERROR after %.2fs — %s", elapsed, msg)
            raise SSHConnectionError(msg) from e

        self.ssh_client = client
        elapsed = time.time() - start_time
        logger.info(
            "[CONNECT] [%s] Successfully connected to %s in %.2fs",
            context, target, elapsed,
        )

    def is_connected(self) -> bool:
        """Check if SSH connection is active."""
        if self.ssh_client is None:
            return False
        transport = self.ssh_client.get_transport()
        return transport is not None and transport.is_active()

    def get_transport(self, context: str) -> paramiko.Transport:
        """Return the active transport.

        Raises:
            SSHConnectionError: If the connection is not active
        """
        transport = self.ssh_client.get_transport() if self.ssh_client is not None else None
        if transport is None or not transport.is_active():
            raise SSHConnectionError(
                f"[{context}] Not connected to {self.hostname}:{self.config.port}"
            )
        return transport

    def disconnect(self) -> None:
        """Close SSH connection if open."""
        was_connected = self.is_connected()
        target = self.config.target

        if self.ssh_client is not None:
            try:
                self.ssh_client.close()
            except (paramiko.SSHException, OSError) as exc:
                logger.warning("[DISCONNECT] Error closing connection to %s: %s", target, exc)
            finally:
                self.ssh_client = None

        if was_connected:
            logger.info("[DISCONNECT] Disconnected from %s", target)

    def __enter__(self) -> SSHConnectionManager:
        """Context manager entry."""
        self.connect(context=f"Connecting to {self.hostname}:{self.config.port}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        """Context manager exit - ensure connection is closed."""
        self.disconnect()
