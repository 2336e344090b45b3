"""Operation boundary: one fresh SSH connection per remote operation."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Union

from . import COMMAND_TIMEOUT, CONNECTION_TIMEOUT, SETTINGS_FILE, SSH_PORT
from .auth import AuthResolver
from .connection import SSHConnectionManager
from .exceptions import ConfigMissingError
from .probes import ConnectionTester, InfoCollector
from .session import SessionRunner
from .settings import SettingsStore
from .types import ConnectionConfig, HostKeyPolicy, SystemInfoSnapshot

logger = logging.getLogger("remote_admin_tools.service")


class RemoteAdminService:
    """Loads the persisted connection record and runs remote operations.

    No connection outlives the call that opened it, so operations may be
    invoked from several threads at once.
    """

    def __init__(
        self,
        settings_path: Union[str, Path] = SETTINGS_FILE,
        connect_timeout: float = CONNECTION_TIMEOUT,
        command_timeout: Optional[float] = COMMAND_TIMEOUT,
        host_key_policy: HostKeyPolicy = HostKeyPolicy.ACCEPT_ANY,
        auth_resolver: Optional[AuthResolver] = None,
    ) -> None:
        self.store = SettingsStore(settings_path)
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self.host_key_policy = host_key_policy
        self.auth_resolver = auth_resolver

    # -- settings ------------------------------------------------------------

    def save_ssh_config(
        self, host: str, port: str, username: str, password: str = ""
    ) -> str:
        config = ConnectionConfig(
            host=host, port=port or SSH_PORT, username=username, password=password,
        )
        self.store.save(config)
        return "SSH configuration saved"

    def load_ssh_config(self) -> Dict[str, str]:
        return self.store.load().to_dict()

    def _load_connection_config(self) -> ConnectionConfig:
        """Return the persisted record after validation.

        Raises:
            ConfigMissingError: If nothing has been saved yet
            ConfigIncompleteError: If host or username is empty
        """
        if not self.store.exists():
            raise ConfigMissingError(
                "No SSH configuration found; save the connection settings first"
            )
        config = self.store.load()
        config.validate()
        return config

    def _connection(self, config: ConnectionConfig) -> SSHConnectionManager:
        return SSHConnectionManager(
            config,
            timeout=self.connect_timeout,
            host_key_policy=self.host_key_policy,
            auth_resolver=self.auth_resolver,
        )

    # -- remote operations -----------------------------------------------------

    def execute_ssh_command(self, command: str) -> str:
        """Run *command* on the configured host and return its output.

        Raises:
            SSHCommandError: If the command failed; ``output`` holds what it printed
        """
        config = self._load_connection_config()
        context = f"remote exec on {config.host}"
        with self._connection(config) as connection:
            runner = SessionRunner(connection, command_timeout=self.command_timeout)
            return runner.execute(command, context=context)

    def test_ssh_connection(self) -> str:
        config = self._load_connection_config()
        context = f"connection test to {config.host}"
        with self._connection(config) as connection:
            tester = ConnectionTester(connection, command_timeout=self.command_timeout)
            return tester.test(context=context)

    def get_remote_system_info(self) -> SystemInfoSnapshot:
        config = self._load_connection_config()
        context = f"system info from {config.host}"
        with self._connection(config) as connection:
            collector = InfoCollector(connection, command_timeout=self.command_timeout)
            return collector.collect(context=context)
