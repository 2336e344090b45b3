"""Plaintext JSON persistence of the SSH connection record."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Union

from typeguard import typechecked

from . import SETTINGS_FILE
from .exceptions import ConfigError
from .types import ConnectionConfig

logger = logging.getLogger("remote_admin_tools.settings")


@typechecked
class SettingsStore:
    """Reads and writes the connection record.

    The file is not encrypted; it is written with owner-only permissions.
    """

    def __init__(self, path: Union[str, Path] = SETTINGS_FILE) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> ConnectionConfig:
        """Return the persisted record, or the default record if none exists.

        Raises:
            ConfigError: If the file cannot be read or parsed
        """
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("[SETTINGS] %s not found, using default record", self.path)
            return ConnectionConfig()
        except OSError as e:
            raise ConfigError(f"Failed to read settings from {self.path}: {e}") from e

        try:
            data = json.loads(text)
        except ValueError as e:
            raise ConfigError(f"Failed to parse settings in {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Failed to parse settings in {self.path}: expected a JSON object")

        return ConnectionConfig.from_dict(data)

    def save(self, config: ConnectionConfig) -> None:
        """Persist *config*, replacing any previous record.

        Raises:
            ConfigError: If the file cannot be written
        """
        payload = json.dumps(config.to_dict(), indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(str(self.path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
        except OSError as e:
            raise ConfigError(f"Failed to save settings to {self.path}: {e}") from e

        logger.info("[SETTINGS] Saved SSH configuration %s to %s", config.target, self.path)
