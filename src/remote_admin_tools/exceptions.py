"""Custom exceptions for remote administration operations."""

from __future__ import annotations

from typing import Optional


class RemoteAdminError(Exception):
    """Common base exception for all remote_admin_tools errors."""
    pass


class ConfigError(RemoteAdminError):
    """Exception for unreadable or invalid connection settings."""
    pass


class ConfigMissingError(ConfigError):
    """Exception raised when no connection record has been persisted."""
    pass


class ConfigIncompleteError(ConfigError):
    """Exception raised when host or username is empty, or the port is invalid."""
    pass


class NoAuthAvailableError(RemoteAdminError):
    """Exception raised when no password, agent key or key file is usable.

    Raised before any network activity takes place.
    """
    pass


class SSHConnectionError(RemoteAdminError):
    """Exception for SSH connection errors."""
    pass


class SSHTimeoutError(SSHConnectionError):
    """Exception for SSH connection timeouts."""
    pass


class SessionOpenError(RemoteAdminError):
    """Exception raised when the remote side refuses a new session."""
    pass


class SessionReuseError(RemoteAdminError):
    """Exception raised when a second command is issued on a used session."""
    pass


class SSHCommandError(RemoteAdminError):
    """Exception for remote commands that did not complete successfully.

    Attributes:
        command: The command that failed.
        return_code: The exit status, or None when none was received.
        output: Combined stdout/stderr captured before the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        command: str,
        return_code: Optional[int],
        output: str,
    ) -> None:
        super().__init__(message)
        self.command = command
        self.return_code = return_code
        self.output = output


class CommandTimeoutError(SSHCommandError):
    """Exception for remote commands that exceeded the command deadline.

    ``output`` holds whatever arrived before the deadline.
    """
    pass


class ConnectionTestError(RemoteAdminError):
    """Exception for a failed connection test.

    Attributes:
        output: Output captured from the test command, possibly empty.
    """

    def __init__(self, message: str, *, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class LocalCommandError(RemoteAdminError):
    """Exception for local commands that could not run or exited non-zero."""

    def __init__(
        self,
        message: str,
        *,
        command: str,
        return_code: Optional[int] = None,
        output: str = "",
    ) -> None:
        super().__init__(message)
        self.command = command
        self.return_code = return_code
        self.output = output


class UnsupportedPlatformError(RemoteAdminError):
    """Exception for power actions on an operating system without a mapping."""
    pass
