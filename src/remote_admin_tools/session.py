"""Remote command execution on single-use SSH sessions.

Every command gets its own SSH channel (`RemoteSession`), which refuses a
second command. Commands starting with ``sudo `` are run as ``sudo -S`` when
a password is configured: the password is written to the command's stdin by
a helper thread, followed by end-of-input.

The helper thread does not write immediately. It waits until the reader
has seen a password prompt in the output, or until a fixed grace delay has
elapsed, whichever comes first; it never writes once the command is done.
This bounds the window in which the password could arrive before sudo reads
it, instead of relying on thread scheduling order.

If sudo rejects the piped password, the original command is retried once,
unmodified, on a new session and that attempt's outcome is returned.
"""

from __future__ import annotations

import logging
import socket
import threading
import time
from typing import Callable, Optional, Tuple

import paramiko
from typeguard import typechecked

from . import (
    COMMAND_TIMEOUT,
    ESCALATION_FAILURE_MARKERS,
    ESCALATION_PREFIX,
    ESCALATION_PROMPT_GRACE,
    ESCALATION_PROMPT_MARKERS,
    ESCALATION_STDIN_FLAG,
    RECV_CHUNK_SIZE,
    SESSION_OPEN_TIMEOUT,
)
from .connection import SSHConnectionManager
from .exceptions import (
    CommandTimeoutError,
    SessionOpenError,
    SessionReuseError,
    SSHConnectionError,
)
from .types import CommandOutcome

logger = logging.getLogger("remote_admin_tools.session")


def is_escalation_command(command: str) -> bool:
    """Return True if *command* starts with the privilege escalation prefix."""
    return command.startswith(ESCALATION_PREFIX)


def rewrite_for_stdin_password(command: str) -> str:
    """Insert the read-password-from-stdin flag right after the escalation keyword.

    >>> rewrite_for_stdin_password("sudo apt update")
    'sudo -S apt update'
    """
    remainder = command[len(ESCALATION_PREFIX):].lstrip()
    return f"{ESCALATION_PREFIX}{ESCALATION_STDIN_FLAG} {remainder}"


def has_password_failure_marker(output: str) -> bool:
    """Return True if *output* shows that sudo rejected the password."""
    return any(marker in output for marker in ESCALATION_FAILURE_MARKERS)


def _has_prompt_marker(output: str) -> bool:
    return any(marker in output for marker in ESCALATION_PROMPT_MARKERS)


def _decode(buffer: bytearray) -> str:
    return buffer.decode("utf-8", errors="replace")


# bytes of already-scanned output re-read so a marker split across chunks is found
_PROMPT_OVERLAP = max(len(marker.encode("utf-8")) for marker in ESCALATION_PROMPT_MARKERS) - 1


class PromptWatcher:
    """Sets *release* once a password prompt appears in the output.

    Each call scans only the output received since the previous call, and
    nothing at all once *release* is set.
    """

    def __init__(self, release: threading.Event) -> None:
        self.release = release
        self.scanned = 0

    def __call__(self, buffer: bytearray) -> None:
        if self.release.is_set():
            return
        start = max(0, self.scanned - _PROMPT_OVERLAP)
        self.scanned = len(buffer)
        if _has_prompt_marker(_decode(buffer[start:])):
            self.release.set()


def _feed_secret(
    channel: paramiko.Channel,
    secret: str,
    release: threading.Event,
    finished: threading.Event,
    grace: float,
    context: str,
) -> None:
    """Write *secret* and a newline to the channel's stdin, then send EOF.

    Runs on a helper thread. Waits for *release* (prompt seen) for at most
    *grace* seconds, then sets it so the reader stops looking for a prompt.
    Skips the write if *finished* is already set.
    """
    prompted = release.wait(grace)
    release.set()
    if finished.is_set():
        logger.debug("[SUDO] [%s] Command finished before the password was needed", context)
        return

    logger.debug(
        "[SUDO] [%s] Writing password to stdin (%s)",
        context, "prompt seen" if prompted else f"after {grace:.2f}s grace",
    )
    try:
        channel.sendall(f"{secret}\n".encode("utf-8"))
        channel.shutdown_write()
    except (paramiko.SSHException, OSError) as exc:
        logger.warning("[SUDO] [%s] Could not deliver password to stdin: %s", context, exc)


class RemoteSession:
    """One SSH channel that runs exactly one command.

    Use as a context manager so the channel is closed on every exit path.
    """

    def __init__(self, channel: paramiko.Channel, context: str) -> None:
        self.channel = channel
        self.context = context
        self._used = False

    @property
    def used(self) -> bool:
        return self._used

    def _claim(self, command: str) -> None:
        if self._used:
            raise SessionReuseError(
                f"[{self.context}] Session already ran a command; refusing to run {command!r}"
            )
        self._used = True

    def _start(self, command: str) -> None:
        self.channel.set_combine_stderr(True)
        self.channel.exec_command(command)

    def _drain(
        self,
        command: str,
        buffer: bytearray,
        deadline: Optional[float],
        on_chunk: Optional[Callable[[bytearray], None]] = None,
    ) -> None:
        """Read combined output into *buffer* until EOF or *deadline*."""
        while True:
            self.channel.settimeout(self._remaining(command, buffer, deadline))
            try:
                chunk = self.channel.recv(RECV_CHUNK_SIZE)
            except socket.timeout as exc:
                raise self._timeout_error(command, buffer) from exc
            if not chunk:
                return
            buffer.extend(chunk)
            if on_chunk is not None:
                on_chunk(buffer)

    def _wait_exit_status(
        self, command: str, buffer: bytearray, deadline: Optional[float]
    ) -> Optional[int]:
        if not self.channel.status_event.wait(self._remaining(command, buffer, deadline)):
            raise self._timeout_error(command, buffer)
        status = self.channel.exit_status
        # paramiko reports -1 when the channel closed without an exit status
        return None if status == -1 else status

    def _remaining(
        self, command: str, buffer: bytearray, deadline: Optional[float]
    ) -> Optional[float]:
        if deadline is None:
            return None
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise self._timeout_error(command, buffer)
        return remaining

    def _timeout_error(self, command: str, buffer: bytearray) -> CommandTimeoutError:
        logger.error("[EXEC] [%s] Command %r exceeded its deadline", self.context, command)
        return CommandTimeoutError(
            f"[{self.context}] Command {command!r} did not finish before its deadline",
            command=command,
            return_code=None,
            output=_decode(buffer),
        )

    def run(self, command: str, timeout: Optional[float] = None) -> Tuple[Optional[int], str]:
        """Run *command* and return ``(exit_status, combined_output)``.

        Raises:
            SessionReuseError: If this session already ran a command
            CommandTimeoutError: If *timeout* seconds pass before the command ends
        """
        self._claim(command)
        deadline = time.monotonic() + timeout if timeout is not None else None
        buffer = bytearray()

        self._start(command)
        # no stdin for plain commands: readers see end-of-input at once
        self.channel.shutdown_write()
        self._drain(command, buffer, deadline)
        return self._wait_exit_status(command, buffer, deadline), _decode(buffer)

    def run_with_secret(
        self,
        command: str,
        secret: str,
        timeout: Optional[float] = None,
        grace: float = ESCALATION_PROMPT_GRACE,
    ) -> Tuple[Optional[int], str]:
        """Run *command*, feeding *secret* to its stdin from a helper thread.

        Returns ``(exit_status, combined_output)``.
        """
        self._claim(command)
        deadline = time.monotonic() + timeout if timeout is not None else None
        buffer = bytearray()
        release = threading.Event()
        finished = threading.Event()

        self._start(command)
        writer = threading.Thread(
            target=_feed_secret,
            args=(self.channel, secret, release, finished, grace, self.context),
            name="remote-admin-password-writer",
            daemon=True,
        )
        writer.start()

        try:
            self._drain(command, buffer, deadline, on_chunk=PromptWatcher(release))
            exit_status = self._wait_exit_status(command, buffer, deadline)
        finally:
            finished.set()
            release.set()
            writer.join()

        return exit_status, _decode(buffer)

    def close(self) -> None:
        try:
            self.channel.close()
        except (paramiko.SSHException, OSError) as exc:
            logger.warning("[EXEC] [%s] Error closing session: %s", self.context, exc)

    def __enter__(self) -> RemoteSession:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        self.close()


@typechecked
class SessionRunner:
    """Executes commands on a connected host, one fresh session per command."""

    def __init__(
        self,
        connection_manager: SSHConnectionManager,
        command_timeout: Optional[float] = COMMAND_TIMEOUT,
        prompt_grace: float = ESCALATION_PROMPT_GRACE,
    ) -> None:
        """Initialize the session runner.

        Args:
            connection_manager: Connected SSH connection manager
            command_timeout: Deadline in seconds for each command (None: no deadline)
            prompt_grace: Longest wait for a sudo prompt before the password is written
        """
        self.connection_manager = connection_manager
        self.command_timeout = command_timeout
        self.prompt_grace = prompt_grace

    def open_session(self, context: str) -> RemoteSession:
        """Open a new session on the connection.

        Raises:
            SSHConnectionError: If the connection is not active
            SessionOpenError: If the remote side refuses the session
        """
        transport = self.connection_manager.get_transport(context)
        try:
            channel = transport.open_session(timeout=SESSION_OPEN_TIMEOUT)
        except (paramiko.SSHException, EOFError, OSError) as e:
            msg = (
                f"[{context}] Failed to open SSH session on "
                f"{self.connection_manager.hostname}:{self.connection_manager.port}: {e}"
            )
            logger.error("[SESSION] %s", msg)
            raise SessionOpenError(msg) from e
        return RemoteSession(channel, context)

    def run(self, command: str, context: str) -> CommandOutcome:
        """Run *command* and return its outcome.

        ``sudo`` commands go through password injection when a password is
        configured; everything else runs as a plain command.

        Raises:
            SSHConnectionError: If the connection is not active or breaks
            SessionOpenError: If a session cannot be opened
            CommandTimeoutError: If the command exceeds the command timeout
        """
        password = self.connection_manager.password
        if password and is_escalation_command(command):
            return self._run_escalated(command, password, context)
        return self._run_plain(command, context)

    def execute(self, command: str, context: str) -> str:
        """Run *command* and return its output.

        Raises:
            SSHCommandError: If the command failed, with the output attached
        """
        outcome = self.run(command, context)
        outcome.raise_for_status()
        return outcome.output

    def _run_plain(self, command: str, context: str) -> CommandOutcome:
        host = self.connection_manager.hostname
        logger.info("[EXEC] [%s] Running on %s — %r", context, host, command)

        with self.open_session(context) as session:
            try:
                exit_status, output = session.run(command, self.command_timeout)
            except paramiko.SSHException as e:
                msg = f"[{context}] Error executing command {command!r} on {host}: {e}"
                logger.error("[EXEC] SSH ERROR — %s", msg)
                raise SSHConnectionError(msg) from e

        return self._outcome(command, exit_status, output, context)

    def _run_escalated(self, command: str, password: str, context: str) -> CommandOutcome:
        host = self.connection_manager.hostname
        stdin_command = rewrite_for_stdin_password(command)
        logger.info(
            "[SUDO] [%s] Running on %s with password on stdin — %r",
            context, host, stdin_command,
        )

        with self.open_session(context) as session:
            try:
                exit_status, output = session.run_with_secret(
                    stdin_command, password, self.command_timeout, self.prompt_grace,
                )
            except paramiko.SSHException as e:
                msg = f"[{context}] Error executing command {stdin_command!r} on {host}: {e}"
                logger.error("[SUDO] SSH ERROR — %s", msg)
                raise SSHConnectionError(msg) from e

        if exit_status != 0 and has_password_failure_marker(output):
            logger.warning(
                "[SUDO] [%s] Password rejected on %s; retrying %r once on a new session",
                context, host, command,
            )
            return self._run_plain(command, f"{context} (fallback)")

        return self._outcome(command, exit_status, output, context)

    @staticmethod
    def _outcome(
        command: str, exit_status: Optional[int], output: str, context: str
    ) -> CommandOutcome:
        if exit_status == 0:
            logger.info("[EXEC] [%s] Completed — rc=0, output=%d chars", context, len(output))
            return CommandOutcome(command=command, output=output, exit_status=0)

        if exit_status is None:
            detail = "no exit status received"
        else:
            detail = f"exited with status {exit_status}"
        logger.warning("[EXEC] [%s] Command %r %s", context, command, detail)
        return CommandOutcome(
            command=command, output=output, exit_status=exit_status, error_detail=detail,
        )
