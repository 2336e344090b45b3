"""System information collection and connection testing over independent sessions."""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

from typeguard import typechecked

from . import (
    COMMAND_TIMEOUT,
    CONNECTION_TEST_COMMAND,
    CONNECTION_TEST_MESSAGE,
    SYSTEM_INFO_PROBES,
)
from .connection import SSHConnectionManager
from .exceptions import ConnectionTestError, RemoteAdminError
from .session import SessionRunner
from .types import SystemInfoSnapshot

logger = logging.getLogger("remote_admin_tools.probes")


@typechecked
class InfoCollector:
    """Collects a best-effort system info snapshot from a connected host.

    Each probe runs on its own session. A probe that fails is logged and
    left out of the snapshot; it never aborts the others.
    """

    def __init__(
        self,
        connection_manager: SSHConnectionManager,
        probes: Sequence[Tuple[str, str]] = SYSTEM_INFO_PROBES,
        command_timeout: Optional[float] = COMMAND_TIMEOUT,
    ) -> None:
        self.runner = SessionRunner(connection_manager, command_timeout=command_timeout)
        self.probes = tuple(probes)

    def collect(self, context: str) -> SystemInfoSnapshot:
        """Run every probe and return the values that could be read."""
        snapshot: SystemInfoSnapshot = {}

        for field, command in self.probes:
            probe_context = f"{context} [{field}]"
            try:
                outcome = self.runner.run(command, probe_context)
            except RemoteAdminError as exc:
                logger.warning("[INFO] [%s] Probe %r failed: %s", context, field, exc)
                continue

            if not outcome.succeeded:
                logger.warning(
                    "[INFO] [%s] Probe %r failed: %s", context, field, outcome.error_detail,
                )
                continue
            snapshot[field] = outcome.output.strip()

        logger.info(
            "[INFO] [%s] Collected %d/%d fields: %s",
            context, len(snapshot), len(self.probes), ", ".join(snapshot) or "(none)",
        )
        return snapshot


@typechecked
class ConnectionTester:
    """Checks that a connected host runs a trivial command."""

    def __init__(
        self,
        connection_manager: SSHConnectionManager,
        command_timeout: Optional[float] = COMMAND_TIMEOUT,
    ) -> None:
        self.runner = SessionRunner(connection_manager, command_timeout=command_timeout)

    def test(self, context: str) -> str:
        """Return the success message.

        Raises:
            ConnectionTestError: With the cause and the captured output
        """
        try:
            outcome = self.runner.run(CONNECTION_TEST_COMMAND, context)
        except RemoteAdminError as exc:
            output = getattr(exc, "output", "")
            raise ConnectionTestError(
                f"[{context}] SSH connection test failed: {exc}\nOutput: {output}",
                output=output,
            ) from exc

        if not outcome.succeeded:
            raise ConnectionTestError(
                f"[{context}] SSH connection test failed: {outcome.error_detail}\n"
                f"Output: {outcome.output}",
                output=outcome.output,
            )

        logger.info("[TEST] [%s] %s", context, CONNECTION_TEST_MESSAGE)
        return CONNECTION_TEST_MESSAGE
