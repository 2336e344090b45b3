"""
SSH connection management test suite.

Uses real in-process SSH servers built on paramiko's ServerInterface, no
system sshd, no mocking, works on both Windows and Linux.

Run with full visibility:
    pytest tests/test_ssh_connection.py -v -s
"""

from __future__ import annotations

import platform
import sys
from typing import List
from unittest.mock import patch

import pytest

# ---------------------------------------------------------------------------
# Dependency gate: report clearly if anything is missing
# ---------------------------------------------------------------------------
_MISSING: List[str] = []

try:
    import paramiko
except ImportError:
    _MISSING.append("paramiko")

try:
    from typeguard import typechecked  # noqa: F401
except ImportError:
    _MISSING.append("typeguard")

if _MISSING:
    print(
        "\n"
        "=" * 72 + "\n"
        "  MISSING REQUIRED LIBRARIES\n"
        "=" * 72 + "\n"
        f"  The following packages are not installed: {', '.join(_MISSING)}\n"
        f"  Install them with:  pip install {' '.join(_MISSING)}\n"
        "=" * 72 + "\n",
        file=sys.stderr,
    )
    pytest.skip(
        f"Required libraries missing: {', '.join(_MISSING)}",
        allow_module_level=True,
    )

from remote_admin_tools.connection import SSHConnectionManager
from remote_admin_tools.exceptions import (
    ConfigIncompleteError,
    NoAuthAvailableError,
    RemoteAdminError,
    SessionOpenError,
    SSHCommandError,
    SSHConnectionError,
    SSHTimeoutError,
    CommandTimeoutError,
)
from remote_admin_tools.types import (
    AgentAuth,
    ConnectionConfig,
    HostKeyPolicy,
    PasswordAuth,
    PublicKeyAuth,
)

from ssh_test_server import (
    TEST_HOST,
    TEST_PASS,
    TEST_USER,
    BlackHoleServer,
    dead_port,
    make_config,
)

# ---------------------------------------------------------------------------
# Report environment
# ---------------------------------------------------------------------------
print(
    "\n"
    "+" * 72 + "\n"
    f"  Platform : {platform.system()} {platform.release()}\n"
    f"  Python   : {sys.version.split()[0]}\n"
    f"  paramiko : {paramiko.__version__}\n"
    "+" * 72
)


def _report(label: str, detail: str = "") -> None:
    """Uniform test-level print."""
    if detail:
        print(f"  [{label}] {detail}")
    else:
        print(f"  [{label}]")


# ═══════════════════════════════════════════════════════════════════════════
#  TESTS
# ═══════════════════════════════════════════════════════════════════════════

class TestConnectionManagerCreation:
    """Test SSHConnectionManager object construction (no network)."""

    def test_custom_port(self) -> None:
        config = ConnectionConfig(host=TEST_HOST, port="2222", username=TEST_USER, password=TEST_PASS)
        mgr = SSHConnectionManager(config)

        _report("ASSERT", f"manager.port == 2222 → {mgr.port}")
        assert mgr.port == 2222
        assert mgr.hostname == TEST_HOST
        assert mgr.username == TEST_USER

    def test_default_state(self) -> None:
        mgr = SSHConnectionManager(ConnectionConfig(host=TEST_HOST, username=TEST_USER))

        assert not mgr.is_connected()
        assert mgr.auth_method is None
        assert mgr.timeout == 10
        assert mgr.host_key_policy is HostKeyPolicy.ACCEPT_ANY


class TestSuccessfulConnection:

    def test_password_connect(self, ssh_server) -> None:
        _report("TEST", f"Connecting with a password on port {ssh_server.port}")

        mgr = SSHConnectionManager(make_config(ssh_server))
        try:
            mgr.connect(context="test password connect")
            assert mgr.is_connected()
            assert isinstance(mgr.auth_method, PasswordAuth)
        finally:
            mgr.disconnect()

    def test_key_file_connect(self, ssh_server, key_home) -> None:
        """Empty password → default key file is presented and accepted."""
        from remote_admin_tools.auth import AuthResolver
        from ssh_test_server import EmptyAgent

        resolver = AuthResolver(home_dir=key_home, agent_factory=EmptyAgent)
        mgr = SSHConnectionManager(make_config(ssh_server, password=""), auth_resolver=resolver)

        with mgr:
            assert mgr.is_connected()
            assert isinstance(mgr.auth_method, PublicKeyAuth)
        _report("PASS", "Public key authentication succeeded")


class _OneKeyAgent:
    """Agent stand-in holding a single key."""

    def get_keys(self) -> tuple:
        return (object(),)

    def close(self) -> None:
        pass


class TestAuthArguments:
    """Only the selected authentication method reaches paramiko."""

    _KEY = object()

    @pytest.mark.parametrize(
        "method, expected",
        [
            (
                PasswordAuth("s3cret"),
                {"allow_agent": False, "look_for_keys": False, "password": "s3cret"},
            ),
            (
                PublicKeyAuth(_KEY, key_path="/home/admin/.ssh/id_rsa"),
                {"allow_agent": False, "look_for_keys": False, "pkey": _KEY},
            ),
            (
                AgentAuth(key_count=2),
                {"allow_agent": True, "look_for_keys": False},
            ),
        ],
    )
    def test_auth_kwargs(self, method, expected) -> None:
        assert SSHConnectionManager._auth_kwargs(method) == expected

    def test_agent_connect_enables_only_agent(self, tmp_path) -> None:
        from remote_admin_tools.auth import AuthResolver

        resolver = AuthResolver(home_dir=tmp_path, agent_factory=_OneKeyAgent)
        mgr = SSHConnectionManager(
            ConnectionConfig(host=TEST_HOST, port="2222", username=TEST_USER),
            auth_resolver=resolver,
        )

        with patch.object(paramiko.SSHClient, "connect") as connect:
            mgr.connect(context="test agent connect")
            mgr.disconnect()

        kwargs = connect.call_args.kwargs
        _report("ASSERT", f"connect kwargs: {sorted(kwargs)}")
        assert isinstance(mgr.auth_method, AgentAuth)
        assert kwargs["allow_agent"] is True
        assert kwargs["look_for_keys"] is False
        assert "password" not in kwargs
        assert "pkey" not in kwargs
        assert kwargs["hostname"] == TEST_HOST
        assert kwargs["port"] == 2222


class TestContextManager:
    """Verify the with-statement connect/disconnect lifecycle."""

    def test_context_manager(self, ssh_server) -> None:
        with SSHConnectionManager(make_config(ssh_server)) as mgr:
            assert mgr.is_connected()

        assert mgr.ssh_client is None
        assert not mgr.is_connected()
        assert ssh_server.wait_for_disconnects()

    def test_disconnect_on_error_inside_block(self, ssh_server) -> None:
        with pytest.raises(RuntimeError):
            with SSHConnectionManager(make_config(ssh_server)) as mgr:
                raise RuntimeError("boom")

        assert mgr.ssh_client is None
        assert ssh_server.wait_for_disconnects()


class TestErrorHandling:
    """Verify error paths: refused connections, timeouts, bad auth."""

    def test_connection_refused(self) -> None:
        config = ConnectionConfig(
            host=TEST_HOST, port=str(dead_port()), username=TEST_USER, password=TEST_PASS,
        )
        mgr = SSHConnectionManager(config, timeout=2)

        with pytest.raises(SSHConnectionError) as exc_info:
            mgr.connect(context="test connection refused")

        _report("CAUGHT", f"{type(exc_info.value).__name__}: {exc_info.value}")
        assert "connection failed" in str(exc_info.value)
        assert exc_info.value.__cause__ is not None
        assert not mgr.is_connected()

    def test_connection_timeout(self) -> None:
        """Server that accepts TCP but never sends SSH banner → connection error."""
        with BlackHoleServer() as bh:
            config = ConnectionConfig(
                host=TEST_HOST, port=str(bh.port), username=TEST_USER, password=TEST_PASS,
            )
            mgr = SSHConnectionManager(config, timeout=1)

            with pytest.raises(SSHConnectionError):
                mgr.connect(context="test connection timeout")

    def test_bad_password(self, ssh_server) -> None:
        mgr = SSHConnectionManager(make_config(ssh_server, password="WRONG"), timeout=5)

        with pytest.raises(SSHConnectionError) as exc_info:
            mgr.connect(context="test bad password")

        assert "authentication rejected" in str(exc_info.value)

    def test_no_auth_available_never_dials(self, no_agent_resolver) -> None:
        """Without any credential the resolver fails before a socket is opened.

        The port has nothing listening: a dial attempt would surface as
        SSHConnectionError instead.
        """
        config = ConnectionConfig(
            host=TEST_HOST, port=str(dead_port()), username=TEST_USER, password="",
        )
        mgr = SSHConnectionManager(config, auth_resolver=no_agent_resolver)

        with pytest.raises(NoAuthAvailableError):
            mgr.connect(context="test no auth")
        assert mgr.ssh_client is None

    @pytest.mark.parametrize(
        "host, username, port",
        [("", TEST_USER, "22"), (TEST_HOST, "", "22"), (TEST_HOST, TEST_USER, "not-a-port")],
    )
    def test_incomplete_config(self, host: str, username: str, port: str) -> None:
        config = ConnectionConfig(host=host, port=port, username=username, password=TEST_PASS)

        with pytest.raises(ConfigIncompleteError):
            SSHConnectionManager(config).connect(context="test incomplete config")

    def test_known_hosts_policy_rejects_unknown_host(self, ssh_server) -> None:
        mgr = SSHConnectionManager(
            make_config(ssh_server), host_key_policy=HostKeyPolicy.KNOWN_HOSTS,
        )

        with pytest.raises(SSHConnectionError):
            mgr.connect(context="test strict host keys")
        assert not mgr.is_connected()

    def test_transport_without_connection(self) -> None:
        mgr = SSHConnectionManager(ConnectionConfig(host=TEST_HOST, username=TEST_USER))

        with pytest.raises(SSHConnectionError):
            mgr.get_transport(context="test no connection")


class TestReconnection:

    def test_reconnect(self, ssh_server) -> None:
        mgr = SSHConnectionManager(make_config(ssh_server))
        try:
            mgr.connect(context="test reconnect 1st")
            assert mgr.is_connected()

            mgr.disconnect()
            assert not mgr.is_connected()

            mgr.connect(context="test reconnect 2nd")
            assert mgr.is_connected()
            assert ssh_server.connection_count == 2
        finally:
            mgr.disconnect()

    def test_disconnect_is_idempotent(self, ssh_server) -> None:
        mgr = SSHConnectionManager(make_config(ssh_server))
        mgr.connect(context="test disconnect")
        mgr.disconnect()
        mgr.disconnect()
        assert mgr.ssh_client is None


class TestExceptionHierarchy:
    """Verify exception class relationships."""

    def test_command_errors_not_under_connection_error(self) -> None:
        assert not issubclass(SSHCommandError, SSHConnectionError)
        assert issubclass(CommandTimeoutError, SSHCommandError)

    def test_all_under_common_base(self) -> None:
        for exc_class in (
            SSHConnectionError, SSHTimeoutError, SSHCommandError,
            NoAuthAvailableError, ConfigIncompleteError, SessionOpenError,
        ):
            assert issubclass(exc_class, RemoteAdminError)

    def test_no_auth_is_not_a_connection_error(self) -> None:
        assert not issubclass(NoAuthAvailableError, SSHConnectionError)


if __name__ == "__main__":
    pytest.main([__file__, "-v", "-s"])
