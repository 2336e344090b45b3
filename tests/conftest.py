"""Pytest configuration: path setup, logging and shared SSH server fixtures."""

import logging
import os
import sys

import pytest

# ---------------------------------------------------------------------------
# Path setup: ensure the package is importable regardless of installation
# ---------------------------------------------------------------------------
_SRC_DIR = os.path.normpath(os.path.join(os.path.dirname(__file__), os.pardir, "src"))
if _SRC_DIR not in sys.path:
    sys.path.insert(0, _SRC_DIR)

_TESTS_DIR = os.path.dirname(os.path.abspath(__file__))
if _TESTS_DIR not in sys.path:
    sys.path.insert(0, _TESTS_DIR)

# ---------------------------------------------------------------------------
# Logging: route all library log output to the console so pytest -s shows it
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)
# Quiet down paramiko's own noisy transport-level debug logs
logging.getLogger("paramiko").setLevel(logging.WARNING)


@pytest.fixture
def ssh_server():
    """A fresh in-process SSH server per test, so recorded commands start empty."""
    from ssh_test_server import SSHTestServer

    srv = SSHTestServer()
    srv.start()
    yield srv
    srv.stop()


@pytest.fixture
def no_agent_resolver(tmp_path):
    """AuthResolver with an empty home directory and no SSH agent."""
    from remote_admin_tools.auth import AuthResolver
    from ssh_test_server import EmptyAgent

    return AuthResolver(home_dir=tmp_path, agent_factory=EmptyAgent)


@pytest.fixture
def key_home(tmp_path, ssh_server):
    """Home directory holding an unencrypted ~/.ssh/id_rsa authorized on the server."""
    import paramiko

    ssh_dir = tmp_path / ".ssh"
    ssh_dir.mkdir()
    key = paramiko.RSAKey.generate(2048)
    key.write_private_key_file(str(ssh_dir / "id_rsa"))
    ssh_server.authorized_keys.append(key)
    return tmp_path
