"""
Remote Admin Tools - remote and local machine administration over SSH

This package provides the building blocks for administering a machine
remotely. It includes:

- **Multi-strategy authentication** (password, SSH agent, default key files)
- **Session-scoped command execution** with combined output capture
- **Privilege escalation** through ``sudo -S`` with password injection and fallback
- **Best-effort system information** collection over independent sessions
- **Local control** of power state and local command execution

Remote host identities are accepted without verification by default for
devices on internal networks; pass ``HostKeyPolicy.KNOWN_HOSTS`` to verify
against the system known_hosts file instead.
"""

import logging

logging.getLogger("remote_admin_tools").addHandler(logging.NullHandler())

__version__ = "0.1.0"

# Connection record persisted by the settings store (plaintext JSON).
SETTINGS_FILE = "settings.json"

# SSH port, kept as a string to match the persisted record
SSH_PORT = "22"

# Timeout settings
CONNECTION_TIMEOUT = 10
COMMAND_TIMEOUT = 600
SESSION_OPEN_TIMEOUT = 10

# Privilege escalation settings
ESCALATION_PREFIX = "sudo "
ESCALATION_STDIN_FLAG = "-S"
# Case-sensitive markers printed by sudo when the piped password is rejected
ESCALATION_FAILURE_MARKERS = ("incorrect password", "Sorry, try again")
# Prompt markers that release the password writer before the grace delay
ESCALATION_PROMPT_MARKERS = ("password for", "Password:")
ESCALATION_PROMPT_GRACE = 1.0  # seconds

# Remote probes used by the system info collector, in collection order
SYSTEM_INFO_PROBES = (
    ("hostname", "hostname"),
    ("os", "uname -s"),
    ("arch", "uname -m"),
    ("uptime", "uptime -p 2>/dev/null || uptime"),
)

CONNECTION_TEST_COMMAND = "echo 'Connection successful'"
CONNECTION_TEST_MESSAGE = "SSH connection test succeeded"

# Read size for draining session output
RECV_CHUNK_SIZE = 32768
