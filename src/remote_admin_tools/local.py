"""Local machine control: power actions and local command execution."""

from __future__ import annotations

import logging
import platform
import shlex
import socket
import subprocess
from typing import Dict, List, Optional

from .exceptions import LocalCommandError, UnsupportedPlatformError

logger = logging.getLogger("remote_admin_tools.local")

POWER_ACTIONS = ("shutdown", "restart", "sleep")

_POWER_COMMANDS: Dict[str, Dict[str, List[str]]] = {
    "Linux": {
        "shutdown": ["shutdown", "-h", "now"],
        "restart": ["shutdown", "-r", "now"],
        "sleep": ["systemctl", "suspend"],
    },
    "Darwin": {
        "shutdown": ["shutdown", "-h", "now"],
        "restart": ["shutdown", "-r", "now"],
        "sleep": ["pmset", "sleepnow"],
    },
    "Windows": {
        "shutdown": ["shutdown", "/s", "/t", "0"],
        "restart": ["shutdown", "/r", "/t", "0"],
        "sleep": ["rundll32.exe", "powrprof.dll,SetSuspendState", "0,1,0"],
    },
}


def power_command(action: str, system: Optional[str] = None) -> List[str]:
    """Return the argv performing *action* on *system* (default: this OS).

    Raises:
        ValueError: If *action* is not a known power action
        UnsupportedPlatformError: If *system* has no power commands
    """
    if action not in POWER_ACTIONS:
        raise ValueError(f"Unknown power action {action!r}; expected one of {POWER_ACTIONS}")

    system = system or platform.system()
    commands = _POWER_COMMANDS.get(system)
    if commands is None:
        raise UnsupportedPlatformError(f"Unsupported operating system: {system}")
    return list(commands[action])


def execute_power_action(action: str) -> str:
    """Run the power command for *action* on this machine.

    Raises:
        LocalCommandError: If the command cannot be started or fails
    """
    argv = power_command(action)
    logger.info("[POWER] %s requested — %s", action, " ".join(argv))
    _run(argv, " ".join(argv))
    return f"{action.capitalize()} command sent"


def run_local_command(command: str) -> str:
    """Run *command* on this machine and return its combined output.

    On Windows the command goes through ``cmd /c``; elsewhere it is split
    with shell quoting rules and executed without a shell.

    Raises:
        LocalCommandError: If the command is empty, cannot start or exits non-zero
    """
    if platform.system() == "Windows":
        argv = ["cmd", "/c", command]
    else:
        try:
            argv = shlex.split(command)
        except ValueError as e:
            raise LocalCommandError(f"Cannot parse {command!r}: {e}", command=command) from e
    if not command.strip() or not argv:
        raise LocalCommandError("Empty command", command=command)

    logger.info("[LOCAL] Running %r", command)
    return _run(argv, command)


def _run(argv: List[str], command: str) -> str:
    try:
        result = subprocess.run(
            argv, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, check=False,
        )
    except OSError as e:
        raise LocalCommandError(
            f"Failed to start {command!r}: {e}", command=command,
        ) from e

    output = result.stdout.decode("utf-8", errors="replace")
    if result.returncode != 0:
        logger.warning("[LOCAL] %r exited with status %d", command, result.returncode)
        raise LocalCommandError(
            f"Command {command!r} exited with status {result.returncode}",
            command=command,
            return_code=result.returncode,
            output=output,
        )
    return output


def get_local_system_info() -> Dict[str, str]:
    return {
        "os": platform.system().lower(),
        "arch": platform.machine(),
        "hostname": socket.gethostname(),
    }
