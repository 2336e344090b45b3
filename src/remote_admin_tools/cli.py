"""Command-line interface for remote admin tools."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Dict, Optional, Sequence

from . import COMMAND_TIMEOUT, SETTINGS_FILE, SSH_PORT, __version__
from .exceptions import LocalCommandError, RemoteAdminError, SSHCommandError
from .local import execute_power_action, get_local_system_info, run_local_command
from .service import RemoteAdminService
from .types import HostKeyPolicy


def create_service(args) -> RemoteAdminService:
    """Create the service for the settings file and policy given on the command line."""
    policy = HostKeyPolicy.KNOWN_HOSTS if args.strict_host_keys else HostKeyPolicy.ACCEPT_ANY
    return RemoteAdminService(
        settings_path=args.settings,
        command_timeout=args.command_timeout,
        host_key_policy=policy,
    )


def _print_mapping(values: Dict[str, str]) -> None:
    width = max((len(key) for key in values), default=0)
    for key, value in values.items():
        print(f"{key:<{width}} : {value}")


def command_configure(args) -> int:
    """Save the SSH connection record."""
    service = create_service(args)
    try:
        print(service.save_ssh_config(args.host, args.port, args.username, args.password))
        return 0
    except RemoteAdminError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def command_show_config(args) -> int:
    """Print the saved SSH connection record with the password masked."""
    service = create_service(args)
    try:
        record = service.load_ssh_config()
    except RemoteAdminError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if record.get("password"):
        record["password"] = "********"
    _print_mapping(record)
    return 0


def command_execute(args) -> int:
    """Execute command on the configured remote host."""
    service = create_service(args)
    try:
        output = service.execute_ssh_command(args.remote_command)
        print(output, end="")
        return 0
    except SSHCommandError as e:
        if e.output:
            print(e.output, end="")
        print(f"Command failed: {e}", file=sys.stderr)
        return 1
    except RemoteAdminError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def command_test(args) -> int:
    """Test the SSH connection."""
    service = create_service(args)
    try:
        print(service.test_ssh_connection())
        return 0
    except RemoteAdminError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def command_info(args) -> int:
    """Print system information gathered from the remote host."""
    service = create_service(args)
    try:
        info = service.get_remote_system_info()
    except RemoteAdminError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not info:
        print("No system information could be collected.", file=sys.stderr)
        return 1
    _print_mapping(info)
    return 0


def command_local_exec(args) -> int:
    """Execute command on this machine."""
    try:
        print(run_local_command(args.local_command), end="")
        return 0
    except LocalCommandError as e:
        if e.output:
            print(e.output, end="")
        print(f"Error: {e}", file=sys.stderr)
        return 1


def command_power(args) -> int:
    """Shut down, restart or suspend this machine."""
    try:
        print(execute_power_action(args.action))
        return 0
    except (RemoteAdminError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def command_local_info(args) -> int:
    """Print system information about this machine."""
    _print_mapping(get_local_system_info())
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description="Remote Admin Tools - administer machines locally and over SSH"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    parser.add_argument(
        "--settings",
        default=SETTINGS_FILE,
        help=f"Path of the SSH settings file (default: {SETTINGS_FILE})",
    )
    parser.add_argument(
        "--command-timeout",
        type=float,
        default=COMMAND_TIMEOUT,
        help=f"Deadline in seconds for each remote command (default: {COMMAND_TIMEOUT})",
    )
    parser.add_argument(
        "--strict-host-keys",
        action="store_true",
        default=False,
        help="Verify the remote host key against the system known_hosts file",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=False,
        help="Log progress to stderr",
    )

    # Subcommands
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Save connection settings
    config_parser = subparsers.add_parser("configure", help="Save SSH connection settings")
    config_parser.add_argument("host", help="Remote host name or address")
    config_parser.add_argument("--port", default=SSH_PORT, help=f"SSH port (default: {SSH_PORT})")
    config_parser.add_argument("--username", required=True, help="SSH username")
    config_parser.add_argument(
        "--password", default="",
        help="SSH password, also used for sudo (empty: use SSH agent or key files)",
    )
    config_parser.set_defaults(func=command_configure)

    show_parser = subparsers.add_parser("show-config", help="Show saved SSH settings")
    show_parser.set_defaults(func=command_show_config)

    # Remote operations
    exec_parser = subparsers.add_parser("exec", help="Execute command on the remote host")
    exec_parser.add_argument("remote_command", metavar="COMMAND", help="Command to execute")
    exec_parser.set_defaults(func=command_execute)

    test_parser = subparsers.add_parser("test", help="Test the SSH connection")
    test_parser.set_defaults(func=command_test)

    info_parser = subparsers.add_parser("info", help="Show remote system information")
    info_parser.set_defaults(func=command_info)

    # Local operations
    local_parser = subparsers.add_parser("local-exec", help="Execute command on this machine")
    local_parser.add_argument("local_command", metavar="COMMAND", help="Command to execute")
    local_parser.set_defaults(func=command_local_exec)

    for action, help_text in (
        ("shutdown", "Shut down this machine"),
        ("restart", "Restart this machine"),
        ("sleep", "Suspend this machine"),
    ):
        power_parser = subparsers.add_parser(action, help=help_text)
        power_parser.set_defaults(func=command_power, action=action)

    local_info_parser = subparsers.add_parser("local-info", help="Show local system information")
    local_info_parser.set_defaults(func=command_local_info)

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("paramiko").setLevel(logging.WARNING)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
