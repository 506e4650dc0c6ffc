#!/usr/bin/env python3
"""
ente-selfhost CLI entry point.

Commands:
    setup [target-dir]                      Create a new instance (or start an existing one)
    backup <absolute-backup-path>           Stop the stack and copy the instance
    restore <absolute-backup-path> [dir]    Recreate an instance from a backup
    create-buckets                          Create MinIO buckets for ./<instance>
    (no command)                            Start ./<instance>, or set it up

Examples:
    ente-selfhost setup
    ente-selfhost -y setup /opt/ente
    ente-selfhost backup /home/user/backups/ente-backup-2024-12
    ente-selfhost restore /home/user/backups/ente-backup-2024-12 /opt/ente
    ente-selfhost --print-config
"""

from __future__ import annotations

import argparse
import enum
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import tomli_w

from .backup import backup_instance, restore_instance
from .compose import runner_for
from .config import LOG_LEVELS, DeployConfig, load_config
from .errors import EnteSelfhostError, UnknownCommandError, UsageError
from .instance import Instance, resolve_target_dir
from .output import configure_logging, error, plain, warn
from .provision import create_buckets_for_existing, host_ip_for, print_endpoints, setup


class Command(enum.Enum):
    SETUP = "setup"
    BACKUP = "backup"
    RESTORE = "restore"
    CREATE_BUCKETS = "create-buckets"
    DEFAULT_START = "default-start"

    @classmethod
    def from_token(cls, token: Optional[str]) -> "Command":
        if token is None:
            return cls.DEFAULT_START
        for command in cls:
            if command is not cls.DEFAULT_START and command.value == token:
                return command
        raise UnknownCommandError(token)


# Positional arguments accepted per command; missing paths are reported by the handlers
MAX_ARGUMENTS = {
    Command.SETUP: 1,
    Command.BACKUP: 1,
    Command.RESTORE: 2,
    Command.CREATE_BUCKETS: 0,
    Command.DEFAULT_START: 0,
}


@dataclass(frozen=True)
class Invocation:
    command: Command
    arguments: tuple
    assume_yes: bool = False

    def arg(self, index: int) -> Optional[str]:
        return self.arguments[index] if index < len(self.arguments) else None


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        raise UsageError(message)


def get_cli_version() -> str:
    try:
        from importlib.metadata import version as package_version

        return package_version("ente-selfhost")
    except Exception:
        from . import __version__

        return __version__


def parse_arguments(argv: Optional[list] = None) -> argparse.Namespace:
    """
    Parse command-line arguments for ente-selfhost.

    Supports arguments:
    1. command [args...] - setup | backup | restore | create-buckets (default: start or setup)
    2. -y, --yes - Non-interactive mode (auto-confirm prompts)
    3. --config <path> - Override config file
    4. --log-level <level> - DEBUG, INFO, WARNING, ERROR
    5. --print-config - Print the resolved configuration as TOML and exit
    6. --version - Print version and exit
    """
    parser = _ArgumentParser(
        prog='ente-selfhost',
        description='Deploy and operate a self-hosted Ente stack with a compose tool',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Examples:" + __doc__.split("Examples:", 1)[1],
    )

    parser.add_argument('command', nargs='?', default=None, help='Command to run')
    parser.add_argument('arguments', nargs='*', help='Command arguments')

    parser.add_argument(
        '-y', '--yes',
        action='store_true',
        help='Skip prompts (non-interactive mode)'
    )

    parser.add_argument(
        '--config',
        type=Path,
        default=None,
        metavar='PATH',
        help='Config override file (default: $ENTE_SELFHOST_CONFIG or ./ente-selfhost.toml)'
    )

    parser.add_argument(
        '--log-level',
        default=None,
        choices=LOG_LEVELS,
        type=str.upper,
        help='Log level (default: from config)'
    )

    parser.add_argument(
        '--print-config',
        action='store_true',
        help='Print the resolved configuration as TOML and exit'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {get_cli_version()}'
    )

    return parser.parse_intermixed_args(argv)


def build_invocation(args: argparse.Namespace) -> Invocation:
    command = Command.from_token(args.command)
    arguments = tuple(args.arguments or ())
    if len(arguments) > MAX_ARGUMENTS[command]:
        raise UsageError(f"Too many arguments for '{command.value}': {' '.join(arguments)}")
    return Invocation(command, arguments, assume_yes=args.yes)


# ============================================================================
# Command handlers
# ============================================================================


def run_setup(invocation: Invocation, config: DeployConfig) -> int:
    return setup(config, invocation.arg(0), invocation.assume_yes)


def run_default_start(invocation: Invocation, config: DeployConfig) -> int:
    return setup(config, None, invocation.assume_yes)


def run_backup(invocation: Invocation, config: DeployConfig) -> int:
    instance = Instance.in_directory(Path.cwd(), config.instance.name)
    backup_instance(instance, invocation.arg(0), runner_for(instance, config.compose.command))
    return 0


def run_restore(invocation: Invocation, config: DeployConfig) -> int:
    instance = Instance.in_directory(resolve_target_dir(invocation.arg(1)), config.instance.name)
    restore_instance(invocation.arg(0), instance, config.instance.mode)

    print_endpoints(
        config,
        host_ip_for(config),
        heading="Service endpoints (will be available after starting):",
    )
    compose = " ".join(config.compose.command)
    plain()
    plain("To start services:")
    plain(f"  cd {instance.root}")
    plain(f"  {compose} up -d")
    return 0


def run_create_buckets(invocation: Invocation, config: DeployConfig) -> int:
    return create_buckets_for_existing(config)


HANDLERS: dict[Command, Callable[[Invocation, DeployConfig], int]] = {
    Command.SETUP: run_setup,
    Command.BACKUP: run_backup,
    Command.RESTORE: run_restore,
    Command.CREATE_BUCKETS: run_create_buckets,
    Command.DEFAULT_START: run_default_start,
}


def _report(exc: EnteSelfhostError) -> None:
    error(str(exc))
    for line in exc.hints():
        print(line, file=sys.stderr, flush=True)


def main(argv: Optional[list] = None) -> int:
    try:
        args = parse_arguments(argv)
        configure_logging(args.log_level or "INFO")
        config = load_config(args.config)
        if args.log_level is None:
            configure_logging(config.logging.level)

        if args.print_config:
            sys.stdout.write(tomli_w.dumps(config.to_dict()))
            return 0

        invocation = build_invocation(args)
        return HANDLERS[invocation.command](invocation, config)
    except EnteSelfhostError as e:
        _report(e)
        return 1
    except KeyboardInterrupt:
        warn("Interrupted")
        return 130


if __name__ == '__main__':
    raise SystemExit(main())
