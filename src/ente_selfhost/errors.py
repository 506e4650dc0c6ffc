"""Exception hierarchy for ente-selfhost.

Every failure that should end the process with exit code 1 derives from
:class:`EnteSelfhostError`. Readiness timeouts and best-effort host steps are
not exceptions; see :mod:`ente_selfhost.readiness` and
:mod:`ente_selfhost.security`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


USAGE = """Usage: ente-selfhost [-y] [setup [target-dir] | backup <absolute-backup-path> | restore <absolute-backup-path> [target-dir] | create-buckets]
  -y  Skip prompts (non-interactive mode)

Examples:
  ente-selfhost setup
  ente-selfhost -y setup /opt/ente
  ente-selfhost backup /home/user/backups/ente-backup-2024-12
  ente-selfhost restore /home/user/backups/ente-backup-2024-12 /opt/ente
  ente-selfhost create-buckets"""


class EnteSelfhostError(Exception):
    """Base class for fatal errors."""

    def hints(self) -> list[str]:
        """Extra lines printed after the error message."""
        return []


class ConfigError(EnteSelfhostError):
    """Configuration file could not be loaded or failed validation."""


# ============================================================================
# Usage errors
# ============================================================================


class UsageError(EnteSelfhostError):
    """Bad or missing command-line input."""

    def __init__(self, message: str, usage: str = USAGE) -> None:
        super().__init__(message)
        self.usage = usage

    def hints(self) -> list[str]:
        return self.usage.splitlines()


class UnknownCommandError(UsageError):
    def __init__(self, command: str) -> None:
        super().__init__(f"Unknown command '{command}'")
        self.command = command


class MissingArgumentError(UsageError):
    def __init__(self, purpose: str) -> None:
        super().__init__(f"{purpose} path is required.")
        self.purpose = purpose


class PathNotAbsoluteError(UsageError):
    def __init__(self, purpose: str, path: str) -> None:
        super().__init__(f"{purpose} path must be absolute (start with /). Provided: {path}")
        self.purpose = purpose
        self.path = path


# ============================================================================
# Precondition errors
# ============================================================================


class PreconditionError(EnteSelfhostError):
    """The host or filesystem is not in the state the command requires."""


class ToolMissingError(PreconditionError):
    def __init__(self, tool: str, install_hint: Optional[str] = None) -> None:
        super().__init__(f"Please install {tool} before running this command.")
        self.tool = tool
        self.install_hint = install_hint

    def hints(self) -> list[str]:
        return [f"Install: {self.install_hint}"] if self.install_hint else []


class InstanceNotFoundError(PreconditionError):
    def __init__(self, path: Path, detail: str = "directory found") -> None:
        super().__init__(f"No '{path}' {detail}.")
        self.path = path

    def hints(self) -> list[str]:
        return ["Run 'ente-selfhost setup' first to create an instance."]


class PartialInstanceError(PreconditionError):
    def __init__(self, path: Path, missing: list[str]) -> None:
        super().__init__(
            f"'{path}' exists but is incomplete (missing: {', '.join(missing)})."
        )
        self.path = path
        self.missing = missing

    def hints(self) -> list[str]:
        return [
            "Restore the missing members from a backup, or move the directory",
            "aside and run setup again.",
        ]


class SourceNotFoundError(PreconditionError):
    def __init__(self, path: Path) -> None:
        super().__init__(f"Backup path '{path}' does not exist.")
        self.path = path


class IncompleteBackupError(PreconditionError):
    def __init__(self, path: Path, missing: list[str]) -> None:
        super().__init__(f"Backup '{path}' is missing: {', '.join(missing)}")
        self.path = path
        self.missing = missing


class DestinationAlreadyExistsError(PreconditionError):
    def __init__(self, path: Path) -> None:
        super().__init__(f"'{path}' directory already exists.")
        self.path = path

    def hints(self) -> list[str]:
        return [
            "To restore, please remove the existing directory first:",
            f"  rm -rf '{self.path}'",
            "Then run the restore command again.",
        ]


class CopyFailedError(EnteSelfhostError):
    """A backup or restore copy step failed."""

    def __init__(self, source: Path, destination: Path, detail: str) -> None:
        super().__init__(f"Failed to copy '{source}' to '{destination}': {detail}")
        self.source = source
        self.destination = destination


class PermissionChangeError(EnteSelfhostError):
    """Directory permissions could not be applied."""

    def __init__(self, path: Path, detail: str) -> None:
        super().__init__(f"Failed to set permissions on '{path}': {detail}")
        self.path = path
