#!/usr/bin/env python3
"""
Backup and restore of an instance directory.

A backup bundle is a plain directory holding copies of the three data
directories and both documents. Nothing is compressed or checksummed; the
stack is stopped before copying so the on-disk state is consistent.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from .compose import ComposeRunner, stop
from .config_constants import (
    APP_DATA_DIR,
    COMPOSE_DOCUMENT,
    DATA_DIRS,
    DOCUMENTS,
    MINIO_DATA_DIR,
    POSTGRES_DATA_DIR,
    SETTINGS_DOCUMENT,
)
from .errors import (
    CopyFailedError,
    DestinationAlreadyExistsError,
    IncompleteBackupError,
    InstanceNotFoundError,
    MissingArgumentError,
    PathNotAbsoluteError,
    PermissionChangeError,
    SourceNotFoundError,
)
from .instance import Instance
from .output import info, success, warn
from .security import AdvisoryResult, apply_container_labels, run_advisory


logger = logging.getLogger(__name__)

# Members a bundle must contain; the app data directory may be absent.
REQUIRED_BUNDLE_DIRS = (POSTGRES_DATA_DIR, MINIO_DATA_DIR)


def validate_absolute_path(path: Optional[str], purpose: str) -> Path:
    """
    Reject empty and relative paths. Performs no filesystem access.
    """
    if not path:
        raise MissingArgumentError(purpose)
    if not os.path.isabs(path):
        raise PathNotAbsoluteError(purpose, path)
    return Path(path)


def _privileged_copy(source: Path, destination: Path) -> None:
    # Database files are owned by the container user; rsync under sudo keeps owners.
    cmd = ["sudo", "rsync", "-a", f"{source}/", f"{destination}/"]
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        raise CopyFailedError(source, destination, str(e)) from e
    if result.returncode != 0:
        raise CopyFailedError(source, destination, result.stderr.strip() or f"exit {result.returncode}")


def copy_tree(source: Path, destination: Path, privileged_fallback: bool = False) -> None:
    """
    Copy a directory recursively, keeping modes, timestamps and symlinks.

    With ``privileged_fallback`` a permission failure is retried once through
    ``sudo rsync -a``.
    """
    try:
        shutil.copytree(
            source,
            destination,
            symlinks=True,
            copy_function=shutil.copy2,
            dirs_exist_ok=True,
        )
    except (PermissionError, shutil.Error) as e:
        if not privileged_fallback:
            raise CopyFailedError(source, destination, str(e)) from e
        warn(f"Permission denied copying {source.name}, retrying with sudo")
        _privileged_copy(source, destination)
    except OSError as e:
        raise CopyFailedError(source, destination, str(e)) from e


def remove_tree(path: Path) -> None:
    """
    Delete a directory tree, retrying once with ``sudo rm -rf`` for files owned
    by container users. A failure is reported, never raised.
    """
    try:
        shutil.rmtree(path)
        return
    except FileNotFoundError:
        return
    except OSError as e:
        logger.debug(f"rmtree {path} failed: {e}")

    result = run_advisory(f"rm {path}", ["sudo", "rm", "-rf", str(path)])
    if not result.applied:
        warn(f"Could not remove {path}: {result.detail}", hint=f"rm -rf '{path}'")


def _copy_bundle(source_root: Path, destination_root: Path) -> list[str]:
    """Copy data directories and documents between two instance-shaped trees."""
    copied = []
    for name in DATA_DIRS:
        source = source_root / name
        if not source.is_dir():
            if name == APP_DATA_DIR:
                warn(f"No '{name}' directory in {source_root}, skipping")
                continue
            raise CopyFailedError(source, destination_root / name, "directory not found")
        copy_tree(source, destination_root / name, privileged_fallback=(name == POSTGRES_DATA_DIR))
        copied.append(name)

    for name in DOCUMENTS:
        try:
            shutil.copy2(source_root / name, destination_root / name)
        except OSError as e:
            raise CopyFailedError(source_root / name, destination_root / name, str(e)) from e
        copied.append(name)
    return copied


def backup_instance(instance: Instance, target_path: Optional[str], runner: ComposeRunner) -> Path:
    """
    Stop the stack and copy the instance into ``target_path``.

    Returns the resolved backup path.
    """
    target = validate_absolute_path(target_path, "Backup")
    if not instance.exists():
        raise InstanceNotFoundError(instance.root, "directory found to backup")

    info(f"Creating backup: {target}")
    stop(runner)

    target.mkdir(parents=True, exist_ok=True)
    info("Backing up data directories and config files...")
    copied = _copy_bundle(instance.root, target)

    resolved = target.resolve()
    success(f"Backup created: {target}")
    success(f"Backup includes: {', '.join(copied)}")
    success(f"Full backup path: {resolved}")
    return resolved


def _apply_permissions(instance: Instance, mode: int) -> list[AdvisoryResult]:
    results = []
    for path in instance.data_dirs():
        try:
            os.chmod(path, mode)
        except PermissionError as e:
            if path.name != POSTGRES_DATA_DIR:
                raise PermissionChangeError(path, str(e)) from e
            results.append(run_advisory(f"chmod {path}", ["sudo", "chmod", format(mode, "o"), str(path)]))
    return results


def restore_instance(source_path: Optional[str], instance: Instance, dir_permissions: int) -> list[AdvisoryResult]:
    """
    Recreate ``instance`` from a backup bundle.

    Every check runs before the first write, so a refused restore leaves the
    filesystem untouched, and a failure after the destination was created
    removes it again. Returns the advisory results of the permission and
    SELinux steps.
    """
    source = validate_absolute_path(source_path, "Backup")
    if not source.is_dir():
        raise SourceNotFoundError(source)

    missing = [name for name in REQUIRED_BUNDLE_DIRS if not (source / name).is_dir()]
    missing += [name for name in (COMPOSE_DOCUMENT, SETTINGS_DOCUMENT) if not (source / name).is_file()]
    if missing:
        raise IncompleteBackupError(source, missing)

    if instance.root.exists():
        raise DestinationAlreadyExistsError(instance.root)

    info(f"Restoring from backup: {source}")
    info(f"Full backup path: {source.resolve()}")
    info(f"Instance will be created at: {instance.root}")

    instance.root.parent.mkdir(parents=True, exist_ok=True)
    instance.root.mkdir()
    try:
        for path in instance.data_dirs():
            path.mkdir()

        info("Restoring data directories and config files...")
        _copy_bundle(source, instance.root)

        advisories = _apply_permissions(instance, dir_permissions)
    except BaseException:
        warn(f"Restore failed, removing incomplete {instance.root}")
        remove_tree(instance.root)
        raise

    advisories += apply_container_labels(instance.data_dirs() + instance.documents())
    for advisory in advisories:
        if not advisory.applied:
            logger.debug(f"Advisory step failed: {advisory.step}: {advisory.detail}")

    success("Restore completed")
    return advisories
