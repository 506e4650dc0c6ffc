#!/usr/bin/env python3
"""
Best-effort SELinux adjustments for rootless containers.

These steps only matter on enforcing hosts (Fedora/RHEL). Every function here
returns :class:`AdvisoryResult` values and never raises, so callers can log a
failure and carry on.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from .config_constants import CONTAINER_CGROUP_BOOLEAN, CONTAINER_FILE_LABEL


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdvisoryResult:
    step: str
    applied: bool
    detail: str = ""


def run_advisory(step: str, cmd: list[str]) -> AdvisoryResult:
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        return AdvisoryResult(step, False, str(e))
    if result.returncode != 0:
        detail = (result.stderr or result.stdout or "").strip() or f"exit {result.returncode}"
        return AdvisoryResult(step, False, detail)
    return AdvisoryResult(step, True)


def apply_container_labels(paths: Iterable[Path], label: str = CONTAINER_FILE_LABEL) -> list[AdvisoryResult]:
    """
    Relabel ``paths`` recursively so containers may access them.

    Returns an empty list when ``chcon`` is not installed.
    """
    if shutil.which("chcon") is None:
        logger.debug("chcon not found, skipping SELinux relabel")
        return []

    results = []
    for path in paths:
        result = run_advisory(f"chcon {path}", ["sudo", "chcon", "-Rt", label, str(path)])
        if not result.applied:
            logger.debug(f"SELinux relabel failed for {path}: {result.detail}")
        results.append(result)
    return results


def enable_container_cgroup_boolean() -> Optional[AdvisoryResult]:
    """Set the container cgroup SELinux boolean; None when setsebool is absent."""
    if shutil.which("setsebool") is None:
        return None
    result = run_advisory(
        f"setsebool {CONTAINER_CGROUP_BOOLEAN}",
        ["sudo", "setsebool", "-P", CONTAINER_CGROUP_BOOLEAN, "on"],
    )
    if not result.applied:
        logger.debug(f"setsebool failed: {result.detail}")
    return result
