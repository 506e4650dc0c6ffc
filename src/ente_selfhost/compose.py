#!/usr/bin/env python3
"""
Thin wrapper around the external compose tool.

Process supervision, restart policy and idempotent ``up`` all belong to the
compose tool; this module only builds command lines and runs them inside the
instance directory.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Optional, Sequence

from .errors import ToolMissingError
from .instance import Instance
from .output import info, success, warn


logger = logging.getLogger(__name__)

COMPOSE_INSTALL_HINT = "https://podman.io/docs/installation (plus podman-compose or docker-compose)"


class ComposeRunner:
    """Run ``<command> ...`` with the instance directory as working directory."""

    def __init__(self, command: Sequence[str], project_dir: Path) -> None:
        self.command = list(command)
        self.project_dir = Path(project_dir)

    def __repr__(self) -> str:
        return f"ComposeRunner({' '.join(self.command)!r}, {str(self.project_dir)!r})"

    def _cmd(self, *args: str) -> list[str]:
        return [*self.command, *args]

    def run(self, *args: str, timeout: Optional[float] = None) -> subprocess.CompletedProcess:
        cmd = self._cmd(*args)
        logger.debug(f"Running: {' '.join(cmd)} (cwd={self.project_dir})")
        return subprocess.run(
            cmd,
            cwd=self.project_dir,
            capture_output=True,
            text=True,
            timeout=timeout,
        )

    def is_available(self) -> bool:
        try:
            result = subprocess.run(
                self._cmd("version"),
                capture_output=True,
                text=True,
                timeout=10,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired):
            return False
        return result.returncode == 0

    def up(self) -> subprocess.CompletedProcess:
        """Start the stack detached and wait for the compose tool to return."""
        return self.run("up", "-d")

    def up_background(self) -> subprocess.Popen:
        """Launch ``up -d`` without waiting; output is discarded."""
        cmd = self._cmd("up", "-d")
        logger.debug(f"Launching in background: {' '.join(cmd)}")
        return subprocess.Popen(
            cmd,
            cwd=self.project_dir,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )

    def down(self) -> subprocess.CompletedProcess:
        return self.run("down")

    def exec(self, service: str, *args: str) -> subprocess.CompletedProcess:
        """Run a command inside a service container. Never raises on failure."""
        return self.run("exec", "-T", service, *args)


def runner_for(instance: Instance, command: Sequence[str]) -> ComposeRunner:
    return ComposeRunner(command, instance.root)


def check_runtime_dependencies(runner: ComposeRunner) -> None:
    """Fail when the compose tool cannot be invoked."""
    if not runner.is_available():
        raise ToolMissingError(" ".join(runner.command), COMPOSE_INSTALL_HINT)


def ensure_running(runner: ComposeRunner) -> bool:
    """Start (or keep running) the stack; True when the compose tool succeeded."""
    result = runner.up()
    if result.returncode != 0:
        details = (result.stderr or result.stdout or "").strip()
        warn(f"'{' '.join(runner.command)} up -d' exited with {result.returncode}", output=details or "(none)")
        return False
    success(f"Services started. Use '{' '.join(runner.command)} logs -f' to view logs.")
    return True


def stop(runner: ComposeRunner) -> None:
    """Stop the stack; a failing ``down`` is only reported."""
    info("Stopping services for consistent backup...")
    try:
        result = runner.down()
    except FileNotFoundError as e:
        warn(f"Could not run compose down: {e}")
        return
    if result.returncode != 0:
        logger.debug(f"compose down exited {result.returncode}: {result.stderr.strip()}")
