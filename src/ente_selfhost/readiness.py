#!/usr/bin/env python3
"""
Bounded readiness polling.

:func:`poll_until_ready` is the one retry loop in the project. It calls a
probe at a fixed interval until the probe succeeds or the attempt ceiling is
reached. A timeout is reported as a warning and returned, never raised.
"""

from __future__ import annotations

import enum
import logging
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Callable, Optional

from .compose import ComposeRunner
from .config import DeployConfig
from .credentials import Credentials
from .output import info, success, warn


logger = logging.getLogger(__name__)

Probe = Callable[[], bool]

MINIO_SERVICE = "minio"
MINIO_ALIAS = "local"


class PollState(enum.Enum):
    POLLING = "polling"
    READY = "ready"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class PollResult:
    state: PollState
    attempts: int
    message: str = ""

    @property
    def ready(self) -> bool:
        return self.state is PollState.READY


def poll_until_ready(
    probe: Probe,
    *,
    name: str,
    max_attempts: int = 60,
    interval: float = 2.0,
    timeout_message: Optional[str] = None,
    progress_every: int = 5,
    sleep: Callable[[float], None] = time.sleep,
) -> PollResult:
    """
    Call ``probe`` until it returns True or ``max_attempts`` probes have failed.

    Args:
        probe: Zero-argument callable; an exception counts as a failed attempt
        name: Human-readable service name for progress output
        max_attempts: Probe ceiling, >= 1
        interval: Seconds to wait between attempts (not after the last one)
        timeout_message: Remediation hint printed on timeout
        progress_every: Print a progress line every N failed attempts
        sleep: Injected for tests

    Returns:
        PollResult in state READY or TIMED_OUT
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1 (got {max_attempts})")

    info(f"Waiting for {name} to be ready...")
    state = PollState.POLLING
    attempt = 0

    while state is PollState.POLLING:
        attempt += 1
        try:
            ok = bool(probe())
        except Exception as e:
            logger.debug(f"{name} probe raised: {e}")
            ok = False

        if ok:
            state = PollState.READY
            break

        if attempt >= max_attempts:
            state = PollState.TIMED_OUT
            break

        if attempt % progress_every == 0:
            info(f"Attempt {attempt}/{max_attempts}: {name} not ready yet, waiting...")
        sleep(interval)

    if state is PollState.READY:
        success(f"{name} is ready")
        return PollResult(state, attempt, f"{name} is ready")

    message = (
        f"{name} failed to become ready after {max_attempts} attempts "
        f"({int(max_attempts * interval)}s)"
    )
    if timeout_message:
        warn(message, hint=timeout_message)
    else:
        warn(message)
    return PollResult(state, attempt, message)


def poll_with_settings(probe: Probe, config: DeployConfig, name: str, timeout_message: Optional[str] = None) -> PollResult:
    readiness = config.readiness
    return poll_until_ready(
        probe,
        name=name,
        max_attempts=readiness.max_attempts,
        interval=readiness.interval_seconds,
        timeout_message=timeout_message,
        progress_every=readiness.progress_every,
    )


# ============================================================================
# Probes
# ============================================================================


def minio_alias_command(credentials: Credentials, port: int) -> list[str]:
    return [
        "mc", "alias", "set", MINIO_ALIAS,
        f"http://localhost:{port}",
        credentials.minio_user,
        credentials.minio_password,
    ]


def minio_alias_probe(runner: ComposeRunner, credentials: Credentials, port: int) -> Probe:
    """Authenticated handshake: registering the mc alias only works once MinIO serves requests."""
    def _probe() -> bool:
        return runner.exec(MINIO_SERVICE, *minio_alias_command(credentials, port)).returncode == 0

    return _probe


def http_probe(url: str, timeout: float = 5.0) -> Probe:
    """Unauthenticated liveness check; any 2xx response counts as ready."""
    def _probe() -> bool:
        req = urllib.request.Request(url, headers={'User-Agent': 'ente-selfhost-readiness/1.0'})
        try:
            with urllib.request.urlopen(req, timeout=timeout) as response:
                return 200 <= response.status < 300
        except (urllib.error.URLError, OSError) as e:
            logger.debug(f"GET {url} failed: {e}")
            return False

    return _probe


def museum_ping_url(config: DeployConfig) -> str:
    return f"http://localhost:{config.ports.api}/ping"
