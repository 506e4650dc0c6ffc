#!/usr/bin/env python3
"""MinIO bucket provisioning for the object-storage backends."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

import yaml

from .compose import ComposeRunner
from .config import DeployConfig
from .credentials import Credentials
from .errors import PreconditionError
from .output import error, info, success, warn
from .readiness import (
    MINIO_ALIAS,
    MINIO_SERVICE,
    PollResult,
    minio_alias_command,
    minio_alias_probe,
    poll_with_settings,
)


logger = logging.getLogger(__name__)

CREATE_BUCKETS_HINT = "You can try running: ente-selfhost create-buckets"


def credentials_from_settings(settings_file: Path) -> Credentials:
    """
    Read the MinIO key/secret back from an existing museum.yaml.

    Only the MinIO fields are meaningful; the other secrets are left empty.
    """
    try:
        with open(settings_file, "r", encoding="utf-8") as f:
            document = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise PreconditionError(f"Cannot read {settings_file}: {e}") from e
    if not isinstance(document, dict):
        raise PreconditionError(f"Cannot read {settings_file}: top level is not a mapping")

    storage = document.get("s3")
    if not isinstance(storage, dict):
        storage = {}
    backends = [
        value for value in storage.values()
        if isinstance(value, dict) and value.get("key") and value.get("secret")
    ]
    if not backends:
        raise PreconditionError(f"No object-storage credentials found in {settings_file}")

    backend = backends[0]
    return Credentials(
        postgres_password="",
        minio_user=str(backend["key"]),
        minio_password=str(backend["secret"]),
        encryption_key="",
        hash_key="",
        jwt_secret="",
    )


def create_buckets(
    runner: ComposeRunner,
    credentials: Credentials,
    config: DeployConfig,
    poll: Callable[..., PollResult] = poll_with_settings,
) -> bool:
    """
    Wait for MinIO, register the client alias and create every configured bucket.

    Returns False when MinIO never became ready or the alias could not be set.
    An existing bucket is not an error.
    """
    info("Creating MinIO buckets...")

    probe = minio_alias_probe(runner, credentials, config.ports.minio)
    result = poll(probe, config, "MinIO", CREATE_BUCKETS_HINT)
    if not result.ready:
        error("Cannot create buckets - MinIO is not ready")
        return False

    info("Setting up MinIO client...")
    alias = runner.exec(MINIO_SERVICE, *minio_alias_command(credentials, config.ports.minio))
    if alias.returncode != 0:
        error("Failed to set MinIO alias. Check MinIO credentials.")
        return False

    for bucket in config.minio.buckets:
        info(f"Creating bucket: {bucket}")
        made = runner.exec(MINIO_SERVICE, "mc", "mb", f"{MINIO_ALIAS}/{bucket}")
        if made.returncode != 0:
            warn(f"Bucket {bucket} may already exist")
            logger.debug(f"mc mb {bucket}: {(made.stderr or '').strip()}")

    info("Verifying buckets...")
    listing = runner.exec(MINIO_SERVICE, "mc", "ls", f"{MINIO_ALIAS}/")
    if listing.returncode != 0:
        warn("Could not list buckets")
    elif listing.stdout:
        for line in listing.stdout.strip().splitlines():
            info(f"  {line}")

    success("Created MinIO buckets for upload functionality")
    return True
