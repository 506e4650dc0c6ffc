#!/usr/bin/env python3
"""Random secret generation for a new instance."""

from __future__ import annotations

import base64
import secrets
from dataclasses import dataclass

from .config import SecretSettings


_URLSAFE = str.maketrans("+/", "-_")


def gen_random(nbytes: int, urlsafe: bool = False) -> str:
    """
    Return ``nbytes`` bytes of OS entropy, base-64 encoded.

    The urlsafe variant only remaps ``+/`` to ``-_``; padding is kept so both
    variants decode back to exactly ``nbytes`` bytes.
    """
    if nbytes < 1:
        raise ValueError(f"nbytes must be >= 1 (got {nbytes})")
    encoded = base64.b64encode(secrets.token_bytes(nbytes)).decode("ascii")
    if urlsafe:
        encoded = encoded.translate(_URLSAFE)
    return encoded


@dataclass(frozen=True)
class Credentials:
    postgres_password: str
    minio_user: str
    minio_password: str
    encryption_key: str
    hash_key: str
    jwt_secret: str


def generate_credentials(settings: SecretSettings, minio_user_prefix: str) -> Credentials:
    """Generate every secret the stack needs in one go."""
    return Credentials(
        postgres_password=gen_random(settings.password_length),
        minio_user=f"{minio_user_prefix}-{gen_random(settings.user_suffix_length)}",
        minio_password=gen_random(settings.password_length),
        encryption_key=gen_random(settings.key_length),
        hash_key=gen_random(settings.hash_length),
        jwt_secret=gen_random(settings.key_length, urlsafe=True),
    )
