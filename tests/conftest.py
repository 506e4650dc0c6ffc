"""
Shared fixtures for ente-selfhost tests.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from ente_selfhost.config import build_config, deep_merge_configs, load_default_config  # noqa: E402
from ente_selfhost.config_constants import CONFIG_ENV_VAR  # noqa: E402
from ente_selfhost.credentials import Credentials  # noqa: E402


def make_config(overrides: dict | None = None):
    """Defaults plus test-friendly readiness timing, plus ``overrides``."""
    fast = {
        "compose": {"startup_grace_seconds": 0},
        "readiness": {"max_attempts": 3, "interval_seconds": 0},
    }
    merged = deep_merge_configs(load_default_config(), fast)
    return build_config(deep_merge_configs(merged, overrides or {}))


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(
        postgres_password="pg+pass/word==",
        minio_user="minio-user-AbCdEfGh",
        minio_password="minio/secret+value=",
        encryption_key="ZW5jcnlwdGlvbi1rZXk=",
        hash_key="aGFzaC1rZXk=",
        jwt_secret="and0LXNlY3JldA-_",
    )


@pytest.fixture(autouse=True)
def no_host_side_effects(monkeypatch):
    """Keep tests away from sudo/SELinux tools and the real default route."""
    monkeypatch.setattr("ente_selfhost.security.shutil.which", lambda name: None)
    monkeypatch.setattr("ente_selfhost.config.detect_host_ip", lambda: "192.168.1.50")
    monkeypatch.setattr("ente_selfhost.provision.detect_host_ip", lambda: "192.168.1.50")
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)


def build_instance_tree(root: Path) -> None:
    """Populate a complete instance directory with some nested content."""
    for name in ("data", "postgres-data", "minio-data"):
        (root / name).mkdir(parents=True)
    (root / "postgres-data" / "base").mkdir()
    (root / "postgres-data" / "base" / "1259").write_bytes(b"\x00\x01pgdata\xff")
    (root / "postgres-data" / "PG_VERSION").write_text("15\n")
    (root / "minio-data" / "b2-eu-cen").mkdir()
    (root / "minio-data" / "b2-eu-cen" / "object.bin").write_bytes(bytes(range(256)))
    (root / "data" / "notes.txt").write_text("app data\n")
    (root / "compose.yaml").write_text("services: {}\n")
    (root / "museum.yaml").write_text("db:\n  host: postgres\n")


def snapshot(root: Path) -> dict:
    """Map of relative path -> bytes (or None for directories)."""
    result = {}
    if not root.exists():
        return result
    for path in sorted(root.rglob("*")):
        rel = str(path.relative_to(root))
        result[rel] = None if path.is_dir() else path.read_bytes()
    return result
