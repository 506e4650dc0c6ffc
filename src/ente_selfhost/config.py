#!/usr/bin/env python3
"""
Deployment configuration.

The packaged defaults TOML is deep-merged with an optional operator override
file and frozen into a :class:`DeployConfig` that is passed explicitly to
every component.

Override lookup order:
1. ``--config PATH`` on the command line
2. ``$ENTE_SELFHOST_CONFIG``
3. ``./ente-selfhost.toml`` when present
"""

from __future__ import annotations

import dataclasses
import logging
import os
import socket
import tomllib
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, Optional

from .config_constants import (
    CONFIG_DEFAULTS,
    CONFIG_ENV_VAR,
    CONFIG_OVERRIDES,
    ROUTE_PROBE_ADDRESS,
)
from .errors import ConfigError


logger = logging.getLogger(__name__)

LOOPBACK = "127.0.0.1"


def _check_port(name: str, value: Any) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or not 1 <= value <= 65535:
        raise ValueError(f"{name} must be an integer port in 1..65535 (got {value!r})")


def _check_positive(name: str, value: Any) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise ValueError(f"{name} must be a positive integer (got {value!r})")


def _check_text(name: str, value: Any) -> None:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{name} must be a non-empty string (got {value!r})")


def _check_bool(name: str, value: Any) -> None:
    if not isinstance(value, bool):
        raise ValueError(f"{name} must be true or false (got {value!r})")


def _check_text_list(name: str, value: Any) -> None:
    if not isinstance(value, (list, tuple)) or not value:
        raise ValueError(f"{name} must be a non-empty list of strings (got {value!r})")
    for item in value:
        _check_text(f"{name}[]", item)


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(frozen=True)
class InstanceSettings:
    name: str
    dir_permissions: str

    def __post_init__(self) -> None:
        _check_text("instance.name", self.name)
        if "/" in self.name or self.name in (".", ".."):
            raise ValueError(f"instance.name must be a plain directory name (got {self.name!r})")
        try:
            int(self.dir_permissions, 8)
        except (TypeError, ValueError):
            raise ValueError(
                f"instance.dir_permissions must be an octal string like '755' (got {self.dir_permissions!r})"
            ) from None

    @property
    def mode(self) -> int:
        return int(self.dir_permissions, 8)


@dataclass(frozen=True)
class ComposeSettings:
    command: tuple
    startup_grace_seconds: float

    def __post_init__(self) -> None:
        _check_text_list("compose.command", self.command)
        if not isinstance(self.startup_grace_seconds, (int, float)) or self.startup_grace_seconds < 0:
            raise ValueError("compose.startup_grace_seconds must be >= 0")


@dataclass(frozen=True)
class PortSettings:
    api: int
    web_photos: int
    web_albums: int
    minio: int
    minio_console: int

    def __post_init__(self) -> None:
        for field in dataclasses.fields(self):
            _check_port(f"ports.{field.name}", getattr(self, field.name))


@dataclass(frozen=True)
class PostgresSettings:
    user: str
    db: str

    def __post_init__(self) -> None:
        _check_text("postgres.user", self.user)
        _check_text("postgres.db", self.db)


@dataclass(frozen=True)
class MinioSettings:
    user_prefix: str
    region: str
    buckets: tuple

    def __post_init__(self) -> None:
        _check_text("minio.user_prefix", self.user_prefix)
        _check_text("minio.region", self.region)
        _check_text_list("minio.buckets", self.buckets)


@dataclass(frozen=True)
class SecretSettings:
    password_length: int
    key_length: int
    hash_length: int
    user_suffix_length: int

    def __post_init__(self) -> None:
        for field in dataclasses.fields(self):
            _check_positive(f"secrets.{field.name}", getattr(self, field.name))


@dataclass(frozen=True)
class CorsSettings:
    enabled: bool
    allowed_origins: str
    allowed_methods: str
    allowed_headers: str

    def __post_init__(self) -> None:
        _check_bool("cors.enabled", self.enabled)


@dataclass(frozen=True)
class NetworkSettings:
    expose: bool
    interface: str
    minio_endpoint_auto: bool

    def __post_init__(self) -> None:
        _check_text("network.interface", self.interface)
        _check_bool("network.expose", self.expose)
        _check_bool("network.minio_endpoint_auto", self.minio_endpoint_auto)


@dataclass(frozen=True)
class ImageSettings:
    museum: str
    web: str
    postgres: str
    minio: str
    socat: str

    def __post_init__(self) -> None:
        for field in dataclasses.fields(self):
            _check_text(f"images.{field.name}", getattr(self, field.name))


@dataclass(frozen=True)
class ReadinessSettings:
    max_attempts: int
    interval_seconds: float
    progress_every: int

    def __post_init__(self) -> None:
        _check_positive("readiness.max_attempts", self.max_attempts)
        _check_positive("readiness.progress_every", self.progress_every)
        if not isinstance(self.interval_seconds, (int, float)) or self.interval_seconds < 0:
            raise ValueError("readiness.interval_seconds must be >= 0")


@dataclass(frozen=True)
class AdminSettings:
    whitelist: tuple

    def __post_init__(self) -> None:
        _check_text_list("admin.whitelist", self.whitelist)


@dataclass(frozen=True)
class LoggingSettings:
    level: str

    def __post_init__(self) -> None:
        if not isinstance(self.level, str) or self.level.upper() not in LOG_LEVELS:
            raise ValueError(f"logging.level must be one of {', '.join(LOG_LEVELS)} (got {self.level!r})")


@dataclass(frozen=True)
class DeployConfig:
    instance: InstanceSettings
    compose: ComposeSettings
    ports: PortSettings
    postgres: PostgresSettings
    minio: MinioSettings
    secrets: SecretSettings
    cors: CorsSettings
    network: NetworkSettings
    images: ImageSettings
    readiness: ReadinessSettings
    admin: AdminSettings
    logging: LoggingSettings

    def to_dict(self) -> dict:
        """Return a TOML-serialisable dict (tuples become lists)."""
        def _plain(value: Any) -> Any:
            if isinstance(value, dict):
                return {k: _plain(v) for k, v in value.items()}
            if isinstance(value, (list, tuple)):
                return [_plain(v) for v in value]
            return value

        return _plain(dataclasses.asdict(self))


def deep_merge_configs(base: dict, overrides: dict) -> dict:
    """
    Deep merge two config dicts (key-level merge).

    Nested dicts merge recursively; scalars and lists in ``overrides`` replace
    the base value.
    """
    result = base.copy()
    for key, value in overrides.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge_configs(result[key], value)
        else:
            if key in result:
                logger.debug(f"  Override: {key} = {value!r}")
            result[key] = value
    return result


def parse_toml_string(toml_text: str, source: str) -> dict:
    """
    Parse TOML from a string with error context.
    """
    try:
        return tomllib.loads(toml_text)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Failed to parse TOML from {source}: {e}") from e


def load_default_config() -> dict:
    """Load the defaults TOML shipped inside the package."""
    text = resources.files("ente_selfhost").joinpath(CONFIG_DEFAULTS).read_text(encoding="utf-8")
    return parse_toml_string(text, CONFIG_DEFAULTS)


def find_override_file(explicit: Optional[Path] = None) -> Optional[Path]:
    """
    Locate the operator override file, or None when there is none.

    An explicitly requested file (argument or environment) must exist.
    """
    if explicit is not None:
        if not explicit.is_file():
            raise ConfigError(f"Config file not found: {explicit}")
        return explicit

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = Path(env_path)
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path} (from ${CONFIG_ENV_VAR})")
        return path

    local = Path.cwd() / CONFIG_OVERRIDES
    return local if local.is_file() else None


_SECTION_TYPES = {
    "instance": InstanceSettings,
    "compose": ComposeSettings,
    "ports": PortSettings,
    "postgres": PostgresSettings,
    "minio": MinioSettings,
    "secrets": SecretSettings,
    "cors": CorsSettings,
    "network": NetworkSettings,
    "images": ImageSettings,
    "readiness": ReadinessSettings,
    "admin": AdminSettings,
    "logging": LoggingSettings,
}


def _build_section(name: str, data: Any):
    section_cls = _SECTION_TYPES[name]
    if not isinstance(data, dict):
        raise ConfigError(f"[{name}] must be a table")

    known = {field.name for field in dataclasses.fields(section_cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown key(s) in [{name}]: {', '.join(unknown)}")
    missing = sorted(known - set(data))
    if missing:
        raise ConfigError(f"Missing key(s) in [{name}]: {', '.join(missing)}")

    values = {key: tuple(value) if isinstance(value, list) else value for key, value in data.items()}
    try:
        return section_cls(**values)
    except ValueError as e:
        raise ConfigError(str(e)) from e


def build_config(data: dict) -> DeployConfig:
    """Validate a merged config dict and freeze it."""
    unknown = sorted(set(data) - set(_SECTION_TYPES))
    if unknown:
        raise ConfigError(f"Unknown config section(s): {', '.join(unknown)}")
    return DeployConfig(**{name: _build_section(name, data.get(name)) for name in _SECTION_TYPES})


def load_config(path: Optional[Path] = None) -> DeployConfig:
    """
    Load defaults, merge the override file (if any) and return a frozen config.
    """
    merged = load_default_config()
    override_path = find_override_file(path)
    if override_path is not None:
        logger.debug(f"Loading config overrides from {override_path}")
        merged = deep_merge_configs(merged, parse_toml_string(override_path.read_text(encoding="utf-8"), str(override_path)))
    return build_config(merged)


def network_binding(config: DeployConfig) -> str:
    """Address published ports bind to."""
    return config.network.interface if config.network.expose else LOOPBACK


def detect_host_ip() -> Optional[str]:
    """
    Return the source address of the default route, or None.

    Connecting a UDP socket sends nothing; it only selects a route.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect((ROUTE_PROBE_ADDRESS, 80))
            ip = sock.getsockname()[0]
    except OSError as e:
        logger.debug(f"Host IP detection failed: {e}")
        return None
    if not ip or ip.startswith("0."):
        return None
    return ip


def minio_endpoint(config: DeployConfig, host_ip: Optional[str]) -> str:
    """Endpoint (host:port) advertised to clients for object storage."""
    if config.network.minio_endpoint_auto and config.network.expose and host_ip:
        return f"{host_ip}:{config.ports.minio}"
    return f"localhost:{config.ports.minio}"
