"""Instance directory model."""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Optional

from .config_constants import (
    APP_DATA_DIR,
    COMPOSE_DOCUMENT,
    DATA_DIRS,
    DOCUMENTS,
    MINIO_DATA_DIR,
    POSTGRES_DATA_DIR,
    SETTINGS_DOCUMENT,
)


class InstanceState(enum.Enum):
    ABSENT = "absent"
    COMPLETE = "complete"
    PARTIAL = "partial"


class Instance:
    """One deployment directory: two documents plus three data directories."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    @classmethod
    def in_directory(cls, target_dir: Path, name: str) -> "Instance":
        return cls(Path(target_dir) / name)

    def __repr__(self) -> str:
        return f"Instance({str(self.root)!r})"

    @property
    def compose_file(self) -> Path:
        return self.root / COMPOSE_DOCUMENT

    @property
    def settings_file(self) -> Path:
        return self.root / SETTINGS_DOCUMENT

    @property
    def app_data_dir(self) -> Path:
        return self.root / APP_DATA_DIR

    @property
    def postgres_data_dir(self) -> Path:
        return self.root / POSTGRES_DATA_DIR

    @property
    def minio_data_dir(self) -> Path:
        return self.root / MINIO_DATA_DIR

    def data_dirs(self) -> list[Path]:
        return [self.root / name for name in DATA_DIRS]

    def documents(self) -> list[Path]:
        return [self.root / name for name in DOCUMENTS]

    def exists(self) -> bool:
        return self.root.is_dir()

    def missing_members(self) -> list[str]:
        missing = [name for name in DATA_DIRS if not (self.root / name).is_dir()]
        missing += [name for name in DOCUMENTS if not (self.root / name).is_file()]
        return missing

    def state(self) -> InstanceState:
        if not self.exists():
            return InstanceState.ABSENT
        if self.missing_members():
            return InstanceState.PARTIAL
        return InstanceState.COMPLETE


def resolve_target_dir(target_dir: Optional[str]) -> Path:
    """Target directory argument, defaulting to the current directory."""
    if target_dir:
        return Path(target_dir)
    return Path.cwd()
