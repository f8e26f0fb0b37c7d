"""Runtime settings for the mapper, read from the environment and `.env`."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

try:
    from dotenv import load_dotenv
except ModuleNotFoundError:
    load_dotenv = None

from ifc_mapper.paths import find_base_schema_path, find_project_root, find_state_dir

BASE_SCHEMA_ENV = "IFC_MAPPER_BASE_SCHEMA"
STATE_DIR_ENV = "IFC_MAPPER_STATE_DIR"
AUDIT_LOG_ENV = "IFC_MAPPER_AUDIT_LOG"
LOG_LEVEL_ENV = "IFC_MAPPER_LOG_LEVEL"


@dataclass(frozen=True)
class MapperSettings:
    base_schema_path: Path
    state_dir: Path
    audit_log_path: Path | None = None
    log_level: str = "INFO"

    @property
    def state_file(self) -> Path:
        return self.state_dir / "state.json"


def _load_env() -> None:
    if load_dotenv is None:
        return
    project_root = find_project_root(Path(__file__).resolve().parent)
    if project_root is not None:
        load_dotenv(project_root / ".env")


def _env_path(name: str) -> Path | None:
    value = os.getenv(name, "").strip()
    if not value:
        return None
    return Path(value).expanduser()


def load_settings() -> MapperSettings:
    """Build settings from `.env` and the process environment.

    Explicit environment variables win over `.env` values because
    load_dotenv() never overrides variables that are already set.
    """
    _load_env()
    level = os.getenv(LOG_LEVEL_ENV, "").strip().upper() or "INFO"
    return MapperSettings(
        base_schema_path=_env_path(BASE_SCHEMA_ENV) or find_base_schema_path(),
        state_dir=_env_path(STATE_DIR_ENV) or find_state_dir(),
        audit_log_path=_env_path(AUDIT_LOG_ENV),
        log_level=level,
    )
