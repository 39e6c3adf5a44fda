from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import logging
import os
import sys

from rim.domain.units import DEFAULT_REGISTRY, UnitRegistry, load_unit_definitions


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    db_path: Path
    logs_dir: Path
    units_file: Path


@dataclass(frozen=True)
class Settings:
    log_level: int = logging.INFO
    functions_url: str = ""
    functions_timeout: float = 30.0
    units_file: Optional[Path] = None


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "RestaurantInventoryManager") -> AppPaths:
    override = os.environ.get("RIM_HOME", "").strip()
    if override:
        base = Path(override).expanduser()
    elif sys.platform.startswith("win"):
        base = _windows_appdata() / app_name
    elif sys.platform == "darwin":
        base = _mac_app_support() / app_name
    else:
        base = Path.home() / ".rim"

    logs = base / "logs"
    db = base / "inventory.db"

    base.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)

    return AppPaths(base_dir=base, db_path=db, logs_dir=logs, units_file=base / "units.json")


def load_settings(env: Optional[dict] = None) -> Settings:
    env = os.environ if env is None else env

    level_name = str(env.get("RIM_LOG_LEVEL", "INFO")).strip().upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    try:
        timeout = float(env.get("RIM_FUNCTIONS_TIMEOUT", "30"))
    except ValueError:
        timeout = 30.0
    if timeout <= 0:
        timeout = 30.0

    units_file = str(env.get("RIM_UNITS_FILE", "")).strip()
    return Settings(
        log_level=level,
        functions_url=str(env.get("RIM_FUNCTIONS_URL", "")).strip(),
        functions_timeout=timeout,
        units_file=Path(units_file).expanduser() if units_file else None,
    )


def load_units(settings: Settings, paths: Optional[AppPaths] = None) -> UnitRegistry:
    """Default unit table plus any pack sizes from units.json."""
    path = settings.units_file or (paths.units_file if paths else None)
    if path is None or not Path(path).exists():
        return DEFAULT_REGISTRY
    return DEFAULT_REGISTRY.extended(load_unit_definitions(path))
