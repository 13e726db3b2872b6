"""Project settings from ``archloom.yml`` and baseline store construction."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import yaml

from archloom.freeze.store import FileBaselineStore, SqliteBaselineStore

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "archloom.yml"
VALID_STORE_BACKENDS: frozenset[str] = frozenset({"file", "sqlite"})


@dataclass(frozen=True)
class FreezeSettings:
    """Where and how freeze baselines are kept."""

    store: str = ".archloom/baseline"
    backend: str = "file"  # "file" | "sqlite"
    allow_store_creation: bool = True
    refreeze: bool = False


@dataclass(frozen=True)
class Settings:
    """Project-level defaults; CLI options override them."""

    graph: str = "facts.yml"
    rules: str = "rules.yml"
    workers: int | None = None
    freeze: FreezeSettings = field(default_factory=FreezeSettings)


def _flag(data: dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if isinstance(value, bool):
        return value
    logger.warning(
        "Ignoring non-boolean 'freeze.%s' value %r in %s, using %s",
        key,
        value,
        CONFIG_FILENAME,
        default,
    )
    return default


def _parse_freeze(data: dict[str, Any]) -> FreezeSettings:
    defaults = FreezeSettings()
    backend = str(data.get("backend", defaults.backend))
    if backend not in VALID_STORE_BACKENDS:
        logger.warning(
            "Unknown baseline backend '%s' in %s, using '%s'",
            backend,
            CONFIG_FILENAME,
            defaults.backend,
        )
        backend = defaults.backend
    return FreezeSettings(
        store=str(data.get("store", defaults.store)),
        backend=backend,
        allow_store_creation=_flag(data, "allow_store_creation", defaults.allow_store_creation),
        refreeze=_flag(data, "refreeze", defaults.refreeze),
    )


def load_settings(project_root: Path) -> Settings:
    """Load ``archloom.yml`` from *project_root*.

    Falls back to defaults for missing keys or a missing file; an unreadable
    file is logged and ignored.
    """
    config_path = project_root / CONFIG_FILENAME
    if not config_path.is_file():
        return Settings()

    try:
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError):
        logger.warning("Failed to read %s, using default settings", config_path)
        return Settings()

    if not isinstance(data, dict):
        return Settings()

    defaults = Settings()
    workers_raw = data.get("workers")
    workers: int | None = None
    if isinstance(workers_raw, int) and not isinstance(workers_raw, bool) and workers_raw > 0:
        workers = workers_raw
    elif workers_raw is not None:
        logger.warning("Ignoring invalid 'workers' value %r in %s", workers_raw, config_path)

    freeze_data = data.get("freeze")
    freeze = _parse_freeze(freeze_data) if isinstance(freeze_data, dict) else FreezeSettings()

    return Settings(
        graph=str(data.get("graph", defaults.graph)),
        rules=str(data.get("rules", defaults.rules)),
        workers=workers,
        freeze=freeze,
    )


def build_store(
    settings: FreezeSettings, project_root: Path
) -> FileBaselineStore | SqliteBaselineStore:
    """Create (but do not open) the baseline store described by *settings*."""
    location = project_root / settings.store
    if settings.backend == "sqlite":
        return SqliteBaselineStore(location)
    return FileBaselineStore(location)
