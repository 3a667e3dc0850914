"""Configuration helpers for the Overlay Stage app."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

_LOGGER = logging.getLogger("OverlayStage.Config")

SETTINGS_FILENAME = "stage_settings.json"
SETTINGS_ENV_VAR = "OVERLAY_STAGE_SETTINGS"
LOG_RETENTION_MIN = 1
LOG_RETENTION_MAX = 20
PACKAGE_DIR = Path(__file__).resolve().parent


@dataclass(frozen=True)
class CatalogEntry:
    name: str
    src: str


def _default_catalog() -> Tuple[CatalogEntry, ...]:
    return (
        CatalogEntry("Mustache", "overlays/mustache.png"),
        CatalogEntry("Glasses", "overlays/glasses.png"),
        CatalogEntry("Hat", "overlays/hat.png"),
    )


@dataclass(frozen=True)
class InitialStageSettings:
    """Values used to bootstrap the stage window."""

    base_image: Optional[str] = "sample-face.jpg"
    catalog: Tuple[CatalogEntry, ...] = field(default_factory=_default_catalog)
    default_text: str = "LOL"
    log_retention: int = 5
    repaint_debounce_ms: int = 33
    export_filename: str = "funny-face.png"


def resolve_settings_path(cli_value: Optional[str] = None) -> Path:
    if cli_value:
        return Path(cli_value).expanduser().resolve()
    env_override = os.getenv(SETTINGS_ENV_VAR)
    if env_override:
        return Path(env_override).expanduser().resolve()
    return (PACKAGE_DIR / SETTINGS_FILENAME).resolve()


def resolve_resource(value: str, base_dir: Path) -> str:
    """Make relative file references absolute against ``base_dir``; leave uris alone."""

    if ":" in value and not Path(value).drive:
        return value
    candidate = Path(value).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return str(candidate)


def _coerce_retention(value: Any, fallback: int) -> int:
    try:
        numeric = int(value)
    except (TypeError, ValueError):
        _LOGGER.warning("Ignoring invalid log_retention %r", value)
        return fallback
    return max(LOG_RETENTION_MIN, min(LOG_RETENTION_MAX, numeric))


def _coerce_catalog(value: Any, base_dir: Path, fallback: Tuple[CatalogEntry, ...]) -> Tuple[CatalogEntry, ...]:
    if not isinstance(value, list):
        _LOGGER.warning("Catalog is not a list; using defaults")
        return fallback
    entries: List[CatalogEntry] = []
    for raw in value:
        if not isinstance(raw, dict):
            _LOGGER.warning("Ignoring catalog entry that is not an object: %r", raw)
            continue
        name = str(raw.get("name") or "").strip()
        src = str(raw.get("src") or "").strip()
        if not name or not src:
            _LOGGER.warning("Ignoring catalog entry without name/src: %r", raw)
            continue
        entries.append(CatalogEntry(name, resolve_resource(src, base_dir)))
    return tuple(entries)


def load_initial_settings(settings_path: Path) -> InitialStageSettings:
    """Read bootstrap settings from ``stage_settings.json`` if it exists."""

    base_dir = settings_path.parent
    defaults = InitialStageSettings()
    default_catalog = tuple(CatalogEntry(entry.name, resolve_resource(entry.src, base_dir)) for entry in defaults.catalog)
    default_base = resolve_resource(defaults.base_image, base_dir) if defaults.base_image else None
    try:
        raw = settings_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        _LOGGER.debug("Settings file not found at %s; using defaults", settings_path)
        return InitialStageSettings(base_image=default_base, catalog=default_catalog)
    except OSError as exc:
        _LOGGER.warning("Failed to read %s; using defaults (%s)", settings_path, exc)
        return InitialStageSettings(base_image=default_base, catalog=default_catalog)

    try:
        data: Dict[str, Any] = json.loads(raw)
    except json.JSONDecodeError as exc:
        _LOGGER.warning("Failed to parse %s; using defaults (%s)", settings_path, exc)
        return InitialStageSettings(base_image=default_base, catalog=default_catalog)
    if not isinstance(data, dict):
        _LOGGER.warning("Settings at %s are not a JSON object; using defaults", settings_path)
        return InitialStageSettings(base_image=default_base, catalog=default_catalog)

    base_image: Optional[str] = default_base
    if "base_image" in data:
        raw_base = data.get("base_image")
        base_image = resolve_resource(str(raw_base), base_dir) if raw_base else None

    catalog = default_catalog
    if "catalog" in data:
        catalog = _coerce_catalog(data.get("catalog"), base_dir, default_catalog)

    default_text = data.get("default_text", defaults.default_text)
    if not isinstance(default_text, str):
        _LOGGER.warning("Ignoring non-string default_text %r", default_text)
        default_text = defaults.default_text

    debounce = defaults.repaint_debounce_ms
    try:
        debounce = max(0, int(data.get("repaint_debounce_ms", debounce)))
    except (TypeError, ValueError):
        _LOGGER.warning("Ignoring invalid repaint_debounce_ms %r", data.get("repaint_debounce_ms"))

    export_filename = str(data.get("export_filename") or defaults.export_filename)

    return InitialStageSettings(
        base_image=base_image,
        catalog=catalog,
        default_text=default_text,
        log_retention=_coerce_retention(data.get("log_retention", defaults.log_retention), defaults.log_retention),
        repaint_debounce_ms=debounce,
        export_filename=export_filename,
    )
