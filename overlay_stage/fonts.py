"""Font resolution for stage text (overlay labels and the placeholder hint)."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence, Tuple

from PyQt6.QtGui import QFont, QFontDatabase

from overlay_stage.render_pipeline import FontRole

_LOGGER = logging.getLogger("OverlayStage.Fonts")

DISPLAY_PIXEL_SIZE = 48
INSTRUCTION_PIXEL_SIZE = 16

DISPLAY_CANDIDATES: Tuple[str, ...] = ("Impact", "Anton", "Haettenschweiler", "Arial Black", "DejaVu Sans")
INSTRUCTION_CANDIDATES: Tuple[str, ...] = ("Segoe UI", "Roboto", "Helvetica Neue", "Arial", "DejaVu Sans")


def _fonts_dir() -> Path:
    return Path(__file__).resolve().parent / "fonts"


def _register_bundled_fonts(fonts_dir: Path) -> Tuple[str, ...]:
    """Register every .ttf/.otf in the bundled fonts folder; returns their families."""

    if not fonts_dir.exists():
        return ()
    families: list[str] = []
    for font_path in sorted(fonts_dir.iterdir()):
        if not font_path.is_file() or font_path.suffix.lower() not in {".ttf", ".otf"}:
            continue
        font_id = QFontDatabase.addApplicationFont(str(font_path))
        if font_id == -1:
            _LOGGER.warning("Font file at %s could not be registered; skipping", font_path)
            continue
        registered = QFontDatabase.applicationFontFamilies(font_id)
        if not registered:
            _LOGGER.warning("Font at %s registered but reported no families; skipping", font_path)
            continue
        _LOGGER.debug("Registered bundled font families %s from %s", registered, font_path)
        families.extend(registered)
    return tuple(families)


def resolve_font_families(
    candidates: Sequence[str],
    *,
    available: Optional[Iterable[str]] = None,
) -> Tuple[str, ...]:
    """Installed families from ``candidates`` in preference order (case-insensitive match)."""

    if available is None:
        try:
            available = QFontDatabase.families()
        except Exception as exc:
            _LOGGER.warning("Could not enumerate installed fonts: %s", exc)
            available = ()
    lookup = {name.casefold(): name for name in available}
    resolved: list[str] = []
    for candidate in candidates:
        match = lookup.get(candidate.casefold())
        if match and match not in resolved:
            resolved.append(match)
    return tuple(resolved)


class FontBook:
    """Builds and caches the QFont used for each text role."""

    def __init__(self, *, fonts_dir: Optional[Path] = None) -> None:
        self._fonts_dir = fonts_dir if fonts_dir is not None else _fonts_dir()
        self._fonts: Dict[FontRole, QFont] = {}
        self._bundled: Optional[Tuple[str, ...]] = None

    def font_for(self, role: FontRole) -> QFont:
        font = self._fonts.get(role)
        if font is None:
            font = self._build(role)
            self._fonts[role] = font
        return font

    def _build(self, role: FontRole) -> QFont:
        if self._bundled is None:
            self._bundled = _register_bundled_fonts(self._fonts_dir)
        if role is FontRole.DISPLAY:
            candidates = self._bundled + DISPLAY_CANDIDATES
            pixel_size = DISPLAY_PIXEL_SIZE
        else:
            candidates = INSTRUCTION_CANDIDATES
            pixel_size = INSTRUCTION_PIXEL_SIZE
        families = resolve_font_families(candidates)
        font = QFont()
        if families:
            font.setFamilies(list(families))
            _LOGGER.debug("Using font families %s for %s text", ", ".join(families), role.value)
        else:
            _LOGGER.warning("No preferred font installed for %s text; using %s", role.value, font.family())
        font.setPixelSize(pixel_size)
        return font
