"""Helpers for sizing the drawing surface and placing the base photo."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

MIN_STAGE_SIZE = 320
MAX_STAGE_SIZE = 900
DEFAULT_AVAILABLE_WIDTH = 600


@dataclass(frozen=True)
class ViewportState:
    """Logical drawing-surface size plus the device pixel ratio."""

    width: int
    height: int
    device_ratio: float = 1.0

    @property
    def physical_size(self) -> Tuple[int, int]:
        return physical_size(self.width, self.height, self.device_ratio)


@dataclass(frozen=True)
class CoverPlacement:
    """Where a bitmap lands when scaled to cover the viewport."""

    scale: float
    x: float
    y: float
    width: float
    height: float


def stage_size(available_width: Optional[float]) -> int:
    """Square stage edge length for the given layout width, bounded to [320, 900]."""

    if available_width is None or not math.isfinite(float(available_width)):
        available_width = DEFAULT_AVAILABLE_WIDTH
    bounded = max(MIN_STAGE_SIZE, min(MAX_STAGE_SIZE, float(available_width)))
    return int(bounded)


def build_viewport(available_width: Optional[float], device_ratio: float = 1.0) -> ViewportState:
    size = stage_size(available_width)
    return ViewportState(width=size, height=size, device_ratio=normalise_device_ratio(device_ratio))


def normalise_device_ratio(ratio: Optional[float]) -> float:
    try:
        value = float(ratio) if ratio is not None else 1.0
    except (TypeError, ValueError):
        return 1.0
    if not math.isfinite(value) or value <= 0.0:
        return 1.0
    return value


def physical_size(width: float, height: float, device_ratio: float) -> Tuple[int, int]:
    """Pixel-buffer size for a logical size, floored."""

    ratio = normalise_device_ratio(device_ratio)
    return int(math.floor(width * ratio)), int(math.floor(height * ratio))


def compute_cover_placement(
    image_width: float,
    image_height: float,
    viewport_width: float,
    viewport_height: float,
) -> CoverPlacement:
    """Scale the bitmap uniformly so it fully covers the viewport, centred.

    The longer axis overflows equally on both sides; aspect ratio is kept.
    """

    if image_width <= 0 or image_height <= 0:
        raise ValueError("image dimensions must be positive")
    scale = max(viewport_width / image_width, viewport_height / image_height)
    draw_w = image_width * scale
    draw_h = image_height * scale
    return CoverPlacement(
        scale=scale,
        x=(viewport_width - draw_w) / 2.0,
        y=(viewport_height - draw_h) / 2.0,
        width=draw_w,
        height=draw_h,
    )
