"""Data shape for placed overlays and helpers over the ordered collection."""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence, Tuple


class OverlayKind(str, Enum):
    IMAGE = "image"
    TEXT = "text"


@dataclass(frozen=True)
class OverlayItem:
    """One placed element.

    ``x``/``y`` is the anchor (center) in drawing-surface logical pixels. Scale and
    rotation (radians) are applied about that anchor. ``image_source`` is only
    meaningful for image overlays and ``text`` only for text overlays.
    """

    id: str
    kind: OverlayKind
    x: float
    y: float
    scale: float = 1.0
    rotation: float = 0.0
    image_source: Optional[str] = None
    text: Optional[str] = None

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)

    @property
    def is_image(self) -> bool:
        return self.kind is OverlayKind.IMAGE

    @property
    def is_text(self) -> bool:
        return self.kind is OverlayKind.TEXT

    def moved_to(self, x: float, y: float) -> "OverlayItem":
        return replace(self, x=x, y=y)

    def with_scale(self, scale: float) -> "OverlayItem":
        return replace(self, scale=scale)

    def with_rotation(self, rotation: float) -> "OverlayItem":
        return replace(self, rotation=rotation)


OverlayCollection = Tuple[OverlayItem, ...]
OverlayUpdater = Callable[[OverlayCollection], Sequence[OverlayItem]]


def clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, value))


def as_collection(items: Iterable[OverlayItem]) -> OverlayCollection:
    return tuple(items)


def find_overlay(overlays: Sequence[OverlayItem], overlay_id: Optional[str]) -> Optional[OverlayItem]:
    if overlay_id is None:
        return None
    for item in overlays:
        if item.id == overlay_id:
            return item
    return None


def replace_overlay(
    overlays: Sequence[OverlayItem],
    overlay_id: str,
    transform: Callable[[OverlayItem], OverlayItem],
) -> OverlayCollection:
    """Return a new collection with ``transform`` applied to the matching id.

    Paint order is preserved and every other item is passed through untouched.
    """

    return tuple(transform(item) if item.id == overlay_id else item for item in overlays)


def image_sources(overlays: Sequence[OverlayItem]) -> Tuple[Tuple[str, str], ...]:
    """(id, image_source) pairs for image overlays that carry a source."""

    return tuple(
        (item.id, item.image_source)
        for item in overlays
        if item.is_image and item.image_source
    )
