"""Pointer and wheel handling for selecting, dragging, scaling and rotating overlays."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

from overlay_stage.overlay_model import (
    OverlayCollection,
    OverlayItem,
    OverlayUpdater,
    clamp,
    find_overlay,
    replace_overlay,
)

_LOGGER = logging.getLogger("OverlayStage.Interaction")

HIT_RADIUS = 120.0
SCALE_MIN = 0.2
SCALE_MAX = 4.0
ZOOM_OUT_FACTOR = 0.92
ZOOM_IN_FACTOR = 1.08
ROTATION_STEP = 0.08


@dataclass(frozen=True)
class PointerInput:
    """Pointer position in device coordinates (the same space as the surface origin)."""

    x: float
    y: float
    pointer_id: int = 0


@dataclass(frozen=True)
class WheelInput:
    """Positive ``delta_y`` scrolls down (zoom out); ``modifier`` switches to rotation."""

    delta_y: float
    modifier: bool = False


@dataclass(frozen=True)
class DragState:
    overlay_id: str
    offset_x: float
    offset_y: float


def hit_test(
    overlays: Sequence[OverlayItem],
    x: float,
    y: float,
    *,
    threshold: float = HIT_RADIUS,
) -> Optional[str]:
    """Id of the overlay whose anchor is nearest to (x, y), or None beyond ``threshold``.

    Distance is measured to the anchor, not the visual bounds. Ties go to the
    earlier overlay in the collection.
    """

    best: Optional[Tuple[str, float]] = None
    for item in overlays:
        dist = math.hypot(item.x - x, item.y - y)
        if best is None or dist < best[1]:
            best = (item.id, dist)
    if best is None or best[1] > threshold:
        return None
    return best[0]


def scaled_for_wheel(scale: float, direction: int) -> float:
    factor = ZOOM_OUT_FACTOR if direction > 0 else ZOOM_IN_FACTOR
    return clamp(scale * factor, SCALE_MIN, SCALE_MAX)


class InteractionController:
    """Idle/Dragging state machine driving overlay mutations through ``update_overlays_fn``."""

    def __init__(
        self,
        *,
        overlays_fn: Callable[[], OverlayCollection],
        update_overlays_fn: Callable[[OverlayUpdater], None],
        surface_origin_fn: Callable[[], Tuple[float, float]] = lambda: (0.0, 0.0),
        capture_pointer_fn: Optional[Callable[[int], None]] = None,
        release_pointer_fn: Optional[Callable[[int], None]] = None,
        selection_changed_fn: Optional[Callable[[Optional[str]], None]] = None,
    ) -> None:
        self._overlays = overlays_fn
        self._update_overlays = update_overlays_fn
        self._surface_origin = surface_origin_fn
        self._capture_pointer = capture_pointer_fn
        self._release_pointer = release_pointer_fn
        self._selection_changed = selection_changed_fn
        self._selected_id: Optional[str] = None
        self._drag: Optional[DragState] = None

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    @property
    def drag(self) -> Optional[DragState]:
        return self._drag

    @property
    def is_dragging(self) -> bool:
        return self._drag is not None

    def surface_point(self, event: PointerInput) -> Tuple[float, float]:
        origin_x, origin_y = self._surface_origin()
        return event.x - origin_x, event.y - origin_y

    def pointer_down(self, event: PointerInput) -> Optional[str]:
        x, y = self.surface_point(event)
        overlays = self._overlays()
        overlay_id = hit_test(overlays, x, y)
        self._set_selected(overlay_id)
        if overlay_id is None:
            self._drag = None
            return None
        item = find_overlay(overlays, overlay_id)
        if item is None:
            return None
        self._drag = DragState(overlay_id, x - item.x, y - item.y)
        _LOGGER.debug(
            "Drag started on %s at (%.1f, %.1f) offset=(%.1f, %.1f)",
            overlay_id,
            x,
            y,
            self._drag.offset_x,
            self._drag.offset_y,
        )
        if self._capture_pointer is not None:
            try:
                self._capture_pointer(event.pointer_id)
            except Exception as exc:
                _LOGGER.debug("Pointer capture unavailable: %s", exc)
        return overlay_id

    def pointer_move(self, event: PointerInput) -> bool:
        drag = self._drag
        if drag is None:
            return False
        x, y = self.surface_point(event)
        new_x = x - drag.offset_x
        new_y = y - drag.offset_y
        self._update_overlays(
            lambda overlays: replace_overlay(overlays, drag.overlay_id, lambda item: item.moved_to(new_x, new_y))
        )
        return True

    def pointer_up(self, event: Optional[PointerInput] = None) -> None:
        if self._drag is not None:
            _LOGGER.debug("Drag finished on %s", self._drag.overlay_id)
        self._drag = None
        if self._release_pointer is None:
            return
        try:
            self._release_pointer(event.pointer_id if event is not None else 0)
        except Exception:
            pass

    def wheel(self, event: WheelInput) -> bool:
        """Scale or rotate the selected overlay. Returns True when the event was consumed."""

        selected = self._selected_id
        if selected is None:
            return False
        direction = _sign(event.delta_y)
        if direction == 0:
            return True
        if event.modifier:
            step = direction * ROTATION_STEP
            self._update_overlays(
                lambda overlays: replace_overlay(
                    overlays, selected, lambda item: item.with_rotation(item.rotation + step)
                )
            )
        else:
            self._update_overlays(
                lambda overlays: replace_overlay(
                    overlays, selected, lambda item: item.with_scale(scaled_for_wheel(item.scale, direction))
                )
            )
        return True

    def clear_selection(self) -> None:
        self._drag = None
        self._set_selected(None)

    def prune(self, overlays: Sequence[OverlayItem]) -> None:
        """Forget selection/drag targets that are no longer in the collection."""

        if self._selected_id is not None and find_overlay(overlays, self._selected_id) is None:
            self.clear_selection()
        elif self._drag is not None and find_overlay(overlays, self._drag.overlay_id) is None:
            self._drag = None

    def _set_selected(self, overlay_id: Optional[str]) -> None:
        if overlay_id == self._selected_id:
            return
        self._selected_id = overlay_id
        _LOGGER.debug("Selection changed to %s", overlay_id)
        if self._selection_changed is not None:
            self._selection_changed(overlay_id)


def _sign(value: float) -> int:
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0
