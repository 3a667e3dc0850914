"""Frame construction for the stage, independent of the painting backend."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

from overlay_stage.image_cache import Bitmap
from overlay_stage.overlay_model import OverlayItem
from overlay_stage.viewport_helper import ViewportState, compute_cover_placement

Color = Tuple[int, int, int, int]
TraceCallback = Callable[[str, Mapping[str, Any]], None]

BACKGROUND_COLOR: Color = (0x11, 0x11, 0x11, 255)
PLACEHOLDER_COLOR: Color = (0x22, 0x22, 0x22, 255)
PLACEHOLDER_TEXT_COLOR: Color = (0xBB, 0xBB, 0xBB, 255)
PLACEHOLDER_TEXT = "Upload a photo to start"
PLACEHOLDER_TEXT_ORIGIN = (20.0, 30.0)
OVERLAY_TEXT_COLOR: Color = (255, 255, 255, 255)
SELECTION_COLOR: Color = (255, 255, 255, 204)
SELECTION_LINE_WIDTH = 2.0
# Nominal bounds for text overlays; text is not measured for the outline.
TEXT_SELECTION_BOX = (-150.0, -35.0, 300.0, 70.0)


class FontRole(str, Enum):
    INSTRUCTION = "instruction"
    DISPLAY = "display"


class StagePainterAdapter:
    """Drawing primitives the pipeline needs; coordinates are in the current frame."""

    def begin_frame(self, pixel_width: int, pixel_height: int) -> None: ...
    def end_frame(self) -> None: ...
    def save(self) -> None: ...
    def restore(self) -> None: ...
    def translate(self, dx: float, dy: float) -> None: ...
    def rotate(self, radians: float) -> None: ...
    def scale(self, sx: float, sy: float) -> None: ...
    def fill_rect(self, x: float, y: float, width: float, height: float, color: Color) -> None: ...
    def draw_bitmap(self, bitmap: Bitmap, x: float, y: float, width: float, height: float) -> None: ...
    def draw_text(self, x: float, y: float, text: str, color: Color, *, role: FontRole, centered: bool) -> None: ...
    def stroke_rect(
        self, x: float, y: float, width: float, height: float, color: Color, *, line_width: float
    ) -> None: ...


@dataclass(frozen=True)
class FrameInputs:
    viewport: ViewportState
    overlays: Sequence[OverlayItem]
    bitmaps: Mapping[str, Bitmap] = field(default_factory=dict)
    base_bitmap: Optional[Bitmap] = None
    selected_id: Optional[str] = None


@dataclass
class FrameReport:
    placeholder: bool = False
    drawn_ids: List[str] = field(default_factory=list)
    skipped_ids: List[str] = field(default_factory=list)
    outlined_id: Optional[str] = None


def render_frame(
    adapter: StagePainterAdapter,
    frame: FrameInputs,
    *,
    trace: Optional[TraceCallback] = None,
) -> FrameReport:
    """Repaint the whole frame: background, base photo (or placeholder), overlays."""

    report = FrameReport()
    viewport = frame.viewport
    width = float(viewport.width)
    height = float(viewport.height)
    pixel_width, pixel_height = viewport.physical_size

    adapter.begin_frame(pixel_width, pixel_height)
    adapter.scale(viewport.device_ratio, viewport.device_ratio)
    adapter.fill_rect(0.0, 0.0, width, height, BACKGROUND_COLOR)

    base = frame.base_bitmap
    if base is not None and base.width() > 0 and base.height() > 0:
        placement = compute_cover_placement(base.width(), base.height(), width, height)
        adapter.draw_bitmap(base, placement.x, placement.y, placement.width, placement.height)
        if trace:
            trace(
                "render_frame:base",
                {
                    "scale": placement.scale,
                    "x": placement.x,
                    "y": placement.y,
                    "width": placement.width,
                    "height": placement.height,
                },
            )
    else:
        report.placeholder = True
        adapter.fill_rect(0.0, 0.0, width, height, PLACEHOLDER_COLOR)
        text_x, text_y = PLACEHOLDER_TEXT_ORIGIN
        adapter.draw_text(
            text_x,
            text_y,
            PLACEHOLDER_TEXT,
            PLACEHOLDER_TEXT_COLOR,
            role=FontRole.INSTRUCTION,
            centered=False,
        )

    for item in frame.overlays:
        adapter.save()
        try:
            adapter.translate(item.x, item.y)
            adapter.rotate(item.rotation)
            adapter.scale(item.scale, item.scale)
            drawn = _paint_overlay(adapter, item, frame, report)
        finally:
            adapter.restore()
        if drawn:
            report.drawn_ids.append(item.id)
        else:
            report.skipped_ids.append(item.id)

    adapter.end_frame()
    if trace:
        trace(
            "render_frame:done",
            {
                "drawn": list(report.drawn_ids),
                "skipped": list(report.skipped_ids),
                "selected": frame.selected_id,
                "placeholder": report.placeholder,
            },
        )
    return report


def _paint_overlay(
    adapter: StagePainterAdapter,
    item: OverlayItem,
    frame: FrameInputs,
    report: FrameReport,
) -> bool:
    selected = item.id == frame.selected_id
    if item.is_image and item.image_source:
        bitmap = frame.bitmaps.get(item.id)
        if bitmap is None:
            return False
        natural_w = float(bitmap.width())
        natural_h = float(bitmap.height())
        left = -natural_w / 2.0
        top = -natural_h / 2.0
        adapter.draw_bitmap(bitmap, left, top, natural_w, natural_h)
        if selected:
            adapter.stroke_rect(left, top, natural_w, natural_h, SELECTION_COLOR, line_width=SELECTION_LINE_WIDTH)
            report.outlined_id = item.id
        return True
    if item.is_text and item.text:
        adapter.draw_text(0.0, 0.0, item.text, OVERLAY_TEXT_COLOR, role=FontRole.DISPLAY, centered=True)
        if selected:
            box_x, box_y, box_w, box_h = TEXT_SELECTION_BOX
            adapter.stroke_rect(box_x, box_y, box_w, box_h, SELECTION_COLOR, line_width=SELECTION_LINE_WIDTH)
            report.outlined_id = item.id
        return True
    return False
