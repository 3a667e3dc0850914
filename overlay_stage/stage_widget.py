"""Drawing surface widget: keeps the stage frame current and routes pointer input."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from PyQt6.QtCore import QPointF, QSize, Qt, QTimer, pyqtSignal
from PyQt6.QtGui import QImage, QPainter
from PyQt6.QtWidgets import QSizePolicy, QWidget

from overlay_stage.image_cache import BaseImageSlot, ImageLoader, OverlayBitmapResolver
from overlay_stage.image_loader import QtImageLoader
from overlay_stage.interaction_controller import InteractionController, PointerInput, WheelInput
from overlay_stage.qt_painter import QtSurfacePainter
from overlay_stage.render_pipeline import FrameInputs, FrameReport, render_frame
from overlay_stage.stage_document import StageDocument
from overlay_stage.viewport_helper import (
    DEFAULT_AVAILABLE_WIDTH,
    ViewportState,
    build_viewport,
    stage_size,
)

_LOGGER = logging.getLogger("OverlayStage.Stage")

FrameSignature = Tuple[Any, ...]


class StageWidget(QWidget):
    """Square stage showing the base photo with overlays; drag, wheel-scale, shift+wheel-rotate."""

    selection_changed = pyqtSignal(object)

    _REPAINT_DEBOUNCE_MS = 33  # coalesce decode-completion repaint storms

    def __init__(
        self,
        document: StageDocument,
        *,
        loader: Optional[ImageLoader] = None,
        repaint_debounce_ms: Optional[int] = None,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self._document = document
        self._loader: ImageLoader = loader if loader is not None else QtImageLoader(self)
        self._base_slot = BaseImageSlot(self._loader, on_changed=self._handle_bitmaps_changed)
        self._resolver = OverlayBitmapResolver(self._loader, on_changed=self._handle_bitmaps_changed)
        self._controller = InteractionController(
            overlays_fn=lambda: self._document.overlays,
            update_overlays_fn=self._document.update_overlays,
            capture_pointer_fn=self._capture_pointer,
            release_pointer_fn=self._release_pointer,
            selection_changed_fn=self._handle_selection_changed,
        )
        self._surface = QtSurfacePainter()
        self._available_width: float = float(DEFAULT_AVAILABLE_WIDTH)
        self._overlay_revision = 0
        self._frame_signature: Optional[FrameSignature] = None
        self._last_report: Optional[FrameReport] = None
        self._paint_stats: Dict[str, int] = {"paint_count": 0, "frame_count": 0}
        self._repaint_metrics: Dict[str, int] = {}

        debounce_ms = self._REPAINT_DEBOUNCE_MS if repaint_debounce_ms is None else max(0, int(repaint_debounce_ms))
        self._repaint_debounce_enabled = debounce_ms > 0
        self._repaint_timer = QTimer(self)
        self._repaint_timer.setSingleShot(True)
        self._repaint_timer.setInterval(debounce_ms)
        self._repaint_timer.timeout.connect(self.update)

        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Fixed)
        self.setMinimumSize(stage_size(0), stage_size(0))
        self.setCursor(Qt.CursorShape.OpenHandCursor)

        document.on_overlays_changed(self._handle_overlays_changed)
        document.on_base_image_changed(self._handle_base_image_changed)
        self._handle_base_image_changed()
        self._handle_overlays_changed()

    # Public API -----------------------------------------------------------

    @property
    def controller(self) -> InteractionController:
        return self._controller

    @property
    def base_slot(self) -> BaseImageSlot:
        return self._base_slot

    @property
    def resolver(self) -> OverlayBitmapResolver:
        return self._resolver

    @property
    def selected_id(self) -> Optional[str]:
        return self._controller.selected_id

    @property
    def last_report(self) -> Optional[FrameReport]:
        return self._last_report

    def viewport(self) -> ViewportState:
        return build_viewport(self._available_width, self._device_ratio())

    def set_available_width(self, width: float) -> None:
        previous = stage_size(self._available_width)
        self._available_width = float(width)
        size = stage_size(self._available_width)
        if size != previous:
            _LOGGER.debug("Stage resized to %dx%d (available width %.0f)", size, size, width)
            self.setFixedHeight(size)
            self.updateGeometry()
        self._request_repaint("layout", immediate=True)

    def surface_image(self) -> QImage:
        """Current frame at physical resolution; rebuilt first if any input changed."""

        return self._render_surface()

    def export_png(self, path: Union[str, Path]) -> bool:
        target = Path(path)
        image = self._render_surface()
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            _LOGGER.warning("Cannot create export directory %s: %s", target.parent, exc)
            return False
        if not image.save(str(target), "PNG"):
            _LOGGER.warning("Failed to export stage to %s", target)
            return False
        _LOGGER.info("Exported %dx%d stage to %s", image.width(), image.height(), target)
        return True

    # Qt overrides ---------------------------------------------------------

    def sizeHint(self) -> QSize:  # noqa: N802 - Qt override
        size = stage_size(self._available_width)
        return QSize(size, size)

    def resizeEvent(self, event) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        self.set_available_width(event.size().width())

    def paintEvent(self, event) -> None:  # type: ignore[override]
        image = self._render_surface()
        painter = QPainter(self)
        painter.drawImage(QPointF(0.0, 0.0), image)
        painter.end()
        self._paint_stats["paint_count"] += 1

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        if event.button() != Qt.MouseButton.LeftButton:
            super().mousePressEvent(event)
            return
        overlay_id = self._controller.pointer_down(self._pointer_input(event))
        if overlay_id is not None:
            self.setCursor(Qt.CursorShape.ClosedHandCursor)
        event.accept()

    def mouseMoveEvent(self, event) -> None:  # type: ignore[override]
        if self._controller.pointer_move(self._pointer_input(event)):
            event.accept()
            return
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event) -> None:  # type: ignore[override]
        self._controller.pointer_up(self._pointer_input(event))
        self.setCursor(Qt.CursorShape.OpenHandCursor)
        event.accept()

    def wheelEvent(self, event) -> None:  # type: ignore[override]
        angle = event.angleDelta()
        # Shift+wheel arrives as horizontal delta on some platforms.
        raw = angle.y() if angle.y() else angle.x()
        wheel = WheelInput(
            delta_y=-float(raw),
            modifier=bool(event.modifiers() & Qt.KeyboardModifier.ShiftModifier),
        )
        if self._controller.wheel(wheel):
            event.accept()
            return
        event.ignore()

    # Internals ------------------------------------------------------------

    @staticmethod
    def _pointer_input(event) -> PointerInput:
        position = event.position()
        return PointerInput(position.x(), position.y())

    def _capture_pointer(self, _pointer_id: int) -> None:
        self.grabMouse()

    def _release_pointer(self, _pointer_id: int) -> None:
        self.releaseMouse()

    def _device_ratio(self) -> float:
        try:
            return float(self.devicePixelRatioF())
        except Exception as exc:
            _LOGGER.debug("devicePixelRatioF unavailable, defaulting to 1.0: %s", exc)
            return 1.0

    def _frame_inputs(self) -> FrameInputs:
        return FrameInputs(
            viewport=self.viewport(),
            overlays=self._document.overlays,
            bitmaps=self._resolver.cache.snapshot(),
            base_bitmap=self._base_slot.bitmap,
            selected_id=self._controller.selected_id,
        )

    def _current_signature(self, viewport: ViewportState) -> FrameSignature:
        return (
            self._overlay_revision,
            self._base_slot.revision,
            id(self._base_slot.bitmap),
            self._resolver.cache.generation,
            viewport,
            self._controller.selected_id,
        )

    def _render_surface(self) -> QImage:
        frame = self._frame_inputs()
        signature = self._current_signature(frame.viewport)
        if signature != self._frame_signature:
            self._last_report = render_frame(self._surface, frame)
            self._surface.image.setDevicePixelRatio(frame.viewport.device_ratio)
            self._frame_signature = signature
            self._paint_stats["frame_count"] += 1
        return self._surface.image

    def _request_repaint(self, reason: str, *, immediate: bool = False) -> None:
        self._repaint_metrics[reason] = self._repaint_metrics.get(reason, 0) + 1
        if immediate or not self._repaint_debounce_enabled:
            if self._repaint_timer.isActive():
                self._repaint_timer.stop()
            self.update()
            return
        if not self._repaint_timer.isActive():
            self._repaint_timer.start()

    def _handle_overlays_changed(self) -> None:
        overlays = self._document.overlays
        self._overlay_revision += 1
        self._controller.prune(overlays)
        self._resolver.sync(overlays)
        self._request_repaint("overlays", immediate=True)

    def _handle_base_image_changed(self) -> None:
        self._base_slot.request(self._document.base_image)
        self._request_repaint("base_image", immediate=True)

    def _handle_bitmaps_changed(self) -> None:
        self._request_repaint("bitmaps")

    def _handle_selection_changed(self, overlay_id: Optional[str]) -> None:
        self.selection_changed.emit(overlay_id)
        self._request_repaint("selection", immediate=True)
