"""QPainter adapter that renders stage frames into an offscreen QImage."""
from __future__ import annotations

import math
from typing import Optional

from PyQt6.QtCore import QPointF, QRectF, Qt
from PyQt6.QtGui import QColor, QFontMetricsF, QImage, QPainter, QPen, QPixmap

from overlay_stage.fonts import FontBook
from overlay_stage.image_cache import Bitmap
from overlay_stage.render_pipeline import Color, FontRole, StagePainterAdapter


def _qcolor(color: Color) -> QColor:
    red, green, blue, alpha = color
    return QColor(red, green, blue, alpha)


class QtSurfacePainter(StagePainterAdapter):
    """Owns the surface QImage; ``begin_frame`` resizes it to the physical buffer size."""

    def __init__(self, font_book: Optional[FontBook] = None) -> None:
        self._font_book = font_book if font_book is not None else FontBook()
        self._image = QImage()
        self._painter: Optional[QPainter] = None

    @property
    def image(self) -> QImage:
        return self._image

    def begin_frame(self, pixel_width: int, pixel_height: int) -> None:
        width = max(1, pixel_width)
        height = max(1, pixel_height)
        if self._image.isNull() or self._image.width() != width or self._image.height() != height:
            self._image = QImage(width, height, QImage.Format.Format_ARGB32_Premultiplied)
        # The pipeline applies the density scale itself; paint in raw buffer pixels.
        self._image.setDevicePixelRatio(1.0)
        self._image.fill(Qt.GlobalColor.transparent)
        painter = QPainter(self._image)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        painter.setRenderHint(QPainter.RenderHint.TextAntialiasing)
        self._painter = painter

    def end_frame(self) -> None:
        if self._painter is not None:
            self._painter.end()
            self._painter = None

    def _active(self) -> QPainter:
        if self._painter is None:
            raise RuntimeError("begin_frame() must be called before drawing")
        return self._painter

    def save(self) -> None:
        self._active().save()

    def restore(self) -> None:
        self._active().restore()

    def translate(self, dx: float, dy: float) -> None:
        self._active().translate(dx, dy)

    def rotate(self, radians: float) -> None:
        self._active().rotate(math.degrees(radians))

    def scale(self, sx: float, sy: float) -> None:
        self._active().scale(sx, sy)

    def fill_rect(self, x: float, y: float, width: float, height: float, color: Color) -> None:
        self._active().fillRect(QRectF(x, y, width, height), _qcolor(color))

    def draw_bitmap(self, bitmap: Bitmap, x: float, y: float, width: float, height: float) -> None:
        target = QRectF(x, y, width, height)
        if isinstance(bitmap, QPixmap):
            self._active().drawPixmap(target, bitmap, QRectF(bitmap.rect()))
        else:
            self._active().drawImage(target, bitmap)

    def draw_text(self, x: float, y: float, text: str, color: Color, *, role: FontRole, centered: bool) -> None:
        painter = self._active()
        font = self._font_book.font_for(role)
        painter.setFont(font)
        painter.setPen(_qcolor(color))
        if not centered:
            painter.drawText(QPointF(x, y), text)
            return
        metrics = QFontMetricsF(font)
        text_width = metrics.horizontalAdvance(text)
        # Baseline so the ascent/descent box is vertically centred on y.
        baseline = y + (metrics.ascent() - metrics.descent()) / 2.0
        painter.drawText(QPointF(x - text_width / 2.0, baseline), text)

    def stroke_rect(
        self, x: float, y: float, width: float, height: float, color: Color, *, line_width: float
    ) -> None:
        painter = self._active()
        pen = QPen(_qcolor(color))
        pen.setWidthF(line_width)
        painter.setPen(pen)
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawRect(QRectF(x, y, width, height))
