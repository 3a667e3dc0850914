"""Main window chrome: photo picker, catalog buttons, undo/clear and PNG export."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import QUrl
from PyQt6.QtWidgets import (
    QFileDialog,
    QHBoxLayout,
    QLabel,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from overlay_stage.stage_config import InitialStageSettings
from overlay_stage.stage_document import StageDocument
from overlay_stage.stage_widget import StageWidget

_LOGGER = logging.getLogger("OverlayStage.Window")

WINDOW_TITLE = "Overlay Stage"
USAGE_HINT = "Click an overlay and drag it. Wheel = scale. Shift+Wheel = rotate."
IMAGE_FILTER = "Images (*.png *.jpg *.jpeg *.bmp *.gif *.webp)"


class StageWindow(QWidget):
    def __init__(self, settings: InitialStageSettings, document: Optional[StageDocument] = None) -> None:
        super().__init__()
        self._settings = settings
        self._document = document if document is not None else StageDocument(
            base_image=settings.base_image,
            default_text=settings.default_text,
        )
        self._export_dir: Optional[Path] = None
        self.setWindowTitle(WINDOW_TITLE)
        self.setMaximumWidth(980)

        self.stage = StageWidget(self._document, repaint_debounce_ms=settings.repaint_debounce_ms, parent=self)

        toolbar = QHBoxLayout()
        upload_button = QPushButton("Photo…", self)
        upload_button.clicked.connect(self._choose_photo)
        toolbar.addWidget(upload_button)
        for entry in settings.catalog:
            button = QPushButton(f"+ {entry.name}", self)
            button.clicked.connect(lambda _checked=False, src=entry.src: self._document.add_image_overlay(src))
            toolbar.addWidget(button)
        text_button = QPushButton("+ Text", self)
        text_button.clicked.connect(lambda _checked=False: self._document.add_text_overlay())
        toolbar.addWidget(text_button)
        undo_button = QPushButton("Undo", self)
        undo_button.clicked.connect(lambda _checked=False: self._document.remove_last())
        toolbar.addWidget(undo_button)
        clear_button = QPushButton("Clear", self)
        clear_button.clicked.connect(lambda _checked=False: self._document.clear())
        toolbar.addWidget(clear_button)
        export_button = QPushButton("Export PNG", self)
        export_button.clicked.connect(self._export)
        toolbar.addWidget(export_button)
        toolbar.addStretch(1)

        self.hint_label = QLabel(USAGE_HINT, self)
        self.hint_label.setStyleSheet("color: rgba(255, 255, 255, 0.7); font-size: 12px;")
        self.status_label = QLabel("", self)

        layout = QVBoxLayout(self)
        layout.addLayout(toolbar)
        layout.addWidget(self.stage)
        layout.addWidget(self.hint_label)
        layout.addWidget(self.status_label)
        layout.addStretch(1)
        self.setStyleSheet("background-color: #0b0b0f; color: white;")

    @property
    def document(self) -> StageDocument:
        return self._document

    def set_status_text(self, text: str) -> None:
        self.status_label.setText(text)

    def _choose_photo(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Choose a photo", "", IMAGE_FILTER)
        if not path:
            return
        self._document.set_base_image(QUrl.fromLocalFile(path).toString())

    def _export(self) -> None:
        start = str((self._export_dir or Path.cwd()) / self._settings.export_filename)
        path, _ = QFileDialog.getSaveFileName(self, "Export PNG", start, "PNG (*.png)")
        if not path:
            return
        target = Path(path)
        self._export_dir = target.parent
        if self.stage.export_png(target):
            self.set_status_text(f"Exported {target.name}")
        else:
            self.set_status_text(f"Export failed: {target}")
