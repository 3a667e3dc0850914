from __future__ import annotations

import os
from typing import List, Optional, Tuple

import pytest

from overlay_stage.image_cache import DecodeCallback, DecodeError


def pytest_runtest_setup(item):
    if item.get_closest_marker("pyqt_required"):
        if not os.getenv("PYQT_TESTS"):
            pytest.skip("PYQT_TESTS not set; skipping PyQt-dependent test")


class FakeBitmap:
    def __init__(self, width: int, height: int, label: str = "") -> None:
        self._width = width
        self._height = height
        self.label = label

    def width(self) -> int:
        return self._width

    def height(self) -> int:
        return self._height

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"FakeBitmap({self._width}x{self._height} {self.label})"


class ManualLoader:
    """Records decode requests; tests complete them explicitly, in any order."""

    def __init__(self) -> None:
        self.requests: List[Tuple[str, DecodeCallback]] = []

    @property
    def uris(self) -> List[str]:
        return [uri for uri, _ in self.requests]

    def load(self, uri: str, callback: DecodeCallback) -> None:
        self.requests.append((uri, callback))

    def complete(self, index: int, bitmap: Optional[FakeBitmap] = None) -> None:
        uri, callback = self.requests[index]
        callback(bitmap if bitmap is not None else FakeBitmap(10, 10, uri), None)

    def fail(self, index: int, reason: str = "decode failed") -> None:
        uri, callback = self.requests[index]
        callback(None, DecodeError(uri, reason))


@pytest.fixture
def loader() -> ManualLoader:
    return ManualLoader()


@pytest.fixture
def qt_app(monkeypatch):
    monkeypatch.setenv("QT_QPA_PLATFORM", os.getenv("QT_QPA_PLATFORM", "offscreen"))
    from PyQt6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    yield app


@pytest.fixture
def make_bitmap():
    return FakeBitmap
