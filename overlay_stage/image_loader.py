"""Qt image decoding off the GUI thread, delivered back through queued signals."""
from __future__ import annotations

import base64
import binascii
import logging
from typing import Dict, Optional

from PyQt6.QtCore import (
    QBuffer,
    QByteArray,
    QCoreApplication,
    QIODevice,
    QObject,
    QRunnable,
    QThreadPool,
    QUrl,
    pyqtSignal,
    pyqtSlot,
)
from PyQt6.QtGui import QImage, QImageReader

from overlay_stage.image_cache import DecodeCallback, DecodeError

_LOGGER = logging.getLogger("OverlayStage.ImageLoader")


def _buffer_for_data_uri(uri: str) -> QBuffer:
    header, sep, payload = uri.partition(",")
    if not sep or ";base64" not in header.lower():
        raise DecodeError(uri, "unsupported data uri")
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(uri, f"invalid base64 payload ({exc})") from exc
    buffer = QBuffer()
    buffer.setData(QByteArray(raw))
    buffer.open(QIODevice.OpenModeFlag.ReadOnly)
    return buffer


def local_path_for(uri: str) -> str:
    """Filesystem (or Qt resource) path for ``uri``; raises for unsupported schemes."""

    if uri.startswith(":/"):
        return uri
    url = QUrl(uri)
    scheme = url.scheme().lower()
    if scheme == "file":
        return url.toLocalFile()
    # Single-letter schemes are Windows drive letters.
    if not scheme or len(scheme) == 1:
        return uri
    raise DecodeError(uri, f"unsupported scheme '{scheme}'")


def decode_uri(uri: str) -> QImage:
    """Decode ``uri`` into a QImage, honouring EXIF orientation."""

    if not uri:
        raise DecodeError(uri, "empty resource identifier")
    buffer: Optional[QBuffer] = None
    if uri.startswith("data:"):
        # The reader does not own the device; the local keeps it alive until read() returns.
        buffer = _buffer_for_data_uri(uri)
        reader = QImageReader(buffer)
    else:
        reader = QImageReader(local_path_for(uri))
    reader.setAutoTransform(True)
    image = reader.read()
    if image.isNull():
        raise DecodeError(uri, reader.errorString() or "decode failed")
    return image


class _DecodeTaskSignals(QObject):
    finished = pyqtSignal(int, object, object)


class _DecodeTask(QRunnable):
    def __init__(self, token: int, uri: str, signals: _DecodeTaskSignals) -> None:
        super().__init__()
        self._token = token
        self._uri = uri
        self._signals = signals

    def run(self) -> None:
        try:
            image = decode_uri(self._uri)
        except DecodeError as exc:
            self._emit(None, exc)
            return
        except Exception as exc:  # noqa: BLE001
            self._emit(None, DecodeError(self._uri, str(exc)))
            return
        self._emit(image, None)

    def _emit(self, image: Optional[QImage], error: Optional[DecodeError]) -> None:
        try:
            self._signals.finished.emit(self._token, image, error)
        except RuntimeError:
            # Signals object may be gone if the loader was destroyed mid-decode.
            pass


class QtImageLoader(QObject):
    """ImageLoader that decodes on a QThreadPool and calls back on the owning thread."""

    def __init__(self, parent: Optional[QObject] = None, *, thread_pool: Optional[QThreadPool] = None) -> None:
        super().__init__(parent)
        self._pool = thread_pool if thread_pool is not None else QThreadPool.globalInstance()
        self._signals = _DecodeTaskSignals(self)
        self._signals.finished.connect(self._handle_finished)
        self._callbacks: Dict[int, DecodeCallback] = {}
        self._next_token = 0

    @property
    def pending_count(self) -> int:
        return len(self._callbacks)

    def load(self, uri: str, callback: DecodeCallback) -> None:
        self._next_token += 1
        token = self._next_token
        self._callbacks[token] = callback
        self._pool.start(_DecodeTask(token, uri, self._signals))

    def wait_for_done(self, msecs: int = 5000) -> bool:
        """Block until queued decodes finish and deliver their callbacks (tests, export)."""

        done = self._pool.waitForDone(msecs)
        QCoreApplication.processEvents()
        return done

    @pyqtSlot(int, object, object)
    def _handle_finished(self, token: int, image: Optional[QImage], error: Optional[DecodeError]) -> None:
        callback = self._callbacks.pop(token, None)
        if callback is None:
            return
        if error is not None:
            _LOGGER.debug("Decode failed for token %d: %s", token, error)
        callback(image, error)
