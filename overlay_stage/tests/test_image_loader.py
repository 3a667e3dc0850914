from __future__ import annotations

import base64

import pytest
from PyQt6.QtCore import QUrl
from PyQt6.QtGui import QColor, QImage

from overlay_stage.image_cache import DecodeError
from overlay_stage.image_loader import QtImageLoader, decode_uri, local_path_for

pytestmark = pytest.mark.pyqt_required


@pytest.fixture
def sample_png(tmp_path, qt_app):
    image = QImage(40, 20, QImage.Format.Format_ARGB32)
    image.fill(QColor(200, 10, 10))
    path = tmp_path / "sticker.png"
    assert image.save(str(path), "PNG")
    return path


def test_local_path_for_handles_plain_paths_and_file_urls(tmp_path):
    plain = str(tmp_path / "a.png")
    assert local_path_for(plain) == plain
    assert local_path_for(QUrl.fromLocalFile(plain).toString()) == plain
    assert local_path_for(":/stickers/a.png") == ":/stickers/a.png"
    assert local_path_for("C:/photos/a.png") == "C:/photos/a.png"


def test_local_path_for_rejects_remote_schemes():
    with pytest.raises(DecodeError) as excinfo:
        local_path_for("https://example.com/a.png")
    assert excinfo.value.reason == "unsupported scheme 'https'"


def test_decode_path_file_url_and_data_uri(sample_png):
    assert decode_uri(str(sample_png)).size().width() == 40
    assert decode_uri(QUrl.fromLocalFile(str(sample_png)).toString()).height() == 20

    payload = base64.b64encode(sample_png.read_bytes()).decode("ascii")
    image = decode_uri(f"data:image/png;base64,{payload}")
    assert (image.width(), image.height()) == (40, 20)


@pytest.mark.parametrize("uri", ["", "data:image/png;base64,@@@", "data:text/plain,hello"])
def test_decode_rejects_bad_identifiers(uri, qt_app):
    with pytest.raises(DecodeError):
        decode_uri(uri)


def test_decode_rejects_non_image_file(tmp_path, qt_app):
    path = tmp_path / "notes.png"
    path.write_text("not an image", encoding="utf-8")
    with pytest.raises(DecodeError):
        decode_uri(str(path))


def test_loader_delivers_results_on_gui_thread(sample_png, tmp_path, qt_app):
    loader = QtImageLoader()
    results = []
    loader.load(str(sample_png), lambda image, error: results.append(("ok", image, error)))
    loader.load(str(tmp_path / "missing.png"), lambda image, error: results.append(("missing", image, error)))
    assert loader.pending_count == 2

    assert loader.wait_for_done()
    assert loader.pending_count == 0
    outcomes = {label: (image, error) for label, image, error in results}
    assert outcomes["ok"][0].width() == 40
    assert outcomes["ok"][1] is None
    assert outcomes["missing"][0] is None
    assert isinstance(outcomes["missing"][1], DecodeError)
