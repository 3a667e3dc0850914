from __future__ import annotations

import math

import pytest

from overlay_stage.viewport_helper import (
    build_viewport,
    compute_cover_placement,
    normalise_device_ratio,
    physical_size,
    stage_size,
)


@pytest.mark.parametrize(
    "available, expected",
    [(100, 320), (320, 320), (640.7, 640), (900, 900), (2400, 900), (None, 600), (float("nan"), 600)],
)
def test_stage_size_is_bounded(available, expected):
    assert stage_size(available) == expected


def test_build_viewport_is_square():
    viewport = build_viewport(750, 2.0)
    assert (viewport.width, viewport.height) == (750, 750)
    assert viewport.device_ratio == 2.0
    assert viewport.physical_size == (1500, 1500)


@pytest.mark.parametrize("ratio", [0, -1, None, "bad", float("inf")])
def test_invalid_device_ratio_defaults_to_one(ratio):
    assert normalise_device_ratio(ratio) == 1.0


def test_physical_size_floors_fractional_ratio():
    assert physical_size(333, 333, 1.5) == (499, 499)


def test_cover_placement_landscape_crops_horizontally():
    placement = compute_cover_placement(1200, 600, 600, 600)
    assert placement.scale == pytest.approx(max(600 / 1200, 600 / 600))
    assert placement.width == pytest.approx(1200)
    assert placement.height == pytest.approx(600)
    assert placement.x == pytest.approx(-300)
    assert placement.y == pytest.approx(0)


def test_cover_placement_portrait_crops_vertically():
    placement = compute_cover_placement(300, 900, 600, 600)
    assert placement.scale == pytest.approx(2.0)
    assert placement.width == pytest.approx(600)
    assert placement.height == pytest.approx(1800)
    assert placement.x == pytest.approx(0)
    assert placement.y == pytest.approx(-600)


@pytest.mark.parametrize("iw, ih, w, h", [(640, 480, 900, 900), (100, 50, 320, 320), (333, 777, 500, 400)])
def test_cover_placement_covers_and_centres(iw, ih, w, h):
    placement = compute_cover_placement(iw, ih, w, h)
    assert placement.scale == pytest.approx(max(w / iw, h / ih))
    assert placement.width >= w - 1e-9
    assert placement.height >= h - 1e-9
    assert math.isclose(placement.width, w) or math.isclose(placement.height, h)
    assert placement.x + placement.width / 2 == pytest.approx(w / 2)
    assert placement.y + placement.height / 2 == pytest.approx(h / 2)


def test_cover_placement_rejects_empty_bitmap():
    with pytest.raises(ValueError):
        compute_cover_placement(0, 10, 100, 100)
