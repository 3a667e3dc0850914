from __future__ import annotations

import pytest

from overlay_stage.overlay_model import OverlayItem, OverlayKind
from overlay_stage.render_pipeline import (
    BACKGROUND_COLOR,
    PLACEHOLDER_COLOR,
    PLACEHOLDER_TEXT,
    SELECTION_COLOR,
    TEXT_SELECTION_BOX,
    FontRole,
    FrameInputs,
    StagePainterAdapter,
    render_frame,
)
from overlay_stage.viewport_helper import build_viewport


class RecordingAdapter(StagePainterAdapter):
    def __init__(self):
        self.ops = []

    def _record(self, name, *args, **kwargs):
        self.ops.append((name, args, kwargs))

    def begin_frame(self, pixel_width, pixel_height):
        self._record("begin_frame", pixel_width, pixel_height)

    def end_frame(self):
        self._record("end_frame")

    def save(self):
        self._record("save")

    def restore(self):
        self._record("restore")

    def translate(self, dx, dy):
        self._record("translate", dx, dy)

    def rotate(self, radians):
        self._record("rotate", radians)

    def scale(self, sx, sy):
        self._record("scale", sx, sy)

    def fill_rect(self, x, y, width, height, color):
        self._record("fill_rect", x, y, width, height, color)

    def draw_bitmap(self, bitmap, x, y, width, height):
        self._record("draw_bitmap", bitmap, x, y, width, height)

    def draw_text(self, x, y, text, color, *, role, centered):
        self._record("draw_text", x, y, text, color, role=role, centered=centered)

    def stroke_rect(self, x, y, width, height, color, *, line_width):
        self._record("stroke_rect", x, y, width, height, color, line_width=line_width)

    def names(self):
        return [name for name, _, _ in self.ops]

    def calls(self, name):
        return [(args, kwargs) for op, args, kwargs in self.ops if op == name]


def _image(overlay_id, x=300.0, y=300.0, scale=0.6, rotation=0.0, src="overlays/hat.png"):
    return OverlayItem(overlay_id, OverlayKind.IMAGE, x, y, scale=scale, rotation=rotation, image_source=src)


def _text(overlay_id, text="LOL", x=300.0, y=80.0):
    return OverlayItem(overlay_id, OverlayKind.TEXT, x, y, text=text)


def test_placeholder_when_no_base_photo():
    adapter = RecordingAdapter()
    report = render_frame(adapter, FrameInputs(viewport=build_viewport(600, 1.0), overlays=()))

    assert report.placeholder
    assert adapter.names() == ["begin_frame", "scale", "fill_rect", "fill_rect", "draw_text", "end_frame"]
    fills = adapter.calls("fill_rect")
    assert fills[0][0] == (0.0, 0.0, 600.0, 600.0, BACKGROUND_COLOR)
    assert fills[1][0] == (0.0, 0.0, 600.0, 600.0, PLACEHOLDER_COLOR)
    (args, kwargs), = adapter.calls("draw_text")
    assert args[:3] == (20.0, 30.0, PLACEHOLDER_TEXT)
    assert kwargs == {"role": FontRole.INSTRUCTION, "centered": False}


def test_buffer_uses_physical_pixels_and_density_scale():
    adapter = RecordingAdapter()
    render_frame(adapter, FrameInputs(viewport=build_viewport(500, 2.0), overlays=()))
    assert adapter.ops[0] == ("begin_frame", (1000, 1000), {})
    assert adapter.ops[1] == ("scale", (2.0, 2.0), {})


def test_base_photo_is_cover_fit(make_bitmap):
    base = make_bitmap(1200, 600, "base")
    adapter = RecordingAdapter()
    traces = []
    report = render_frame(
        adapter,
        FrameInputs(viewport=build_viewport(600, 1.0), overlays=(), base_bitmap=base),
        trace=lambda stage, payload: traces.append((stage, payload)),
    )

    assert not report.placeholder
    (args, _), = adapter.calls("draw_bitmap")
    assert args[0] is base
    assert args[1:] == pytest.approx((-300.0, 0.0, 1200.0, 600.0))
    assert not adapter.calls("draw_text")
    assert [stage for stage, _ in traces] == ["render_frame:base", "render_frame:done"]
    assert traces[0][1]["scale"] == pytest.approx(1.0)


def test_overlay_transform_order_and_balance(make_bitmap):
    hat = make_bitmap(200, 100, "hat")
    item = _image("a", x=250, y=260, scale=0.5, rotation=0.3)
    adapter = RecordingAdapter()
    render_frame(
        adapter,
        FrameInputs(viewport=build_viewport(600, 1.0), overlays=(item,), bitmaps={"a": hat}, base_bitmap=make_bitmap(10, 10)),
    )

    names = adapter.names()
    start = names.index("save")
    assert names[start:start + 6] == ["save", "translate", "rotate", "scale", "draw_bitmap", "restore"]
    assert adapter.ops[start + 1][1] == (250, 260)
    assert adapter.ops[start + 2][1] == (0.3,)
    assert adapter.ops[start + 3][1] == (0.5, 0.5)
    assert adapter.ops[start + 4][1] == (hat, -100.0, -50.0, 200.0, 100.0)
    assert names.count("save") == names.count("restore")


def test_paint_order_follows_collection_and_skips_unresolved(make_bitmap):
    overlays = (_image("a"), _text("t"), _image("missing"), _image("b"))
    bitmaps = {"a": make_bitmap(10, 10, "a"), "b": make_bitmap(20, 20, "b")}
    adapter = RecordingAdapter()
    report = render_frame(adapter, FrameInputs(viewport=build_viewport(600), overlays=overlays, bitmaps=bitmaps))

    assert report.drawn_ids == ["a", "t", "b"]
    assert report.skipped_ids == ["missing"]
    drawn = [args[0].label for args, _ in adapter.calls("draw_bitmap")]
    assert drawn == ["a", "b"]
    names = adapter.names()
    assert names.count("save") == 4
    assert names.count("restore") == 4


def test_empty_text_and_missing_source_draw_nothing():
    overlays = (_text("t", text=""), _image("i", src=None))
    adapter = RecordingAdapter()
    report = render_frame(adapter, FrameInputs(viewport=build_viewport(600), overlays=overlays, base_bitmap=None))
    assert report.skipped_ids == ["t", "i"]
    # Only the placeholder hint is drawn as text.
    assert len(adapter.calls("draw_text")) == 1


def test_selected_image_gets_outline_at_natural_bounds(make_bitmap):
    bitmap = make_bitmap(80, 40)
    adapter = RecordingAdapter()
    report = render_frame(
        adapter,
        FrameInputs(viewport=build_viewport(600), overlays=(_image("a"),), bitmaps={"a": bitmap}, selected_id="a"),
    )
    assert report.outlined_id == "a"
    (args, kwargs), = adapter.calls("stroke_rect")
    assert args == (-40.0, -20.0, 80.0, 40.0, SELECTION_COLOR)
    assert kwargs == {"line_width": 2.0}
    names = adapter.names()
    assert names.index("stroke_rect") < names.index("restore", names.index("save"))


def test_selected_text_uses_nominal_box():
    adapter = RecordingAdapter()
    report = render_frame(
        adapter,
        FrameInputs(viewport=build_viewport(600), overlays=(_text("t", text="HELLO"),), selected_id="t"),
    )
    assert report.outlined_id == "t"
    text_calls = adapter.calls("draw_text")
    args, kwargs = text_calls[-1]
    assert args[:3] == (0.0, 0.0, "HELLO")
    assert kwargs == {"role": FontRole.DISPLAY, "centered": True}
    (stroke_args, _), = adapter.calls("stroke_rect")
    assert stroke_args[:4] == TEXT_SELECTION_BOX


def test_unselected_and_unresolved_selected_have_no_outline(make_bitmap):
    adapter = RecordingAdapter()
    report = render_frame(
        adapter,
        FrameInputs(viewport=build_viewport(600), overlays=(_image("a"), _image("b")), bitmaps={"a": make_bitmap(5, 5)}, selected_id="b"),
    )
    assert report.outlined_id is None
    assert not adapter.calls("stroke_rect")


def test_restore_runs_when_drawing_fails(make_bitmap):
    class ExplodingAdapter(RecordingAdapter):
        def draw_bitmap(self, bitmap, x, y, width, height):
            if bitmap.label == "bad":
                raise RuntimeError("backend failure")
            super().draw_bitmap(bitmap, x, y, width, height)

    adapter = ExplodingAdapter()
    with pytest.raises(RuntimeError):
        render_frame(
            adapter,
            FrameInputs(viewport=build_viewport(600), overlays=(_image("a"),), bitmaps={"a": make_bitmap(5, 5, "bad")}),
        )
    assert adapter.names()[-1] == "restore"


def test_scale_and_rotate_scenario(make_bitmap):
    """Photo loaded, a sticker dragged, zoomed in once and rotated once."""

    base = make_bitmap(800, 600, "photo")
    sticker = make_bitmap(100, 50, "sticker")
    item = _image("ov", x=350, y=320, scale=0.6 * 1.08, rotation=0.08)
    adapter = RecordingAdapter()
    report = render_frame(
        adapter,
        FrameInputs(
            viewport=build_viewport(600, 1.0),
            overlays=(item,),
            bitmaps={"ov": sticker},
            base_bitmap=base,
            selected_id="ov",
        ),
    )
    assert report.drawn_ids == ["ov"]
    assert report.outlined_id == "ov"
    base_args, _ = adapter.calls("draw_bitmap")[0]
    assert base_args[1:] == pytest.approx((-100.0, 0.0, 800.0, 600.0))
    (scale_args, _) = adapter.calls("scale")[-1]
    assert scale_args == pytest.approx((0.648, 0.648))
    (rotate_args, _), = adapter.calls("rotate")
    assert rotate_args == pytest.approx((0.08,))
