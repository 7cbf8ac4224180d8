"""Tests for Viewport fitting, transforms and file output.

Covers:
    - Canvas size for every side-length policy (tall and wide boxes)
    - Degenerate and infinite boxes, scales outside float range
    - Pinned-side property over random boxes for all four policies
    - Abstract → device mapping, y flip anchored at y_max
    - write_to_file for every format; atomicity on draw failure
    - render_to_buffer pixel placement and equality with the written PNG
"""

from __future__ import annotations

import math

import cairocffi
import numpy as np
import pytest
from PIL import Image

from cairo_viewport import (
    BoundingBox,
    DegenerateBoundingBox,
    DrawError,
    InvalidBoundingBox,
    SideKind,
    SideLength,
    UnknownFileExtension,
    Viewport,
)

TALL = BoundingBox(0.0, 1.0, 0.0, 2.0)
WIDE = BoundingBox(0.0, 2.0, 0.0, 1.0)


def _fill_lower_left(ctx) -> None:
    """White canvas with the lower-left quadrant of (0, 10)^2 in black."""
    ctx.set_source_rgb(1.0, 1.0, 1.0)
    ctx.paint()
    ctx.set_source_rgb(0.0, 0.0, 0.0)
    ctx.rectangle(0.0, 0.0, 5.0, 5.0)
    ctx.fill()


def _random_boxes(count: int, seed: int = 2024):
    """(box, pixels) pairs spanning aspect ratios from 1:1000 to 1000:1."""
    rng = np.random.default_rng(seed)
    cases = []
    for _ in range(count):
        x_min, y_min = rng.uniform(-1e4, 1e4, size=2)
        w, h = 10.0 ** rng.uniform(-3.0, 3.0, size=2)
        pixels = int(rng.integers(1, 4000))
        cases.append((BoundingBox(float(x_min), float(x_min + w), float(y_min), float(y_min + h)), pixels))
    return cases


# ---------------------------------------------------------------------------
# Fitting
# ---------------------------------------------------------------------------


class TestFitting:
    def test_square_box_long(self) -> None:
        vp = Viewport.from_bounding_box(BoundingBox(998.0, 1002.0, 998.0, 1002.0), SideLength.long(500))
        assert (vp.width, vp.height) == (500, 500)
        assert vp.scale == 125.0
        assert vp.origin == (998.0, 1002.0)

    @pytest.mark.parametrize(
        "side_length, size",
        [
            (SideLength.long(500), (250, 500)),
            (SideLength.short(500), (500, 1000)),
            (SideLength.width(500), (500, 1000)),
            (SideLength.height(500), (250, 500)),
        ],
    )
    def test_tall_box(self, side_length: SideLength, size) -> None:
        vp = Viewport.from_bounding_box(TALL, side_length)
        assert (vp.width, vp.height) == size

    @pytest.mark.parametrize(
        "side_length, size",
        [
            (SideLength.long(500), (500, 250)),
            (SideLength.short(500), (1000, 500)),
            (SideLength.width(500), (500, 250)),
            (SideLength.height(500), (1000, 500)),
        ],
    )
    def test_wide_box(self, side_length: SideLength, size) -> None:
        vp = Viewport.from_bounding_box(WIDE, side_length)
        assert (vp.width, vp.height) == size

    def test_scale_is_uniform(self) -> None:
        vp = Viewport.from_bounding_box(BoundingBox(6.0, 8.0, 12.0, 20.0), SideLength.long(500))
        assert vp.scale == 62.5
        assert (vp.width, vp.height) == (125, 500)

    def test_other_side_is_rounded(self) -> None:
        vp = Viewport.from_bounding_box(BoundingBox(0.0, 3.0, 0.0, 1.0), SideLength.long(100))
        assert (vp.width, vp.height) == (100, 33)

    def test_other_side_at_least_one_pixel(self) -> None:
        vp = Viewport.from_bounding_box(BoundingBox(0.0, 1000.0, 0.0, 0.001), SideLength.long(10))
        assert (vp.width, vp.height) == (10, 1)

    def test_zero_width_box_pinned_by_height(self) -> None:
        line = BoundingBox(3.0, 3.0, 0.0, 1.0)
        vp = Viewport.from_bounding_box(line, SideLength.long(100))
        assert (vp.width, vp.height) == (1, 100)

    @pytest.mark.parametrize("side_length", [SideLength.short(100), SideLength.width(100)])
    def test_zero_width_box_pinned_by_width(self, side_length: SideLength) -> None:
        line = BoundingBox(3.0, 3.0, 0.0, 1.0)
        with pytest.raises(DegenerateBoundingBox, match="width is zero"):
            Viewport.from_bounding_box(line, side_length)

    def test_point_box(self) -> None:
        with pytest.raises(DegenerateBoundingBox):
            Viewport.from_bounding_box(BoundingBox(1.0, 1.0, 1.0, 1.0), SideLength.long(100))

    def test_infinite_box(self) -> None:
        with pytest.raises(InvalidBoundingBox, match="infinite"):
            Viewport.from_bounding_box(BoundingBox(0.0, math.inf, 0.0, 1.0), SideLength.long(100))

    def test_from_bounded_entities(self) -> None:
        boxes = [BoundingBox(0.0, 1.0, 0.0, 1.0), BoundingBox(1.0, 2.0, 0.0, 4.0)]
        vp = Viewport.from_bounded_entities(boxes, SideLength.height(400))
        assert (vp.width, vp.height) == (200, 400)
        assert vp.origin == (0.0, 4.0)

    def test_subnormal_pinned_side(self) -> None:
        with pytest.raises(DegenerateBoundingBox, match="float range"):
            Viewport.from_bounding_box(BoundingBox(0.0, 5e-324, 0.0, 1.0), SideLength.width(100))

    def test_other_side_overflow(self) -> None:
        with pytest.raises(DegenerateBoundingBox, match="float range"):
            Viewport.from_bounding_box(BoundingBox(0.0, 1e-300, 0.0, 1e300), SideLength.width(100))

    @pytest.mark.parametrize("kind", list(SideKind))
    @pytest.mark.parametrize("box, pixels", _random_boxes(25))
    def test_random_boxes_pin_one_side(self, kind: SideKind, box: BoundingBox, pixels: int) -> None:
        w, h = box.width(), box.height()
        pins_width = {
            SideKind.LONG: w >= h,
            SideKind.SHORT: w <= h,
            SideKind.WIDTH: True,
            SideKind.HEIGHT: False,
        }[kind]
        constrained, other = (w, h) if pins_width else (h, w)
        scale = pixels / constrained

        vp = Viewport.from_bounding_box(box, SideLength(kind, pixels))

        pinned_px, other_px = (vp.width, vp.height) if pins_width else (vp.height, vp.width)
        assert pinned_px == pixels
        assert other_px == max(1, round(scale * other))
        assert vp.scale == scale
        assert vp.origin == (box.x_min, box.y_max)

    @pytest.mark.parametrize(
        "kwargs",
        [
            dict(scale=0.0, width=10, height=10),
            dict(scale=math.nan, width=10, height=10),
            dict(scale=1.0, width=0, height=10),
            dict(scale=1.0, width=10, height=2.5),
            dict(scale=1.0, width=True, height=10),
        ],
    )
    def test_direct_construction_checks(self, kwargs) -> None:
        with pytest.raises(ValueError):
            Viewport(origin=(0.0, 0.0), **kwargs)


# ---------------------------------------------------------------------------
# Transform
# ---------------------------------------------------------------------------


class TestTransform:
    @pytest.fixture()
    def vp(self) -> Viewport:
        return Viewport.from_bounding_box(BoundingBox(998.0, 1002.0, 998.0, 1002.0), SideLength.long(500))

    def test_corners(self, vp: Viewport) -> None:
        np.testing.assert_allclose(vp.to_device((998.0, 1002.0)), [0.0, 0.0])
        np.testing.assert_allclose(vp.to_device((1002.0, 998.0)), [500.0, 500.0])
        np.testing.assert_allclose(vp.to_device((998.0, 998.0)), [0.0, 500.0])
        np.testing.assert_allclose(vp.to_device((1000.0, 1000.0)), [250.0, 250.0])

    def test_y_up_maps_to_device_down(self, vp: Viewport) -> None:
        lower, upper = vp.to_device([(1000.0, 999.0), (1000.0, 1001.0)])
        assert lower[1] > upper[1]

    def test_to_user_inverts_to_device(self, vp: Viewport) -> None:
        pts = np.array([[998.5, 1001.25], [1001.9, 998.1], [1000.0, 1000.0]])
        np.testing.assert_allclose(vp.to_user(vp.to_device(pts)), pts)

    def test_bad_point_shape(self, vp: Viewport) -> None:
        with pytest.raises(ValueError, match="shape"):
            vp.to_device([1.0, 2.0, 3.0])

    def test_matrix_matches_to_device(self, vp: Viewport) -> None:
        surface = cairocffi.ImageSurface(cairocffi.FORMAT_ARGB32, vp.width, vp.height)
        ctx = cairocffi.Context(surface)
        vp.apply(ctx)
        for pt in [(998.0, 1002.0), (1001.0, 999.5)]:
            np.testing.assert_allclose(ctx.user_to_device(*pt), vp.to_device(pt))
        surface.finish()

    def test_visible_box_on_pinned_axis(self) -> None:
        box = BoundingBox(0.0, 3.0, 0.0, 1.0)
        vb = Viewport.from_bounding_box(box, SideLength.long(100)).visible_box()
        assert vb.x_min == pytest.approx(0.0) and vb.x_max == pytest.approx(3.0)
        assert vb.y_max == pytest.approx(1.0)
        assert abs(vb.height() - 1.0) < 3.0 / 100


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class TestRenderToBuffer:
    def test_shape_and_dtype(self, viewport: Viewport, cross) -> None:
        rgba = viewport.render_to_buffer(cross())
        assert rgba.shape == (100, 100, 4)
        assert rgba.dtype == np.uint8

    def test_lower_left_quadrant_lands_bottom_left(self, viewport: Viewport) -> None:
        rgba = viewport.render_to_buffer(_fill_lower_left)
        assert tuple(rgba[75, 25]) == (0, 0, 0, 255)
        assert tuple(rgba[25, 25]) == (255, 255, 255, 255)
        assert tuple(rgba[75, 75]) == (255, 255, 255, 255)
        assert tuple(rgba[25, 75]) == (255, 255, 255, 255)

    def test_untouched_surface_is_transparent(self, viewport: Viewport) -> None:
        rgba = viewport.render_to_buffer(lambda ctx: None)
        assert not rgba.any()

    def test_draw_error_wraps_original(self, viewport: Viewport) -> None:
        def boom(ctx):
            raise RuntimeError("pen ran dry")

        with pytest.raises(DrawError, match="pen ran dry") as info:
            viewport.render_to_buffer(boom)
        assert isinstance(info.value.original, RuntimeError)
        assert info.value.__cause__ is info.value.original


class TestWriteToFile:
    @pytest.mark.parametrize(
        "name, magic",
        [("out.png", b"\x89PNG"), ("out.pdf", b"%PDF"), ("out.ps", b"%!PS")],
    )
    def test_formats(self, tmp_path, viewport: Viewport, cross, name: str, magic: bytes) -> None:
        path = viewport.write_to_file(tmp_path / name, cross())
        assert path == tmp_path / name
        assert path.read_bytes().startswith(magic)

    def test_svg(self, tmp_path, viewport: Viewport, cross) -> None:
        path = viewport.write_to_file(tmp_path / "out.svg", cross())
        assert b"<svg" in path.read_bytes()

    def test_suffix_is_case_insensitive(self, tmp_path, viewport: Viewport, cross) -> None:
        path = viewport.write_to_file(tmp_path / "OUT.PNG", cross())
        assert path.exists()

    def test_creates_parent_dirs(self, tmp_path, viewport: Viewport, cross) -> None:
        path = viewport.write_to_file(tmp_path / "a" / "b" / "out.png", cross())
        assert path.exists()

    def test_png_size(self, tmp_path, cross) -> None:
        vp = Viewport.from_bounding_box(TALL, SideLength.long(200))
        path = vp.write_to_file(tmp_path / "tall.png", cross())
        with Image.open(path) as img:
            assert img.size == (100, 200)

    @pytest.mark.parametrize("name", ["out.bmp", "out", "out.png.tmp"])
    def test_unknown_extension(self, tmp_path, viewport: Viewport, cross, name: str) -> None:
        with pytest.raises(UnknownFileExtension):
            viewport.write_to_file(tmp_path / name, cross())
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.parametrize("name", ["out.png", "out.pdf", "out.svg"])
    def test_failed_draw_leaves_no_file(self, tmp_path, viewport: Viewport, name: str) -> None:
        def half_drawn(ctx):
            ctx.rectangle(0.0, 0.0, 1.0, 1.0)
            ctx.fill()
            raise ValueError("abort")

        with pytest.raises(DrawError):
            viewport.write_to_file(tmp_path / name, half_drawn)
        assert list(tmp_path.iterdir()) == []

    def test_failed_draw_keeps_existing_file(self, tmp_path, viewport: Viewport, cross) -> None:
        path = viewport.write_to_file(tmp_path / "out.png", cross())
        before = path.read_bytes()

        with pytest.raises(DrawError):
            viewport.write_to_file(path, lambda ctx: 1 / 0)
        assert path.read_bytes() == before

    def test_buffer_equals_decoded_png(self, tmp_path, viewport: Viewport, cross) -> None:
        draw = cross(rgb=(0.2, 0.4, 0.6), background=None)
        path = viewport.write_to_file(tmp_path / "out.png", draw)
        with Image.open(path) as img:
            decoded = np.array(img.convert("RGBA"))
        np.testing.assert_array_equal(viewport.render_to_buffer(draw), decoded)

    def test_semi_transparent_buffer_equals_decoded_png(self, tmp_path, viewport: Viewport) -> None:
        def draw(ctx):
            ctx.set_source_rgba(0.2, 0.4, 0.6, 0.5)
            ctx.rectangle(2.0, 2.0, 6.0, 6.0)
            ctx.fill()

        path = viewport.write_to_file(tmp_path / "out.png", draw)
        with Image.open(path) as img:
            decoded = np.array(img.convert("RGBA"))
        np.testing.assert_array_equal(viewport.render_to_buffer(draw), decoded)
