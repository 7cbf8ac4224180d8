"""Shared fixtures: a 10x10 abstract box fitted to 100 px and a cross drawing."""

from __future__ import annotations

import pytest

from cairo_viewport import BoundingBox, SideLength, Viewport

BLACK = (0.0, 0.0, 0.0)
BLUE = (0.0, 0.0, 1.0)
WHITE = (1.0, 1.0, 1.0)


def make_cross(rgb=BLACK, line_width: float = 2.0, background=WHITE):
    """Drawing callback: two diagonals across the (0, 10) x (0, 10) box.

    ``line_width`` is in abstract units (2.0 → 20 px at scale 10).
    ``background=None`` leaves the surface transparent.
    """

    def draw(ctx) -> None:
        if background is not None:
            ctx.set_source_rgb(*background)
            ctx.paint()
        ctx.set_source_rgb(*rgb)
        ctx.set_line_width(line_width)
        ctx.move_to(1.0, 1.0)
        ctx.line_to(9.0, 9.0)
        ctx.move_to(1.0, 9.0)
        ctx.line_to(9.0, 1.0)
        ctx.stroke()

    return draw


@pytest.fixture()
def box() -> BoundingBox:
    return BoundingBox(0.0, 10.0, 0.0, 10.0)


@pytest.fixture()
def viewport(box: BoundingBox) -> Viewport:
    """100x100 px canvas at scale 10."""
    return Viewport.from_bounding_box(box, SideLength.long(100))


@pytest.fixture()
def cross():
    """Factory for cross drawing callbacks (see make_cross)."""
    return make_cross


@pytest.fixture()
def reference_path(tmp_path):
    """Not-yet-existing reference PNG inside a fresh directory."""
    return tmp_path / "img" / "cross.png"
