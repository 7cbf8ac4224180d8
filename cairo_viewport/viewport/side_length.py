"""Side length policy: which bounding-box side is pinned to a pixel count.

Four mutually exclusive policies:
    - LONG:   the longer of width/height gets ``pixels``
    - SHORT:  the shorter of width/height gets ``pixels``
    - WIDTH:  the width gets ``pixels``, whichever side is longer
    - HEIGHT: the height gets ``pixels``, whichever side is longer

The other side follows from the bounding box aspect ratio.

Units of ``pixels`` depend on the output surface:
    - png: pixels
    - pdf, ps: points (1/72 inch)
    - svg: CSS pixels (1/96 inch)
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Tuple

if TYPE_CHECKING:
    from .bounding_box import BoundingBox


class SideKind(str, enum.Enum):
    LONG = "long"
    SHORT = "short"
    WIDTH = "width"
    HEIGHT = "height"


@dataclass(frozen=True)
class SideLength:
    """A pinning policy plus its pixel count (> 0).

    >>> SideLength.long(500)
    SideLength(kind=<SideKind.LONG: 'long'>, pixels=500)
    """

    kind: SideKind
    pixels: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", SideKind(self.kind))
        if isinstance(self.pixels, bool) or not isinstance(self.pixels, int):
            raise ValueError(f"Side length must be an int pixel count, got {self.pixels!r}")
        if self.pixels <= 0:
            raise ValueError(f"Side length must be positive, got {self.pixels}")

    @classmethod
    def long(cls, pixels: int) -> SideLength:
        return cls(SideKind.LONG, pixels)

    @classmethod
    def short(cls, pixels: int) -> SideLength:
        return cls(SideKind.SHORT, pixels)

    @classmethod
    def width(cls, pixels: int) -> SideLength:
        return cls(SideKind.WIDTH, pixels)

    @classmethod
    def height(cls, pixels: int) -> SideLength:
        return cls(SideKind.HEIGHT, pixels)

    def __int__(self) -> int:
        return self.pixels

    def pins_width(self, box: BoundingBox) -> bool:
        """True if this policy constrains the box width, False for the height.

        For a square box LONG and SHORT both resolve to the width.
        """
        w, h = box.width(), box.height()
        if self.kind is SideKind.LONG:
            return w >= h
        if self.kind is SideKind.SHORT:
            return w <= h
        if self.kind is SideKind.WIDTH:
            return True
        if self.kind is SideKind.HEIGHT:
            return False
        raise AssertionError(f"Unhandled side kind: {self.kind}")

    def constrained_dimension(self, box: BoundingBox) -> Tuple[float, float]:
        """(constrained, other) side lengths of ``box`` in abstract units."""
        w, h = box.width(), box.height()
        return (w, h) if self.pins_width(box) else (h, w)

    def to_width_and_height(self, box: BoundingBox) -> Tuple[int, int]:
        """Pixel (width, height) of a canvas fitted to ``box``.

        >>> from cairo_viewport.viewport.bounding_box import BoundingBox
        >>> SideLength.long(500).to_width_and_height(BoundingBox(0.0, 1.0, 0.0, 2.0))
        (250, 500)
        """
        from .viewport import fit_canvas

        width, height, _ = fit_canvas(box, self)
        return width, height
