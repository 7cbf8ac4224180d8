"""Viewport: fit a bounding box onto a pixel canvas and draw through it.

A Viewport is derived once from a BoundingBox and a SideLength and is
immutable afterwards. It carries the canvas size and a uniform-scale affine
transform from abstract coordinates to device coordinates:

    device_x = (x - x_min) * scale
    device_y = (y_max - y) * scale

Device origin is top-left with +Y down; abstract +Y is up, so the flip is
anchored at y_max. The pinned side maps exactly onto the requested pixel
count; the other side is round(scale * other_side), at least 1 px.

Drawing goes through a caller-supplied ``draw_fn(ctx)`` that receives a
cairocffi.Context already carrying the transform, so it draws in abstract
coordinates. Any exception it raises surfaces as DrawError after the surface
has been released.

Example:
    >>> bb = BoundingBox(6.0, 8.0, 12.0, 20.0)
    >>> vp = Viewport.from_bounding_box(bb, SideLength.long(500))
    >>> vp.scale, vp.width, vp.height
    (62.5, 125, 500)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, Tuple, Union

import cairocffi
import numpy as np

from ..errors import DegenerateBoundingBox, DrawError, InvalidBoundingBox
from ..utils import fs
from ..utils.profiler import timer
from .bounding_box import BoundingBox
from .side_length import SideLength
from .surfaces import RenderTarget, file_extension

if TYPE_CHECKING:
    from ..comparison.comparator import ComparisonResult

logger = logging.getLogger(__name__)

DrawFn = Callable[[cairocffi.Context], Any]


def fit_canvas(box: BoundingBox, side_length: SideLength) -> Tuple[int, int, float]:
    """Canvas (width, height) in pixels and the abstract → pixel scale.

    Raises
    ------
    InvalidBoundingBox
        If the box has an infinite bound
    DegenerateBoundingBox
        If the side pinned by ``side_length`` has zero length, or is so
        small or large that the scale leaves float range
    """
    if not box.is_finite():
        raise InvalidBoundingBox(f"Cannot fit an infinite bounding box: {box}")

    pins_width = side_length.pins_width(box)
    constrained, other = side_length.constrained_dimension(box)
    if constrained == 0.0:
        axis = "width" if pins_width else "height"
        raise DegenerateBoundingBox(
            f"Bounding box {axis} is zero but {side_length.kind.value} side is pinned to "
            f"{side_length.pixels} px: {box}"
        )

    scale = side_length.pixels / constrained
    if not (math.isfinite(scale) and scale > 0.0 and math.isfinite(scale * other)):
        raise DegenerateBoundingBox(
            f"Bounding box cannot be fitted to {side_length.pixels} px: scale {scale} is out of "
            f"float range: {box}"
        )
    other_px = max(1, int(round(scale * other)))
    if pins_width:
        return side_length.pixels, other_px, scale
    return other_px, side_length.pixels, scale


@dataclass(frozen=True)
class Viewport:
    """Canvas size plus the abstract → device transform.

    Construct with :meth:`from_bounding_box`. Direct construction only checks
    that the fields are usable.

    Attributes
    ----------
    origin : Tuple[float, float]
        Abstract point (x_min, y_max) that lands on device (0, 0)
    scale : float
        Device units per abstract unit, same on both axes
    width, height : int
        Surface size (pixels for png, points for pdf/ps)
    """

    origin: Tuple[float, float]
    scale: float
    width: int
    height: int

    def __post_init__(self) -> None:
        ox, oy = self.origin
        object.__setattr__(self, "origin", (float(ox), float(oy)))
        if not (math.isfinite(self.scale) and self.scale > 0):
            raise ValueError(f"Viewport scale must be positive and finite, got {self.scale}")
        for name in ("width", "height"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 1:
                raise ValueError(f"Viewport {name} must be an int >= 1, got {value!r}")
            object.__setattr__(self, name, int(value))

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_bounding_box(cls, box: BoundingBox, side_length: SideLength) -> Viewport:
        """Fit ``box`` onto a canvas whose pinned side has ``side_length.pixels``.

        Raises
        ------
        InvalidBoundingBox
            If the box is infinite
        DegenerateBoundingBox
            If the pinned side of the box has zero length

        Examples
        --------
        >>> bb = BoundingBox(998.0, 1002.0, 998.0, 1002.0)
        >>> vp = Viewport.from_bounding_box(bb, SideLength.long(500))
        >>> vp.width, vp.height, vp.scale
        (500, 500, 125.0)
        >>> vp.to_device((998.0, 1002.0)).tolist()
        [0.0, 0.0]
        """
        width, height, scale = fit_canvas(box, side_length)
        viewport = cls(origin=(box.x_min, box.y_max), scale=scale, width=width, height=height)
        logger.debug(
            "Fitted %s with %s side %d px → %dx%d canvas, scale %.6g",
            box, side_length.kind.value, side_length.pixels, width, height, scale,
        )
        return viewport

    @classmethod
    def from_bounded_entity(cls, entity, side_length: SideLength) -> Viewport:
        """Fit the bounding box of a single entity (see BoundingBox.of)."""
        return cls.from_bounding_box(BoundingBox.of(entity), side_length)

    @classmethod
    def from_bounded_entities(cls, entities: Iterable, side_length: SideLength) -> Viewport:
        """Fit the common bounding box of all entities.

        Raises
        ------
        ValueError
            If ``entities`` yields nothing
        """
        return cls.from_bounding_box(BoundingBox.from_bounded_entities(entities), side_length)

    # ------------------------------------------------------------------
    # Transform
    # ------------------------------------------------------------------

    @property
    def matrix(self) -> cairocffi.Matrix:
        """cairo affine matrix mapping abstract → device coordinates."""
        x_min, y_max = self.origin
        s = self.scale
        return cairocffi.Matrix(xx=s, yx=0.0, xy=0.0, yy=-s, x0=-x_min * s, y0=y_max * s)

    def apply(self, ctx: cairocffi.Context) -> None:
        """Multiply the viewport transform into ``ctx``'s current matrix."""
        ctx.transform(self.matrix)

    def to_device(self, points) -> np.ndarray:
        """Map abstract (x, y) points, shape (2,) or (..., 2), to device coordinates."""
        pts = _as_points(points)
        x_min, y_max = self.origin
        out = np.empty_like(pts)
        out[..., 0] = (pts[..., 0] - x_min) * self.scale
        out[..., 1] = (y_max - pts[..., 1]) * self.scale
        return out

    def to_user(self, points) -> np.ndarray:
        """Inverse of :meth:`to_device`."""
        pts = _as_points(points)
        x_min, y_max = self.origin
        out = np.empty_like(pts)
        out[..., 0] = pts[..., 0] / self.scale + x_min
        out[..., 1] = y_max - pts[..., 1] / self.scale
        return out

    def visible_box(self) -> BoundingBox:
        """Abstract region covered by the full canvas.

        Equals the fitted box on the pinned axis; may differ by under one
        pixel on the other axis because of rounding.
        """
        x_min, y_max = self.origin
        return BoundingBox(x_min, x_min + self.width / self.scale, y_max - self.height / self.scale, y_max)

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def _draw(self, ctx: cairocffi.Context, draw_fn: DrawFn) -> None:
        self.apply(ctx)
        try:
            draw_fn(ctx)
        except Exception as e:
            raise DrawError(e) from e

    def write_to_file(self, path: Union[str, Path], draw_fn: DrawFn) -> Path:
        """Draw with ``draw_fn`` and save the result to ``path``.

        The format (.pdf, .png, .ps or .svg) comes from the path suffix.
        The file is written atomically; on any failure no partial file is left.

        Parameters
        ----------
        path : Union[str, Path]
            Output file; parent directories are created
        draw_fn : Callable[[cairocffi.Context], Any]
            Drawing routine, called once with the transformed context

        Returns
        -------
        Path
            The written path

        Raises
        ------
        UnknownFileExtension
            If the suffix is missing or not one of FILE_EXTENSIONS
        DrawError
            If ``draw_fn`` raises
        ImageIOError
            If encoding or writing fails
        """
        path = Path(path)
        fmt = file_extension(path)
        target = RenderTarget(fmt, self.width, self.height)
        with timer(f"write_to_file[{fmt}]"):
            with target as ctx:
                self._draw(ctx, draw_fn)
                data = target.encode()
            fs.atomic_write_bytes(path, data)
        logger.debug("Wrote %dx%d %s to %s (%d bytes)", self.width, self.height, fmt, path, len(data))
        return path

    def render_to_buffer(self, draw_fn: DrawFn) -> np.ndarray:
        """Draw with ``draw_fn`` into memory.

        Returns
        -------
        np.ndarray
            uint8 RGBA pixels, shape (height, width, 4), straight alpha.
            Identical to decoding the PNG write_to_file() would produce.

        Raises
        ------
        DrawError
            If ``draw_fn`` raises
        ImageIOError
            If the surface cannot be created
        """
        target = RenderTarget("png", self.width, self.height)
        with timer("render_to_buffer"):
            with target as ctx:
                self._draw(ctx, draw_fn)
                return target.pixels()

    # ------------------------------------------------------------------
    # Comparison shortcuts
    # ------------------------------------------------------------------

    def compare_to_image(
        self,
        reference_path: Union[str, Path],
        draw_fn: DrawFn,
        threshold: Optional[float] = None,
    ) -> ComparisonResult:
        """Score ``draw_fn``'s output against a reference PNG.

        See :func:`cairo_viewport.comparison.comparator.compare_to_image`.
        """
        from ..comparison import comparator

        return comparator.compare_to_image(reference_path, draw_fn, threshold, self)

    def compare_or_create(
        self,
        reference_path: Union[str, Path],
        draw_fn: DrawFn,
        threshold: Optional[float] = None,
    ) -> ComparisonResult:
        """Create the reference PNG if missing, otherwise compare against it.

        See :func:`cairo_viewport.comparison.comparator.compare_or_create`.
        """
        from ..comparison import comparator

        return comparator.compare_or_create(reference_path, draw_fn, threshold, self)


def _as_points(points) -> np.ndarray:
    pts = np.array(points, dtype=float)
    if pts.ndim == 0 or pts.shape[-1] != 2:
        raise ValueError(f"Expected points of shape (2,) or (..., 2), got {pts.shape}")
    return pts
