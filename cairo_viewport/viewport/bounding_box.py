"""Axis-aligned bounding box in abstract (application) coordinates.

A BoundingBox is an immutable value: it is built once from domain geometry and
handed to Viewport.from_bounding_box(). Abstract y grows upward; the flip to
device coordinates happens in the Viewport.

Zero width or height is legal. Whether such a box can be fitted depends on
which side the SideLength policy pins (see viewport.py).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Tuple

import numpy as np

from ..errors import InvalidBoundingBox


@dataclass(frozen=True)
class BoundingBox:
    """Rectangle ``[x_min, x_max] x [y_min, y_max]``.

    Raises :class:`InvalidBoundingBox` when ``x_min > x_max``,
    ``y_min > y_max`` or any bound is NaN.

    >>> bb = BoundingBox(6.0, 8.0, 12.0, 20.0)
    >>> bb.width(), bb.height()
    (2.0, 8.0)
    """

    x_min: float
    x_max: float
    y_min: float
    y_max: float

    def __post_init__(self) -> None:
        for name in ("x_min", "x_max", "y_min", "y_max"):
            object.__setattr__(self, name, float(getattr(self, name)))
        # NaN fails both comparisons
        if not self.x_min <= self.x_max:
            raise InvalidBoundingBox(f"x_min ({self.x_min}) must not exceed x_max ({self.x_max})")
        if not self.y_min <= self.y_max:
            raise InvalidBoundingBox(f"y_min ({self.y_min}) must not exceed y_max ({self.y_max})")

    # -- Accessors ---------------------------------------------------------

    def width(self) -> float:
        return self.x_max - self.x_min

    def height(self) -> float:
        return self.y_max - self.y_min

    def center(self) -> Tuple[float, float]:
        return (0.5 * (self.x_min + self.x_max), 0.5 * (self.y_min + self.y_max))

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.x_min, self.x_max, self.y_min, self.y_max))

    def is_degenerate(self) -> bool:
        """True if the box has zero width or zero height."""
        return self.width() == 0.0 or self.height() == 0.0

    def contains(self, x: float, y: float) -> bool:
        """Closed-interval point test."""
        return self.x_min <= x <= self.x_max and self.y_min <= y <= self.y_max

    # -- Derived boxes -----------------------------------------------------

    def union(self, other: BoundingBox) -> BoundingBox:
        """Smallest box covering both ``self`` and ``other``."""
        return BoundingBox(
            min(self.x_min, other.x_min),
            max(self.x_max, other.x_max),
            min(self.y_min, other.y_min),
            max(self.y_max, other.y_max),
        )

    def scaled(self, factor: float) -> BoundingBox:
        """Box scaled by ``factor`` about its center.

        >>> BoundingBox(0.0, 1.0, 0.0, 1.0).scaled(2.0)
        BoundingBox(x_min=-0.5, x_max=1.5, y_min=-0.5, y_max=1.5)
        """
        if not factor > 0:
            raise ValueError(f"Scale factor must be positive, got {factor}")
        cx, cy = self.center()
        half_w = 0.5 * self.width() * factor
        half_h = 0.5 * self.height() * factor
        return BoundingBox(cx - half_w, cx + half_w, cy - half_h, cy + half_h)

    # -- Constructors ------------------------------------------------------

    @classmethod
    def from_points(cls, points: Iterable[Tuple[float, float]]) -> BoundingBox:
        """Tightest box around a set of (x, y) points.

        Raises
        ------
        ValueError
            If ``points`` is empty or not of shape (N, 2)
        """
        pts = np.asarray(list(points), dtype=float)
        if pts.size == 0:
            raise ValueError("points must contain at least one (x, y) pair")
        if pts.ndim != 2 or pts.shape[1] != 2:
            raise ValueError(f"points must have shape (N, 2), got {pts.shape}")
        x_min, y_min = pts.min(axis=0)
        x_max, y_max = pts.max(axis=0)
        return cls(x_min, x_max, y_min, y_max)

    @classmethod
    def of(cls, entity) -> BoundingBox:
        """Bounding box of a BoundingBox or of any object with ``bounding_box()``."""
        if isinstance(entity, BoundingBox):
            return entity
        getter = getattr(entity, "bounding_box", None)
        if callable(getter):
            bb = getter()
            if isinstance(bb, BoundingBox):
                return bb
        raise TypeError(
            f"{type(entity).__name__} is not a BoundingBox and has no bounding_box() method returning one"
        )

    @classmethod
    def from_bounded_entities(cls, entities: Iterable) -> BoundingBox:
        """Common bounding box of all entities.

        Raises
        ------
        ValueError
            If ``entities`` yields nothing
        """
        result = None
        for entity in entities:
            bb = cls.of(entity)
            result = bb if result is None else result.union(bb)
        if result is None:
            raise ValueError("entities must yield at least one item")
        return result
