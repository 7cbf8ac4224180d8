"""cairo_viewport: fit abstract drawings onto pixel canvases and regression-test them.

This package maps an axis-aligned bounding box in application coordinates onto
a fixed-size cairo surface, and checks rendered output against stored reference
images with a structural similarity score.

Architecture layers (strict one-way dependency):
    cairo_viewport/comparison/ → cairo_viewport/viewport/ → cairo_viewport/utils/, errors

Key invariants:
    - Abstract y grows upward, device y grows downward (flip about y_max)
    - Uniform scale on both axes (aspect ratio preserved)
    - Reference images are lossless PNG
    - YAML-only configs

Usage:
    from cairo_viewport import BoundingBox, SideLength, Viewport, compare_or_create

    viewport = Viewport.from_bounding_box(BoundingBox(-1, 1, -1, 1), SideLength.long(500))
    result = compare_or_create("tests/img/cross.png", draw_cross, None, viewport)
    result.raise_for_failure()
"""

from .errors import (
    ComparisonFailed,
    DecodeError,
    DegenerateBoundingBox,
    DimensionMismatch,
    DrawError,
    ImageIOError,
    InvalidBoundingBox,
    ReferenceNotFound,
    UnknownFileExtension,
    ViewportError,
)
from .viewport import FILE_EXTENSIONS, BoundingBox, SideKind, SideLength, Viewport
from .comparison import (
    ComparisonOutcome,
    ComparisonResult,
    ImageComparator,
    compare_or_create,
    compare_to_image,
)

__version__ = "0.3.0"

__all__ = [
    # Geometry
    'BoundingBox',
    'SideKind',
    'SideLength',
    'Viewport',
    'FILE_EXTENSIONS',
    # Comparison
    'ImageComparator',
    'ComparisonOutcome',
    'ComparisonResult',
    'compare_to_image',
    'compare_or_create',
    # Errors
    'ViewportError',
    'InvalidBoundingBox',
    'DegenerateBoundingBox',
    'UnknownFileExtension',
    'DrawError',
    'ImageIOError',
    'ReferenceNotFound',
    'DecodeError',
    'DimensionMismatch',
    'ComparisonFailed',
]
