"""Typed failures raised by viewport fitting, rendering and image comparison.

Every error derives from :class:`ViewportError` so callers can catch the whole
family at once.  Where a builtin category fits (bad argument, missing file,
OS-level write failure) the error also derives from that builtin, so code that
already handles ``ValueError`` / ``OSError`` keeps working.

Nothing in this package retries; errors surface to the caller after all
surfaces and file handles have been released.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Optional, Tuple

if TYPE_CHECKING:
    from .comparison.comparator import ComparisonResult


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


class ViewportError(Exception):
    """Base exception for all cairo_viewport errors."""

    pass


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------


class InvalidBoundingBox(ViewportError, ValueError):
    """Bounding box with min > max on an axis, NaN bounds, or infinite extent."""

    pass


class DegenerateBoundingBox(ViewportError, ValueError):
    """The dimension pinned by the side length policy is zero."""

    pass


# ---------------------------------------------------------------------------
# Rendering / file output
# ---------------------------------------------------------------------------


class UnknownFileExtension(ViewportError, ValueError):
    """Output path has no suffix, or one cairo cannot write."""

    pass


class DrawError(ViewportError):
    """The caller-supplied drawing callback raised.

    The callback's exception is chained as ``__cause__`` and kept on
    :attr:`original`.
    """

    def __init__(self, original: BaseException):
        self.original = original
        super().__init__(f"Drawing callback failed: {type(original).__name__}: {original}")


class ImageIOError(ViewportError, OSError):
    """Opening, encoding or writing an image failed."""

    pass


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------


class ReferenceNotFound(ViewportError, FileNotFoundError):
    """The reference image does not exist."""

    def __init__(self, path: Path):
        self.path = Path(path)
        super().__init__(f"Reference image not found: {self.path}")


class DecodeError(ViewportError):
    """The reference image exists but cannot be decoded."""

    def __init__(self, path: Path, reason: str):
        self.path = Path(path)
        super().__init__(f"Failed to decode reference image {self.path}: {reason}")


class DimensionMismatch(ViewportError):
    """Rendered buffer and reference image have different pixel sizes.

    Sizes are (width, height) in pixels.
    """

    def __init__(
        self,
        rendered_size: Tuple[int, int],
        reference_size: Tuple[int, int],
        reference_path: Optional[Path] = None,
    ):
        self.rendered_size = tuple(rendered_size)
        self.reference_size = tuple(reference_size)
        self.reference_path = Path(reference_path) if reference_path is not None else None
        where = f" ({self.reference_path})" if self.reference_path is not None else ""
        super().__init__(
            f"Rendered image is {self.rendered_size[0]}x{self.rendered_size[1]} px but "
            f"reference{where} is {self.reference_size[0]}x{self.reference_size[1]} px"
        )


class ComparisonFailed(ViewportError, AssertionError):
    """Similarity score fell below the threshold.

    Only raised on request via ``ComparisonResult.raise_for_failure()``;
    comparison functions themselves return the result.
    """

    def __init__(self, result: "ComparisonResult"):
        self.result = result
        msg = (
            f"Image created by the drawing function does not match reference "
            f"{result.reference_path}: score {result.score:.4f} < threshold {result.threshold:.4f}"
        )
        if result.rendered_path is not None:
            msg += f" (rendered image kept at {result.rendered_path})"
        super().__init__(msg)
