"""Reference-image regression checks for drawings rendered through a Viewport.

Workflow:
1. Render ``draw_fn`` through the viewport into an in-memory RGBA buffer
2. Decode the reference PNG with Pillow
3. Refuse to score buffers of different pixel size (DimensionMismatch)
4. Composite onto opaque white, score with SSIM on luminance (see
   utils.metrics), clamped to [0, 1]; only identical RGBA scores 1.0
5. Pass iff score >= threshold; the score is returned either way

compare_or_create() bootstraps a missing reference by writing the render as
the new reference, so one call serves both the first run and every later
regression run.

On failure the rendered image and an amplified luminance diff are written
next to the reference for inspection:
    <stem>_TEST_<id>.png   what draw_fn produced
    <stem>_DIFF_<id>.png   |rendered - reference| * 4

Usage:
    from cairo_viewport import compare_or_create

    result = compare_or_create("tests/img/cross.png", draw_cross, 0.95, viewport)
    result.raise_for_failure()
"""

from __future__ import annotations

import enum
import logging
import math
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Tuple, Union

import numpy as np
from PIL import Image

from ..errors import ComparisonFailed, DecodeError, DimensionMismatch, ReferenceNotFound
from ..utils import fs, metrics
from ..utils.logging_config import log_context
from ..utils.profiler import timer
from ..utils.validators import ComparisonConfig
from ..viewport.surfaces import file_extension

if TYPE_CHECKING:
    from ..viewport.viewport import DrawFn, Viewport

logger = logging.getLogger(__name__)

REFERENCE_EXTENSIONS = ("png",)

# Opaque backdrop that transparent pixels are scored against
BACKGROUND = (255, 255, 255, 255)
BELOW_ONE = float(np.nextafter(1.0, 0.0))


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


class ComparisonOutcome(str, enum.Enum):
    CREATED = "created"
    PASSED = "passed"
    FAILED = "failed"


@dataclass(frozen=True)
class ComparisonResult:
    """Outcome of one comparison (or reference creation).

    ``score`` is None only when the reference was just created.
    ``rendered_path`` / ``diff_path`` are set when a failing render was kept.
    """

    outcome: ComparisonOutcome
    score: Optional[float]
    threshold: float
    reference_path: Path
    rendered_path: Optional[Path] = None
    diff_path: Optional[Path] = None

    @property
    def passed(self) -> bool:
        """True unless the score fell below the threshold."""
        return self.outcome is not ComparisonOutcome.FAILED

    @property
    def created(self) -> bool:
        return self.outcome is ComparisonOutcome.CREATED

    def __bool__(self) -> bool:
        return self.passed

    def raise_for_failure(self) -> ComparisonResult:
        """Raise ComparisonFailed if this result failed; return self otherwise."""
        if self.outcome is ComparisonOutcome.FAILED:
            raise ComparisonFailed(self)
        return self


def validate_threshold(threshold: float) -> float:
    """Return ``threshold`` as float, or raise ValueError if outside [0, 1]."""
    value = float(threshold)
    if math.isnan(value) or not 0.0 <= value <= 1.0:
        raise ValueError(f"Threshold must be within [0, 1], got {threshold}")
    return value


def decide(score: float, threshold: float) -> ComparisonOutcome:
    """Pass/fail rule: PASSED iff ``score >= threshold``.

    >>> decide(0.995, 0.99)
    <ComparisonOutcome.PASSED: 'passed'>
    >>> decide(0.98, 0.99)
    <ComparisonOutcome.FAILED: 'failed'>
    """
    return ComparisonOutcome.PASSED if score >= threshold else ComparisonOutcome.FAILED


# ---------------------------------------------------------------------------
# Comparator
# ---------------------------------------------------------------------------


class ImageComparator:
    """Scores rendered buffers against reference images.

    Parameters
    ----------
    config : ComparisonConfig, optional
        Threshold and metric settings; defaults to ComparisonConfig()

    Instances hold no mutable state and may be shared between threads, as
    long as concurrent calls use different reference paths.
    """

    def __init__(self, config: Optional[ComparisonConfig] = None):
        self.config = config if config is not None else ComparisonConfig()

    def __repr__(self) -> str:
        return f"ImageComparator({self.config!r})"

    # -- Scoring -------------------------------------------------------------

    def _prepare(self, rgba: np.ndarray) -> np.ndarray:
        """RGBA uint8 → luminance (H, W) or RGB (H, W, 3), the array actually scored.

        Alpha is composited onto opaque white first, so transparent pixels
        score as white rather than as their (zero) color channels.
        """
        img = Image.fromarray(np.ascontiguousarray(rgba, dtype=np.uint8))
        img = Image.alpha_composite(Image.new("RGBA", img.size, BACKGROUND), img)
        mode = "L" if self.config.grayscale else "RGB"
        return np.asarray(img.convert(mode))

    def score(self, rendered: np.ndarray, reference: np.ndarray) -> float:
        """Similarity in [0, 1] of two RGBA buffers; 1.0 = pixel-identical.

        Raises
        ------
        DimensionMismatch
            If the buffers differ in width or height
        """
        _check_dimensions(rendered, reference)
        with timer("similarity_score"):
            value = metrics.similarity_score(
                self._prepare(rendered),
                self._prepare(reference),
                window_size=self.config.window_size,
                sigma=self.config.sigma,
            )
        # 1.0 only for identical RGBA, not merely identical composites
        if value >= 1.0 and not np.array_equal(rendered, reference):
            return BELOW_ONE
        return value

    def load_reference(self, reference_path: Union[str, Path]) -> np.ndarray:
        """Decode a reference image to RGBA uint8, shape (H, W, 4).

        Raises
        ------
        ReferenceNotFound
            If the file does not exist
        DecodeError
            If Pillow cannot read it
        """
        path = Path(reference_path)
        if not path.is_file():
            raise ReferenceNotFound(path)
        try:
            with Image.open(path) as img:
                img.load()
                return np.array(img.convert("RGBA"))
        except FileNotFoundError as e:
            raise ReferenceNotFound(path) from e
        except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
            raise DecodeError(path, str(e)) from e

    # -- Comparison ----------------------------------------------------------

    def _resolve_threshold(self, threshold: Optional[float]) -> float:
        return validate_threshold(self.config.threshold if threshold is None else threshold)

    def compare_to_image(
        self,
        reference_path: Union[str, Path],
        draw_fn: DrawFn,
        viewport: Viewport,
        threshold: Optional[float] = None,
    ) -> ComparisonResult:
        """Render ``draw_fn`` through ``viewport`` and score it against a reference PNG.

        Parameters
        ----------
        reference_path : Union[str, Path]
            Existing reference image (.png)
        draw_fn : Callable[[cairocffi.Context], Any]
            Drawing routine, called once
        viewport : Viewport
            Fitted viewport; its canvas size must match the reference
        threshold : float, optional
            Minimum score to pass, in [0, 1]; defaults to config.threshold

        Returns
        -------
        ComparisonResult
            PASSED or FAILED, with the score

        Raises
        ------
        ValueError
            If threshold is outside [0, 1]
        UnknownFileExtension
            If the reference is not a .png path
        DrawError
            If ``draw_fn`` raises
        ReferenceNotFound, DecodeError
            If the reference is missing or unreadable
        DimensionMismatch
            If the render and the reference differ in size
        """
        threshold = self._resolve_threshold(threshold)
        path = Path(reference_path)
        file_extension(path, allowed=REFERENCE_EXTENSIONS)

        with log_context(reference=path.name):
            rendered = viewport.render_to_buffer(draw_fn)
            reference = self.load_reference(path)
            _check_dimensions(rendered, reference, path)

            score = self.score(rendered, reference)
            outcome = decide(score, threshold)
            if outcome is ComparisonOutcome.PASSED:
                logger.debug("Comparison passed: score %.4f >= threshold %.4f", score, threshold)
                return ComparisonResult(outcome, score, threshold, path)

            rendered_path = diff_path = None
            if self.config.keep_failed_renders:
                rendered_path, diff_path = self._keep_failure_artifacts(path, rendered, reference)
            logger.warning(
                "Comparison failed: score %.4f < threshold %.4f (rendered: %s, diff: %s)",
                score, threshold, rendered_path, diff_path,
            )
            return ComparisonResult(outcome, score, threshold, path, rendered_path, diff_path)

    def compare_or_create(
        self,
        reference_path: Union[str, Path],
        draw_fn: DrawFn,
        viewport: Viewport,
        threshold: Optional[float] = None,
    ) -> ComparisonResult:
        """Write the reference if it is missing, otherwise :meth:`compare_to_image`.

        Returns
        -------
        ComparisonResult
            CREATED (score None) on first run; PASSED or FAILED afterwards

        Raises
        ------
        DrawError, ImageIOError
            From the creation branch, as in Viewport.write_to_file
        """
        threshold = self._resolve_threshold(threshold)
        path = Path(reference_path)
        file_extension(path, allowed=REFERENCE_EXTENSIONS)

        if path.exists():
            return self.compare_to_image(path, draw_fn, viewport, threshold)

        with log_context(reference=path.name):
            viewport.write_to_file(path, draw_fn)
            logger.info("Created reference image %s (%dx%d px)", path, viewport.width, viewport.height)
        return ComparisonResult(ComparisonOutcome.CREATED, None, threshold, path)

    def _keep_failure_artifacts(
        self,
        reference_path: Path,
        rendered: np.ndarray,
        reference: np.ndarray,
    ) -> Tuple[Path, Path]:
        """Write the failing render and a diff map beside the reference."""
        tag = uuid.uuid4().hex[:12]
        stem = reference_path.stem
        rendered_path = reference_path.with_name(f"{stem}_TEST_{tag}.png")
        diff_path = reference_path.with_name(f"{stem}_DIFF_{tag}.png")

        fs.atomic_save_image(rendered, rendered_path)
        diff = metrics.difference_map(self._prepare(rendered), self._prepare(reference))
        fs.atomic_save_image(diff, diff_path)
        return rendered_path, diff_path


def _check_dimensions(
    rendered: np.ndarray,
    reference: np.ndarray,
    reference_path: Optional[Path] = None,
) -> None:
    if rendered.shape[:2] != reference.shape[:2]:
        raise DimensionMismatch(
            (rendered.shape[1], rendered.shape[0]),
            (reference.shape[1], reference.shape[0]),
            reference_path,
        )


# ---------------------------------------------------------------------------
# Module-level API
# ---------------------------------------------------------------------------


def compare_to_image(
    reference_path: Union[str, Path],
    draw_fn: DrawFn,
    threshold: Optional[float],
    viewport: Viewport,
) -> ComparisonResult:
    """:meth:`ImageComparator.compare_to_image` with the default configuration.

    ``threshold=None`` uses ComparisonConfig().threshold (0.95).
    """
    return ImageComparator().compare_to_image(reference_path, draw_fn, viewport, threshold)


def compare_or_create(
    reference_path: Union[str, Path],
    draw_fn: DrawFn,
    threshold: Optional[float],
    viewport: Viewport,
) -> ComparisonResult:
    """:meth:`ImageComparator.compare_or_create` with the default configuration."""
    return ImageComparator().compare_or_create(reference_path, draw_fn, viewport, threshold)
