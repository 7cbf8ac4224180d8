"""Regression checks of rendered drawings against reference images.

Modules:
    - comparator: ImageComparator, ComparisonResult, compare_to_image, compare_or_create
"""

from .comparator import (
    ComparisonOutcome,
    ComparisonResult,
    ImageComparator,
    compare_or_create,
    compare_to_image,
    decide,
    validate_threshold,
)

__all__ = [
    'ImageComparator',
    'ComparisonOutcome',
    'ComparisonResult',
    'compare_to_image',
    'compare_or_create',
    'decide',
    'validate_threshold',
]
