"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Config validation (validators)
    - Atomic I/O and YAML loading (fs)
    - Image similarity metrics (metrics)
    - Wall-clock timing (profiler)
    - Unified logging (logging_config)

No module in utils/ may import from upper layers (viewport, comparison).

Convenience imports:
    from cairo_viewport.utils import fs, metrics, validators
    from cairo_viewport.utils.logging_config import setup_logging, get_logger
"""

from . import fs
from . import logging_config
from . import metrics
from . import profiler
from . import validators

from .logging_config import get_logger, log_context, push_context, setup_logging

__all__ = [
    # Modules
    'fs',
    'logging_config',
    'metrics',
    'profiler',
    'validators',
    # Direct exports
    'setup_logging',
    'get_logger',
    'push_context',
    'log_context',
]
