"""YAML schema validation and config loading.

Provides centralized validation for the package configuration using pydantic:
    - Comparison schema: similarity threshold, SSIM window, failure artifacts
    - Logging schema: level, file, JSON mode (fed to logging_config.setup_logging)

Fail fast with actionable messages: the offending key and the expected range
appear in the ValueError raised by load_config().

File layout (cairo_viewport/configs/cairo_viewport.v1.yaml):
    schema: cairo_viewport.v1
    comparison:
      threshold: 0.95
      window_size: 11
      sigma: 1.5
      grayscale: true
      keep_failed_renders: true
    logging:
      log_level: INFO
      log_file: null
      json: false
      color: true
      tz: UTC

Usage:
    from cairo_viewport.utils import validators

    cfg = validators.load_config()  # shipped defaults
    comparator = ImageComparator(cfg.comparison)
    setup_logging(**cfg.logging.as_setup_kwargs())
"""

from pathlib import Path
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

SCHEMA_NAME = "cairo_viewport.v1"

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[1] / "configs" / "cairo_viewport.v1.yaml"


# ============================================================================
# COMPARISON SCHEMA
# ============================================================================

class ComparisonConfig(BaseModel):
    """Settings for reference-image comparison."""
    model_config = ConfigDict(frozen=True, extra='forbid')

    threshold: float = Field(0.95, ge=0.0, le=1.0, description="Minimum similarity score to pass")
    window_size: int = Field(11, ge=3, le=31, description="SSIM Gaussian window size (odd)")
    sigma: float = Field(1.5, gt=0.0, le=10.0, description="SSIM Gaussian standard deviation")
    grayscale: bool = Field(True, description="Score on luminance instead of RGB")
    keep_failed_renders: bool = Field(
        True, description="Write the failing render and a diff map next to the reference"
    )

    @field_validator('window_size')
    @classmethod
    def validate_window_size(cls, v: int) -> int:
        if v % 2 != 1:
            raise ValueError(f"window_size must be odd, got {v}")
        return v


# ============================================================================
# LOGGING SCHEMA
# ============================================================================

class LoggingConfig(BaseModel):
    """Keyword arguments for logging_config.setup_logging()."""
    model_config = ConfigDict(frozen=True, extra='forbid', populate_by_name=True)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_file: Optional[str] = None
    json_lines: bool = Field(False, alias="json", description="JSON lines in the log file")
    color: bool = True
    tz: Literal["UTC", "local"] = "UTC"

    @field_validator('log_level', mode='before')
    @classmethod
    def normalize_level(cls, v):
        return v.upper() if isinstance(v, str) else v

    def as_setup_kwargs(self) -> dict:
        """Keyword arguments for setup_logging(), keyed by its parameter names."""
        return self.model_dump(by_alias=True)


# ============================================================================
# TOP-LEVEL SCHEMA
# ============================================================================

class ViewportConfigV1(BaseModel):
    """Complete package configuration (cairo_viewport.v1.yaml)."""
    model_config = ConfigDict(frozen=True, extra='forbid')

    schema_name: Literal["cairo_viewport.v1"] = Field(SCHEMA_NAME, alias="schema")
    comparison: ComparisonConfig = Field(default_factory=ComparisonConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# ============================================================================
# PUBLIC API
# ============================================================================

def default_config() -> ViewportConfigV1:
    """Built-in defaults, without touching disk."""
    return ViewportConfigV1()


def load_config(path: Union[str, Path, None] = None) -> ViewportConfigV1:
    """Load and validate package config from YAML.

    Parameters
    ----------
    path : Union[str, Path], optional
        Path to a cairo_viewport.v1.yaml file; defaults to the copy shipped
        in configs/

    Returns
    -------
    ViewportConfigV1
        Validated configuration

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValueError
        If validation fails (with actionable error message)
    """
    from . import fs

    path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    data = fs.load_yaml(path)
    if not isinstance(data, dict):
        raise ValueError(f"Config validation failed at {path}: top level must be a mapping, got {type(data).__name__}")
    try:
        return ViewportConfigV1.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Config validation failed at {path}: {e}") from e
