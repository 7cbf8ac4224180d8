"""Atomic filesystem operations for image outputs and YAML configs.

Provides:
    - Atomic writes: tmp file → fsync → rename (no partial files on failure)
    - Image encoding of numpy buffers via Pillow, written atomically
    - YAML loading with safe_load
    - Directory creation with exist_ok semantics

Reference images are read by later test runs; a crash mid-write must never
leave a truncated PNG where a reference is expected. Every image this package
writes therefore goes through atomic_write_bytes().

All paths use pathlib.Path. Write failures raise ImageIOError (an OSError).

Usage:
    from cairo_viewport.utils import fs
    fs.atomic_write_bytes(out_dir / "cross.pdf", pdf_bytes)
    fs.atomic_save_image(rgba, out_dir / "cross_DIFF_1a2b3c.png")
"""

import io
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import yaml
from PIL import Image

from ..errors import ImageIOError


def ensure_dir(p: Union[str, Path]) -> Path:
    """Create directory if it doesn't exist, return Path object.

    Parameters
    ----------
    p : Union[str, Path]
        Directory path

    Returns
    -------
    Path
        Path object (guaranteed to exist)

    Raises
    ------
    ImageIOError
        If the directory cannot be created (e.g. a file is in the way)
    """
    p = Path(p)
    try:
        p.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ImageIOError(f"Failed to create directory {p}: {e}") from e
    return p


def atomic_write_bytes(path: Union[str, Path], data: bytes) -> Path:
    """Write bytes to file atomically (tmp → fsync → rename).

    Parameters
    ----------
    path : Union[str, Path]
        Target file path; parent directories are created
    data : bytes
        Data to write

    Returns
    -------
    Path
        The written path

    Raises
    ------
    ImageIOError
        If the tmp file cannot be written or renamed. The tmp file is removed.

    Notes
    -----
    The tmp file lives in the target directory so the rename stays on one
    filesystem. Its name is unique per call, so concurrent writers to
    different targets in one directory never collide.
    """
    path = Path(path)
    ensure_dir(path.parent)

    tmp_path = None
    try:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        tmp_path = Path(tmp_name)
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        tmp_path.replace(path)
    except OSError as e:
        if tmp_path is not None:
            safe_remove(tmp_path)
        raise ImageIOError(f"Failed to write {path} atomically: {e}") from e
    return path


def encode_image(img: np.ndarray, fmt: str = "PNG", pil_kwargs: Optional[Dict[str, Any]] = None) -> bytes:
    """Encode a numpy image buffer with Pillow.

    Parameters
    ----------
    img : np.ndarray
        (H, W) grayscale, (H, W, 3) RGB or (H, W, 4) RGBA; uint8 or any
        numeric dtype (clipped to [0, 255])
    fmt : str
        Pillow format name, default "PNG"
    pil_kwargs : Optional[Dict[str, Any]]
        Additional kwargs for PIL.Image.save (e.g., compress_level=9)

    Returns
    -------
    bytes
        Encoded image
    """
    if img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)
    if img.ndim == 3 and img.shape[2] == 1:
        img = img.squeeze(2)

    buf = io.BytesIO()
    try:
        Image.fromarray(img).save(buf, format=fmt, **(pil_kwargs or {}))
    except (OSError, ValueError, KeyError) as e:
        raise ImageIOError(f"Failed to encode {img.shape} image as {fmt}: {e}") from e
    return buf.getvalue()


def atomic_save_image(
    img: np.ndarray,
    path: Union[str, Path],
    pil_kwargs: Optional[Dict[str, Any]] = None
) -> Path:
    """Encode and save a numpy image atomically.

    The format is taken from the path suffix (PNG, BMP, TIFF, ...).
    """
    path = Path(path)
    fmt = Image.registered_extensions().get(path.suffix.lower())
    if fmt is None:
        raise ImageIOError(f"Pillow cannot encode images with suffix {path.suffix!r}: {path}")
    return atomic_write_bytes(path, encode_image(img, fmt, pil_kwargs))


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load YAML file safely.

    Parameters
    ----------
    path : Union[str, Path]
        YAML file path

    Returns
    -------
    Dict[str, Any]
        Parsed YAML content ({} for an empty file)

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    yaml.YAMLError
        If YAML parsing fails
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e


def safe_remove(path: Union[str, Path]) -> bool:
    """Remove a file if present.

    Returns
    -------
    bool
        True if removed, False if it didn't exist or couldn't be removed
    """
    path = Path(path)
    try:
        path.unlink()
        return True
    except OSError:
        return False
