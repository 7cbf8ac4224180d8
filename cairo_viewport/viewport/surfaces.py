"""Scoped cairo surfaces for each supported output format.

Provides:
    - FILE_EXTENSIONS: formats cairo can write (pdf, png, ps, svg)
    - file_extension(): validated, lower-cased suffix of an output path
    - RenderTarget: context manager owning one surface + context pair
    - argb32_to_rgba(): unpack a cairo ARGB32 buffer into straight RGBA uint8

Every surface renders into memory; bytes reach disk only through
fs.atomic_write_bytes(), so a failing drawing callback never leaves a partial
file behind. RenderTarget.__exit__ finishes the surface on every path.

Pixel layout:
    cairo FORMAT_ARGB32 stores premultiplied alpha in native-endian 32-bit
    words. argb32_to_rgba() un-premultiplies with the same integer rounding
    cairo's PNG writer uses, so a buffer from render_to_buffer() equals a
    decode of the PNG write_to_file() produces.
"""

from __future__ import annotations

import io
import logging
import sys
from pathlib import Path
from typing import Optional, Union

import cairocffi
import numpy as np

from ..errors import ImageIOError, UnknownFileExtension

logger = logging.getLogger(__name__)

FILE_EXTENSIONS = ("pdf", "png", "ps", "svg")


def file_extension(path: Union[str, Path], allowed=FILE_EXTENSIONS) -> str:
    """Lower-cased suffix of ``path`` without the dot.

    Raises
    ------
    UnknownFileExtension
        If the path has no suffix or one outside ``allowed``
    """
    suffix = Path(path).suffix
    allowed_str = ", ".join(allowed)
    if not suffix:
        raise UnknownFileExtension(
            f"No file extension has been recognized in {str(path)!r}. "
            f"Add one of the following file extensions: {allowed_str}"
        )
    ext = suffix[1:].lower()
    if ext not in allowed:
        raise UnknownFileExtension(
            f"The given file extension {ext!r} is not recognized. "
            f"Available file extensions are: {allowed_str}"
        )
    return ext


def argb32_to_rgba(data: np.ndarray) -> np.ndarray:
    """Convert a (H, W, 4) view of cairo ARGB32 bytes to straight RGBA uint8.

    Parameters
    ----------
    data : np.ndarray
        uint8 array of shape (H, W, 4) holding native-endian premultiplied
        ARGB32 words

    Returns
    -------
    np.ndarray
        uint8 array of shape (H, W, 4), channels R, G, B, A, not premultiplied.
        Fully transparent pixels become (0, 0, 0, 0).
    """
    if sys.byteorder == "little":
        b, g, r, a = data[..., 0], data[..., 1], data[..., 2], data[..., 3]
    else:
        a, r, g, b = data[..., 0], data[..., 1], data[..., 2], data[..., 3]

    alpha = a.astype(np.uint32)
    premul = np.stack([r, g, b], axis=-1).astype(np.uint32)
    divisor = np.maximum(alpha, 1)[..., None]
    straight = (premul * 255 + (alpha // 2)[..., None]) // divisor
    straight = np.where((alpha == 0)[..., None], 0, np.minimum(straight, 255))

    rgba = np.empty(data.shape[:2] + (4,), dtype=np.uint8)
    rgba[..., :3] = straight
    rgba[..., 3] = a
    return rgba


class RenderTarget:
    """One cairo surface plus its drawing context, scoped to a ``with`` block.

    Parameters
    ----------
    fmt : str
        One of FILE_EXTENSIONS
    width, height : int
        Surface size (pixels for png, points for pdf/ps, CSS px for svg)

    Usage::

        target = RenderTarget("png", 500, 500)
        with target as ctx:
            draw(ctx)
            data = target.encode()

    Encoding must happen inside the block; the surface is finished on exit.
    """

    def __init__(self, fmt: str, width: int, height: int):
        if fmt not in FILE_EXTENSIONS:
            raise UnknownFileExtension(f"Unsupported surface format {fmt!r}")
        self.fmt = fmt
        self.width = int(width)
        self.height = int(height)
        self._sink: Optional[io.BytesIO] = None
        self._surface: Optional[cairocffi.Surface] = None
        self.context: Optional[cairocffi.Context] = None

    def _create_surface(self) -> cairocffi.Surface:
        if self.fmt == "png":
            return cairocffi.ImageSurface(cairocffi.FORMAT_ARGB32, self.width, self.height)
        self._sink = io.BytesIO()
        if self.fmt == "pdf":
            return cairocffi.PDFSurface(self._sink, self.width, self.height)
        if self.fmt == "ps":
            return cairocffi.PSSurface(self._sink, self.width, self.height)
        return cairocffi.SVGSurface(self._sink, self.width, self.height)

    def __enter__(self) -> cairocffi.Context:
        try:
            self._surface = self._create_surface()
            self.context = cairocffi.Context(self._surface)
        except cairocffi.CairoError as e:
            self._release()
            raise ImageIOError(
                f"Failed to create {self.width}x{self.height} {self.fmt} surface: {e}"
            ) from e
        return self.context

    def __exit__(self, exc_type, exc, tb) -> None:
        self._release()

    def _release(self) -> None:
        if self._surface is not None:
            self._surface.finish()
            self._surface = None
        self.context = None

    def _require_surface(self) -> cairocffi.Surface:
        if self._surface is None:
            raise RuntimeError("RenderTarget is not active; use it as a context manager")
        return self._surface

    def encode(self) -> bytes:
        """Encoded file contents (PNG bytes, or the finished vector document).

        For pdf/ps/svg this finishes the surface; no drawing is possible after.
        """
        surface = self._require_surface()
        try:
            if self.fmt == "png":
                buf = io.BytesIO()
                surface.write_to_png(buf)
                return buf.getvalue()
            surface.finish()
            return self._sink.getvalue()
        except cairocffi.CairoError as e:
            raise ImageIOError(f"Failed to encode {self.fmt} surface: {e}") from e

    def pixels(self) -> np.ndarray:
        """Straight RGBA copy of an image surface, shape (height, width, 4)."""
        surface = self._require_surface()
        if self.fmt != "png":
            raise RuntimeError(f"Pixel access needs an image surface, not {self.fmt}")
        surface.flush()
        stride = surface.get_stride()
        raw = np.frombuffer(surface.get_data(), dtype=np.uint8)
        raw = raw[: stride * self.height].reshape(self.height, stride)
        return argb32_to_rgba(raw[:, : self.width * 4].reshape(self.height, self.width, 4))
