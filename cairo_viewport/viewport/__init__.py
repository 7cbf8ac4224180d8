"""Bounding box → canvas fitting and drawing through cairo.

Modules:
    - bounding_box: BoundingBox value type
    - side_length: SideLength pinning policy (LONG, SHORT, WIDTH, HEIGHT)
    - viewport: Viewport fitting, transform, write_to_file, render_to_buffer
    - surfaces: scoped cairo surfaces per output format

Invariants:
    - Uniform scale on both axes
    - Abstract (x_min, y_max) maps to device (0, 0); device +Y is down
    - Output files are written atomically
"""

from .bounding_box import BoundingBox
from .side_length import SideKind, SideLength
from .surfaces import FILE_EXTENSIONS, RenderTarget, file_extension
from .viewport import DrawFn, Viewport, fit_canvas

__all__ = [
    'BoundingBox',
    'SideKind',
    'SideLength',
    'Viewport',
    'DrawFn',
    'fit_canvas',
    'FILE_EXTENSIONS',
    'RenderTarget',
    'file_extension',
]
