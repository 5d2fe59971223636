"""
Core geometry, surfaces and the decode pipeline.
"""

from .resize_rect import FitMode, ResizeOptions, ResizeRect, calc_rect, validate_resize_options
from .surface import PixelData, RasterSurface, decode_bitmap, render

__all__ = [
    "FitMode",
    "ResizeOptions",
    "ResizeRect",
    "calc_rect",
    "validate_resize_options",
    "PixelData",
    "RasterSurface",
    "decode_bitmap",
    "render",
]
