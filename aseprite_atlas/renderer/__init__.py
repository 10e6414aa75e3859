"""
Renderer module for aseprite-atlas
Contains blend math, blend modes and the frame compositor
"""

from .blend_math import mul_un8, div_un8
from .blend_funcs import blend, blend_pixel
from .compositor import (
    CompositeOptions,
    CompositedFrame,
    cel_to_rgba,
    composite_document,
    composite_frame,
    composite_frames,
)

__all__ = [
    'mul_un8',
    'div_un8',
    'blend',
    'blend_pixel',
    'CompositeOptions',
    'CompositedFrame',
    'cel_to_rgba',
    'composite_document',
    'composite_frame',
    'composite_frames',
]
