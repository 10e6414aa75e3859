"""
aseprite-atlas
Decodes Aseprite documents, flattens their frames and packs them into spritesheets
"""

from .errors import (
    AsepriteError,
    DecompressionError,
    MalformedDocumentError,
    PackingError,
    UnresolvedLinkError,
)
# core pulls in io and renderer, so it must load first
from .core import (
    BlendMode,
    ColorDepth,
    Document,
    LoopDirection,
    PackingMethod,
    Spritesheet,
    SpritesheetOptions,
    build_document,
    build_spritesheet,
    extract_animated_tilemap,
    extract_tilemap,
    pack_frames,
    tileset_image,
)
from .renderer import CompositeOptions, composite_frame, composite_frames
from .utils import PillowImageSink, Settings, load_document

__version__ = "0.1.0"

__all__ = [
    'AsepriteError',
    'DecompressionError',
    'MalformedDocumentError',
    'PackingError',
    'UnresolvedLinkError',
    'BlendMode',
    'ColorDepth',
    'Document',
    'LoopDirection',
    'PackingMethod',
    'Spritesheet',
    'SpritesheetOptions',
    'build_document',
    'build_spritesheet',
    'extract_animated_tilemap',
    'extract_tilemap',
    'pack_frames',
    'tileset_image',
    'CompositeOptions',
    'composite_frame',
    'composite_frames',
    'PillowImageSink',
    'Settings',
    'load_document',
]
