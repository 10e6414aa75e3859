"""
Core module for aseprite-atlas
Contains the document model, its builder, tag animations and atlas packing
"""

from .data_structures import (
    BlendMode,
    Cel,
    ColorDepth,
    ColorProfile,
    Document,
    ExternalFile,
    Frame,
    Header,
    ImageContent,
    Layer,
    LayerFlags,
    LayerType,
    LoopDirection,
    PackingMethod,
    Palette,
    Slice,
    SliceKey,
    Tag,
    TilemapContent,
    Tileset,
    TilesetFlags,
    UserData,
)
from .animation import (
    AnimationFrame,
    FrameRegion,
    SpritesheetAnimation,
    build_animation,
    tag_frame_sequence,
)
from .document_builder import DocumentBuilder, build_document
from .texture_atlas import (
    SheetFrame,
    Spritesheet,
    SpritesheetOptions,
    build_spritesheet,
    pack_frames,
)
from .tilemap import (
    AnimatedTilemap,
    TilemapFrame,
    TilemapLayerData,
    TilemapTile,
    extract_animated_tilemap,
    extract_tilemap,
    save_tileset,
    tileset_image,
)

__all__ = [
    'BlendMode',
    'Cel',
    'ColorDepth',
    'ColorProfile',
    'Document',
    'ExternalFile',
    'Frame',
    'Header',
    'ImageContent',
    'Layer',
    'LayerFlags',
    'LayerType',
    'LoopDirection',
    'PackingMethod',
    'Palette',
    'Slice',
    'SliceKey',
    'Tag',
    'TilemapContent',
    'Tileset',
    'TilesetFlags',
    'UserData',
    'AnimationFrame',
    'FrameRegion',
    'SpritesheetAnimation',
    'build_animation',
    'tag_frame_sequence',
    'DocumentBuilder',
    'build_document',
    'SheetFrame',
    'Spritesheet',
    'SpritesheetOptions',
    'build_spritesheet',
    'pack_frames',
    'AnimatedTilemap',
    'TilemapFrame',
    'TilemapLayerData',
    'TilemapTile',
    'extract_animated_tilemap',
    'extract_tilemap',
    'save_tileset',
    'tileset_image',
]
