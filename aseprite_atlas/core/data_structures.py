"""
Data structures for aseprite-atlas
Defines the document model every other stage reads from
"""

from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from typing import List, Tuple, Optional, Dict, Union

import numpy as np

Color = Tuple[int, int, int, int]


class ColorDepth(IntEnum):
    """Pixel storage format, valued by bits per pixel"""
    RGBA = 32
    GRAYSCALE = 16
    INDEXED = 8

    @property
    def bytes_per_pixel(self) -> int:
        return self.value // 8


class LayerType(IntEnum):
    NORMAL = 0
    GROUP = 1
    TILEMAP = 2


class LayerFlags(IntFlag):
    VISIBLE = 1
    EDITABLE = 2
    LOCKED = 4
    BACKGROUND = 8
    PREFER_LINKED_CELS = 16
    COLLAPSED = 32
    REFERENCE = 64


class BlendMode(IntEnum):
    """Layer blend modes, numbered as Aseprite stores them"""
    NORMAL = 0
    MULTIPLY = 1
    SCREEN = 2
    OVERLAY = 3
    DARKEN = 4
    LIGHTEN = 5
    COLOR_DODGE = 6
    COLOR_BURN = 7
    HARD_LIGHT = 8
    SOFT_LIGHT = 9
    DIFFERENCE = 10
    EXCLUSION = 11
    HUE = 12
    SATURATION = 13
    COLOR = 14
    LUMINOSITY = 15
    ADDITION = 16
    SUBTRACT = 17
    DIVIDE = 18


class LoopDirection(IntEnum):
    FORWARD = 0
    REVERSE = 1
    PING_PONG = 2
    PING_PONG_REVERSE = 3


class PackingMethod(IntEnum):
    """Atlas layout strategy"""
    SQUARE_PACKED = 0
    HORIZONTAL_STRIP = 1
    VERTICAL_STRIP = 2


class TilesetFlags(IntFlag):
    EXTERNAL_FILE = 1
    EMBEDDED = 2
    EMPTY_TILE_IS_ZERO = 4


# Header flag bit 1: layer opacity field holds a meaningful value
HEADER_FLAG_LAYER_OPACITY_VALID = 1


@dataclass
class Header:
    """Fixed 128-byte file header"""
    file_size: int
    magic: int
    frame_count: int
    width: int
    height: int
    color_depth: ColorDepth
    flags: int
    speed: int
    transparent_index: int
    color_count: int
    pixel_width: int = 1
    pixel_height: int = 1
    grid_x: int = 0
    grid_y: int = 0
    grid_width: int = 16
    grid_height: int = 16

    @property
    def layer_opacity_valid(self) -> bool:
        return bool(self.flags & HEADER_FLAG_LAYER_OPACITY_VALID)

    @property
    def pixel_ratio(self) -> Tuple[int, int]:
        if self.pixel_width == 0 or self.pixel_height == 0:
            return (1, 1)
        return (self.pixel_width, self.pixel_height)


@dataclass
class UserData:
    """Free-form text and color attached to a document entity"""
    text: Optional[str] = None
    color: Optional[Color] = None


@dataclass
class Palette:
    """Index-addressable color table"""
    colors: List[Color] = field(default_factory=list)
    names: Dict[int, str] = field(default_factory=dict)
    transparent_index: int = 0

    def __len__(self) -> int:
        return len(self.colors)

    def resize(self, size: int):
        if size < len(self.colors):
            del self.colors[size:]
            self.names = {i: n for i, n in self.names.items() if i < size}
        else:
            self.colors.extend([(0, 0, 0, 0)] * (size - len(self.colors)))

    def set_color(self, index: int, color: Color, name: Optional[str] = None):
        if index >= len(self.colors):
            self.resize(index + 1)
        self.colors[index] = color
        if name is not None:
            self.names[index] = name

    def lookup_table(self, indexed: bool) -> np.ndarray:
        """
        Build a 256-entry RGBA table for resolving indexed pixels

        Args:
            indexed: True when the document stores indexed pixels, which makes
                the transparent index resolve to a fully transparent color

        Returns:
            uint8 array of shape (256, 4)
        """
        table = np.zeros((256, 4), dtype=np.uint8)
        count = min(len(self.colors), 256)
        if count:
            table[:count] = np.asarray(self.colors[:count], dtype=np.uint8)
        if indexed and 0 <= self.transparent_index < 256:
            table[self.transparent_index] = 0
        return table


@dataclass
class Layer:
    """Layer information"""
    index: int
    name: str
    flags: LayerFlags
    layer_type: LayerType
    child_level: int
    blend_mode: BlendMode
    opacity: int = 255
    tileset_index: Optional[int] = None
    default_width: int = 0
    default_height: int = 0
    user_data: Optional[UserData] = None

    @property
    def visible(self) -> bool:
        return bool(self.flags & LayerFlags.VISIBLE)

    @property
    def is_background(self) -> bool:
        return bool(self.flags & LayerFlags.BACKGROUND)

    @property
    def is_reference(self) -> bool:
        return bool(self.flags & LayerFlags.REFERENCE)

    @property
    def is_group(self) -> bool:
        return self.layer_type == LayerType.GROUP

    @property
    def is_tilemap(self) -> bool:
        return self.layer_type == LayerType.TILEMAP


@dataclass(eq=False)
class ImageContent:
    """Pixel buffer in the document's native color depth, shape (h, w, bytes per pixel)"""
    width: int
    height: int
    pixels: np.ndarray


@dataclass(eq=False)
class TilemapContent:
    """Tile words of a tilemap cel, shape (h, w) in tiles"""
    width: int
    height: int
    tiles: np.ndarray
    bits_per_tile: int = 32
    tile_id_mask: int = 0x1FFFFFFF
    x_flip_mask: int = 0x20000000
    y_flip_mask: int = 0x40000000
    diagonal_flip_mask: int = 0x80000000

    def tile_ids(self) -> np.ndarray:
        return self.tiles & np.uint32(self.tile_id_mask)

    def x_flips(self) -> np.ndarray:
        return (self.tiles & np.uint32(self.x_flip_mask)) != 0

    def y_flips(self) -> np.ndarray:
        return (self.tiles & np.uint32(self.y_flip_mask)) != 0

    def diagonal_flips(self) -> np.ndarray:
        return (self.tiles & np.uint32(self.diagonal_flip_mask)) != 0


CelContent = Union[ImageContent, TilemapContent]


@dataclass
class Cel:
    """Placement of one layer's content within one frame"""
    frame_index: int
    layer_index: int
    x: int
    y: int
    opacity: int
    content: CelContent
    z_index: int = 0
    # Set when the content is shared with the cel of an earlier frame
    linked_frame: Optional[int] = None
    precise_bounds: Optional[Tuple[float, float, float, float]] = None
    user_data: Optional[UserData] = None

    @property
    def is_linked(self) -> bool:
        return self.linked_frame is not None

    @property
    def is_tilemap(self) -> bool:
        return isinstance(self.content, TilemapContent)


@dataclass
class Frame:
    index: int
    duration: int
    cels: List[Cel] = field(default_factory=list)


@dataclass
class Tag:
    name: str
    from_frame: int
    to_frame: int
    direction: LoopDirection = LoopDirection.FORWARD
    repeat: int = 0
    color: Tuple[int, int, int] = (0, 0, 0)
    user_data: Optional[UserData] = None

    @property
    def frame_count(self) -> int:
        return self.to_frame - self.from_frame + 1


@dataclass
class SliceKey:
    frame_index: int
    x: int
    y: int
    width: int
    height: int
    center: Optional[Tuple[int, int, int, int]] = None
    pivot: Optional[Tuple[int, int]] = None


@dataclass
class Slice:
    name: str
    flags: int
    keys: List[SliceKey] = field(default_factory=list)
    user_data: Optional[UserData] = None

    def key_for_frame(self, frame_index: int) -> Optional[SliceKey]:
        """Return the key in effect at frame_index, or None before the first key."""
        current = None
        for key in self.keys:
            if key.frame_index <= frame_index:
                current = key
            else:
                break
        return current


@dataclass(eq=False)
class Tileset:
    """Shared bank of tiles; pixels are stacked vertically, one tile per tile_height rows"""
    id: int
    name: str
    flags: TilesetFlags
    tile_count: int
    tile_width: int
    tile_height: int
    base_index: int = 1
    pixels: Optional[np.ndarray] = None
    external_file_id: Optional[int] = None
    external_tileset_id: Optional[int] = None
    user_data: Optional[UserData] = None
    tile_user_data: Dict[int, UserData] = field(default_factory=dict)

    def tile(self, tile_id: int) -> np.ndarray:
        top = tile_id * self.tile_height
        return self.pixels[top:top + self.tile_height]


@dataclass
class ColorProfile:
    profile_type: int
    flags: int
    gamma: float = 1.0
    icc_data: Optional[bytes] = None


@dataclass
class ExternalFile:
    id: int
    file_type: int
    name: str


@dataclass
class Document:
    """Fully resolved sprite document"""
    header: Header
    palette: Palette
    layers: List[Layer] = field(default_factory=list)
    frames: List[Frame] = field(default_factory=list)
    tags: List[Tag] = field(default_factory=list)
    slices: List[Slice] = field(default_factory=list)
    tilesets: List[Tileset] = field(default_factory=list)
    color_profile: Optional[ColorProfile] = None
    external_files: List[ExternalFile] = field(default_factory=list)
    user_data: Optional[UserData] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def width(self) -> int:
        return self.header.width

    @property
    def height(self) -> int:
        return self.header.height

    @property
    def color_depth(self) -> ColorDepth:
        return self.header.color_depth

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    def layer_parent(self, index: int) -> Optional[int]:
        """Index of the group containing layer `index`, or None at the root."""
        level = self.layers[index].child_level
        for candidate in range(index - 1, -1, -1):
            if self.layers[candidate].child_level < level:
                return candidate
        return None

    def is_layer_visible(self, index: int) -> bool:
        """True when the layer and every enclosing group are visible."""
        current: Optional[int] = index
        while current is not None:
            if not self.layers[current].visible:
                return False
            current = self.layer_parent(current)
        return True

    def cel_at(self, frame_index: int, layer_index: int) -> Optional[Cel]:
        for cel in self.frames[frame_index].cels:
            if cel.layer_index == layer_index:
                return cel
        return None

    def tileset_by_id(self, tileset_id: int) -> Optional[Tileset]:
        for tileset in self.tilesets:
            if tileset.id == tileset_id:
                return tileset
        return None

    def slice_keys_for_frame(self, frame_index: int) -> Dict[str, SliceKey]:
        keys = {}
        for slice_ in self.slices:
            key = slice_.key_for_frame(frame_index)
            if key is not None:
                keys[slice_.name] = key
        return keys
