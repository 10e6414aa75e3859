"""
Tilemap Export
Tileset textures and per-frame tile grids for engines that draw tiles themselves
"""

from dataclasses import dataclass, field
from typing import Callable, List

import numpy as np

from ..errors import UnresolvedLinkError
from ..renderer.compositor import native_to_rgba
from .data_structures import Document, TilemapContent


@dataclass
class TilemapTile:
    tile_id: int
    flip_x: bool = False
    flip_y: bool = False
    flip_diagonal: bool = False


@dataclass
class TilemapLayerData:
    """Tile grid of one tilemap layer in one frame"""
    name: str
    layer_index: int
    tileset_id: int
    columns: int
    rows: int
    # Cel position on the canvas, in pixels
    x: int
    y: int
    # Row-major, columns * rows entries
    tiles: List[TilemapTile] = field(default_factory=list)

    def tile_at(self, column: int, row: int) -> TilemapTile:
        return self.tiles[row * self.columns + column]


@dataclass
class TilemapFrame:
    frame_index: int
    duration: int
    layers: List[TilemapLayerData] = field(default_factory=list)


@dataclass
class AnimatedTilemap:
    # Tilesets referenced by any exported layer, in first-use order
    tileset_ids: List[int]
    frames: List[TilemapFrame] = field(default_factory=list)

    @property
    def duration(self) -> int:
        return sum(frame.duration for frame in self.frames)


def tileset_image(document: Document, tileset_id: int) -> np.ndarray:
    """
    Resolve a tileset's tiles to true color

    Tiles stay stacked vertically, one tile_height band per tile, so tile n
    occupies rows n * tile_height up to (n + 1) * tile_height.

    Args:
        document: Document owning the tileset and palette
        tileset_id: Tileset id as stored in the file

    Returns:
        uint8 array (tile_height * tile_count, tile_width, 4)

    Raises:
        UnresolvedLinkError: when no such tileset exists or its pixels live
            in an external file
    """
    tileset = document.tileset_by_id(tileset_id)
    if tileset is None:
        raise UnresolvedLinkError(f"Document has no tileset {tileset_id}")
    if tileset.pixels is None:
        raise UnresolvedLinkError(f"Tileset {tileset_id} has no embedded pixels")
    return np.ascontiguousarray(native_to_rgba(document, tileset.pixels), dtype=np.uint8)


def save_tileset(document: Document, tileset_id: int, sink: Callable[[int, int, bytes], object]):
    """Hand a tileset texture to an image sink taking (width, height, rgba bytes)"""
    image = tileset_image(document, tileset_id)
    return sink(image.shape[1], image.shape[0], image.tobytes())


def _layer_tiles(content: TilemapContent) -> List[TilemapTile]:
    ids = content.tile_ids().ravel()
    x_flips = content.x_flips().ravel()
    y_flips = content.y_flips().ravel()
    diagonal = content.diagonal_flips().ravel()
    return [
        TilemapTile(int(ids[i]), bool(x_flips[i]), bool(y_flips[i]), bool(diagonal[i]))
        for i in range(ids.size)
    ]


def extract_tilemap(document: Document, frame_index: int, only_visible_layers: bool = True) -> TilemapFrame:
    """
    Collect the tile grids of every tilemap cel in a frame

    Args:
        document: Resolved document
        frame_index: Frame to read
        only_visible_layers: Skip layers hidden directly or through a group

    Returns:
        TilemapFrame with one entry per tilemap layer that has a cel, in layer order
    """
    frame = document.frames[frame_index]
    result = TilemapFrame(frame.index, frame.duration)
    for cel in sorted(frame.cels, key=lambda c: c.layer_index):
        if not cel.is_tilemap:
            continue
        if only_visible_layers and not document.is_layer_visible(cel.layer_index):
            continue
        layer = document.layers[cel.layer_index]
        content: TilemapContent = cel.content
        result.layers.append(TilemapLayerData(
            name=layer.name,
            layer_index=layer.index,
            tileset_id=layer.tileset_index,
            columns=content.width,
            rows=content.height,
            x=cel.x,
            y=cel.y,
            tiles=_layer_tiles(content),
        ))
    return result


def extract_animated_tilemap(document: Document, only_visible_layers: bool = True) -> AnimatedTilemap:
    """Tile grids for every frame, with the tilesets they draw from."""
    animated = AnimatedTilemap(tileset_ids=[])
    for frame in document.frames:
        tilemap_frame = extract_tilemap(document, frame.index, only_visible_layers)
        for layer in tilemap_frame.layers:
            if layer.tileset_id not in animated.tileset_ids:
                animated.tileset_ids.append(layer.tileset_id)
        animated.frames.append(tilemap_frame)
    return animated
