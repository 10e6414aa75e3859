"""
Pixel Compositor
Flattens the cels of a frame into one RGBA image of canvas size
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from ..core.data_structures import Cel, ColorDepth, Document, ImageContent, TilemapContent
from ..errors import UnresolvedLinkError
from .blend_funcs import blend
from .blend_math import mul_un8

log = logging.getLogger(__name__)


@dataclass
class CompositeOptions:
    """Which layers take part in a composite"""
    include_hidden: bool = False
    include_background: bool = False
    include_tilemaps: bool = True


@dataclass
class CompositedFrame:
    """One flattened frame, as handed to the packer"""
    index: int
    duration: int
    pixels: np.ndarray

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]


def native_to_rgba(document: Document, pixels: np.ndarray) -> np.ndarray:
    """
    Resolve native-depth pixels to true color

    Args:
        document: Document owning the palette
        pixels: uint8 array (h, w, bytes per pixel)

    Returns:
        uint8 array (h, w, 4)
    """
    depth = document.color_depth
    if depth == ColorDepth.RGBA:
        return pixels
    if depth == ColorDepth.GRAYSCALE:
        value = pixels[..., 0]
        return np.stack([value, value, value, pixels[..., 1]], axis=-1)
    table = document.palette.lookup_table(indexed=True)
    return table[pixels[..., 0]]


def expand_tilemap(document: Document, cel: Cel) -> np.ndarray:
    """Render a tilemap cel's tiles into a native-depth pixel array."""
    content: TilemapContent = cel.content
    layer = document.layers[cel.layer_index]
    tileset = document.tileset_by_id(layer.tileset_index)
    if tileset is None or tileset.pixels is None:
        raise UnresolvedLinkError(
            f"Tileset {layer.tileset_index} is not available",
            frame_index=cel.frame_index, layer_index=cel.layer_index,
        )
    tw, th = tileset.tile_width, tileset.tile_height
    bpp = tileset.pixels.shape[2]
    out = np.zeros((content.height * th, content.width * tw, bpp), dtype=np.uint8)

    ids = content.tile_ids()
    x_flips = content.x_flips()
    y_flips = content.y_flips()
    diagonal = content.diagonal_flips()
    for row in range(content.height):
        for col in range(content.width):
            tile = tileset.tile(int(ids[row, col]))
            if diagonal[row, col]:
                tile = tile.transpose(1, 0, 2)
            if x_flips[row, col]:
                tile = tile[:, ::-1]
            if y_flips[row, col]:
                tile = tile[::-1, :]
            # Non-square tiles cannot be transposed into their cell
            h, w = min(th, tile.shape[0]), min(tw, tile.shape[1])
            out[row * th:row * th + h, col * tw:col * tw + w] = tile[:h, :w]
    return out


def cel_to_rgba(document: Document, cel: Cel) -> np.ndarray:
    """Convert a cel's content to a uint8 (h, w, 4) RGBA array."""
    if isinstance(cel.content, ImageContent):
        return native_to_rgba(document, cel.content.pixels)
    return native_to_rgba(document, expand_tilemap(document, cel))


def _layer_eligible(document: Document, layer_index: int, options: CompositeOptions) -> bool:
    layer = document.layers[layer_index]
    if layer.is_group or layer.is_reference:
        return False
    if not options.include_hidden and not document.is_layer_visible(layer_index):
        return False
    if not options.include_background and layer.is_background:
        return False
    if not options.include_tilemaps and layer.is_tilemap:
        return False
    return True


def composite_frame(document: Document, frame_index: int,
                    options: Optional[CompositeOptions] = None) -> np.ndarray:
    """
    Flatten one frame

    Args:
        document: Resolved document
        frame_index: Frame to flatten
        options: Layer eligibility; defaults to CompositeOptions()

    Returns:
        uint8 array (height, width, 4), row-major RGBA
    """
    options = options or CompositeOptions()
    width, height = document.width, document.height
    canvas = np.zeros((height, width, 4), dtype=np.int32)

    frame = document.frames[frame_index]
    ordered = sorted(
        frame.cels,
        key=lambda cel: (cel.layer_index + cel.z_index, cel.z_index),
    )
    for cel in ordered:
        if not _layer_eligible(document, cel.layer_index, options):
            continue
        layer = document.layers[cel.layer_index]
        source = cel_to_rgba(document, cel)

        # Clip the cel rectangle against the canvas
        left, top = max(cel.x, 0), max(cel.y, 0)
        right = min(cel.x + source.shape[1], width)
        bottom = min(cel.y + source.shape[0], height)
        if left >= right or top >= bottom:
            continue
        src = source[top - cel.y:bottom - cel.y, left - cel.x:right - cel.x]
        opacity = mul_un8(cel.opacity, layer.opacity)
        canvas[top:bottom, left:right] = blend(
            layer.blend_mode, canvas[top:bottom, left:right], src, opacity
        )

    return canvas.astype(np.uint8)


def composite_frames(document: Document, options: Optional[CompositeOptions] = None,
                     workers: Optional[int] = None) -> List[np.ndarray]:
    """
    Flatten every frame of the document

    Frames only read the shared document, so they can be composited on
    worker threads; each one owns its output buffer.
    """
    indices = range(document.frame_count)
    if not workers or workers <= 1 or document.frame_count <= 1:
        return [composite_frame(document, i, options) for i in indices]
    log.debug("Compositing %d frames on %d threads", document.frame_count, workers)
    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(lambda i: composite_frame(document, i, options), indices))


def composite_document(document: Document, options: Optional[CompositeOptions] = None,
                       workers: Optional[int] = None) -> List[CompositedFrame]:
    """Flatten every frame and pair it with its index and duration."""
    images = composite_frames(document, options, workers)
    return [
        CompositedFrame(frame.index, frame.duration, pixels)
        for frame, pixels in zip(document.frames, images)
    ]
