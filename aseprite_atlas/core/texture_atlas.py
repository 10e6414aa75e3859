"""
Texture Atlas packing
Arranges composited frames into one spritesheet with animation metadata
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..compression import crc32
from ..errors import PackingError
from ..renderer.compositor import CompositedFrame, CompositeOptions, composite_document
from .animation import FrameRegion, Rect, SpritesheetAnimation, build_animation
from .data_structures import Document, PackingMethod, SliceKey, Tag

log = logging.getLogger(__name__)

DEFAULT_MAX_DIMENSION = 16384


@dataclass
class SpritesheetOptions:
    """Packing options"""
    only_visible_layers: bool = True
    include_background: bool = False
    include_tilemaps: bool = True
    merge_duplicates: bool = True
    packing_method: PackingMethod = PackingMethod.SQUARE_PACKED
    # Empty pixels around the whole atlas
    border_padding: int = 0
    # Empty pixels between neighbouring frames
    spacing: int = 0
    # Empty pixels around each frame, inside its cell
    inner_padding: int = 0
    max_dimension: int = DEFAULT_MAX_DIMENSION

    def composite_options(self) -> CompositeOptions:
        return CompositeOptions(
            include_hidden=not self.only_visible_layers,
            include_background=self.include_background,
            include_tilemaps=self.include_tilemaps,
        )


@dataclass
class SheetFrame:
    """One physical frame placement in the atlas"""
    rect: Rect
    source_frames: List[int]
    duration: int


@dataclass
class Spritesheet:
    width: int
    height: int
    frames: List[SheetFrame]
    frame_regions: List[FrameRegion]
    animations: List[SpritesheetAnimation]
    pixels: np.ndarray
    # Source frame index -> index into frames
    frame_map: Dict[int, int] = field(default_factory=dict)

    def region_for(self, frame_index: int) -> Rect:
        """Atlas rectangle holding the given source frame"""
        return self.frame_regions[frame_index].rect

    def animation(self, name: str) -> Optional[SpritesheetAnimation]:
        for animation in self.animations:
            if animation.name == name:
                return animation
        return None

    def slices_for_frame(self, document: Document, frame_index: int) -> Dict[str, SliceKey]:
        """Slice keys in effect at a frame, moved into atlas coordinates."""
        x, y, _, _ = self.region_for(frame_index)
        return {
            name: replace(key, x=key.x + x, y=key.y + y)
            for name, key in document.slice_keys_for_frame(frame_index).items()
        }

    def to_bytes(self) -> bytes:
        """Row-major RGBA bytes"""
        return np.ascontiguousarray(self.pixels, dtype=np.uint8).tobytes()

    def save(self, sink: Callable[[int, int, bytes], object]):
        """Hand the atlas to an image sink taking (width, height, rgba bytes)"""
        return sink(self.width, self.height, self.to_bytes())


# ---------------------------------------------------------------------- #
# Layout strategies
# ---------------------------------------------------------------------- #
def _square_grid(count: int) -> Tuple[int, int]:
    columns = int(math.ceil(math.sqrt(count)))
    rows = int(math.ceil(count / columns))
    return columns, rows


def _horizontal_grid(count: int) -> Tuple[int, int]:
    return count, 1


def _vertical_grid(count: int) -> Tuple[int, int]:
    return 1, count


LAYOUTS: Dict[PackingMethod, Callable[[int], Tuple[int, int]]] = {
    PackingMethod.SQUARE_PACKED: _square_grid,
    PackingMethod.HORIZONTAL_STRIP: _horizontal_grid,
    PackingMethod.VERTICAL_STRIP: _vertical_grid,
}


def grid_for(method: PackingMethod, count: int) -> Tuple[int, int]:
    """(columns, rows) a packing method uses for count frames"""
    return LAYOUTS[PackingMethod(method)](count)


def atlas_extent(cells: int, cell_size: int, options: SpritesheetOptions) -> int:
    return (
        cells * cell_size
        + 2 * options.border_padding
        + options.spacing * (cells - 1)
        + 2 * options.inner_padding * cells
    )


def cell_origin(cell: int, cell_size: int, options: SpritesheetOptions) -> int:
    return (
        cell * cell_size
        + options.border_padding
        + options.spacing * cell
        + options.inner_padding * (2 * cell + 1)
    )


# ---------------------------------------------------------------------- #
# Packing
# ---------------------------------------------------------------------- #
def _find_duplicates(frames: Sequence[CompositedFrame]) -> List[int]:
    """For each frame, the index of the first frame with identical pixels."""
    buckets: Dict[int, List[int]] = {}
    first_of: List[int] = []
    for i, frame in enumerate(frames):
        data = np.ascontiguousarray(frame.pixels).tobytes()
        checksum = crc32(data)
        match = i
        for candidate in buckets.get(checksum, []):
            if np.array_equal(frames[candidate].pixels, frame.pixels):
                match = candidate
                break
        if match == i:
            buckets.setdefault(checksum, []).append(i)
        first_of.append(match)
    return first_of


def pack_frames(frames: Sequence[CompositedFrame], tags: Sequence[Tag] = (),
                options: Optional[SpritesheetOptions] = None) -> Spritesheet:
    """
    Pack composited frames into one atlas

    Args:
        frames: Flattened frames in document order
        tags: Tags to turn into animations
        options: Layout options; defaults to SpritesheetOptions()

    Returns:
        The packed Spritesheet

    Raises:
        PackingError: for no frames, mismatched frame sizes, negative padding,
            tags reaching past the given frames, or an atlas larger than
            options.max_dimension
    """
    options = options or SpritesheetOptions()
    if not frames:
        raise PackingError("No frames to pack")
    if min(options.border_padding, options.spacing, options.inner_padding) < 0:
        raise PackingError("Padding values must not be negative")

    frame_h, frame_w = frames[0].pixels.shape[:2]
    for frame in frames:
        if frame.pixels.shape != (frame_h, frame_w, 4):
            raise PackingError(
                f"Frame {frame.index} is {frame.pixels.shape[1]}x{frame.pixels.shape[0]}, "
                f"expected {frame_w}x{frame_h}"
            )
    for tag in tags:
        if not 0 <= tag.from_frame <= tag.to_frame < len(frames):
            raise PackingError(
                f"Tag '{tag.name}' covers frames {tag.from_frame}..{tag.to_frame} "
                f"but only {len(frames)} frames were given"
            )

    if options.merge_duplicates:
        first_of = _find_duplicates(frames)
    else:
        first_of = list(range(len(frames)))

    unique = [i for i, first in enumerate(first_of) if first == i]
    columns, rows = grid_for(options.packing_method, len(unique))
    width = atlas_extent(columns, frame_w, options)
    height = atlas_extent(rows, frame_h, options)
    if width > options.max_dimension or height > options.max_dimension:
        raise PackingError(
            f"Atlas would be {width}x{height}, above the {options.max_dimension} pixel limit"
        )
    log.debug(
        "Packing %d frames (%d unique) into %dx%d as %d columns x %d rows",
        len(frames), len(unique), width, height, columns, rows,
    )

    atlas = np.zeros((height, width, 4), dtype=np.uint8)
    sheet_frames: List[SheetFrame] = []
    frame_map: Dict[int, int] = {}
    for slot, source in enumerate(unique):
        column, row = slot % columns, slot // columns
        x = cell_origin(column, frame_w, options)
        y = cell_origin(row, frame_h, options)
        atlas[y:y + frame_h, x:x + frame_w] = frames[source].pixels
        sheet_frames.append(SheetFrame((x, y, frame_w, frame_h), [], frames[source].duration))
        frame_map[source] = slot

    regions: List[FrameRegion] = []
    for i, first in enumerate(first_of):
        slot = frame_map[first]
        frame_map[i] = slot
        sheet_frames[slot].source_frames.append(frames[i].index)
        regions.append(FrameRegion(frames[i].index, sheet_frames[slot].rect, frames[i].duration))

    animations = [build_animation(tag, regions) for tag in tags]
    return Spritesheet(width, height, sheet_frames, regions, animations, atlas, frame_map)


def build_spritesheet(document: Document, options: Optional[SpritesheetOptions] = None,
                      workers: Optional[int] = None) -> Spritesheet:
    """Composite every frame of document and pack the results."""
    options = options or SpritesheetOptions()
    frames = composite_document(document, options.composite_options(), workers)
    return pack_frames(frames, document.tags, options)
