"""
Document Model Builder
Resolves raw chunk records into a coherent Document
"""

import logging
from typing import Dict, List, Optional

import numpy as np

from ..errors import MalformedDocumentError, UnresolvedLinkError
from ..io.chunks import (
    CelChunk,
    CelExtraChunk,
    ColorProfileChunk,
    ExternalFilesChunk,
    LayerChunk,
    OldPaletteChunk,
    PaletteChunk,
    SliceChunk,
    TagsChunk,
    TilesetChunk,
    UnknownChunk,
    UserDataChunk,
    CEL_LINKED,
)
from ..io.reader import RawDocument
from .data_structures import (
    BlendMode,
    Cel,
    ColorDepth,
    ColorProfile,
    Document,
    ExternalFile,
    Frame,
    ImageContent,
    Layer,
    LayerFlags,
    LayerType,
    LoopDirection,
    Palette,
    Slice,
    SliceKey,
    Tag,
    TilemapContent,
    Tileset,
    TilesetFlags,
    UserData,
)

log = logging.getLogger(__name__)

_TILE_DTYPES = {8: np.uint8, 16: np.dtype('<u2'), 32: np.dtype('<u4')}


class DocumentBuilder:
    """
    Builds a Document from the reader's raw frames

    User data chunks attach to whatever ownable entity came last. That target
    is a single slot of parser state, reset at every frame boundary.
    """

    def __init__(self, raw: RawDocument):
        self.raw = raw
        header = raw.header
        self.header = header
        self.bpp = header.color_depth.bytes_per_pixel
        self.document = Document(header=header, palette=Palette())
        self.document.palette.resize(header.color_count)

        self._new_palette_seen = False
        self._palette_seen = False
        # Last entity that can own user data
        self._user_data_target = None
        self._pending_tags: List[Tag] = []
        # (tileset, next tile) while per-tile user data is being read
        self._pending_tiles = None
        self._last_cel: Optional[Cel] = None
        self._frame_index = 0
        self._chunk_offset = 0
        self._handlers = self._handler_table()

    def build(self) -> Document:
        self._resolve_transparency()
        for raw_frame in self.raw.frames:
            self._frame_index = raw_frame.index
            self.document.frames.append(Frame(raw_frame.index, raw_frame.duration))
            self._user_data_target = None
            self._pending_tags = []
            self._pending_tiles = None
            self._last_cel = None
            for chunk_type, offset, record in raw_frame.chunks:
                self._chunk_offset = offset
                self._apply(chunk_type, record)

        self._check_palette_size()
        self._validate_tags()
        self._resolve_tilesets()
        return self.document

    # ------------------------------------------------------------------ #
    # Chunk dispatch
    # ------------------------------------------------------------------ #
    def _apply(self, chunk_type: int, record):
        if isinstance(record, UnknownChunk):
            return
        if isinstance(record, UserDataChunk):
            self._attach_user_data(record)
            return

        self._pending_tags = []
        self._pending_tiles = None
        handler = self._handlers.get(type(record))
        if handler is None:
            raise TypeError(f"No handler for chunk record {type(record).__name__}")
        handler(chunk_type, record)

    def _handler_table(self):
        return {
            OldPaletteChunk: self._apply_old_palette,
            PaletteChunk: self._apply_palette,
            LayerChunk: self._apply_layer,
            CelChunk: self._apply_cel,
            CelExtraChunk: self._apply_cel_extra,
            ColorProfileChunk: self._apply_color_profile,
            ExternalFilesChunk: self._apply_external_files,
            TagsChunk: self._apply_tags,
            SliceChunk: self._apply_slice,
            TilesetChunk: self._apply_tileset,
        }

    def _malformed(self, message: str, chunk_type: Optional[int] = None, **kwargs) -> MalformedDocumentError:
        return MalformedDocumentError(
            message,
            offset=self._chunk_offset,
            chunk_type=chunk_type,
            frame_index=self._frame_index,
            **kwargs,
        )

    # ------------------------------------------------------------------ #
    # Palette
    # ------------------------------------------------------------------ #
    def _resolve_transparency(self):
        palette = self.document.palette
        if self.header.color_depth == ColorDepth.INDEXED:
            palette.transparent_index = self.header.transparent_index
        else:
            palette.transparent_index = 0
            if self.header.transparent_index != 0:
                self._warn(
                    f"Transparent index {self.header.transparent_index} ignored for "
                    f"{self.header.color_depth.name} document"
                )

    def _apply_old_palette(self, chunk_type, record: OldPaletteChunk):
        if self._new_palette_seen:
            # Written alongside the new palette chunk for old readers
            return
        for index, color in record.entries:
            self.document.palette.set_color(index, color)
        self._palette_seen = True

    def _apply_palette(self, chunk_type, record: PaletteChunk):
        palette = self.document.palette
        if record.new_size:
            palette.resize(record.new_size)
        for offset, entry in enumerate(record.entries):
            palette.set_color(record.first + offset, entry.color, entry.name)
        self._new_palette_seen = True
        self._palette_seen = True

    def _check_palette_size(self):
        if self.header.color_depth == ColorDepth.INDEXED and len(self.document.palette) != self.header.color_count:
            self._warn(
                f"Palette holds {len(self.document.palette)} colors but the header declares "
                f"{self.header.color_count}"
            )

    # ------------------------------------------------------------------ #
    # Layers and cels
    # ------------------------------------------------------------------ #
    def _apply_layer(self, chunk_type, record: LayerChunk):
        opacity = record.opacity if self.header.layer_opacity_valid else 255
        layer = Layer(
            index=len(self.document.layers),
            name=record.name,
            flags=LayerFlags(record.flags),
            layer_type=LayerType(record.layer_type),
            child_level=record.child_level,
            blend_mode=BlendMode(record.blend_mode),
            opacity=opacity,
            tileset_index=record.tileset_index,
            default_width=record.default_width,
            default_height=record.default_height,
        )
        self.document.layers.append(layer)
        self._user_data_target = layer

    def _apply_cel(self, chunk_type, record: CelChunk):
        layers = self.document.layers
        if record.layer_index >= len(layers):
            raise self._malformed(
                "Cel references a layer that does not exist",
                chunk_type, expected=f"< {len(layers)}", actual=record.layer_index,
            )
        frame = self.document.frames[self._frame_index]
        if self.document.cel_at(self._frame_index, record.layer_index) is not None:
            raise self._malformed(
                f"Frame already has a cel on layer {record.layer_index}",
                chunk_type, expected="one cel per layer", actual=record.layer_index,
            )

        if record.cel_type == CEL_LINKED:
            cel = self._resolve_link(chunk_type, record)
        else:
            cel = Cel(
                frame_index=self._frame_index,
                layer_index=record.layer_index,
                x=record.x,
                y=record.y,
                opacity=record.opacity,
                content=self._build_content(chunk_type, record),
                z_index=record.z_index,
            )
        frame.cels.append(cel)
        self._last_cel = cel
        self._user_data_target = cel

    def _build_content(self, chunk_type, record: CelChunk):
        if record.cel_type in (0, 2):
            expected = record.width * record.height * self.bpp
            if record.data is None or len(record.data) != expected:
                raise self._malformed(
                    "Cel pixel data does not match its dimensions",
                    chunk_type, expected=expected, actual=0 if record.data is None else len(record.data),
                )
            pixels = np.frombuffer(record.data, dtype=np.uint8).reshape(record.height, record.width, self.bpp)
            return ImageContent(record.width, record.height, pixels)

        tiles = np.frombuffer(record.data, dtype=_TILE_DTYPES[record.bits_per_tile])
        tiles = tiles.astype(np.uint32).reshape(record.height, record.width)
        return TilemapContent(
            width=record.width,
            height=record.height,
            tiles=tiles,
            bits_per_tile=record.bits_per_tile,
            tile_id_mask=record.tile_id_mask,
            x_flip_mask=record.x_flip_mask,
            y_flip_mask=record.y_flip_mask,
            diagonal_flip_mask=record.diagonal_flip_mask,
        )

    def _resolve_link(self, chunk_type, record: CelChunk) -> Cel:
        target_frame = record.linked_frame
        if target_frame >= self._frame_index:
            raise self._malformed(
                "Linked cel must reference an earlier frame",
                chunk_type, expected=f"< {self._frame_index}", actual=target_frame,
            )
        target = self.document.cel_at(target_frame, record.layer_index)
        if target is None:
            raise UnresolvedLinkError(
                f"Linked cel points at frame {target_frame}, which has no cel on this layer",
                frame_index=self._frame_index,
                layer_index=record.layer_index,
            )
        # Aseprite shares the whole cel data between links, position and opacity included
        return Cel(
            frame_index=self._frame_index,
            layer_index=record.layer_index,
            x=target.x,
            y=target.y,
            opacity=target.opacity,
            content=target.content,
            z_index=record.z_index,
            linked_frame=target.linked_frame if target.linked_frame is not None else target_frame,
        )

    def _apply_cel_extra(self, chunk_type, record: CelExtraChunk):
        if self._last_cel is None:
            self._warn(f"Cel extra chunk in frame {self._frame_index} has no cel to attach to")
            return
        self._last_cel.precise_bounds = (record.x, record.y, record.width, record.height)

    # ------------------------------------------------------------------ #
    # Sprite-level metadata
    # ------------------------------------------------------------------ #
    def _apply_color_profile(self, chunk_type, record: ColorProfileChunk):
        self.document.color_profile = ColorProfile(
            record.profile_type, record.flags, record.gamma, record.icc_data
        )

    def _apply_external_files(self, chunk_type, record: ExternalFilesChunk):
        for file_id, file_type, name in record.entries:
            self.document.external_files.append(ExternalFile(file_id, file_type, name))

    def _apply_tags(self, chunk_type, record: TagsChunk):
        tags = [
            Tag(
                name=raw.name,
                from_frame=raw.from_frame,
                to_frame=raw.to_frame,
                direction=LoopDirection(raw.direction),
                repeat=raw.repeat,
                color=raw.color,
            )
            for raw in record.tags
        ]
        self.document.tags.extend(tags)
        self._user_data_target = None
        self._pending_tags = tags

    def _apply_slice(self, chunk_type, record: SliceChunk):
        slice_ = Slice(name=record.name, flags=record.flags)
        for key in record.keys:
            slice_.keys.append(SliceKey(key.frame_index, key.x, key.y, key.width, key.height, key.center, key.pivot))
        slice_.keys.sort(key=lambda k: k.frame_index)
        self.document.slices.append(slice_)
        self._user_data_target = slice_

    def _apply_tileset(self, chunk_type, record: TilesetChunk):
        pixels = None
        if record.pixels is not None:
            pixels = np.frombuffer(record.pixels, dtype=np.uint8).reshape(
                record.tile_height * record.tile_count, record.tile_width, self.bpp
            )
        tileset = Tileset(
            id=record.id,
            name=record.name,
            flags=TilesetFlags(record.flags),
            tile_count=record.tile_count,
            tile_width=record.tile_width,
            tile_height=record.tile_height,
            base_index=record.base_index,
            pixels=pixels,
            external_file_id=record.external_file_id,
            external_tileset_id=record.external_tileset_id,
        )
        self.document.tilesets.append(tileset)
        self._user_data_target = tileset

    # ------------------------------------------------------------------ #
    # User data
    # ------------------------------------------------------------------ #
    def _attach_user_data(self, record: UserDataChunk):
        user_data = UserData(record.text, record.color)
        if self._pending_tags:
            tag = self._pending_tags.pop(0)
            tag.user_data = user_data
            return
        if self._pending_tiles is not None:
            tileset, tile = self._pending_tiles
            if tile < tileset.tile_count:
                tileset.tile_user_data[tile] = user_data
                self._pending_tiles = (tileset, tile + 1)
                return
            self._pending_tiles = None
        target = self._user_data_target
        if target is None:
            if self._palette_seen and self.document.user_data is None:
                self.document.user_data = user_data
                return
            self._warn(f"User data in frame {self._frame_index} has no owner")
            return
        target.user_data = user_data
        self._user_data_target = None
        if isinstance(target, Tileset):
            # Aseprite follows the tileset's own user data with one chunk per tile
            self._pending_tiles = (target, 0)

    # ------------------------------------------------------------------ #
    # Final validation
    # ------------------------------------------------------------------ #
    def _validate_tags(self):
        frame_count = len(self.document.frames)
        for tag in self.document.tags:
            if not (0 <= tag.from_frame <= tag.to_frame < frame_count):
                raise MalformedDocumentError(
                    f"Tag '{tag.name}' covers frames outside the document",
                    expected=f"0 <= from <= to < {frame_count}",
                    actual=f"{tag.from_frame}..{tag.to_frame}",
                )

    def _resolve_tilesets(self):
        tilesets: Dict[int, Tileset] = {t.id: t for t in self.document.tilesets}
        for layer in self.document.layers:
            if layer.is_tilemap and layer.tileset_index not in tilesets:
                raise UnresolvedLinkError(
                    f"Layer '{layer.name}' references missing tileset {layer.tileset_index}",
                    layer_index=layer.index,
                )
        for frame in self.document.frames:
            for cel in frame.cels:
                if not cel.is_tilemap or cel.is_linked:
                    continue
                layer = self.document.layers[cel.layer_index]
                if not layer.is_tilemap:
                    raise MalformedDocumentError(
                        f"Tilemap cel placed on non-tilemap layer '{layer.name}'",
                        frame_index=frame.index,
                    )
                tileset = tilesets[layer.tileset_index]
                if tileset.pixels is None:
                    raise UnresolvedLinkError(
                        f"Tileset {tileset.id} has no embedded pixels",
                        frame_index=frame.index,
                        layer_index=cel.layer_index,
                    )
                if cel.content.tiles.size and int(cel.content.tile_ids().max()) >= tileset.tile_count:
                    raise UnresolvedLinkError(
                        f"Tilemap cel references a tile outside tileset {tileset.id}",
                        frame_index=frame.index,
                        layer_index=cel.layer_index,
                    )

    def _warn(self, message: str):
        log.warning(message)
        self.document.warnings.append(message)


def build_document(raw: RawDocument) -> Document:
    """Resolve a RawDocument into a Document."""
    return DocumentBuilder(raw).build()
