"""
Chunk Decoders
Raw chunk records and the per-type decoders that read them from a bounded Buffer
"""

import struct
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from ..compression import deflate
from ..core.data_structures import ColorDepth, LayerType, LoopDirection, TilesetFlags
from ..errors import MalformedDocumentError
from .buffer import Buffer

CHUNK_OLD_PALETTE_256 = 0x0004
CHUNK_OLD_PALETTE_64 = 0x0011
CHUNK_LAYER = 0x2004
CHUNK_CEL = 0x2005
CHUNK_CEL_EXTRA = 0x2006
CHUNK_COLOR_PROFILE = 0x2007
CHUNK_EXTERNAL_FILES = 0x2008
CHUNK_MASK = 0x2016
CHUNK_PATH = 0x2017
CHUNK_TAGS = 0x2018
CHUNK_PALETTE = 0x2019
CHUNK_USER_DATA = 0x2020
CHUNK_SLICE = 0x2022
CHUNK_TILESET = 0x2023

CEL_RAW_IMAGE = 0
CEL_LINKED = 1
CEL_COMPRESSED_IMAGE = 2
CEL_COMPRESSED_TILEMAP = 3

USER_DATA_HAS_TEXT = 1
USER_DATA_HAS_COLOR = 2

SLICE_HAS_NINE_PATCH = 1
SLICE_HAS_PIVOT = 2

PALETTE_ENTRY_HAS_NAME = 1

COLOR_PROFILE_ICC = 2

_LAYER = struct.Struct("<HHHHHHB3x")
_CEL = struct.Struct("<HhhBHh5x")
_TILEMAP = struct.Struct("<HHHIIII10x")
_TAG = struct.Struct("<HHBH6x3Bx")
_PALETTE_HEADER = struct.Struct("<III8x")
_PALETTE_ENTRY = struct.Struct("<H4B")
_SLICE_HEADER = struct.Struct("<III")
_SLICE_KEY = struct.Struct("<IiiII")
_TILESET = struct.Struct("<IIIHHh14x")


@dataclass
class OldPaletteChunk:
    """Palette packets from the pre-1.2 format, already expanded to 8-bit channels"""
    entries: List[Tuple[int, Tuple[int, int, int, int]]]


@dataclass
class PaletteEntry:
    color: Tuple[int, int, int, int]
    name: Optional[str] = None


@dataclass
class PaletteChunk:
    new_size: int
    first: int
    last: int
    entries: List[PaletteEntry]


@dataclass
class LayerChunk:
    flags: int
    layer_type: int
    child_level: int
    default_width: int
    default_height: int
    blend_mode: int
    opacity: int
    name: str
    tileset_index: Optional[int] = None


@dataclass
class CelChunk:
    layer_index: int
    x: int
    y: int
    opacity: int
    cel_type: int
    z_index: int
    width: int = 0
    height: int = 0
    # Native pixels for image cels, tile words for tilemap cels
    data: Optional[bytes] = None
    linked_frame: Optional[int] = None
    bits_per_tile: int = 32
    tile_id_mask: int = 0x1FFFFFFF
    x_flip_mask: int = 0x20000000
    y_flip_mask: int = 0x40000000
    diagonal_flip_mask: int = 0x80000000


@dataclass
class CelExtraChunk:
    flags: int
    x: float
    y: float
    width: float
    height: float


@dataclass
class ColorProfileChunk:
    profile_type: int
    flags: int
    gamma: float
    icc_data: Optional[bytes] = None


@dataclass
class ExternalFilesChunk:
    entries: List[Tuple[int, int, str]]


@dataclass
class TagRecord:
    from_frame: int
    to_frame: int
    direction: int
    repeat: int
    color: Tuple[int, int, int]
    name: str


@dataclass
class TagsChunk:
    tags: List[TagRecord]


@dataclass
class UserDataChunk:
    text: Optional[str] = None
    color: Optional[Tuple[int, int, int, int]] = None


@dataclass
class SliceKeyRecord:
    frame_index: int
    x: int
    y: int
    width: int
    height: int
    center: Optional[Tuple[int, int, int, int]] = None
    pivot: Optional[Tuple[int, int]] = None


@dataclass
class SliceChunk:
    flags: int
    name: str
    keys: List[SliceKeyRecord] = field(default_factory=list)


@dataclass
class TilesetChunk:
    id: int
    flags: int
    tile_count: int
    tile_width: int
    tile_height: int
    base_index: int
    name: str
    external_file_id: Optional[int] = None
    external_tileset_id: Optional[int] = None
    pixels: Optional[bytes] = None


@dataclass
class UnknownChunk:
    chunk_type: int
    size: int


@dataclass
class DecodeContext:
    """What chunk decoders need to know about the document being read"""
    color_depth: ColorDepth
    max_decompressed_size: Optional[int] = None


def _inflate(payload: bytes, context: DecodeContext) -> bytes:
    return deflate(payload, max_output=context.max_decompressed_size)


def _expand_6bit(value: int) -> int:
    return (value << 2) | (value >> 4)


def decode_old_palette(buf: Buffer, context: DecodeContext, six_bit: bool = False) -> OldPaletteChunk:
    packets = buf.read_u16()
    entries = []
    index = 0
    for _ in range(packets):
        index += buf.read_u8()
        count = buf.read_u8() or 256
        for _ in range(count):
            r, g, b = buf.read_u8(), buf.read_u8(), buf.read_u8()
            if six_bit:
                r, g, b = _expand_6bit(r), _expand_6bit(g), _expand_6bit(b)
            entries.append((index, (r, g, b, 255)))
            index += 1
    return OldPaletteChunk(entries)


def decode_palette(buf: Buffer, context: DecodeContext) -> PaletteChunk:
    new_size, first, last = buf.unpack(_PALETTE_HEADER, "palette header")
    if last < first:
        raise MalformedDocumentError(
            "Palette range ends before it starts",
            offset=buf.absolute(), expected=first, actual=last,
        )
    entries = []
    for _ in range(first, last + 1):
        flags, r, g, b, a = buf.unpack(_PALETTE_ENTRY, "palette entry")
        name = buf.read_string() if flags & PALETTE_ENTRY_HAS_NAME else None
        entries.append(PaletteEntry((r, g, b, a), name))
    return PaletteChunk(new_size, first, last, entries)


def decode_layer(buf: Buffer, context: DecodeContext) -> LayerChunk:
    flags, layer_type, child_level, width, height, blend_mode, opacity = buf.unpack(_LAYER, "layer")
    name = buf.read_string()
    tileset_index = None
    if layer_type == LayerType.TILEMAP:
        tileset_index = buf.read_u32()
    elif layer_type not in (LayerType.NORMAL, LayerType.GROUP):
        raise MalformedDocumentError(
            f"Unknown layer type {layer_type}", offset=buf.absolute(), actual=layer_type
        )
    if blend_mode > 18:
        raise MalformedDocumentError(
            f"Unknown blend mode {blend_mode}", offset=buf.absolute(), actual=blend_mode
        )
    return LayerChunk(flags, layer_type, child_level, width, height, blend_mode, opacity, name, tileset_index)


def decode_cel(buf: Buffer, context: DecodeContext) -> CelChunk:
    layer_index, x, y, opacity, cel_type, z_index = buf.unpack(_CEL, "cel header")
    cel = CelChunk(layer_index, x, y, opacity, cel_type, z_index)
    bpp = context.color_depth.bytes_per_pixel

    if cel_type == CEL_LINKED:
        cel.linked_frame = buf.read_u16()
        return cel

    if cel_type in (CEL_RAW_IMAGE, CEL_COMPRESSED_IMAGE):
        cel.width = buf.read_u16()
        cel.height = buf.read_u16()
        start = buf.absolute()
        if cel_type == CEL_RAW_IMAGE:
            cel.data = buf.read_bytes(cel.width * cel.height * bpp)
        else:
            cel.data = _inflate(buf.read_rest(), context)
        expected = cel.width * cel.height * bpp
        if len(cel.data) != expected:
            raise MalformedDocumentError(
                "Cel pixel data does not match its dimensions",
                offset=start, expected=expected, actual=len(cel.data),
            )
        return cel

    if cel_type == CEL_COMPRESSED_TILEMAP:
        (cel.width, cel.height, cel.bits_per_tile, cel.tile_id_mask, cel.x_flip_mask,
         cel.y_flip_mask, cel.diagonal_flip_mask) = buf.unpack(_TILEMAP, "tilemap header")
        if cel.bits_per_tile not in (8, 16, 32):
            raise MalformedDocumentError(
                f"Unsupported tile size of {cel.bits_per_tile} bits",
                offset=buf.absolute(), expected=32, actual=cel.bits_per_tile,
            )
        start = buf.absolute()
        cel.data = _inflate(buf.read_rest(), context)
        expected = cel.width * cel.height * cel.bits_per_tile // 8
        if len(cel.data) != expected:
            raise MalformedDocumentError(
                "Tilemap data does not match its dimensions",
                offset=start, expected=expected, actual=len(cel.data),
            )
        return cel

    raise MalformedDocumentError(
        f"Unknown cel type {cel_type}", offset=buf.absolute(), expected="0-3", actual=cel_type
    )


def decode_cel_extra(buf: Buffer, context: DecodeContext) -> CelExtraChunk:
    flags = buf.read_u32()
    x, y, width, height = buf.read_fixed(), buf.read_fixed(), buf.read_fixed(), buf.read_fixed()
    return CelExtraChunk(flags, x, y, width, height)


def decode_color_profile(buf: Buffer, context: DecodeContext) -> ColorProfileChunk:
    profile_type = buf.read_u16()
    flags = buf.read_u16()
    gamma = buf.read_fixed()
    buf.skip(8)
    icc_data = None
    if profile_type == COLOR_PROFILE_ICC:
        icc_data = buf.read_bytes(buf.read_u32())
    return ColorProfileChunk(profile_type, flags, gamma, icc_data)


def decode_external_files(buf: Buffer, context: DecodeContext) -> ExternalFilesChunk:
    count = buf.read_u32()
    buf.skip(8)
    entries = []
    for _ in range(count):
        file_id = buf.read_u32()
        file_type = buf.read_u8()
        buf.skip(7)
        entries.append((file_id, file_type, buf.read_string()))
    return ExternalFilesChunk(entries)


def decode_tags(buf: Buffer, context: DecodeContext) -> TagsChunk:
    count = buf.read_u16()
    buf.skip(8)
    tags = []
    for _ in range(count):
        start = buf.absolute()
        from_frame, to_frame, direction, repeat, r, g, b = buf.unpack(_TAG, "tag")
        if direction > LoopDirection.PING_PONG_REVERSE:
            raise MalformedDocumentError(
                f"Unknown loop direction {direction}", offset=start, expected="0-3", actual=direction
            )
        tags.append(TagRecord(from_frame, to_frame, direction, repeat, (r, g, b), buf.read_string()))
    return TagsChunk(tags)


def decode_user_data(buf: Buffer, context: DecodeContext) -> UserDataChunk:
    flags = buf.read_u32()
    chunk = UserDataChunk()
    if flags & USER_DATA_HAS_TEXT:
        chunk.text = buf.read_string()
    if flags & USER_DATA_HAS_COLOR:
        chunk.color = (buf.read_u8(), buf.read_u8(), buf.read_u8(), buf.read_u8())
    # Properties maps (flag 4) follow here; they are not interpreted
    return chunk


def decode_slice(buf: Buffer, context: DecodeContext) -> SliceChunk:
    key_count, flags, _reserved = buf.unpack(_SLICE_HEADER, "slice header")
    chunk = SliceChunk(flags, buf.read_string())
    for _ in range(key_count):
        key = SliceKeyRecord(*buf.unpack(_SLICE_KEY, "slice key"))
        if flags & SLICE_HAS_NINE_PATCH:
            key.center = (buf.read_i32(), buf.read_i32(), buf.read_u32(), buf.read_u32())
        if flags & SLICE_HAS_PIVOT:
            key.pivot = (buf.read_i32(), buf.read_i32())
        chunk.keys.append(key)
    return chunk


def decode_tileset(buf: Buffer, context: DecodeContext) -> TilesetChunk:
    tileset_id, flags, tile_count, tile_width, tile_height, base_index = buf.unpack(_TILESET, "tileset")
    chunk = TilesetChunk(tileset_id, flags, tile_count, tile_width, tile_height, base_index, buf.read_string())
    if flags & TilesetFlags.EXTERNAL_FILE:
        chunk.external_file_id = buf.read_u32()
        chunk.external_tileset_id = buf.read_u32()
    if flags & TilesetFlags.EMBEDDED:
        start = buf.absolute()
        compressed = buf.read_bytes(buf.read_u32())
        chunk.pixels = _inflate(compressed, context)
        expected = tile_width * tile_height * tile_count * context.color_depth.bytes_per_pixel
        if len(chunk.pixels) != expected:
            raise MalformedDocumentError(
                "Tileset pixel data does not match its dimensions",
                offset=start, expected=expected, actual=len(chunk.pixels),
            )
    return chunk


DECODERS: Dict[int, Callable] = {
    CHUNK_OLD_PALETTE_256: decode_old_palette,
    CHUNK_OLD_PALETTE_64: lambda buf, context: decode_old_palette(buf, context, six_bit=True),
    CHUNK_LAYER: decode_layer,
    CHUNK_CEL: decode_cel,
    CHUNK_CEL_EXTRA: decode_cel_extra,
    CHUNK_COLOR_PROFILE: decode_color_profile,
    CHUNK_EXTERNAL_FILES: decode_external_files,
    CHUNK_TAGS: decode_tags,
    CHUNK_PALETTE: decode_palette,
    CHUNK_USER_DATA: decode_user_data,
    CHUNK_SLICE: decode_slice,
    CHUNK_TILESET: decode_tileset,
}


def decode_chunk(chunk_type: int, buf: Buffer, context: DecodeContext):
    """
    Decode one chunk payload

    Args:
        chunk_type: Type tag from the chunk header
        buf: Buffer bounded to the chunk payload
        context: Document-wide decoding parameters

    Returns:
        A raw chunk record, or UnknownChunk for types this reader does not handle
    """
    decoder = DECODERS.get(chunk_type)
    if decoder is None:
        return UnknownChunk(chunk_type, len(buf))
    return decoder(buf, context)
