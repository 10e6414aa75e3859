"""
Binary Document Reader
Walks the file header, frame headers and chunks, producing raw chunk records
"""

import logging
import struct
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..core.data_structures import ColorDepth, Header
from ..errors import DecompressionError, MalformedDocumentError
from .buffer import Buffer
from .chunks import DecodeContext, UnknownChunk, decode_chunk

log = logging.getLogger(__name__)

HEADER_MAGIC = 0xA5E0
FRAME_MAGIC = 0xF1FA
HEADER_SIZE = 128
FRAME_HEADER_SIZE = 16
CHUNK_HEADER_SIZE = 6
# Legacy chunk count value that defers to the 32-bit field
CHUNK_COUNT_SENTINEL = 0xFFFF

_HEADER = struct.Struct("<IHHHHHIHII B3xH BBhhHH84x")
_FRAME_HEADER = struct.Struct("<IHHH2xI")
_CHUNK_HEADER = struct.Struct("<IH")


@dataclass
class RawFrame:
    index: int
    duration: int
    # (chunk type, absolute offset, decoded record)
    chunks: List[Tuple[int, int, object]] = field(default_factory=list)


@dataclass
class RawDocument:
    header: Header
    frames: List[RawFrame] = field(default_factory=list)


class AsepriteReader:
    """
    Single pass reader over an immutable byte buffer

    The reader only validates the container and decodes individual chunks;
    cross-chunk resolution happens in DocumentBuilder.
    """

    def __init__(self, data, max_decompressed_size: Optional[int] = None):
        self.buffer = Buffer(data)
        self.max_decompressed_size = max_decompressed_size

    def read(self) -> RawDocument:
        header = self.read_header()
        context = DecodeContext(header.color_depth, self.max_decompressed_size)
        document = RawDocument(header)
        for frame_index in range(header.frame_count):
            document.frames.append(self.read_frame(frame_index, header, context))
        log.debug(
            "Read %d frames (%dx%d, %d bpp)",
            header.frame_count, header.width, header.height, header.color_depth.value,
        )
        return document

    def read_header(self) -> Header:
        buf = self.buffer
        if len(buf) < HEADER_SIZE:
            raise MalformedDocumentError(
                "File is too small to hold a header", offset=0, expected=HEADER_SIZE, actual=len(buf)
            )
        (file_size, magic, frame_count, width, height, depth, flags, speed, _reserved1, _reserved2,
         transparent_index, color_count, pixel_width, pixel_height, grid_x, grid_y, grid_width,
         grid_height) = buf.unpack(_HEADER, "file header")

        if magic != HEADER_MAGIC:
            raise MalformedDocumentError(
                "Bad file magic number", offset=4, expected=HEADER_MAGIC, actual=magic
            )
        if file_size > len(buf):
            raise MalformedDocumentError(
                "File is truncated", offset=0, expected=file_size, actual=len(buf)
            )
        try:
            color_depth = ColorDepth(depth)
        except ValueError:
            raise MalformedDocumentError(
                f"Unsupported color depth {depth}", offset=12, expected="32, 16 or 8", actual=depth
            ) from None
        if width == 0 or height == 0:
            raise MalformedDocumentError(
                "Canvas has no area", offset=8, expected="at least 1x1", actual=f"{width}x{height}"
            )

        return Header(
            file_size=file_size,
            magic=magic,
            frame_count=frame_count,
            width=width,
            height=height,
            color_depth=color_depth,
            flags=flags,
            speed=speed,
            transparent_index=transparent_index,
            color_count=color_count or 256,
            pixel_width=pixel_width,
            pixel_height=pixel_height,
            grid_x=grid_x,
            grid_y=grid_y,
            grid_width=grid_width,
            grid_height=grid_height,
        )

    def read_frame(self, frame_index: int, header: Header, context: DecodeContext) -> RawFrame:
        buf = self.buffer
        frame_start = buf.tell()
        size, magic, old_count, duration, new_count = buf.unpack(_FRAME_HEADER, "frame header")
        if magic != FRAME_MAGIC:
            raise MalformedDocumentError(
                "Bad frame magic number",
                offset=frame_start + 4, expected=FRAME_MAGIC, actual=magic, frame_index=frame_index,
            )
        if size < FRAME_HEADER_SIZE or frame_start + size > len(buf):
            raise MalformedDocumentError(
                "Frame length is inconsistent with the file",
                offset=frame_start, expected=len(buf) - frame_start, actual=size, frame_index=frame_index,
            )
        chunk_count = new_count if old_count == CHUNK_COUNT_SENTINEL and new_count else old_count
        frame = RawFrame(frame_index, duration or header.speed)
        frame_end = frame_start + size

        for _ in range(chunk_count):
            frame.chunks.append(self.read_chunk(frame_index, frame_end, context))

        if buf.tell() != frame_end:
            log.debug(
                "Frame %d declares %d bytes but its chunks end at %d",
                frame_index, size, buf.tell() - frame_start,
            )
        buf.seek(frame_end)
        return frame

    def read_chunk(self, frame_index: int, frame_end: int, context: DecodeContext):
        buf = self.buffer
        chunk_start = buf.tell()
        if chunk_start + CHUNK_HEADER_SIZE > frame_end:
            raise MalformedDocumentError(
                "Chunk header runs past the end of its frame",
                offset=chunk_start, expected=frame_end, actual=chunk_start + CHUNK_HEADER_SIZE,
                frame_index=frame_index,
            )
        length, chunk_type = buf.unpack(_CHUNK_HEADER, "chunk header")
        if length < CHUNK_HEADER_SIZE or chunk_start + length > frame_end:
            raise MalformedDocumentError(
                "Chunk length is inconsistent with its frame",
                offset=chunk_start, expected=frame_end - chunk_start, actual=length,
                chunk_type=chunk_type, frame_index=frame_index,
            )
        payload = buf.sub_buffer(length - CHUNK_HEADER_SIZE)
        try:
            record = decode_chunk(chunk_type, payload, context)
        except MalformedDocumentError as exc:
            if exc.chunk_type is None:
                exc.chunk_type = chunk_type
            if exc.frame_index is None:
                exc.frame_index = frame_index
            if exc.offset is None:
                exc.offset = chunk_start
            raise
        except DecompressionError as exc:
            if exc.chunk_type is None:
                exc.chunk_type = chunk_type
            if exc.frame_index is None:
                exc.frame_index = frame_index
            raise
        if isinstance(record, UnknownChunk):
            log.debug("Skipping unknown chunk 0x%04X (%d bytes) in frame %d", chunk_type, length, frame_index)
        return (chunk_type, chunk_start, record)


def read_raw_document(data, max_decompressed_size: Optional[int] = None) -> RawDocument:
    """Parse data into header and raw per-frame chunk records."""
    return AsepriteReader(data, max_decompressed_size).read()
