"""
IO module for aseprite-atlas
Contains the byte buffer, chunk decoders and the binary document reader
"""

from .buffer import Buffer
from .chunks import DecodeContext, UnknownChunk, decode_chunk
from .reader import AsepriteReader, RawDocument, RawFrame, read_raw_document

__all__ = [
    'Buffer',
    'DecodeContext',
    'UnknownChunk',
    'decode_chunk',
    'AsepriteReader',
    'RawDocument',
    'RawFrame',
    'read_raw_document',
]
