"""
Compression module for aseprite-atlas
Contains the checksum engines and the inflate decoder
"""

from .checksum import Adler32, Crc32, adler32, crc32
from .inflate import deflate, inflate_raw

__all__ = [
    'Adler32',
    'Crc32',
    'adler32',
    'crc32',
    'deflate',
    'inflate_raw',
]
