"""
Inflate Decoder
Decodes the zlib-enveloped DEFLATE payloads Aseprite stores cel and tile data in
"""

import zlib
from typing import Optional

from ..errors import DecompressionError
from .checksum import Adler32

ZLIB_METHOD_DEFLATE = 8
_CHUNK_SIZE = 64 * 1024


def _check_header(data) -> None:
    if len(data) < 2:
        raise DecompressionError("zlib stream is missing its 2-byte header")
    cmf, flg = data[0], data[1]
    if cmf & 0x0F != ZLIB_METHOD_DEFLATE:
        raise DecompressionError(f"Unsupported zlib compression method {cmf & 0x0F}")
    if (cmf >> 4) > 7:
        raise DecompressionError(f"Invalid zlib window size {cmf >> 4}")
    if ((cmf << 8) | flg) % 31 != 0:
        raise DecompressionError("zlib header check bits are corrupt")
    if flg & 0x20:
        raise DecompressionError("zlib preset dictionaries are not supported")


def _inflate_body(data, max_output: Optional[int]):
    """Inflate a bare DEFLATE body, returning (output, unused trailing bytes)."""
    decoder = zlib.decompressobj(-15)
    output = bytearray()
    try:
        pending = bytes(data)
        while pending and not decoder.eof:
            output += decoder.decompress(pending, _CHUNK_SIZE)
            pending = decoder.unconsumed_tail
            if max_output is not None and len(output) > max_output:
                raise DecompressionError(
                    f"Decompressed payload exceeds the {max_output} byte limit"
                )
        if not decoder.eof:
            output += decoder.flush()
    except zlib.error as exc:
        raise DecompressionError(f"Corrupt DEFLATE stream: {exc}") from exc
    if not decoder.eof:
        raise DecompressionError("DEFLATE stream is truncated")
    if max_output is not None and len(output) > max_output:
        raise DecompressionError(f"Decompressed payload exceeds the {max_output} byte limit")
    return bytes(output), decoder.unused_data


def inflate_raw(data, max_output: Optional[int] = None) -> bytes:
    """
    Decode a bare DEFLATE stream with no envelope

    Args:
        data: Compressed bytes
        max_output: Optional cap on the decompressed size

    Returns:
        The decompressed bytes
    """
    output, _ = _inflate_body(data, max_output)
    return output


def deflate(data, max_output: Optional[int] = None) -> bytes:
    """
    Decode a zlib-enveloped DEFLATE stream and verify its Adler-32 trailer

    Args:
        data: 2-byte zlib header, DEFLATE body, 4-byte big-endian Adler-32
        max_output: Optional cap on the decompressed size

    Returns:
        The decompressed bytes

    Raises:
        DecompressionError: on a bad header, truncated or invalid stream,
            or checksum mismatch
    """
    data = memoryview(data).cast('B')
    _check_header(data)
    output, trailer = _inflate_body(data[2:], max_output)
    if len(trailer) < 4:
        raise DecompressionError("zlib stream is missing its Adler-32 trailer")
    expected = int.from_bytes(trailer[:4], 'big')
    actual = Adler32().update(output)
    if actual != expected:
        raise DecompressionError(
            f"Adler-32 mismatch: stored 0x{expected:08X}, computed 0x{actual:08X}"
        )
    return output
