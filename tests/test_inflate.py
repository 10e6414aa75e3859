"""Tests for the zlib envelope decoder."""

import os
import zlib

import pytest

from aseprite_atlas.compression import deflate, inflate_raw
from aseprite_atlas.errors import DecompressionError


@pytest.mark.parametrize("size", [1, 100, 1000, 100000])
def test_round_trip(size):
    """Test payloads compressed by zlib decode to the original bytes."""
    payload = os.urandom(size)
    assert deflate(zlib.compress(payload)) == payload


@pytest.mark.parametrize("level", [0, 1, 9])
def test_round_trip_compressible(level):
    """Test stored, fast and best compression levels."""
    payload = bytes(range(64)) * 500
    assert deflate(zlib.compress(payload, level)) == payload


def test_inflate_raw():
    """Test a bare DEFLATE body without envelope."""
    payload = b"tile data " * 40
    compressor = zlib.compressobj(wbits=-15)
    body = compressor.compress(payload) + compressor.flush()
    assert inflate_raw(body) == payload


def test_truncated_stream():
    """Test a stream cut short is rejected."""
    compressed = zlib.compress(os.urandom(5000))
    with pytest.raises(DecompressionError):
        deflate(compressed[:len(compressed) // 2])


def test_missing_trailer():
    """Test a complete body without its Adler-32 trailer is rejected."""
    compressed = zlib.compress(b"abcdef" * 100)
    with pytest.raises(DecompressionError, match="trailer"):
        deflate(compressed[:-4])


def test_checksum_mismatch():
    """Test a corrupted Adler-32 trailer is rejected."""
    compressed = bytearray(zlib.compress(b"abcdef" * 100))
    compressed[-1] ^= 0xFF
    with pytest.raises(DecompressionError, match="Adler-32"):
        deflate(bytes(compressed))


def test_bad_header():
    """Test header check bits and compression method are validated."""
    compressed = bytearray(zlib.compress(b"abc"))
    compressed[1] ^= 0x01
    with pytest.raises(DecompressionError):
        deflate(bytes(compressed))

    with pytest.raises(DecompressionError):
        deflate(b"\x79\x9c" + zlib.compress(b"abc")[2:])


def test_invalid_block():
    """Test a reserved block type is rejected."""
    # BFINAL=1, BTYPE=11 is reserved
    with pytest.raises(DecompressionError):
        deflate(b"\x78\x9c\x07\x00\x00\x00\x00")


def test_empty_input():
    """Test an empty buffer has no header."""
    with pytest.raises(DecompressionError):
        deflate(b"")


def test_output_limit():
    """Test the decompressed size cap."""
    compressed = zlib.compress(bytes(10000))
    assert len(deflate(compressed, max_output=10000)) == 10000
    with pytest.raises(DecompressionError, match="limit"):
        deflate(compressed, max_output=9999)
