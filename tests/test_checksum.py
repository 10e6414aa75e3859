"""Tests for the Adler-32 and CRC-32 engines."""

import os
import zlib

import pytest

from aseprite_atlas.compression import Adler32, Crc32, adler32, crc32

PAYLOADS = [b"", b"a", b"Wikipedia", bytes(range(256)) * 3, os.urandom(20000)]


@pytest.mark.parametrize("data", PAYLOADS)
def test_adler32_matches_zlib(data):
    """Test Adler-32 agrees with zlib's implementation."""
    assert adler32(data) == zlib.adler32(data)


@pytest.mark.parametrize("data", PAYLOADS)
def test_crc32_matches_zlib(data):
    """Test CRC-32 agrees with zlib's implementation."""
    assert crc32(data) == zlib.crc32(data)


def test_known_values():
    """Test published check values."""
    assert adler32(b"Wikipedia") == 0x11E60398
    assert crc32(b"123456789") == 0xCBF43926


@pytest.mark.parametrize("engine", [Adler32, Crc32])
@pytest.mark.parametrize("split", [0, 1, 5551, 5552, 5553, 12000])
def test_streaming_equivalence(engine, split):
    """Test update(a); update(b) equals update(a + b)."""
    data = os.urandom(16000)
    whole = engine()
    whole.update(data)

    parts = engine()
    parts.update(data[:split])
    parts.update(data[split:])

    assert parts.value == whole.value


@pytest.mark.parametrize("engine", [Adler32, Crc32])
def test_reset_restores_seed(engine):
    """Test reset discards everything fed so far."""
    checksum = engine()
    seed = checksum.value
    checksum.update(b"some bytes")
    assert checksum.value != seed

    checksum.reset()
    assert checksum.value == seed
    assert checksum.update(b"abc") == engine().update(b"abc")


def test_seeds():
    """Test the conventional starting values."""
    assert Adler32().value == 1
    assert Crc32().value == 0


def test_crc32_continues_from_prior_value():
    """Test a CRC seeded with an earlier result continues that stream."""
    first = crc32(b"hello ")
    assert crc32(b"world", first) == zlib.crc32(b"hello world")


def test_accepts_bytearray_and_memoryview():
    """Test bytes-like inputs other than bytes."""
    data = b"pixels"
    assert adler32(bytearray(data)) == adler32(data)
    assert crc32(memoryview(data)) == crc32(data)


def test_frame_sized_buffers():
    """Test multi-megabyte inputs, as fed by atlas duplicate merging, stay in step with zlib."""
    data = os.urandom(4 * 1024 * 1024)
    assert adler32(data) == zlib.adler32(data)
    assert crc32(data) == zlib.crc32(data)


def test_accepts_pixel_arrays():
    """Test a C-contiguous numpy image is checksummed over its raw bytes."""
    import numpy as np

    pixels = np.arange(2 * 3 * 4, dtype=np.uint8).reshape(2, 3, 4)
    assert crc32(pixels) == zlib.crc32(pixels.tobytes())
    assert adler32(pixels) == zlib.adler32(pixels.tobytes())
