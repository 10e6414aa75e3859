"""Pytest configuration and fixtures."""

import pytest

from ase_writer import AseWriter, rgba_bytes

QUAD_PIXELS = [(255, 0, 0, 255), (0, 255, 0, 255), (0, 0, 255, 255), (255, 255, 255, 255)]


@pytest.fixture
def quad_pixels():
    """Red, green, blue and white, row-major over a 2x2 canvas."""
    return list(QUAD_PIXELS)


@pytest.fixture
def single_frame_file(quad_pixels) -> bytes:
    """One frame, one layer, one full-canvas RGBA cel."""
    writer = AseWriter(2, 2)
    writer.frame().layer("Layer 1").raw_cel(0, 2, 2, rgba_bytes(quad_pixels))
    return writer.to_bytes()


@pytest.fixture
def linked_frames_file(quad_pixels) -> bytes:
    """Two frames; the second links back to the first frame's cel."""
    writer = AseWriter(2, 2)
    writer.frame(80).layer("Layer 1").compressed_cel(0, 2, 2, rgba_bytes(quad_pixels))
    writer.frame(120).linked_cel(0, 0)
    return writer.to_bytes()


@pytest.fixture
def make_writer():
    """Factory for AseWriter instances."""
    return AseWriter
