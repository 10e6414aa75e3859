"""Tests for flattening frames into RGBA images."""

import numpy as np
import pytest

from ase_writer import AseWriter, rgba_bytes
from aseprite_atlas import load_document
from aseprite_atlas.renderer import (
    CompositeOptions,
    composite_document,
    composite_frame,
    composite_frames,
)

A = (255, 0, 0, 255)
B = (0, 255, 0, 255)
C = (0, 0, 255, 255)
D = (255, 255, 255, 255)
BLUE = C
RED = A


def pixels_of(image):
    return [tuple(int(v) for v in p) for p in image.reshape(-1, 4)]


def solid(color, width, height):
    return rgba_bytes([color] * width * height)


def test_single_cel_end_to_end(single_frame_file, quad_pixels):
    """Test a full-canvas opaque cel composites to exactly its pixels, row-major."""
    document = load_document(single_frame_file)
    image = composite_frame(document, 0)

    assert image.dtype == np.uint8
    assert image.shape == (2, 2, 4)
    assert image.tobytes() == rgba_bytes(quad_pixels)


def test_linked_frame_matches_source(linked_frames_file, quad_pixels):
    """Test a frame linking to the previous frame renders identically."""
    document = load_document(linked_frames_file)
    first, second = composite_frames(document)

    assert first.tobytes() == second.tobytes()
    assert second.tobytes() == rgba_bytes(quad_pixels)


def test_hidden_layer_excluded_by_default():
    """Test invisible layers never reach the output unless asked for."""
    writer = AseWriter(1, 1)
    frame = writer.frame()
    frame.layer("bottom").layer("hidden", flags=0)
    frame.raw_cel(0, 1, 1, solid(BLUE, 1, 1)).raw_cel(1, 1, 1, solid(RED, 1, 1))
    document = load_document(writer.to_bytes())

    assert pixels_of(composite_frame(document, 0)) == [BLUE]
    shown = composite_frame(document, 0, CompositeOptions(include_hidden=True))
    assert pixels_of(shown) == [RED]


def test_hidden_group_hides_children():
    """Test a layer inside a hidden group is excluded."""
    writer = AseWriter(1, 1)
    frame = writer.frame()
    frame.layer("group", flags=0, layer_type=1).layer("child", child_level=1)
    frame.raw_cel(1, 1, 1, solid(RED, 1, 1))
    document = load_document(writer.to_bytes())

    assert pixels_of(composite_frame(document, 0)) == [(0, 0, 0, 0)]


def test_background_left_out_by_default():
    """Test the background layer is only drawn when asked for."""
    writer = AseWriter(1, 1)
    writer.frame().layer("bg", flags=1 | 8).raw_cel(0, 1, 1, solid(RED, 1, 1))
    document = load_document(writer.to_bytes())

    assert pixels_of(composite_frame(document, 0)) == [(0, 0, 0, 0)]
    assert CompositeOptions().include_background is False
    with_background = composite_frame(document, 0, CompositeOptions(include_background=True))
    assert pixels_of(with_background) == [RED]


def test_reference_layers_are_skipped():
    """Test reference layers are never composited."""
    writer = AseWriter(1, 1)
    writer.frame().layer("ref", flags=1 | 64).raw_cel(0, 1, 1, solid(RED, 1, 1))
    document = load_document(writer.to_bytes())

    assert pixels_of(composite_frame(document, 0, CompositeOptions(include_hidden=True))) == [(0, 0, 0, 0)]


def test_cel_clipped_to_canvas(quad_pixels):
    """Test parts of a cel outside the canvas are dropped."""
    writer = AseWriter(2, 2)
    writer.frame().layer("a").raw_cel(0, 2, 2, rgba_bytes(quad_pixels), x=1, y=-1)
    document = load_document(writer.to_bytes())

    empty = (0, 0, 0, 0)
    assert pixels_of(composite_frame(document, 0)) == [empty, C, empty, empty]


def test_cel_entirely_off_canvas():
    """Test a cel with no overlap leaves the canvas empty."""
    writer = AseWriter(2, 2)
    writer.frame().layer("a").raw_cel(0, 1, 1, solid(RED, 1, 1), x=5, y=5)
    document = load_document(writer.to_bytes())

    assert not composite_frame(document, 0).any()


def test_layer_and_cel_opacity_combine():
    """Test cel opacity is scaled by layer opacity."""
    writer = AseWriter(1, 1)
    writer.frame().layer("a", opacity=128).raw_cel(0, 1, 1, solid(RED, 1, 1), opacity=255)
    document = load_document(writer.to_bytes())

    assert pixels_of(composite_frame(document, 0)) == [(255, 0, 0, 128)]


def test_upper_layer_blend_mode():
    """Test the layer blend mode is applied against what is below."""
    writer = AseWriter(1, 1)
    frame = writer.frame()
    frame.layer("base").layer("tint", blend_mode=1)
    frame.raw_cel(0, 1, 1, solid((255, 128, 0, 255), 1, 1))
    frame.raw_cel(1, 1, 1, solid((128, 128, 128, 255), 1, 1))
    document = load_document(writer.to_bytes())

    assert pixels_of(composite_frame(document, 0)) == [(128, 64, 0, 255)]


def test_blend_mode_over_empty_canvas():
    """Test a multiply layer with nothing beneath it keeps its own colour."""
    writer = AseWriter(2, 1)
    frame = writer.frame()
    frame.layer("base").layer("shade", blend_mode=1)
    frame.raw_cel(0, 1, 1, solid((128, 128, 128, 255), 1, 1))
    frame.raw_cel(1, 2, 1, solid((200, 100, 50, 255), 2, 1))
    document = load_document(writer.to_bytes())

    assert pixels_of(composite_frame(document, 0)) == [(100, 50, 25, 255), (200, 100, 50, 255)]


def test_z_index_reorders_cels():
    """Test a positive z-index lifts a cel above the next layer."""
    writer = AseWriter(1, 1)
    frame = writer.frame()
    frame.layer("a").layer("b")
    frame.raw_cel(0, 1, 1, solid(RED, 1, 1), z_index=1)
    frame.raw_cel(1, 1, 1, solid(BLUE, 1, 1))
    document = load_document(writer.to_bytes())

    assert pixels_of(composite_frame(document, 0)) == [RED]


def test_indexed_pixels_resolve_through_palette():
    """Test indexed pixels use the palette and the transparent index."""
    writer = AseWriter(2, 2, depth=8, transparent_index=0, color_count=3)
    frame = writer.frame()
    frame.palette([(9, 9, 9, 255), (255, 0, 0, 255), (0, 255, 0, 128)])
    frame.layer("a").raw_cel(0, 2, 2, bytes([0, 1, 2, 1]))
    document = load_document(writer.to_bytes())

    assert pixels_of(composite_frame(document, 0)) == [
        (0, 0, 0, 0), (255, 0, 0, 255), (0, 255, 0, 128), (255, 0, 0, 255),
    ]


def test_grayscale_pixels_replicate_value():
    """Test grayscale values fill RGB and keep their alpha."""
    writer = AseWriter(2, 1, depth=16)
    writer.frame().layer("a").raw_cel(0, 2, 1, bytes([10, 255, 20, 0]))
    document = load_document(writer.to_bytes())

    assert pixels_of(composite_frame(document, 0)) == [(10, 10, 10, 255), (20, 20, 20, 0)]


def tilemap_document(tile_words, include_tilemaps=True):
    writer = AseWriter(2 * len(tile_words), 2)
    frame = writer.frame()
    frame.tileset(0, 2, 2, 1, rgba_bytes([A, B, C, D]))
    frame.layer("map", layer_type=2, tileset_index=0)
    frame.tilemap_cel(0, len(tile_words), 1, tile_words)
    return load_document(writer.to_bytes())


@pytest.mark.parametrize("flag, expected", [
    (0, [A, B, C, D]),
    (0x20000000, [B, A, D, C]),
    (0x40000000, [C, D, A, B]),
    (0x80000000, [A, C, B, D]),
    (0xA0000000, [C, A, D, B]),
])
def test_tilemap_flips(flag, expected):
    """Test tiles expand with diagonal, then horizontal, then vertical flips."""
    document = tilemap_document([flag])
    assert pixels_of(composite_frame(document, 0)) == expected


def test_tilemap_tiles_laid_out_in_grid():
    """Test neighbouring tiles land side by side."""
    document = tilemap_document([0, 0x20000000])
    assert pixels_of(composite_frame(document, 0)) == [A, B, B, A, C, D, D, C]


def test_tilemap_option():
    """Test tilemap layers can be left out."""
    document = tilemap_document([0])
    image = composite_frame(document, 0, CompositeOptions(include_tilemaps=False))
    assert not image.any()


def test_compositing_is_deterministic():
    """Test the same frame composites to identical bytes every time."""
    writer = AseWriter(3, 3)
    frame = writer.frame()
    frame.layer("a").layer("b", blend_mode=12, opacity=200).layer("c", blend_mode=9)
    rng = np.random.default_rng(5)
    for layer in range(3):
        frame.raw_cel(layer, 3, 3, rng.integers(0, 256, 36, dtype=np.uint8).tobytes())
    document = load_document(writer.to_bytes())

    assert composite_frame(document, 0).tobytes() == composite_frame(document, 0).tobytes()


def test_parallel_matches_sequential():
    """Test worker threads produce the same frames in the same order."""
    writer = AseWriter(2, 2)
    writer.frame().layer("a").raw_cel(0, 1, 1, solid(RED, 1, 1))
    for x in range(5):
        writer.frame(10 * (x + 1)).raw_cel(0, 1, 1, solid(BLUE, 1, 1), x=x % 2, y=x // 2 % 2)
    document = load_document(writer.to_bytes())

    sequential = composite_frames(document)
    parallel = composite_frames(document, workers=4)
    assert [f.tobytes() for f in sequential] == [f.tobytes() for f in parallel]

    frames = composite_document(document, workers=3)
    assert [f.index for f in frames] == list(range(6))
    assert [f.duration for f in frames] == [100, 10, 20, 30, 40, 50]
