"""Tests for spritesheet packing and tag animations."""

import numpy as np
import pytest

from ase_writer import AseWriter, rgba_bytes
from aseprite_atlas import load_document
from aseprite_atlas.core import (
    LoopDirection,
    PackingMethod,
    SpritesheetOptions,
    Tag,
    build_spritesheet,
    pack_frames,
    tag_frame_sequence,
)
from aseprite_atlas.core.texture_atlas import atlas_extent, cell_origin, grid_for
from aseprite_atlas.errors import PackingError
from aseprite_atlas.renderer import CompositedFrame


def distinct_frames(count, width=4, height=4, durations=None):
    """Frames filled with their own index, so each one is unique."""
    frames = []
    for i in range(count):
        pixels = np.full((height, width, 4), i + 1, dtype=np.uint8)
        duration = durations[i] if durations else 100
        frames.append(CompositedFrame(i, duration, pixels))
    return frames


@pytest.mark.parametrize("count, expected", [
    (1, (1, 1)),
    (2, (2, 1)),
    (4, (2, 2)),
    (5, (3, 2)),
    (10, (4, 3)),
])
def test_square_grid(count, expected):
    """Test square packing uses ceil(sqrt(n)) columns."""
    assert grid_for(PackingMethod.SQUARE_PACKED, count) == expected


def test_strip_grids():
    assert grid_for(PackingMethod.HORIZONTAL_STRIP, 5) == (5, 1)
    assert grid_for(PackingMethod.VERTICAL_STRIP, 5) == (1, 5)


def test_square_packing_geometry():
    """Test five 4x4 frames land on a 3x2 grid."""
    sheet = pack_frames(distinct_frames(5))

    assert (sheet.width, sheet.height) == (12, 8)
    assert sheet.pixels.shape == (8, 12, 4)
    assert [f.rect for f in sheet.frames] == [
        (0, 0, 4, 4), (4, 0, 4, 4), (8, 0, 4, 4), (0, 4, 4, 4), (4, 4, 4, 4),
    ]
    # The unused last cell stays transparent
    assert not sheet.pixels[4:8, 8:12].any()


@pytest.mark.parametrize("method, size", [
    (PackingMethod.HORIZONTAL_STRIP, (20, 4)),
    (PackingMethod.VERTICAL_STRIP, (4, 20)),
])
def test_strip_packing_geometry(method, size):
    sheet = pack_frames(distinct_frames(5), options=SpritesheetOptions(packing_method=method))
    assert (sheet.width, sheet.height) == size


def test_padding_formulas():
    """Test border, spacing and inner padding all widen the atlas."""
    options = SpritesheetOptions(border_padding=2, spacing=1, inner_padding=1)

    assert atlas_extent(3, 4, options) == 24
    assert atlas_extent(2, 4, options) == 17
    assert cell_origin(0, 4, options) == 3
    assert cell_origin(1, 4, options) == 10


def test_padded_frames_placed_at_origins():
    """Test each frame is copied at its padded origin and the gaps stay empty."""
    frames = distinct_frames(5)
    options = SpritesheetOptions(border_padding=2, spacing=1, inner_padding=1)
    sheet = pack_frames(frames, options=options)

    assert (sheet.width, sheet.height) == (24, 17)
    assert sheet.frames[4].rect == (10, 10, 4, 4)
    for sheet_frame, frame in zip(sheet.frames, frames):
        x, y, w, h = sheet_frame.rect
        assert np.array_equal(sheet.pixels[y:y + h, x:x + w], frame.pixels)
    assert not sheet.pixels[:2].any()
    assert not sheet.pixels[:, :2].any()
    assert int(np.count_nonzero(sheet.pixels.any(axis=2))) == 5 * 16


def test_duplicates_share_one_cell():
    """Test identical frames are stored once and share a rectangle."""
    frames = distinct_frames(2, durations=[50, 60])
    frames.append(CompositedFrame(2, 70, frames[0].pixels.copy()))
    options = SpritesheetOptions(packing_method=PackingMethod.HORIZONTAL_STRIP)
    sheet = pack_frames(frames, options=options)

    assert len(sheet.frames) == 2
    assert sheet.width == 8
    assert sheet.frames[0].source_frames == [0, 2]
    assert sheet.frames[1].source_frames == [1]
    assert sheet.region_for(2) == sheet.region_for(0)
    assert sheet.frame_map == {0: 0, 1: 1, 2: 0}
    # Durations stay per source frame
    assert [r.duration for r in sheet.frame_regions] == [50, 60, 70]


def test_merge_duplicates_disabled():
    frames = distinct_frames(1) * 3
    options = SpritesheetOptions(merge_duplicates=False, packing_method=PackingMethod.HORIZONTAL_STRIP)
    sheet = pack_frames(frames, options=options)

    assert len(sheet.frames) == 3
    assert sheet.width == 12


def test_same_checksum_different_pixels_not_merged(monkeypatch):
    """Test a checksum collision still compares the pixels."""
    from aseprite_atlas.core import texture_atlas

    monkeypatch.setattr(texture_atlas, "crc32", lambda data: 0)
    sheet = pack_frames(distinct_frames(3))
    assert len(sheet.frames) == 3


@pytest.mark.parametrize("direction, expected", [
    (LoopDirection.FORWARD, [1, 2, 3]),
    (LoopDirection.REVERSE, [3, 2, 1]),
    (LoopDirection.PING_PONG, [1, 2, 3, 2]),
    (LoopDirection.PING_PONG_REVERSE, [3, 2, 1, 2]),
])
def test_tag_sequences(direction, expected):
    assert tag_frame_sequence(Tag("t", 1, 3, direction)) == expected


@pytest.mark.parametrize("direction", list(LoopDirection))
def test_single_frame_tag(direction):
    """Test a one-frame tag plays that frame once in every direction."""
    assert tag_frame_sequence(Tag("t", 2, 2, direction)) == [2]


def test_two_frame_ping_pong():
    assert tag_frame_sequence(Tag("t", 0, 1, LoopDirection.PING_PONG)) == [0, 1]


def test_animations_follow_tags():
    """Test animations map tag frames to atlas rectangles and durations."""
    frames = distinct_frames(4, durations=[10, 20, 30, 40])
    tags = [Tag("walk", 1, 3, LoopDirection.PING_PONG, repeat=2), Tag("idle", 0, 0)]
    sheet = pack_frames(frames, tags)

    walk = sheet.animation("walk")
    assert [f.frame_index for f in walk.frames] == [1, 2, 3, 2]
    assert [f.duration for f in walk.frames] == [20, 30, 40, 30]
    assert walk.frames[1].rect == sheet.region_for(2)
    assert walk.duration == 120
    assert walk.repeat == 2
    assert not walk.is_looping
    assert sheet.animation("idle").is_looping
    assert sheet.animation("missing") is None


def test_no_frames():
    with pytest.raises(PackingError, match="No frames"):
        pack_frames([])


def test_mismatched_frame_sizes():
    frames = distinct_frames(1) + [CompositedFrame(1, 100, np.zeros((3, 4, 4), dtype=np.uint8))]
    with pytest.raises(PackingError, match="Frame 1 is 4x3"):
        pack_frames(frames)


def test_negative_padding():
    with pytest.raises(PackingError, match="must not be negative"):
        pack_frames(distinct_frames(1), options=SpritesheetOptions(spacing=-1))


def test_atlas_above_max_dimension():
    options = SpritesheetOptions(packing_method=PackingMethod.HORIZONTAL_STRIP, max_dimension=15)
    with pytest.raises(PackingError, match="15 pixel limit"):
        pack_frames(distinct_frames(4), options=options)


def test_atlas_at_max_dimension():
    options = SpritesheetOptions(packing_method=PackingMethod.HORIZONTAL_STRIP, max_dimension=16)
    assert pack_frames(distinct_frames(4), options=options).width == 16


RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)


@pytest.fixture
def tagged_document():
    """Three frames, the last repeating the first, with a tag and a slice."""
    writer = AseWriter(2, 2)
    first = writer.frame()
    first.layer("body").raw_cel(0, 2, 2, rgba_bytes([RED] * 4))
    first.tags([("walk", 0, 2, 2, 0)])
    first.slice("hit", [(0, 0, 0, 1, 1), (2, 1, 1, 1, 1)])
    writer.frame().raw_cel(0, 2, 2, rgba_bytes([BLUE] * 4))
    writer.frame().raw_cel(0, 2, 2, rgba_bytes([RED] * 4))
    return load_document(writer.to_bytes())


def test_build_spritesheet(tagged_document):
    """Test a document composites, dedups and packs in one call."""
    sheet = build_spritesheet(tagged_document, workers=2)

    assert (sheet.width, sheet.height) == (4, 2)
    assert sheet.region_for(0) == sheet.region_for(2) == (0, 0, 2, 2)
    assert sheet.region_for(1) == (2, 0, 2, 2)
    assert [f.frame_index for f in sheet.animation("walk").frames] == [0, 1, 2, 1]

    image = sheet.pixels.reshape(-1, 4).tolist()
    assert image == [list(RED)] * 2 + [list(BLUE)] * 2 + [list(RED)] * 2 + [list(BLUE)] * 2


def test_save_hands_bytes_to_sink(tagged_document):
    sheet = build_spritesheet(tagged_document)
    received = []

    result = sheet.save(lambda w, h, data: received.append((w, h, data)) or "done")

    assert result == "done"
    assert received == [(4, 2, sheet.to_bytes())]
    assert len(received[0][2]) == 4 * 2 * 4


def test_slices_in_atlas_coordinates(tagged_document):
    """Test slice keys are offset by the frame's atlas position."""
    sheet = build_spritesheet(tagged_document)

    assert sheet.slices_for_frame(tagged_document, 1)["hit"].x == 2
    key = sheet.slices_for_frame(tagged_document, 2)["hit"]
    assert (key.x, key.y, key.width, key.height) == (1, 1, 1, 1)
    # The document's own keys are untouched
    assert tagged_document.slices[0].keys[0].x == 0


@pytest.mark.parametrize("tag", [Tag("late", 2, 4), Tag("backwards", 2, 1)])
def test_tag_outside_given_frames(tag):
    """Test tags that do not fit the packed frames are rejected up front."""
    with pytest.raises(PackingError, match=f"Tag '{tag.name}' covers frames"):
        pack_frames(distinct_frames(3), [tag])


def test_background_excluded_by_default():
    assert SpritesheetOptions().include_background is False
    assert SpritesheetOptions().composite_options().include_background is False
