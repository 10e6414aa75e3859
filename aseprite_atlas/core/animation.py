"""
Animation
Turns tags into ordered frame sequences for external players
"""

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from .data_structures import LoopDirection, Tag

# (x, y, width, height) inside the atlas
Rect = Tuple[int, int, int, int]


@dataclass
class FrameRegion:
    """Where one source frame ended up in the atlas, with its own duration"""
    frame_index: int
    rect: Rect
    duration: int


@dataclass
class AnimationFrame:
    frame_index: int
    rect: Rect
    duration: int


@dataclass
class SpritesheetAnimation:
    """Tag-derived animation segment"""
    name: str
    direction: LoopDirection
    repeat: int
    frames: List[AnimationFrame] = field(default_factory=list)

    @property
    def is_looping(self) -> bool:
        """A repeat count of 0 means the tag loops forever"""
        return self.repeat == 0

    @property
    def duration(self) -> int:
        return sum(frame.duration for frame in self.frames)


def tag_frame_sequence(tag: Tag) -> List[int]:
    """
    Frame indices a tag plays through, in order

    Ping-pong variants append the return trip without repeating either endpoint,
    so the sequence can loop seamlessly.
    """
    forward = list(range(tag.from_frame, tag.to_frame + 1))
    backward = forward[::-1]
    direction = LoopDirection(tag.direction)
    if direction == LoopDirection.FORWARD:
        return forward
    if direction == LoopDirection.REVERSE:
        return backward
    if direction == LoopDirection.PING_PONG:
        return forward + backward[1:-1]
    return backward + forward[1:-1]


def build_animation(tag: Tag, regions: Sequence[FrameRegion]) -> SpritesheetAnimation:
    """Map a tag's frame sequence onto atlas regions."""
    animation = SpritesheetAnimation(tag.name, LoopDirection(tag.direction), tag.repeat)
    for index in tag_frame_sequence(tag):
        region = regions[index]
        animation.frames.append(AnimationFrame(index, region.rect, region.duration))
    return animation
