"""
Image Sinks
Pillow-backed consumers of row-major RGBA buffers
"""

import os

import numpy as np
from PIL import Image


def to_pil_image(width: int, height: int, pixels) -> Image.Image:
    """
    Wrap an RGBA buffer in a Pillow image

    Args:
        width: Image width
        height: Image height
        pixels: Row-major RGBA bytes, or a uint8 array of shape (height, width, 4)

    Returns:
        RGBA PIL image
    """
    if isinstance(pixels, np.ndarray):
        pixels = np.ascontiguousarray(pixels, dtype=np.uint8).tobytes()
    expected = width * height * 4
    if len(pixels) != expected:
        raise ValueError(f"Expected {expected} bytes for a {width}x{height} RGBA image, got {len(pixels)}")
    return Image.frombytes("RGBA", (width, height), bytes(pixels))


class PillowImageSink:
    """Sink that writes each image it receives to disk"""

    def __init__(self, path: str, image_format: str = None):
        self.path = path
        self.image_format = image_format

    def __call__(self, width: int, height: int, pixels) -> str:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        to_pil_image(width, height, pixels).save(self.path, format=self.image_format)
        return self.path
