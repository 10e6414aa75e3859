"""
Utils module for aseprite-atlas
Contains utility functions for file loading, settings and image output
"""

from .file_loader import load_document, read_document_bytes
from .image_sink import PillowImageSink, to_pil_image
from .settings import Settings, load_settings, save_settings

__all__ = [
    'load_document',
    'read_document_bytes',
    'PillowImageSink',
    'to_pil_image',
    'Settings',
    'load_settings',
    'save_settings',
]
