"""
File Loader
Utilities for turning a path, bytes or stream into a resolved Document
"""

import logging
import os
from typing import Optional, Union, BinaryIO

from ..core.data_structures import Document
from ..core.document_builder import build_document
from ..errors import MalformedDocumentError
from ..io.chunks import UnknownChunk
from ..io.reader import AsepriteReader
from .settings import Settings

log = logging.getLogger(__name__)

Source = Union[str, os.PathLike, bytes, bytearray, memoryview, BinaryIO]


def read_document_bytes(path, max_size: Optional[int] = None) -> bytes:
    """
    Read the raw bytes of an .ase/.aseprite file

    Args:
        path: File path
        max_size: Reject files larger than this many bytes

    Returns:
        File contents
    """
    if max_size is not None:
        size = os.path.getsize(path)
        if size > max_size:
            raise MalformedDocumentError(
                f"{path} is larger than the {max_size} byte limit", expected=max_size, actual=size
            )
    with open(path, 'rb') as f:
        return f.read()


def load_document(source: Source, settings: Optional[Settings] = None) -> Document:
    """
    Load and resolve a document

    Args:
        source: File path, raw bytes, or a binary stream
        settings: Resource limits; defaults to Settings()

    Returns:
        The resolved Document
    """
    settings = settings or Settings()
    if isinstance(source, (str, os.PathLike)):
        data = read_document_bytes(source, settings.max_file_size)
    elif isinstance(source, (bytes, bytearray, memoryview)):
        data = bytes(source)
    else:
        data = source.read(settings.max_file_size + 1)

    if len(data) > settings.max_file_size:
        raise MalformedDocumentError(
            f"Document is larger than the {settings.max_file_size} byte limit",
            expected=settings.max_file_size, actual=len(data),
        )

    raw = AsepriteReader(data, settings.max_decompressed_size).read()
    if settings.log_unknown_chunks:
        for frame in raw.frames:
            for chunk_type, offset, record in frame.chunks:
                if isinstance(record, UnknownChunk):
                    log.info("Frame %d: unsupported chunk 0x%04X at offset %d", frame.index, chunk_type, offset)
    document = build_document(raw)
    log.debug(
        "Loaded %dx%d document with %d layers and %d frames",
        document.width, document.height, len(document.layers), document.frame_count,
    )
    return document
