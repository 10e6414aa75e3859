"""
Error types
Every failure raised while decoding, compositing or packing a document
"""

from typing import Optional


class AsepriteError(Exception):
    """Base class for all errors raised by this package"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def _context(self):
        return []

    def __str__(self) -> str:
        context = [f"{key}={value}" for key, value in self._context() if value is not None]
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class MalformedDocumentError(AsepriteError):
    """
    Raised when the binary container is inconsistent: bad magic numbers,
    truncated data, chunk lengths that overrun their frame, out-of-range indices.
    """

    def __init__(
        self,
        message: str,
        offset: Optional[int] = None,
        expected=None,
        actual=None,
        chunk_type: Optional[int] = None,
        frame_index: Optional[int] = None,
    ):
        super().__init__(message)
        self.offset = offset
        self.expected = expected
        self.actual = actual
        self.chunk_type = chunk_type
        self.frame_index = frame_index

    def _context(self):
        return [
            ("offset", self.offset),
            ("expected", self.expected),
            ("actual", self.actual),
            ("chunk_type", None if self.chunk_type is None else f"0x{self.chunk_type:04X}"),
            ("frame", self.frame_index),
        ]


class DecompressionError(AsepriteError):
    """Raised for corrupt DEFLATE streams and zlib envelope checksum mismatches"""

    def __init__(
        self,
        message: str,
        chunk_type: Optional[int] = None,
        frame_index: Optional[int] = None,
    ):
        super().__init__(message)
        self.chunk_type = chunk_type
        self.frame_index = frame_index

    def _context(self):
        return [
            ("chunk_type", None if self.chunk_type is None else f"0x{self.chunk_type:04X}"),
            ("frame", self.frame_index),
        ]


class UnresolvedLinkError(AsepriteError):
    """Raised when a linked cel or a tileset reference points at nothing"""

    def __init__(
        self,
        message: str,
        frame_index: Optional[int] = None,
        layer_index: Optional[int] = None,
    ):
        super().__init__(message)
        self.frame_index = frame_index
        self.layer_index = layer_index

    def _context(self):
        return [("frame", self.frame_index), ("layer", self.layer_index)]


class PackingError(AsepriteError):
    """Raised when frames cannot be arranged into an atlas"""
