"""
Byte Buffer
Little-endian read cursor over an immutable document buffer
"""

import struct

from ..errors import MalformedDocumentError

_U8 = struct.Struct("<B")
_U16 = struct.Struct("<H")
_I16 = struct.Struct("<h")
_U32 = struct.Struct("<I")
_I32 = struct.Struct("<i")


class Buffer:
    """Helper that keeps track of the current offset while reading little-endian data."""

    def __init__(self, data, base_offset: int = 0) -> None:
        self._data = memoryview(data).cast('B') if not isinstance(data, memoryview) else data
        self._offset = 0
        # Absolute position of this buffer inside the file, for error reports
        self._base = base_offset

    def __len__(self) -> int:
        return len(self._data)

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def tell(self) -> int:
        """Return the current read offset."""
        return self._offset

    def absolute(self, offset=None) -> int:
        """Return an offset translated to a position in the whole file."""
        return self._base + (self._offset if offset is None else offset)

    def seek(self, offset: int) -> None:
        """Move the read cursor to an absolute offset."""
        if offset < 0 or offset > len(self._data):
            raise MalformedDocumentError(
                f"Attempted to seek to invalid offset {offset}",
                offset=self.absolute(0) + offset,
            )
        self._offset = offset

    def skip(self, count: int) -> None:
        self._require(count, "reserved bytes")
        self._offset += count

    def _require(self, size: int, what: str) -> None:
        if size < 0 or self._offset + size > len(self._data):
            raise MalformedDocumentError(
                f"Unexpected end of data while reading {what}",
                offset=self.absolute(),
                expected=size,
                actual=max(0, len(self._data) - self._offset),
            )

    def unpack(self, fmt: struct.Struct, what: str = "record"):
        self._require(fmt.size, what)
        values = fmt.unpack_from(self._data, self._offset)
        self._offset += fmt.size
        return values

    def read_u8(self) -> int:
        return self.unpack(_U8, "uint8")[0]

    def read_u16(self) -> int:
        return self.unpack(_U16, "uint16")[0]

    def read_i16(self) -> int:
        return self.unpack(_I16, "int16")[0]

    def read_u32(self) -> int:
        return self.unpack(_U32, "uint32")[0]

    def read_i32(self) -> int:
        return self.unpack(_I32, "int32")[0]

    def read_fixed(self) -> float:
        """16.16 fixed point number"""
        return self.read_i32() / 65536.0

    def read_bytes(self, length: int) -> bytes:
        self._require(length, "byte payload")
        raw = self._data[self._offset:self._offset + length]
        self._offset += length
        return raw.tobytes()

    def read_rest(self) -> bytes:
        return self.read_bytes(self.remaining)

    def read_string(self) -> str:
        length = self.read_u16()
        self._require(length, "string payload")
        raw = self._data[self._offset:self._offset + length]
        self._offset += length
        try:
            return raw.tobytes().decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedDocumentError(
                f"String is not valid UTF-8: {exc}", offset=self.absolute() - length
            ) from exc

    def sub_buffer(self, length: int) -> "Buffer":
        """Carve the next length bytes into their own bounded Buffer."""
        self._require(length, "nested record")
        start = self._offset
        self._offset += length
        return Buffer(self._data[start:start + length], base_offset=self.absolute(start))
