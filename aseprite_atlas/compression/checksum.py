"""
Checksum Engines
Streaming Adler-32 and CRC-32 accumulators
"""

import zlib


class Adler32:
    """Running Adler-32 checksum as used by the zlib envelope"""

    def __init__(self, value: int = 1):
        self._initial = value & 0xFFFFFFFF
        self._value = self._initial

    @property
    def value(self) -> int:
        return self._value

    def reset(self):
        self._value = self._initial

    def update(self, data) -> int:
        """
        Feed bytes into the checksum

        Args:
            data: bytes-like object; multi-byte items are read as raw bytes

        Returns:
            The checksum after consuming data
        """
        self._value = zlib.adler32(memoryview(data).cast('B'), self._value)
        return self._value


class Crc32:
    """Running CRC-32 (reflected, polynomial 0xEDB88320)"""

    def __init__(self, value: int = 0):
        self._initial = value & 0xFFFFFFFF
        self._value = self._initial

    @property
    def value(self) -> int:
        return self._value

    def reset(self):
        self._value = self._initial

    def update(self, data) -> int:
        self._value = zlib.crc32(memoryview(data).cast('B'), self._value)
        return self._value


def adler32(data, value: int = 1) -> int:
    """One-shot Adler-32 of data"""
    return Adler32(value).update(data)


def crc32(data, value: int = 0) -> int:
    """One-shot CRC-32 of data"""
    return Crc32(value).update(data)
