"""Little-endian byte reader and the OMF variable-width field decoders."""

import struct
from dataclasses import dataclass

from omfkit.errors import FormatError


@dataclass(frozen=True)
class Index:
    """An OMF index field: 1 byte below 0x80, otherwise 2 bytes."""

    width: int
    value: int


@dataclass(frozen=True)
class Int2or4:
    """An integer stored in 2 or 4 bytes depending on the record type.

    The width is kept so the field can be described (or re-serialized)
    with its original size after the value has been replaced.
    """

    width: int
    value: int

    def with_value(self, value: int) -> "Int2or4":
        return Int2or4(self.width, value)


class ByteReader:
    """Positioned reader over an in-memory record body."""

    def __init__(self, data: bytes, offset: int = 0) -> None:
        self.data = data
        self.offset = offset

    @property
    def remaining(self) -> int:
        return len(self.data) - self.offset

    def at_end(self) -> bool:
        return self.offset >= len(self.data)

    def read_bytes(self, size: int) -> bytes:
        if size < 0 or self.offset + size > len(self.data):
            raise FormatError(
                f"Unexpected end of data: need {size} bytes at offset {self.offset:#x}, "
                f"{self.remaining} available"
            )
        chunk = self.data[self.offset : self.offset + size]
        self.offset += size
        return chunk

    def _unpack(self, fmt: str) -> int:
        return struct.unpack(fmt, self.read_bytes(struct.calcsize(fmt)))[0]

    def read_u8(self) -> int:
        return self._unpack("<B")

    def read_u16(self) -> int:
        return self._unpack("<H")

    def read_u32(self) -> int:
        return self._unpack("<I")

    def read_index(self) -> Index:
        """Read a compact index (1 byte, or 2 bytes when the high bit is set)."""
        first = self.read_u8()
        if first & 0x80:
            second = self.read_u8()
            return Index(2, ((first & 0x7F) << 8) | second)
        return Index(1, first)

    def read_int2or4(self, wide: bool) -> Int2or4:
        """Read a 4-byte field in wide (32-bit record) mode, else 2 bytes."""
        if wide:
            return Int2or4(4, self.read_u32())
        return Int2or4(2, self.read_u16())

    def read_counted_string(self) -> str:
        """Read a length-prefixed string."""
        length = self.read_u8()
        return self.read_bytes(length).decode("latin-1")
