"""Data fragments contributed to a segment by LEDATA and LIDATA records."""

from dataclasses import dataclass, field
from functools import cached_property

from omfkit.errors import FormatError
from omfkit.loader.reader import ByteReader
from omfkit.loader.records import OmfRecord, RecordType

# Nesting limit for iterated blocks; real toolchains stay in single digits
MAX_BLOCK_DEPTH = 32

# Largest expansion a single LIDATA record may declare (16 MiB)
MAX_ITERATED_FILL = 0x1000000


@dataclass(frozen=True)
class EnumeratedData:
    """Raw bytes placed at an offset within a segment (LEDATA)."""

    segment_index: int
    offset: int
    data: bytes = field(repr=False)

    @classmethod
    def parse(cls, record: OmfRecord) -> "EnumeratedData":
        if record.record_type not in (RecordType.LEDATA, RecordType.LEDATA32):
            raise FormatError(f"Expected LEDATA record, got {record.name}")
        reader = record.reader()
        segment_index = reader.read_index().value
        offset = reader.read_int2or4(record.is_wide).value
        return cls(segment_index, offset, reader.read_bytes(reader.remaining))

    @property
    def length(self) -> int:
        return len(self.data)

    @property
    def end_offset(self) -> int:
        return self.offset + self.length

    def materialize(self) -> bytes:
        return self.data

    def is_all_zeroes(self) -> bool:
        return not any(self.data)


@dataclass(frozen=True)
class IteratedBlock:
    """One LIDATA data block: either literal content or nested blocks, repeated."""

    repeat_count: int
    content: bytes = b""
    blocks: tuple["IteratedBlock", ...] = ()

    @classmethod
    def parse(cls, reader: ByteReader, wide: bool, depth: int = 0) -> "IteratedBlock":
        if depth > MAX_BLOCK_DEPTH:
            raise FormatError("Iterated data blocks nested too deeply")
        repeat_count = reader.read_u32() if wide else reader.read_u16()
        block_count = reader.read_u16()
        if block_count == 0:
            size = reader.read_u8()
            return cls(repeat_count, content=reader.read_bytes(size))
        blocks = tuple(cls.parse(reader, wide, depth + 1) for _ in range(block_count))
        return cls(repeat_count, blocks=blocks)

    @property
    def length(self) -> int:
        """Expanded size, computed without expanding."""
        if self.blocks:
            return self.repeat_count * sum(b.length for b in self.blocks)
        return self.repeat_count * len(self.content)

    def expand(self) -> bytes:
        if self.blocks:
            unit = b"".join(b.expand() for b in self.blocks)
        else:
            unit = self.content
        return unit * self.repeat_count


@dataclass(frozen=True)
class IteratedData:
    """Run-length compressed data placed at an offset within a segment (LIDATA).

    The blocks are expanded on the first call to ``materialize`` and the
    result is reused afterwards.
    """

    segment_index: int
    offset: int
    blocks: tuple[IteratedBlock, ...] = field(repr=False)

    @classmethod
    def parse(cls, record: OmfRecord) -> "IteratedData":
        if record.record_type not in (RecordType.LIDATA, RecordType.LIDATA32):
            raise FormatError(f"Expected LIDATA record, got {record.name}")
        reader = record.reader()
        segment_index = reader.read_index().value
        offset = reader.read_int2or4(record.is_wide).value
        blocks = []
        while not reader.at_end():
            blocks.append(IteratedBlock.parse(reader, record.is_wide))
        fragment = cls(segment_index, offset, tuple(blocks))
        fragment._check_size()
        return fragment

    @cached_property
    def length(self) -> int:
        return sum(b.length for b in self.blocks)

    @property
    def end_offset(self) -> int:
        return self.offset + self.length

    def _check_size(self) -> None:
        if self.length > MAX_ITERATED_FILL:
            raise FormatError(
                f"Iterated data at offset {self.offset:#x} expands to {self.length:#x} bytes "
                f"(limit {MAX_ITERATED_FILL:#x})"
            )

    @cached_property
    def _expanded(self) -> bytes:
        self._check_size()
        return b"".join(b.expand() for b in self.blocks)

    def materialize(self) -> bytes:
        return self._expanded

    def is_all_zeroes(self) -> bool:
        return not any(self.materialize())


# Closed set of fragment kinds; consumers rely only on offset, length,
# materialize() and is_all_zeroes().
DataFragment = EnumeratedData | IteratedData
