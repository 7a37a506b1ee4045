"""OMF segment definitions (SEGDEF/SEGDEF32) and their placement."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING

from omfkit.errors import FormatError, RelocationError, ReconstructionError
from omfkit.loader.fragments import DataFragment, IteratedData
from omfkit.loader.reader import ByteReader, Index, Int2or4
from omfkit.loader.records import RecordType, has_big_fields

if TYPE_CHECKING:
    from omfkit.loader.image import SegmentImageReader

logger = logging.getLogger(__name__)

# Fixed lengths used when the attribute "big" bit says to ignore the length field
SEGDEF_BIG_LENGTH = 0x10000  # Exactly 64K
SEGDEF32_BIG_LENGTH = 0x100000000  # Exactly 4G

# Attribute byte used for injected default segments
SYNTHETIC_ATTRIBUTES = 0xA9


class Alignment(IntEnum):
    """Segment alignment codes (attribute bits 7..5)."""

    ABSOLUTE = 0  # Not relocatable, frame:offset follows
    BYTE = 1
    WORD = 2
    PARAGRAPH = 3  # 16 bytes
    PAGE = 4  # Assumed 4096 bytes
    DWORD = 5


ALIGNMENT_BOUNDARIES: dict[int, int] = {
    Alignment.BYTE: 1,
    Alignment.WORD: 2,
    Alignment.PARAGRAPH: 16,
    Alignment.PAGE: 4096,
    Alignment.DWORD: 4,
}


class SyntheticKind(IntEnum):
    """Kind of default segment injected without a SEGDEF record."""

    OTHER = 0
    TEXT = 1
    DATA = 2


@dataclass(frozen=True)
class SegmentAttributes:
    """Decoded segment attribute byte: ``AAACCCBP``."""

    raw: int

    @classmethod
    def decode(cls, value: int) -> "SegmentAttributes":
        return cls(value & 0xFF)

    @property
    def alignment(self) -> int:
        return (self.raw >> 5) & 0x7

    @property
    def combine(self) -> int:
        return (self.raw >> 2) & 0x7

    @property
    def big(self) -> bool:
        """Set when the declared length must be ignored."""
        return bool((self.raw >> 1) & 1)

    @property
    def use32(self) -> bool:
        return bool(self.raw & 1)

    @property
    def is_16bit(self) -> bool:
        return not self.use32

    @property
    def has_explicit_frame(self) -> bool:
        return self.alignment == Alignment.ABSOLUTE


@dataclass(frozen=True)
class Permissions:
    """Access rights guessed from a segment's class name."""

    readable: bool = True
    writable: bool = True
    executable: bool = False
    is_code: bool = False

    @classmethod
    def code(cls) -> "Permissions":
        return cls(readable=True, writable=False, executable=True, is_code=True)

    @classmethod
    def data(cls) -> "Permissions":
        return cls(readable=True, writable=True, executable=False, is_code=False)

    @classmethod
    def for_class(cls, class_name: str) -> "Permissions":
        # Only these two spellings mark a code segment
        if class_name in ("CODE", "code"):
            return cls.code()
        return cls.data()

    def __str__(self) -> str:
        return (
            ("r" if self.readable else "-")
            + ("w" if self.writable else "-")
            + ("x" if self.executable else "-")
        )


@dataclass(frozen=True)
class LayoutField:
    """One field of a record's on-disk layout."""

    name: str
    size: int


@dataclass
class SegmentHeader:
    """A segment definition and the data fragments attached to it."""

    attributes: SegmentAttributes
    length: Int2or4
    segment_name_index: Index
    class_name_index: Index
    overlay_name_index: Index
    record_type: int = RecordType.SEGDEF
    frame_number: int = 0
    frame_offset: int = 0
    address: int | None = None  # None until placed
    name: str | None = None
    class_name: str | None = None
    overlay_name: str | None = None
    permissions: Permissions = field(default_factory=Permissions.data)
    fragments: list[DataFragment] = field(default_factory=list, repr=False)
    is_synthetic: bool = False
    _frozen: bool = field(default=False, init=False, repr=False)

    @classmethod
    def parse(cls, reader: ByteReader, record_type: int) -> "SegmentHeader":
        """Parse a SEGDEF or SEGDEF32 body.

        The record type selects 2- or 4-byte length fields and which fixed
        length applies when the big bit is set.
        """
        wide = has_big_fields(record_type)
        attributes = SegmentAttributes.decode(reader.read_u8())

        frame_number = 0
        frame_offset = 0
        address = None
        if attributes.has_explicit_frame:
            frame_number = reader.read_u16()
            frame_offset = reader.read_u8()
            address = frame_number + frame_offset

        length = reader.read_int2or4(wide)
        segment_name_index = reader.read_index()
        class_name_index = reader.read_index()
        overlay_name_index = reader.read_index()

        if attributes.big:
            if record_type == RecordType.SEGDEF:
                length = length.with_value(SEGDEF_BIG_LENGTH)
            else:
                length = length.with_value(SEGDEF32_BIG_LENGTH)

        return cls(
            attributes=attributes,
            length=length,
            segment_name_index=segment_name_index,
            class_name_index=class_name_index,
            overlay_name_index=overlay_name_index,
            record_type=record_type,
            frame_number=frame_number,
            frame_offset=frame_offset,
            address=address,
        )

    @classmethod
    def synthetic(cls, number: int, kind: SyntheticKind) -> "SegmentHeader":
        """Build a default segment for data that names no defined segment.

        Borland toolchains emit such data; the segment starts empty and
        grows as data is appended to it.
        """
        if kind == SyntheticKind.TEXT:
            prefix, class_name, permissions = "EXTRATEXT_", "TEXT", Permissions.code()
        elif kind == SyntheticKind.DATA:
            prefix, class_name, permissions = "EXTRADATA_", "DATA", Permissions.data()
        else:
            prefix, class_name, permissions = "EXTRA_", "DATA", Permissions.data()

        return cls(
            attributes=SegmentAttributes.decode(SYNTHETIC_ATTRIBUTES),
            length=Int2or4(2, 0),
            segment_name_index=Index(1, 0),
            class_name_index=Index(1, 0),
            overlay_name_index=Index(1, 0),
            name=f"{prefix}{number}",
            class_name=class_name,
            overlay_name="",
            permissions=permissions,
            is_synthetic=True,
        )

    @property
    def declared_length(self) -> int:
        return self.length.value

    @property
    def alignment(self) -> int:
        return self.attributes.alignment

    @property
    def combine(self) -> int:
        return self.attributes.combine

    @property
    def is_16bit(self) -> bool:
        return self.attributes.is_16bit

    @property
    def is_code(self) -> bool:
        return self.permissions.is_code

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    @property
    def end_address(self) -> int | None:
        if self.address is None:
            return None
        return self.address + self.declared_length

    @property
    def display_name(self) -> str:
        return self.name if self.name is not None else f"<segment {self.segment_name_index.value}>"

    def contains_address(self, addr: int) -> bool:
        if self.address is None:
            return False
        return self.address <= addr < self.address + self.declared_length

    def resolve_names(self, names: Sequence[str]) -> None:
        """Look up segment, class and overlay names and infer permissions.

        ``names`` is the module's name table; indices are 1-based and
        index 0 means no name.
        """
        self.name = self._lookup(names, self.segment_name_index, "Segment")
        self.class_name = self._lookup(names, self.class_name_index, "Class")
        self.overlay_name = self._lookup(names, self.overlay_name_index, "Overlay")
        self.permissions = Permissions.for_class(self.class_name)

    @staticmethod
    def _lookup(names: Sequence[str], index: Index, kind: str) -> str:
        if index.value == 0:
            return ""
        if index.value > len(names):
            raise FormatError(
                f"{kind} name index {index.value} out of bounds ({len(names)} names)"
            )
        return names[index.value - 1]

    def relocate(self, first_valid_address: int, align_override: int | None = None) -> int:
        """Place the segment at the first suitably aligned address.

        Args:
            first_valid_address: Lowest address not claimed by earlier segments
            align_override: Alignment code to use instead of the header's own;
                None or a negative value keeps the header's alignment

        Returns:
            The first address after this segment
        """
        align = self.attributes.alignment
        if align_override is not None and align_override >= 0:
            align = align_override

        if align == Alignment.ABSOLUTE:
            raise RelocationError(f"Trying to relocate absolute segment {self.display_name}")

        boundary = ALIGNMENT_BOUNDARIES.get(align)
        if boundary is None:
            raise FormatError(f"Unsupported alignment type {align} in segment {self.display_name}")
        if self.address is not None:
            raise RelocationError(
                f"Segment {self.display_name} is already placed at {self.address:#x}"
            )

        self.freeze()
        self.address = (first_valid_address + boundary - 1) & ~(boundary - 1)
        logger.debug(
            "placed %s at %#x (align %d, length %#x)",
            self.display_name,
            self.address,
            boundary,
            self.declared_length,
        )
        return self.address + self.declared_length

    # Fragment attachment

    def _check_open(self) -> None:
        if self._frozen:
            raise ValueError(f"Segment {self.display_name} no longer accepts data")

    def add_fragment(self, fragment: DataFragment) -> None:
        """Attach a data fragment as-is."""
        self._check_open()
        self.fragments.append(fragment)

    def add_appendable_fragment(self, fragment: DataFragment) -> None:
        """Attach a fragment that may extend the segment past its declared length."""
        self._check_open()
        end = fragment.offset + fragment.length
        if end > self.length.value:
            self.length = self.length.with_value(end)
        self.fragments.append(fragment)

    def add_compressed_fragment(self, fragment: IteratedData) -> None:
        """Attach an iterated-data fragment; it is expanded when first read."""
        self._check_open()
        self.fragments.append(fragment)

    def sort_fragments(self) -> None:
        """Order fragments by offset; equal offsets keep attachment order."""
        self._check_open()
        self.fragments.sort(key=lambda f: f.offset)

    def freeze(self) -> None:
        """End the attachment phase."""
        self._frozen = True

    def has_nonzero_data(self) -> bool:
        """Check if any fragment contains a non-zero byte."""
        return any(not f.is_all_zeroes() for f in self.fragments)

    # Contents

    def image_reader(self, max_fill: int) -> "SegmentImageReader":
        """Open a stream over the reconstructed segment bytes."""
        from omfkit.loader.image import SegmentImageReader

        self.freeze()
        return SegmentImageReader(self, max_fill)

    def read_image(self, max_fill: int) -> bytes:
        """Read the whole reconstructed segment.

        Raises:
            ReconstructionError: If a zero-filled hole exceeds ``max_fill``;
                the bytes read so far are in its ``data`` attribute
        """
        with self.image_reader(max_fill) as stream:
            data = stream.readall()
            if stream.error is not None:
                raise ReconstructionError(
                    str(stream.error), segment=self.display_name, data=data
                ) from stream.error
        return data

    def layout(self) -> list[LayoutField]:
        """Describe the on-disk fields of the record this header came from."""
        fields = [
            LayoutField("type", 1),
            LayoutField("length", 2),
            LayoutField("segment_attr", 1),
        ]
        if self.attributes.has_explicit_frame:
            fields.append(LayoutField("frame_number", 2))
            fields.append(LayoutField("offset", 1))
        fields.extend(
            [
                LayoutField("segment_length", self.length.width),
                LayoutField("segment_name_index", self.segment_name_index.width),
                LayoutField("class_name_index", self.class_name_index.width),
                LayoutField("overlay_name_index", self.overlay_name_index.width),
                LayoutField("checksum", 1),
            ]
        )
        return fields
