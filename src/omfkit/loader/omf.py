"""OMF object module loader."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from omfkit.config import LoaderConfig
from omfkit.errors import FormatError
from omfkit.loader.fragments import DataFragment, EnumeratedData, IteratedData
from omfkit.loader.image import SegmentImageReader
from omfkit.loader.records import (
    OmfRecord,
    RecordType,
    iter_records,
    parse_names,
    parse_module_name,
)
from omfkit.loader.segments import Alignment, SegmentHeader, SyntheticKind

logger = logging.getLogger(__name__)


@dataclass
class OmfModule:
    """Parsed OMF object module."""

    path: Path
    config: LoaderConfig = field(default_factory=LoaderConfig)
    name: str = ""
    names: list[str] = field(default_factory=list)
    segments: list[SegmentHeader] = field(default_factory=list)
    extra_segments: dict[int, SegmentHeader] = field(default_factory=dict)
    record_count: int = 0
    next_address: int = 0
    _raw_data: bytes = field(default=b"", repr=False)

    @classmethod
    def load(cls, path: str | Path, config: LoaderConfig | None = None) -> "OmfModule":
        """Load and parse an OMF module from disk."""
        path = Path(path)
        with open(path, "rb") as f:
            data = f.read()

        return cls.parse(data, path, config)

    @classmethod
    def parse(
        cls,
        data: bytes,
        path: Path | None = None,
        config: LoaderConfig | None = None,
    ) -> "OmfModule":
        """Parse an OMF module from bytes and place its segments."""
        module = cls(
            path=path or Path("<memory>"),
            config=config or LoaderConfig(),
            _raw_data=data,
        )

        for record in iter_records(data):
            module.record_count += 1
            module._process_record(record)

        module._resolve()
        module._relocate()
        logger.info(
            "loaded module %r: %d segments, %d names",
            module.name,
            len(module.all_segments),
            len(module.names),
        )
        return module

    def _process_record(self, record: OmfRecord) -> None:
        rt = record.record_type

        if rt in (RecordType.THEADR, RecordType.LHEADR):
            self.name = parse_module_name(record)
        elif rt in (RecordType.LNAMES, RecordType.LLNAMES):
            # Both record kinds share one index space
            self.names.extend(parse_names(record))
        elif rt in (RecordType.SEGDEF, RecordType.SEGDEF32):
            self.segments.append(SegmentHeader.parse(record.reader(), rt))
        elif rt in (RecordType.LEDATA, RecordType.LEDATA32):
            self._attach(EnumeratedData.parse(record))
        elif rt in (RecordType.LIDATA, RecordType.LIDATA32):
            self._attach(IteratedData.parse(record))
        else:
            logger.debug("skipping %s record at %#x", record.name, record.offset)

    def _attach(self, fragment: DataFragment) -> None:
        index = fragment.segment_index
        if index == 0:
            raise FormatError(f"Data record at offset {fragment.offset:#x} has no segment")

        if index <= len(self.segments):
            segment = self.segments[index - 1]
            if isinstance(fragment, IteratedData):
                segment.add_compressed_fragment(fragment)
            else:
                segment.add_fragment(fragment)
            return

        # Data for a segment that was never defined
        segment = self.extra_segments.get(index)
        if segment is None:
            segment = SegmentHeader.synthetic(index, SyntheticKind.DATA)
            self.extra_segments[index] = segment
            logger.info("injected default segment %s", segment.name)
        # Injected headers start at length 0, so both data kinds grow them
        segment.add_appendable_fragment(fragment)

    def _resolve(self) -> None:
        for segment in self.segments:
            segment.resolve_names(self.names)
        for segment in self.all_segments:
            segment.sort_fragments()
            segment.freeze()

    def _relocate(self) -> None:
        """Assign addresses to relocatable segments in file order.

        Absolute segments keep the frame address from their definition.
        """
        address = self.config.base_address
        for segment in self.all_segments:
            if segment.alignment == Alignment.ABSOLUTE:
                continue
            address = segment.relocate(address, self.config.align_override)
        self.next_address = address

    # Public API methods

    @property
    def all_segments(self) -> list[SegmentHeader]:
        """Defined segments followed by injected ones."""
        return self.segments + [self.extra_segments[i] for i in sorted(self.extra_segments)]

    @property
    def code_segments(self) -> list[SegmentHeader]:
        return [s for s in self.all_segments if s.is_code]

    def get_segment(self, name: str) -> SegmentHeader | None:
        """Get segment by name."""
        for seg in self.all_segments:
            if seg.name == name:
                return seg
        return None

    def segment_at_address(self, addr: int) -> SegmentHeader | None:
        """Find segment containing address."""
        for seg in self.all_segments:
            if seg.contains_address(addr):
                return seg
        return None

    def open_segment(self, segment: SegmentHeader) -> SegmentImageReader:
        """Open a byte stream over a segment's reconstructed contents."""
        return segment.image_reader(self.config.max_fill)

    def read_segment(self, segment: SegmentHeader) -> bytes:
        """Read a segment's reconstructed contents."""
        return segment.read_image(self.config.max_fill)

    def read(self, addr: int, size: int) -> bytes:
        """Read bytes from a placed address."""
        segment = self.segment_at_address(addr)
        if segment is None or segment.address is None:
            raise ValueError(f"No segment at address {addr:#x}")
        offset = addr - segment.address
        if offset + size > segment.declared_length:
            raise ValueError("Read beyond segment bounds")
        return self.read_segment(segment)[offset : offset + size]
