"""Object module loader for parsing OMF segment and data records."""

from omfkit.loader.omf import OmfModule
from omfkit.loader.image import SkippedFragment, SegmentImageReader
from omfkit.loader.reader import Index, Int2or4, ByteReader
from omfkit.loader.records import OmfRecord, RecordType
from omfkit.loader.segments import (
    Alignment,
    LayoutField,
    Permissions,
    SegmentHeader,
    SyntheticKind,
    SegmentAttributes,
)
from omfkit.loader.fragments import DataFragment, IteratedData, EnumeratedData

__all__ = [
    "OmfModule",
    "OmfRecord",
    "RecordType",
    "ByteReader",
    "Index",
    "Int2or4",
    "Alignment",
    "SegmentAttributes",
    "SegmentHeader",
    "SyntheticKind",
    "Permissions",
    "LayoutField",
    "DataFragment",
    "EnumeratedData",
    "IteratedData",
    "SegmentImageReader",
    "SkippedFragment",
]
