"""OMF record framing."""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from collections.abc import Iterator

from omfkit.errors import FormatError
from omfkit.loader.reader import ByteReader

logger = logging.getLogger(__name__)


class RecordType(IntEnum):
    """OMF record types handled by the loader.

    Odd-numbered variants carry 32-bit offset and length fields.
    """

    THEADR = 0x80
    LHEADR = 0x82
    COMENT = 0x88
    MODEND = 0x8A
    MODEND32 = 0x8B
    LNAMES = 0x96
    SEGDEF = 0x98
    SEGDEF32 = 0x99
    LEDATA = 0xA0
    LEDATA32 = 0xA1
    LIDATA = 0xA2
    LIDATA32 = 0xA3
    LLNAMES = 0xCA


def has_big_fields(record_type: int) -> bool:
    """Whether a record type uses 4-byte offset/length fields."""
    return bool(record_type & 1)


def record_name(record_type: int) -> str:
    try:
        return RecordType(record_type).name
    except ValueError:
        return f"RECORD_{record_type:02X}"


@dataclass
class OmfRecord:
    """One framed record: type byte, 16-bit length, body and checksum."""

    record_type: int
    offset: int  # File offset of the type byte
    body: bytes = field(repr=False)
    checksum: int = 0

    @property
    def name(self) -> str:
        return record_name(self.record_type)

    @property
    def is_wide(self) -> bool:
        return has_big_fields(self.record_type)

    def reader(self) -> ByteReader:
        return ByteReader(self.body)


def iter_records(data: bytes) -> Iterator[OmfRecord]:
    """Split a module image into records.

    The record length counts the body plus the trailing checksum byte.
    Checksums are returned but not verified.
    """
    reader = ByteReader(data)
    while not reader.at_end():
        start = reader.offset
        record_type = reader.read_u8()
        length = reader.read_u16()
        if length == 0:
            raise FormatError(f"Record {record_name(record_type)} at {start:#x} has zero length")
        body = reader.read_bytes(length - 1)
        checksum = reader.read_u8()
        logger.debug("record %s at %#x, %d body bytes", record_name(record_type), start, len(body))
        yield OmfRecord(record_type, start, body, checksum)
        if record_type in (RecordType.MODEND, RecordType.MODEND32):
            break


def parse_names(record: OmfRecord) -> list[str]:
    """Parse the counted strings of an LNAMES or LLNAMES record."""
    reader = record.reader()
    names = []
    while not reader.at_end():
        names.append(reader.read_counted_string())
    return names


def parse_module_name(record: OmfRecord) -> str:
    """Parse the module name from a THEADR or LHEADR record."""
    return record.reader().read_counted_string()
