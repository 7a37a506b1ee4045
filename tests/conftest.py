"""Shared fixtures: helpers that build OMF records in memory."""

import struct

import pytest


def record(record_type: int, body: bytes) -> bytes:
    """Frame a record body with its type, length and checksum."""
    head = struct.pack("<BH", record_type, len(body) + 1)
    checksum = (-sum(head + body)) & 0xFF
    return head + body + bytes([checksum])


def counted(text: str) -> bytes:
    raw = text.encode("latin-1")
    return bytes([len(raw)]) + raw


def theadr(name: str) -> bytes:
    return record(0x80, counted(name))


def lnames(*names: str) -> bytes:
    return record(0x96, b"".join(counted(n) for n in names))


def segdef(attr: int, length: int, name: int, cls: int, overlay: int = 1) -> bytes:
    return record(0x98, struct.pack("<BHBBB", attr, length, name, cls, overlay))


def segdef_absolute(frame: int, offset: int, length: int, name: int, cls: int) -> bytes:
    return record(0x98, struct.pack("<BHBHBBB", 0x00, frame, offset, length, name, cls, 1))


def ledata(segment: int, offset: int, data: bytes) -> bytes:
    return record(0xA0, struct.pack("<BH", segment, offset) + data)


def lidata_block(repeat: int, content: bytes) -> bytes:
    return struct.pack("<HH", repeat, 0) + counted(content.decode("latin-1"))


def lidata(segment: int, offset: int, *blocks: bytes) -> bytes:
    return record(0xA2, struct.pack("<BH", segment, offset) + b"".join(blocks))


def modend() -> bytes:
    return record(0x8A, b"\x00")


# _TEXT: byte aligned, public, class CODE, 6 bytes
TEXT_ATTR = 0x28
# _DATA: paragraph aligned, public, class DATA, 16 bytes
DATA_ATTR = 0x68

TEXT_BYTES = b"\x55\x8b\xec\x5d\xc3\x90"


@pytest.fixture
def sample_module_bytes() -> bytes:
    """A small module with code, data, iterated data and an undefined segment."""
    return b"".join(
        [
            theadr("test.asm"),
            lnames("", "_TEXT", "CODE", "_DATA", "DATA"),
            segdef(TEXT_ATTR, len(TEXT_BYTES), 2, 3),
            segdef(DATA_ATTR, 0x10, 4, 5),
            ledata(1, 0, TEXT_BYTES),
            lidata(2, 4, lidata_block(3, b"AB")),
            ledata(3, 0, b"\x01\x02\x03\x04"),
            modend(),
        ]
    )


@pytest.fixture
def sample_module_path(tmp_path, sample_module_bytes):
    path = tmp_path / "test.obj"
    path.write_bytes(sample_module_bytes)
    return path
