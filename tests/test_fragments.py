"""Tests for enumerated and iterated data fragments."""

import struct

import pytest

from omfkit.errors import FormatError
from omfkit.loader.records import OmfRecord, iter_records
from omfkit.loader.fragments import MAX_ITERATED_FILL, IteratedData, IteratedBlock, EnumeratedData
from omfkit.loader.segments import SegmentHeader, SyntheticKind

from conftest import record, ledata, lidata, lidata_block


def _single(data: bytes) -> OmfRecord:
    return next(iter_records(data))


class TestEnumeratedData:
    """Tests for LEDATA fragments."""

    def test_parse(self):
        """Test segment index, offset and data are decoded."""
        frag = EnumeratedData.parse(_single(ledata(2, 0x10, b"\xaa\xbb")))

        assert frag.segment_index == 2
        assert frag.offset == 0x10
        assert frag.length == 2
        assert frag.end_offset == 0x12
        assert frag.materialize() == b"\xaa\xbb"

    def test_parse_wide(self):
        """Test LEDATA32 uses a 4-byte offset."""
        body = struct.pack("<BI", 1, 0x10000) + b"\x01"
        frag = EnumeratedData.parse(_single(record(0xA1, body)))

        assert frag.offset == 0x10000
        assert frag.materialize() == b"\x01"

    def test_rejects_other_records(self):
        """Test parsing a non-LEDATA record fails."""
        with pytest.raises(FormatError, match="Expected LEDATA"):
            EnumeratedData.parse(_single(lidata(1, 0, lidata_block(1, b"A"))))

    def test_all_zeroes(self):
        """Test zero detection."""
        assert EnumeratedData(1, 0, b"\x00\x00").is_all_zeroes()
        assert not EnumeratedData(1, 0, b"\x00\x01").is_all_zeroes()


class TestIteratedData:
    """Tests for LIDATA fragments."""

    def test_simple_block(self):
        """Test a single repeated content block."""
        frag = IteratedData.parse(_single(lidata(1, 4, lidata_block(3, b"AB"))))

        assert frag.offset == 4
        assert frag.length == 6
        assert frag.materialize() == b"ABABAB"

    def test_nested_blocks(self):
        """Test nested blocks are expanded inside their parent's repeat."""
        nested = struct.pack("<HH", 2, 2) + lidata_block(1, b"A") + lidata_block(2, b"B")
        frag = IteratedData.parse(_single(lidata(1, 0, nested)))

        assert frag.length == 6
        assert frag.materialize() == b"ABBABB"

    def test_multiple_top_level_blocks(self):
        """Test consecutive blocks are concatenated."""
        frag = IteratedData.parse(
            _single(lidata(1, 0, lidata_block(2, b"X"), lidata_block(1, b"YZ")))
        )

        assert frag.materialize() == b"XXYZ"

    def test_wide_repeat_count(self):
        """Test LIDATA32 uses 4-byte offsets and repeat counts."""
        body = struct.pack("<BI", 1, 8) + struct.pack("<IH", 5, 0) + b"\x01\x00"
        frag = IteratedData.parse(_single(record(0xA3, body)))

        assert frag.offset == 8
        assert frag.materialize() == b"\x00" * 5
        assert frag.is_all_zeroes()

    def test_materialize_is_repeatable(self):
        """Test expansion returns the same bytes every call."""
        frag = IteratedData(1, 0, (IteratedBlock(4, content=b"\x07"),))

        assert frag.materialize() == frag.materialize() == b"\x07" * 4

    def test_length_without_expanding(self):
        """Test the declared length is computed from block structure."""
        block = IteratedBlock(1000, blocks=(IteratedBlock(2, content=b"ab"),))

        assert block.length == 4000

    def test_truncated_block(self):
        """Test a block cut short raises FormatError."""
        body = struct.pack("<BH", 1, 0) + struct.pack("<HH", 1, 0) + b"\x04AB"

        with pytest.raises(FormatError):
            IteratedData.parse(_single(record(0xA2, body)))

    def test_oversized_expansion_rejected(self):
        """Test a huge repeat count is refused before anything is expanded."""
        block = struct.pack("<IH", 0xFFFFFFFF, 0) + b"\xff" + b"\x90" * 255
        body = struct.pack("<BI", 1, 0) + block

        with pytest.raises(FormatError, match="expands to"):
            IteratedData.parse(_single(record(0xA3, body)))

    def test_oversized_fragment_not_materialized(self):
        """Test a hand-built oversized fragment fails instead of allocating."""
        frag = IteratedData(1, 0, (IteratedBlock(0xFFFFFFFF, content=b"\x90" * 255),))
        segment = SegmentHeader.synthetic(1, SyntheticKind.DATA)
        segment.add_appendable_fragment(frag)

        with pytest.raises(FormatError, match="limit"):
            segment.read_image(0x2000)

    def test_expansion_at_limit(self):
        """Test data up to the limit is still accepted."""
        frag = IteratedData(1, 0, (IteratedBlock(MAX_ITERATED_FILL, content=b"\x00"),))

        assert frag.length == MAX_ITERATED_FILL
        assert frag.is_all_zeroes()
