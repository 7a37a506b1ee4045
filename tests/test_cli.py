"""Tests for the command-line interface."""

import pytest
from click.testing import CliRunner

from omfkit.cli import main

WIDE = {"COLUMNS": "200"}


@pytest.fixture
def runner():
    return CliRunner()


class TestCli:
    """Tests for omfkit commands."""

    def test_info(self, runner, sample_module_path):
        """Test the module summary."""
        result = runner.invoke(main, ["info", str(sample_module_path)], env=WIDE)

        assert result.exit_code == 0
        assert "test.asm" in result.output
        assert "0x24" in result.output

    def test_segments(self, runner, sample_module_path):
        """Test the segment table."""
        result = runner.invoke(main, ["segments", str(sample_module_path)], env=WIDE)

        assert result.exit_code == 0
        assert "_TEXT" in result.output
        assert "EXTRADATA_3" in result.output
        assert "r-x" in result.output

    def test_layout(self, runner, sample_module_path):
        """Test the record layout view."""
        result = runner.invoke(main, ["layout", str(sample_module_path)], env=WIDE)

        assert result.exit_code == 0
        assert "segment_name_index" in result.output

    def test_dump_by_name(self, runner, sample_module_path):
        """Test dumping a segment's reconstructed bytes."""
        result = runner.invoke(main, ["dump", str(sample_module_path), "_DATA"], env=WIDE)

        assert result.exit_code == 0
        assert "41 42 41 42 41 42" in result.output

    def test_dump_by_number(self, runner, sample_module_path):
        """Test selecting a segment by position."""
        result = runner.invoke(main, ["dump", str(sample_module_path), "0"], env=WIDE)

        assert result.exit_code == 0
        assert "55 8b ec 5d c3 90" in result.output

    def test_dump_fill_error(self, runner, sample_module_path):
        """Test a fill limit violation is reported."""
        result = runner.invoke(
            main,
            ["--max-fill", "1", "dump", str(sample_module_path), "_DATA"],
            env=WIDE,
        )

        assert result.exit_code == 1
        assert "Unfilled hole" in result.output

    def test_dump_unknown_segment(self, runner, sample_module_path):
        """Test an unknown segment name."""
        result = runner.invoke(main, ["dump", str(sample_module_path), "_BSS"], env=WIDE)

        assert result.exit_code == 1
        assert "Segment not found" in result.output

    def test_base_option(self, runner, sample_module_path):
        """Test the relocation base override."""
        result = runner.invoke(
            main, ["--base", "0x1000", "info", str(sample_module_path)], env=WIDE
        )

        assert result.exit_code == 0
        assert "0x1024" in result.output

    def test_invalid_base(self, runner, sample_module_path):
        """Test a malformed base address."""
        result = runner.invoke(main, ["--base", "zz", "info", str(sample_module_path)])

        assert result.exit_code != 0

    def test_malformed_module(self, runner, tmp_path):
        """Test a truncated file is reported instead of crashing."""
        path = tmp_path / "bad.obj"
        path.write_bytes(b"\x98\x10\x00\x28")

        result = runner.invoke(main, ["info", str(path)], env=WIDE)

        assert result.exit_code == 1
        assert "Failed to load" in result.output
