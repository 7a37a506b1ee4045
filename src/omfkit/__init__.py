"""omfkit - Segment loading for relocatable OMF object modules."""

from pathlib import Path

from omfkit.config import LoaderConfig
from omfkit.errors import (
    OmfError,
    FormatError,
    RelocationError,
    ReconstructionError,
)
from omfkit.loader import (
    Alignment,
    OmfModule,
    Permissions,
    IteratedData,
    SegmentHeader,
    SyntheticKind,
    EnumeratedData,
    SkippedFragment,
    SegmentAttributes,
    SegmentImageReader,
)

__version__ = "0.1.0"
__all__ = [
    "load",
    "OmfModule",
    "LoaderConfig",
    "SegmentHeader",
    "SegmentAttributes",
    "SegmentImageReader",
    "SkippedFragment",
    "Alignment",
    "Permissions",
    "SyntheticKind",
    "EnumeratedData",
    "IteratedData",
    "OmfError",
    "FormatError",
    "RelocationError",
    "ReconstructionError",
]


def load(path: str | Path, config: LoaderConfig | None = None) -> OmfModule:
    """Load an OMF module and place its segments."""
    return OmfModule.load(path, config)


def main() -> None:
    """Entry point for CLI."""
    from omfkit.cli import main as cli_main

    cli_main()
