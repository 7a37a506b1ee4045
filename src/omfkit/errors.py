"""Exceptions raised while decoding and loading OMF modules."""


class OmfError(Exception):
    """Base class for all OMF loading errors."""


class FormatError(OmfError):
    """Malformed or truncated record data."""


class RelocationError(OmfError):
    """A segment cannot be placed at a linker-assigned address."""


class ReconstructionError(OmfError):
    """A segment image could not be rebuilt from its data fragments.

    Only the read of that one segment is affected. ``data`` holds the bytes
    that were produced before the failure.
    """

    def __init__(self, message: str, segment: str | None = None, data: bytes = b"") -> None:
        super().__init__(message)
        self.segment = segment
        self.data = data
