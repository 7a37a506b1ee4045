"""Reconstruction of a segment's byte image from its data fragments."""

import io
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from omfkit.errors import ReconstructionError

if TYPE_CHECKING:
    from omfkit.loader.segments import SegmentHeader

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SkippedFragment:
    """A fragment dropped because it starts behind data already produced."""

    segment: str
    class_name: str
    index: int
    offset: int

    def __str__(self) -> str:
        return (
            f"Segment {self.segment}:{self.class_name} has bad data offset "
            f"({self.offset:#x}) in data block {self.index}...skipping."
        )


class SegmentImageReader(io.RawIOBase):
    """Stream over the bytes a segment contributes to the program image.

    Walks the segment's fragments in order, padding uncovered ranges with
    zeroes. Exactly ``declared_length`` bytes are produced unless a hole
    larger than ``max_fill`` is found; then ``error`` is set and the stream
    ends early. Fragments starting before the current position are dropped
    and recorded in ``skipped``.
    """

    def __init__(self, segment: "SegmentHeader", max_fill: int) -> None:
        super().__init__()
        self.segment = segment
        self.max_fill = max_fill
        self.skipped: list[SkippedFragment] = []
        self.error: ReconstructionError | None = None
        self._length = segment.declared_length
        self._pos = 0  # Position within the segment
        self._buffer = b""
        self._buffer_pos = 0
        self._next_fragment = 0

    def readable(self) -> bool:
        return True

    def tell(self) -> int:
        return self._pos

    @property
    def exhausted(self) -> bool:
        return self.error is not None or self._pos >= self._length

    def readinto(self, b) -> int:
        view = memoryview(b).cast("B")
        written = 0

        while written < len(view) and not self.exhausted:
            if self._buffer_pos >= len(self._buffer):
                try:
                    self._establish_next_buffer()
                except ReconstructionError as e:
                    logger.error("%s", e)
                    self.error = e
                    break

            count = min(
                len(self._buffer) - self._buffer_pos,
                len(view) - written,
                self._length - self._pos,
            )
            view[written : written + count] = self._buffer[self._buffer_pos : self._buffer_pos + count]
            written += count
            self._buffer_pos += count
            self._pos += count

        return written

    def _set_buffer(self, data: bytes) -> None:
        self._buffer = data
        self._buffer_pos = 0

    def _establish_next_buffer(self) -> None:
        """Load the next run of bytes: a zero fill or a fragment's contents."""
        fragments = self.segment.fragments
        name = self.segment.display_name

        while self._next_fragment < len(fragments):
            fragment = fragments[self._next_fragment]

            if self._pos < fragment.offset:
                size = fragment.offset - self._pos
                if size > self.max_fill:
                    raise ReconstructionError(
                        f"Unfilled hole in OMF data blocks for segment: {name}", segment=name
                    )
                self._set_buffer(bytes(size))
                return

            self._next_fragment += 1
            if self._pos == fragment.offset:
                data = fragment.materialize()
                if not data:
                    continue
                self._set_buffer(data)
                return

            skipped = SkippedFragment(
                segment=name,
                class_name=self.segment.class_name or "",
                index=self._next_fragment - 1,
                offset=fragment.offset,
            )
            self.skipped.append(skipped)
            logger.warning("%s", skipped)

        # Filler after the last fragment
        size = self._length - self._pos
        if size > self.max_fill:
            raise ReconstructionError(f"Large hole at the end of OMF segment: {name}", segment=name)
        self._set_buffer(bytes(size))

    def close(self) -> None:
        self._buffer = b""
        super().close()
