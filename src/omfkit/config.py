"""Loader configuration."""

import json
import logging
from dataclasses import dataclass, fields as dataclass_fields
from pathlib import Path

logger = logging.getLogger(__name__)

# Maximum zero bytes synthesized to pad a hole in a segment's data
MAX_UNINITIALIZED_FILL = 0x2000


@dataclass
class LoaderConfig:
    """Options controlling segment placement and image reconstruction."""

    # Largest run of zeroes synthesized for uncovered segment ranges
    max_fill: int = MAX_UNINITIALIZED_FILL

    # First address handed out to relocatable segments
    base_address: int = 0

    # Alignment code forced on every relocatable segment (None keeps each header's own)
    align_override: int | None = None

    @classmethod
    def load(cls, path: str | Path | None = None) -> "LoaderConfig":
        """Load configuration from a JSON file.

        Keys may be camelCase or snake_case. A missing file gives the
        defaults; unknown keys are ignored.
        """
        if path is None:
            return cls()
        path = Path(path)
        if not path.exists():
            logger.debug("config file %s not found, using defaults", path)
            return cls()

        with open(path) as f:
            data = json.load(f)

        converted = {}
        for key, value in data.items():
            snake_key = "".join(f"_{c.lower()}" if c.isupper() else c for c in key)
            converted[snake_key] = value

        known = {f.name for f in dataclass_fields(cls)}
        for key in sorted(set(converted) - known):
            logger.warning("ignoring unknown config key %r", key)
        return cls(**{k: v for k, v in converted.items() if k in known})

    def to_dict(self) -> dict[str, int | None]:
        return {f.name: getattr(self, f.name) for f in dataclass_fields(self)}
