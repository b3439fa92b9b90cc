"""Marker record persistence."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from fipsbuild.managed import write_file
from fipsbuild.models import MarkerRecord
from fipsbuild.observability import StructuredLogger
from fipsbuild.settings import Settings


@dataclass(slots=True)
class MarkerWriter:
    settings: Settings
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    @property
    def path(self) -> Path:
        return self.settings.path(self.settings.marker_path)

    def write(self, record: MarkerRecord) -> Path:
        self.logger.info("marker", "Creating FIPS marker file...", stage="finalize")
        return write_file(self.path, record.render())


def read_marker(path: str | Path) -> dict[str, str]:
    """Parse a marker file into its ``KEY=value`` fields, skipping comments."""
    fields: dict[str, str] = {}
    for line in Path(path).read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        fields[key] = value
    return fields


__all__ = ["MarkerWriter", "read_marker"]
