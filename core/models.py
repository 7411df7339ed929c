"""Core domain models for memory entries and their media."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class MediaKind(str, Enum):
    """Kind of a stored media file."""

    IMAGE = "image"
    VIDEO = "video"


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 latitude/longitude pair."""

    latitude: float
    longitude: float

    def as_text(self) -> str:
        """Render as signed decimal degrees, e.g. ``+48.858400, +2.294500``."""
        return f"{self.latitude:+.6f}, {self.longitude:+.6f}"


@dataclass
class MediaItem:
    """A photo or video file stored in the documents directory.

    `path` is the bare file name relative to the documents directory; `id` is
    the lookup key.
    """

    id: str
    path: str
    kind: MediaKind
    owner_id: str | None = None


@dataclass
class MemoryEntry:
    """A user-created memory pinned to a coordinate."""

    id: str
    title: str
    description: str
    latitude: float
    longitude: float
    media: list[MediaItem] = field(default_factory=list)

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)

    @property
    def media_ids(self) -> list[str]:
        return [m.id for m in self.media]


@dataclass
class PickerItem:
    """A file handed over by a picker or camera.

    `path` points at a temporary file; `content_type` is the declared MIME
    type. When empty, the type is derived from the file extension.
    """

    path: str
    content_type: str = ""


@dataclass
class LocationCandidate:
    """A place returned by a forward location search."""

    name: str
    coordinate: Coordinate
    address_parts: list[str] = field(default_factory=list)

    @property
    def description(self) -> str:
        """Full address, or the coordinate text when no address is known."""
        parts = [p for p in self.address_parts if p]
        if parts:
            return ", ".join(parts)
        return self.coordinate.as_text()
