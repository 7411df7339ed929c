"""Core service interfaces and shared data structures.

This module defines the collaborator interfaces the infrastructure layer
implements, plus small result dataclasses used by the app layer.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.models import Coordinate, LocationCandidate, MediaItem


@dataclass
class ImportOutcome:
    """Outcome of a single item within a batch media import.

    Attributes:
        source_path: Path of the picked/captured source.
        media: Created media record on success.
        error: Human-readable failure reason otherwise.
    """

    source_path: str
    media: MediaItem | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.media is not None


class IGeocoder:
    """Interface for resolving coordinates to place names and back."""

    def reverse(self, coordinate: Coordinate) -> list[str]:
        """Return ranked place-name candidates for `coordinate`, best first."""
        raise NotImplementedError

    def search(self, query: str) -> list[LocationCandidate]:
        """Return places matching a free-text `query`."""
        raise NotImplementedError
