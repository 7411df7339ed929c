"""Write-time validation of memory entry fields."""

from __future__ import annotations

from core.errors import InvalidInputError


class EntryValidator:
    """Checks title and coordinate bounds before any create/update."""

    def validate(self, title: str, latitude: float, longitude: float) -> None:
        """Raise `InvalidInputError` when a field is out of range.

        Comparisons are written so that NaN fails the bounds checks.
        """
        if not (title or "").strip():
            raise InvalidInputError("Title cannot be empty")
        if not -90.0 <= latitude <= 90.0:
            raise InvalidInputError("Latitude must be between -90 and 90 degrees")
        if not -180.0 <= longitude <= 180.0:
            raise InvalidInputError("Longitude must be between -180 and 180 degrees")
