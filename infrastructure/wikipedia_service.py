"""Place descriptions from the Wikipedia "extracts" API.

A coordinate is reverse-geocoded into ranked place names; each name is tried
as a page title in turn and the first non-empty intro extract wins. There is
one request per candidate, no retries and no caching across calls.
"""

from __future__ import annotations

from typing import Any

from loguru import logger
import requests

from core.models import Coordinate
from core.services.interfaces import IGeocoder

WIKI_API_URL = "https://en.wikipedia.org/w/api.php"
EXTRACTS_QUERY = "format=json&action=query&prop=extracts&exintro&explaintext&redirects=1"


def parse_extract(payload: Any) -> str | None:
    """Return the extract of the first page in a `query.pages` envelope."""
    try:
        pages = payload["query"]["pages"]
        first = next(iter(pages.values()))
        extract = first["extract"]
    except (KeyError, TypeError, AttributeError, StopIteration):
        return None
    if not isinstance(extract, str) or not extract.strip():
        return None
    return extract


class WikipediaService:
    """Finds a human-readable description for a coordinate."""

    def __init__(
        self,
        geocoder: IGeocoder,
        session: requests.Session | None = None,
        settings: object | None = None,
    ) -> None:
        self._geocoder = geocoder
        self._session = session or requests.Session()
        self._api_url = WIKI_API_URL
        self._user_agent = "GeoMemories/0.1"
        self._timeout: float | None = 10.0
        if settings is not None:
            self._api_url = str(settings.get("wikipedia.api_url", self._api_url))
            self._user_agent = str(settings.get("wikipedia.user_agent", self._user_agent))
            timeout = settings.get("wikipedia.timeout_sec", self._timeout)
            self._timeout = float(timeout) if timeout else None

    def link_for(self, query: str) -> str:
        """Build the extracts URL for a page title query."""
        encoded = requests.utils.quote(query, safe="")
        return f"{self._api_url}?{EXTRACTS_QUERY}&titles={encoded}"

    def fetch_description(self, query: str) -> str | None:
        """Return the intro extract for page `query`, or None on any failure."""
        url = self.link_for(query)
        logger.debug("Fetching extract | query='{}' | url={}", query, url)
        try:
            response = self._session.get(
                url, headers={"User-Agent": self._user_agent}, timeout=self._timeout
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as ex:
            logger.warning("Wikipedia request for '{}' failed: {}", query, ex)
            return None
        return parse_extract(payload)

    def describe_location(self, coordinate: Coordinate) -> str | None:
        """Return the first non-empty extract for the places around `coordinate`."""
        candidates = self._geocoder.reverse(coordinate)
        if not candidates:
            logger.info("No place names for {}", coordinate.as_text())
            return None
        for candidate in candidates:
            description = self.fetch_description(candidate)
            if description:
                logger.info("Wikipedia description found via '{}'", candidate)
                return description
        logger.info("No Wikipedia description for {}", coordinate.as_text())
        return None
