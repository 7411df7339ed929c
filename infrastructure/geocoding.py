"""Reverse and forward geocoding via OpenStreetMap Nominatim.

Reverse lookups produce a ranked list of place names suitable as Wikipedia
page titles: the most descriptive first ("City, State", then the region),
followed by the individual address components from the most to the least
specific. Forward search powers picking a location for an entry.
"""

from __future__ import annotations

from typing import Any

from loguru import logger
import requests

from core.models import Coordinate, LocationCandidate
from core.services.interfaces import IGeocoder

_CITY_KEYS = ("city", "town", "village", "hamlet", "municipality")


def _city_of(address: dict[str, Any]) -> str:
    for key in _CITY_KEYS:
        value = address.get(key)
        if value:
            return str(value)
    return ""


def _unique(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for v in values:
        v = (v or "").strip()
        if v and v.lower() not in seen:
            seen.add(v.lower())
            result.append(v)
    return result


def place_candidates(payload: dict[str, Any]) -> list[str]:
    """Rank place names from a Nominatim reverse response.

    Order: city with context, region, then name, street, house number, city,
    county, state, postal code, country. Empty values and repeats are dropped.
    """
    address = payload.get("address") or {}
    city = _city_of(address)
    state = str(address.get("state") or "")
    country = str(address.get("country") or "")

    city_with_context = ", ".join(p for p in (city, state or country) if p) if city else ""
    region = state or country

    ranked = [
        city_with_context,
        region,
        str(payload.get("name") or ""),
        str(address.get("road") or ""),
        str(address.get("house_number") or ""),
        city,
        str(address.get("county") or ""),
        state,
        str(address.get("postcode") or ""),
        country,
    ]
    return _unique(ranked)


def address_parts(payload: dict[str, Any]) -> list[str]:
    """Ordered address components for display."""
    address = payload.get("address") or {}
    parts = [
        str(payload.get("name") or ""),
        str(address.get("road") or ""),
        str(address.get("house_number") or ""),
        _city_of(address),
        str(address.get("county") or ""),
        str(address.get("state") or ""),
        str(address.get("postcode") or ""),
        str(address.get("country") or ""),
    ]
    return _unique(parts)


class NominatimGeocoder(IGeocoder):
    """`IGeocoder` backed by the public Nominatim API."""

    def __init__(self, settings: object | None = None, session: requests.Session | None = None):
        self._base_url = "https://nominatim.openstreetmap.org"
        self._user_agent = "GeoMemories/0.1"
        self._timeout: float | None = 10.0
        self._limit = 10
        if settings is not None:
            self._base_url = str(settings.get("geocoding.url", self._base_url)).rstrip("/")
            self._user_agent = str(settings.get("geocoding.user_agent", self._user_agent))
            timeout = settings.get("geocoding.timeout_sec", self._timeout)
            self._timeout = float(timeout) if timeout else None
            self._limit = settings.get_int("geocoding.search_limit", self._limit)
        self._session = session or requests.Session()

    def _get(self, endpoint: str, params: dict[str, Any]) -> Any:
        response = self._session.get(
            f"{self._base_url}/{endpoint}",
            params=params,
            headers={"User-Agent": self._user_agent},
            timeout=self._timeout,
        )
        response.raise_for_status()
        return response.json()

    def reverse(self, coordinate: Coordinate) -> list[str]:
        params = {
            "lat": coordinate.latitude,
            "lon": coordinate.longitude,
            "format": "jsonv2",
            "addressdetails": 1,
            "accept-language": "en",
        }
        try:
            data = self._get("reverse", params)
        except (requests.RequestException, ValueError) as ex:
            logger.warning("Reverse geocoding {} failed: {}", coordinate.as_text(), ex)
            return []
        if not isinstance(data, dict) or "error" in data:
            logger.info("No place found for {}", coordinate.as_text())
            return []
        candidates = place_candidates(data)
        logger.debug("Place candidates for {}: {}", coordinate.as_text(), candidates)
        return candidates

    def search(self, query: str) -> list[LocationCandidate]:
        query = (query or "").strip()
        if not query:
            return []
        params = {
            "q": query,
            "format": "jsonv2",
            "addressdetails": 1,
            "limit": self._limit,
            "accept-language": "en",
        }
        try:
            data = self._get("search", params)
        except (requests.RequestException, ValueError) as ex:
            logger.warning("Location search '{}' failed: {}", query, ex)
            return []

        results: list[LocationCandidate] = []
        for item in data if isinstance(data, list) else []:
            try:
                coordinate = Coordinate(float(item["lat"]), float(item["lon"]))
            except (KeyError, TypeError, ValueError):
                continue
            name = str(item.get("name") or item.get("display_name") or coordinate.as_text())
            results.append(
                LocationCandidate(name=name, coordinate=coordinate, address_parts=address_parts(item))
            )
        return results
