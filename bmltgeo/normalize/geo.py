"""Validation and reshaping of Nominatim payloads into ``GeocodeResult``."""
from __future__ import annotations

import math
from typing import Any, Dict, Optional

from bmltgeo.geocoding.errors import GeocodingError
from bmltgeo.geocoding.models import Address, Coordinates, GeocodeResult

_ADDRESS_FIELDS = (
    "house_number",
    "road",
    "neighbourhood",
    "suburb",
    "county",
    "state",
    "postcode",
    "country",
)


def _parse_coordinate(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def parse_coordinates(place: Dict[str, Any]) -> Coordinates:
    """Read ``lat``/``lon`` from a provider place, rejecting bad values."""
    latitude = _parse_coordinate(place.get("lat"))
    longitude = _parse_coordinate(place.get("lon"))
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        raise GeocodingError(
            "Invalid coordinates received from geocoding service",
            context={"reason": "invalid_coordinates", "lat": place.get("lat"), "lon": place.get("lon")},
        )
    if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
        raise GeocodingError(
            "Coordinates out of valid range",
            context={"reason": "out_of_range", "latitude": latitude, "longitude": longitude},
        )
    return Coordinates(latitude=latitude, longitude=longitude)


def map_address(raw: Optional[Dict[str, Any]]) -> Optional[Address]:
    if not raw:
        return None
    if not isinstance(raw, dict):
        raise GeocodingError(
            "Malformed payload received from geocoding service",
            context={"reason": "malformed_payload", "address_type": type(raw).__name__},
        )
    values = {key: raw.get(key) for key in _ADDRESS_FIELDS}
    values["city"] = raw.get("city") or raw.get("town") or raw.get("village")
    return Address(**{key: None if value is None else str(value) for key, value in values.items()})


def _confidence(place: Dict[str, Any]) -> Optional[float]:
    importance = place.get("importance")
    if importance is None:
        return None
    value = _parse_coordinate(importance)
    return value if math.isfinite(value) else None


def _to_result(place: Dict[str, Any]) -> GeocodeResult:
    coordinates = parse_coordinates(place)
    return GeocodeResult(
        coordinates=coordinates,
        display_name=str(place.get("display_name") or ""),
        confidence=_confidence(place),
        address=map_address(place.get("address")),
    )


def normalize_search(payload: Any, *, query: str) -> GeocodeResult:
    """Return the provider's top-ranked match for ``query``."""
    if not payload:
        raise GeocodingError(
            f"No results found for address: {query}",
            context={"reason": "no_results", "address": query},
        )
    if not isinstance(payload, list) or not isinstance(payload[0], dict):
        raise GeocodingError(
            "Malformed payload received from geocoding service",
            context={"reason": "malformed_payload", "address": query, "payload_type": type(payload).__name__},
        )
    return _to_result(payload[0])


def normalize_reverse(payload: Any, *, coordinates: Coordinates) -> GeocodeResult:
    """Return the place found at ``coordinates``.

    Nominatim answers an unresolvable point with ``{"error": ...}`` and a 200
    status; that is treated the same as an empty reply.
    """
    if not payload or (isinstance(payload, dict) and "error" in payload):
        raise GeocodingError(
            f"No results found for coordinates: {coordinates.latitude}, {coordinates.longitude}",
            context={"reason": "no_results", "latitude": coordinates.latitude, "longitude": coordinates.longitude},
        )
    if not isinstance(payload, dict):
        raise GeocodingError(
            "Malformed payload received from geocoding service",
            context={"reason": "malformed_payload", "payload_type": type(payload).__name__},
        )
    return _to_result(payload)
