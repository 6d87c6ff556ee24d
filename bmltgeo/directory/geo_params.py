"""Map geocoded coordinates onto BMLT geographic search parameters."""
from __future__ import annotations

import math
from typing import Any, Dict, Optional

from bmltgeo.geocoding.errors import ValidationError
from bmltgeo.geocoding.models import Coordinates


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and not math.isnan(value)


def validate_coordinates(latitude: Any, longitude: Any) -> Coordinates:
    """Return ``Coordinates`` for caller input or raise ``ValidationError``."""
    if not _is_number(latitude):
        raise ValidationError(
            "Latitude must be a valid number",
            context={"field": "latitude", "value": latitude, "reason": "not_a_number"},
        )
    if not _is_number(longitude):
        raise ValidationError(
            "Longitude must be a valid number",
            context={"field": "longitude", "value": longitude, "reason": "not_a_number"},
        )
    if not -90 <= latitude <= 90:
        raise ValidationError(
            "Latitude must be between -90 and 90 degrees",
            context={"field": "latitude", "value": latitude, "reason": "out_of_range"},
        )
    if not -180 <= longitude <= 180:
        raise ValidationError(
            "Longitude must be between -180 and 180 degrees",
            context={"field": "longitude", "value": longitude, "reason": "out_of_range"},
        )
    return Coordinates(latitude=float(latitude), longitude=float(longitude))


def validate_radius(radius: Any) -> float:
    if not _is_number(radius) or math.isinf(radius):
        raise ValidationError(
            "Radius must be a valid number",
            context={"field": "radius", "value": radius, "reason": "not_a_number"},
        )
    if radius <= 0:
        raise ValidationError(
            "Radius must be greater than 0",
            context={"field": "radius", "value": radius, "reason": "not_positive"},
        )
    return float(radius)


def geographic_search_params(
    coordinates: Coordinates,
    *,
    radius_miles: Optional[float] = None,
    radius_km: Optional[float] = None,
    sort_by_distance: bool = True,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build the ``GetSearchResults`` parameters for a search around a point.

    Miles take precedence when both radii are supplied.
    """
    params: Dict[str, Any] = dict(extra or {})
    params.update(
        lat_val=coordinates.latitude,
        long_val=coordinates.longitude,
        sort_results_by_distance=sort_by_distance,
    )
    if radius_miles is not None:
        params["geo_width"] = validate_radius(radius_miles)
    elif radius_km is not None:
        params["geo_width_km"] = validate_radius(radius_km)
    return params
