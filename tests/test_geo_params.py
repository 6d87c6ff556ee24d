import math

import pytest

from bmltgeo.directory.geo_params import geographic_search_params, validate_coordinates, validate_radius
from bmltgeo.geocoding.errors import ValidationError
from bmltgeo.geocoding.models import Coordinates

TIMES_SQUARE = Coordinates(latitude=40.75728, longitude=-73.985855)


@pytest.mark.parametrize("lat, lon", [(90, 180), (-90, -180), (0, 0), (40.7, -73.9)])
def test_valid_coordinates_are_accepted(lat, lon):
    coordinates = validate_coordinates(lat, lon)
    assert (coordinates.latitude, coordinates.longitude) == (lat, lon)


@pytest.mark.parametrize(
    "lat, lon, message",
    [
        ("40.7", 0, "Latitude must be a valid number"),
        (math.nan, 0, "Latitude must be a valid number"),
        (0, None, "Longitude must be a valid number"),
        (True, 0, "Latitude must be a valid number"),
        (91, 0, "Latitude must be between -90 and 90 degrees"),
        (-90.5, 0, "Latitude must be between -90 and 90 degrees"),
        (0, 180.1, "Longitude must be between -180 and 180 degrees"),
        (0, -181, "Longitude must be between -180 and 180 degrees"),
    ],
)
def test_invalid_coordinates_raise_validation_error(lat, lon, message):
    with pytest.raises(ValidationError, match=message) as excinfo:
        validate_coordinates(lat, lon)
    assert excinfo.value.context["field"] in {"latitude", "longitude"}


@pytest.mark.parametrize(
    "radius, message",
    [(0, "greater than 0"), (-5, "greater than 0"), (math.nan, "valid number"), ("10", "valid number")],
)
def test_invalid_radius_is_rejected(radius, message):
    with pytest.raises(ValidationError, match=message):
        validate_radius(radius)


def test_search_params_in_miles():
    params = geographic_search_params(TIMES_SQUARE, radius_miles=10)
    assert params == {
        "lat_val": 40.75728,
        "long_val": -73.985855,
        "sort_results_by_distance": True,
        "geo_width": 10.0,
    }


def test_search_params_in_kilometres():
    params = geographic_search_params(TIMES_SQUARE, radius_km=25, sort_by_distance=False)
    assert params["geo_width_km"] == 25.0
    assert params["sort_results_by_distance"] is False
    assert "geo_width" not in params


def test_miles_take_precedence_over_kilometres():
    params = geographic_search_params(TIMES_SQUARE, radius_miles=5, radius_km=8)
    assert params["geo_width"] == 5.0
    assert "geo_width_km" not in params


def test_extra_parameters_are_kept_but_coordinates_win():
    params = geographic_search_params(TIMES_SQUARE, extra={"weekdays": [1, 7], "lat_val": 0})
    assert params["weekdays"] == [1, 7]
    assert params["lat_val"] == 40.75728
    assert "geo_width" not in params
