import pytest

from bmltgeo.geocoding.errors import GeocodingError
from bmltgeo.geocoding.models import Coordinates
from bmltgeo.normalize.geo import map_address, normalize_reverse, normalize_search

from conftest import load_fixture


def _place(lat="40.7", lon="-73.9", **extra):
    return {"lat": lat, "lon": lon, "display_name": "Somewhere", **extra}


def test_search_fixture_normalises_first_match():
    result = normalize_search(load_fixture("search_times_square.json"), query="Times Square, New York, NY")
    assert result.coordinates.latitude == pytest.approx(40.75728)
    assert result.coordinates.longitude == pytest.approx(-73.985855)
    assert result.display_name.startswith("Times Square")
    assert result.confidence == pytest.approx(0.6747, abs=1e-4)
    assert result.address.city == "New York"
    assert result.address.postcode == "10036"
    assert result.address.road == "7th Avenue"


def test_first_element_wins_without_reranking():
    payload = [
        _place(lat="10", lon="10", importance=0.1, display_name="first"),
        _place(lat="20", lon="20", importance=0.9, display_name="second"),
    ]
    assert normalize_search(payload, query="q").display_name == "first"


@pytest.mark.parametrize("payload", [[], None])
def test_empty_search_raises_no_results(payload):
    with pytest.raises(GeocodingError, match="No results found for address: Nowhere"):
        normalize_search(payload, query="Nowhere")


@pytest.mark.parametrize(
    "lat, lon",
    [("nan", "1"), ("1", "NaN"), ("inf", "1"), ("abc", "1"), (None, "1"), ("1", "")],
)
def test_non_finite_coordinates_are_rejected(lat, lon):
    with pytest.raises(GeocodingError, match="Invalid coordinates"):
        normalize_search([_place(lat=lat, lon=lon)], query="q")


@pytest.mark.parametrize("lat, lon", [("90.0001", "0"), ("-91", "0"), ("0", "180.5"), ("0", "-181")])
def test_out_of_range_coordinates_are_rejected(lat, lon):
    with pytest.raises(GeocodingError, match="out of valid range"):
        normalize_search([_place(lat=lat, lon=lon)], query="q")


@pytest.mark.parametrize("lat, lon", [("90", "180"), ("-90", "-180"), ("0", "0")])
def test_boundary_coordinates_are_accepted(lat, lon):
    result = normalize_search([_place(lat=lat, lon=lon)], query="q")
    assert result.coordinates == Coordinates(latitude=float(lat), longitude=float(lon))


def test_non_list_search_payload_is_malformed():
    with pytest.raises(GeocodingError) as excinfo:
        normalize_search({"lat": "1", "lon": "2"}, query="q")
    assert excinfo.value.context["reason"] == "malformed_payload"


def test_city_falls_back_to_town_then_village():
    assert map_address({"city": "Big", "town": "Mid", "village": "Small"}).city == "Big"
    assert map_address({"town": "Mid", "village": "Small"}).city == "Mid"
    assert map_address({"village": "Small"}).city == "Small"
    assert map_address({"road": "Main St"}).city is None
    assert map_address(None) is None


def test_reverse_fixture_normalises_place():
    point = Coordinates(latitude=40.7580, longitude=-73.9855)
    result = normalize_reverse(load_fixture("reverse_times_square.json"), coordinates=point)
    assert "New York" in result.display_name
    assert result.address.house_number == "1560"
    assert -90 <= result.coordinates.latitude <= 90


@pytest.mark.parametrize("payload", [None, {}, {"error": "Unable to geocode"}])
def test_reverse_without_place_raises_no_results(payload):
    point = Coordinates(latitude=0.0, longitude=-140.0)
    with pytest.raises(GeocodingError, match="No results found for coordinates: 0.0, -140.0"):
        normalize_reverse(payload, coordinates=point)


def test_reverse_validates_returned_coordinates():
    point = Coordinates(latitude=1.0, longitude=1.0)
    with pytest.raises(GeocodingError, match="out of valid range"):
        normalize_reverse(_place(lat="95", lon="1"), coordinates=point)


@pytest.mark.parametrize("address", ["Broadway", ["a", "b"], 42])
def test_non_mapping_address_is_malformed(address):
    with pytest.raises(GeocodingError) as excinfo:
        normalize_search([_place(address=address)], query="q")
    assert excinfo.value.context["reason"] == "malformed_payload"

    point = Coordinates(latitude=1.0, longitude=1.0)
    with pytest.raises(GeocodingError) as excinfo:
        normalize_reverse(_place(lat="1", lon="1", address=address), coordinates=point)
    assert excinfo.value.context["reason"] == "malformed_payload"
