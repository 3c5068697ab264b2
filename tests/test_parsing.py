import pytest

from reddit_to_gmap.places_client import PlacesClient, build_google_maps_url, parse_places_response
from reddit_to_gmap import config
from reddit_to_gmap.http import HttpClient, HttpError


def test_parse_places_missing_fields():
    response = {
        "places": [
            {"id": "p1"},
            {"id": "p2", "displayName": "Name", "types": ["pizza_restaurant", "food"]},
            {"name": "places/p3", "location": {"lat": 1.0, "lng": 2.0}},
            {"displayName": {"text": "no-id"}},
        ]
    }

    parsed = parse_places_response(response)
    assert [p.place_id for p in parsed] == ["p1", "p2", "p3"]
    assert parsed[0].name is None
    assert parsed[0].rating is None
    assert parsed[0].user_rating_count is None
    assert parsed[0].latitude is None
    assert parsed[1].name == "Name"
    assert parsed[1].category == "pizza_restaurant"
    assert parsed[2].latitude == 1.0
    assert parsed[2].longitude == 2.0
    assert parsed[2].google_maps_url == "https://www.google.com/maps/place/?q=place_id:p3"


def test_parse_places_full_record():
    response = {
        "places": [
            {
                "id": "ChIJ123",
                "displayName": {"text": "Joe's Pizza", "languageCode": "en"},
                "rating": 4.5,
                "userRatingCount": 12873,
                "location": {"latitude": 40.7305, "longitude": -74.0021},
                "primaryType": "pizza_restaurant",
                "primaryTypeDisplayName": {"text": "Pizza restaurant"},
                "formattedAddress": "7 Carmine St, New York, NY 10014",
            }
        ]
    }

    (place,) = parse_places_response(response)
    assert place.name == "Joe's Pizza"
    assert place.rating == 4.5
    assert place.user_rating_count == 12873
    assert place.category == "Pizza restaurant"
    assert place.formatted_address.startswith("7 Carmine St")
    assert place.google_maps_url == build_google_maps_url("ChIJ123")


def test_parse_places_empty_response():
    assert parse_places_response({}) == []


class FakeResponse:
    status_code = 200

    def __init__(self, payload):
        self._payload = payload

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, payload):
        self.payload = payload
        self.calls = []

    def request(self, method, url, timeout=None, data=None, headers=None, **kwargs):
        self.calls.append({"method": method, "url": url, "data": data, "headers": headers})
        return FakeResponse(self.payload)


def test_search_text_sends_field_mask_and_key():
    session = FakeSession({"places": [{"id": "p1"}]})
    client = PlacesClient(HttpClient("places", timeout=1, session=session), "maps-key")

    places = client.search_text("Joe's Pizza NYC")

    assert [p.place_id for p in places] == ["p1"]
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == config.PLACES_TEXT_SEARCH_URL
    assert call["headers"]["X-Goog-Api-Key"] == "maps-key"
    assert call["headers"]["X-Goog-FieldMask"] == config.PLACES_FIELD_MASK
    assert '"textQuery": "Joe\'s Pizza NYC"' in call["data"]


def test_search_text_reports_malformed_record_as_http_error():
    session = FakeSession({"places": [{"id": "p1", "location": {"latitude": "north"}}]})
    client = PlacesClient(HttpClient("places", timeout=1, session=session), "maps-key")

    with pytest.raises(HttpError):
        client.search_text("Joe's Pizza NYC")
