"""Places API client with response parsing."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from . import config
from .http import HttpClient, HttpError
from .models import PlaceMatch


class PlacesClient:
    def __init__(
        self,
        http_client: HttpClient,
        api_key: str,
        field_mask: str = config.PLACES_FIELD_MASK,
    ) -> None:
        self.http = http_client
        self.api_key = api_key
        self.field_mask = field_mask

    def search_text(self, query: str) -> List[PlaceMatch]:
        """Run one Text Search request; raises HttpError on failure."""
        headers = {
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": self.field_mask,
        }
        response = self.http.post_json(
            config.PLACES_TEXT_SEARCH_URL, build_text_search_body(query), headers=headers
        )
        try:
            return parse_places_response(response)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise HttpError(f"Malformed Places response: {exc!r}") from exc


def build_text_search_body(query: str) -> Dict[str, Any]:
    return {"textQuery": query}


def build_google_maps_url(place_id: str) -> str:
    return config.GOOGLE_MAPS_PLACE_URL_TEMPLATE.format(place_id=place_id)


def _display_text(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("text") or value.get("value")
    return value or None


# Adapter/mapper for Places response fields

def parse_places_response(response: Dict[str, Any]) -> List[PlaceMatch]:
    places = response.get("places") or []
    parsed: List[PlaceMatch] = []
    for p in places:
        place_id = p.get("id") or p.get("placeId")
        if not place_id:
            resource = p.get("name") or ""
            if resource.startswith("places/"):
                place_id = resource[len("places/") :]
        if not place_id:
            continue
        location = p.get("location") or p.get("latLng") or {}
        lat = location.get("latitude", location.get("lat"))
        lon = location.get("longitude", location.get("lng"))
        rating = p.get("rating")
        user_rating_count = p.get("userRatingCount", p.get("user_ratings_total"))
        types = p.get("types") or []
        category = (
            _display_text(p.get("primaryTypeDisplayName"))
            or p.get("primaryType")
            or (types[0] if types else None)
        )
        parsed.append(
            PlaceMatch(
                place_id=place_id,
                name=_display_text(p.get("displayName")),
                google_maps_url=build_google_maps_url(place_id),
                latitude=float(lat) if lat is not None else None,
                longitude=float(lon) if lon is not None else None,
                rating=float(rating) if rating is not None else None,
                user_rating_count=int(user_rating_count) if user_rating_count is not None else None,
                category=category,
                formatted_address=p.get("formattedAddress"),
            )
        )
    return parsed
