"""Records passed between pipeline stages.

Each record round-trips through ``to_dict``/``from_dict`` so cached snapshots
are decoded against an explicit schema. ``from_dict`` raises ValueError,
KeyError or TypeError when a payload does not match.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional


def _require_str(data: Mapping[str, Any], key: str) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string, got {type(value).__name__}")
    return value


def _optional_str(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string, got {type(value).__name__}")
    return value


def _require_int(data: Mapping[str, Any], key: str) -> int:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{key} must be a number, got {type(value).__name__}")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{key} must be an integer, got {value}")
    return int(value)


def _require_float(data: Mapping[str, Any], key: str) -> float:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{key} must be a number, got {type(value).__name__}")
    return float(value)


def _require_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise TypeError(f"{what} must be an object, got {type(data).__name__}")
    return data


@dataclass(frozen=True)
class Post:
    title: str
    selftext: str
    permalink: str
    score: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "selftext": self.selftext,
            "permalink": self.permalink,
            "score": self.score,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Post":
        data = _require_mapping(data, "post")
        return cls(
            title=_require_str(data, "title"),
            selftext=data.get("selftext") or "",
            permalink=_require_str(data, "permalink"),
            score=_require_int(data, "score"),
        )


@dataclass(frozen=True)
class CandidateRestaurant:
    name: str
    upvotes: int
    reddit_url: str
    neighborhood: Optional[str] = None
    google_maps_link: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "upvotes": self.upvotes,
            "reddit_url": self.reddit_url,
            "neighborhood": self.neighborhood,
            "google_maps_link": self.google_maps_link,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "CandidateRestaurant":
        data = _require_mapping(data, "restaurant")
        name = _require_str(data, "name").strip()
        if not name:
            raise ValueError("restaurant name must not be empty")
        return cls(
            name=name,
            upvotes=_require_int(data, "upvotes"),
            reddit_url=_require_str(data, "reddit_url"),
            neighborhood=_optional_str(data, "neighborhood"),
            google_maps_link=_optional_str(data, "google_maps_link"),
        )


@dataclass(frozen=True)
class PlaceMatch:
    place_id: str
    name: Optional[str]
    google_maps_url: str
    latitude: Optional[float]
    longitude: Optional[float]
    rating: Optional[float]
    user_rating_count: Optional[int]
    category: Optional[str]
    formatted_address: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "place_id": self.place_id,
            "name": self.name,
            "google_maps_url": self.google_maps_url,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "rating": self.rating,
            "user_rating_count": self.user_rating_count,
            "category": self.category,
            "formatted_address": self.formatted_address,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "PlaceMatch":
        data = _require_mapping(data, "place")
        return cls(
            place_id=_require_str(data, "place_id"),
            name=_optional_str(data, "name"),
            google_maps_url=_require_str(data, "google_maps_url"),
            latitude=_require_float(data, "latitude") if data.get("latitude") is not None else None,
            longitude=_require_float(data, "longitude") if data.get("longitude") is not None else None,
            rating=_require_float(data, "rating") if data.get("rating") is not None else None,
            user_rating_count=(
                _require_int(data, "user_rating_count")
                if data.get("user_rating_count") is not None
                else None
            ),
            category=_optional_str(data, "category"),
            formatted_address=_optional_str(data, "formatted_address"),
        )


@dataclass(frozen=True)
class ResolvedRestaurant:
    name: str
    upvotes: int
    reddit_url: str
    neighborhood: Optional[str]
    query: str
    place: PlaceMatch

    @property
    def display_name(self) -> str:
        return self.place.name or self.name

    @property
    def google_maps_url(self) -> str:
        return self.place.google_maps_url

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "upvotes": self.upvotes,
            "reddit_url": self.reddit_url,
            "neighborhood": self.neighborhood,
            "query": self.query,
            "place": self.place.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ResolvedRestaurant":
        data = _require_mapping(data, "resolved restaurant")
        return cls(
            name=_require_str(data, "name"),
            upvotes=_require_int(data, "upvotes"),
            reddit_url=_require_str(data, "reddit_url"),
            neighborhood=_optional_str(data, "neighborhood"),
            query=_require_str(data, "query"),
            place=PlaceMatch.from_dict(data["place"]),
        )

    @classmethod
    def from_candidate(
        cls, candidate: CandidateRestaurant, query: str, place: PlaceMatch
    ) -> "ResolvedRestaurant":
        return cls(
            name=candidate.name,
            upvotes=candidate.upvotes,
            reddit_url=candidate.reddit_url,
            neighborhood=candidate.neighborhood,
            query=query,
            place=place,
        )
