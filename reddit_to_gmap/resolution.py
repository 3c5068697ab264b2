"""Place resolution stage: one Text Search per candidate, first match wins."""
from __future__ import annotations

import logging
import time
from dataclasses import fields
from typing import Callable, List, Optional, Protocol, Sequence

from . import config
from .http import HttpError
from .models import CandidateRestaurant, PlaceMatch, ResolvedRestaurant

logger = logging.getLogger(__name__)

PLACE_FIELD_NAMES = frozenset(f.name for f in fields(PlaceMatch))


class ResolutionError(RuntimeError):
    pass


class PlaceSearcher(Protocol):
    def search_text(self, query: str) -> List[PlaceMatch]:
        ...


def validate_required_fields(required_fields: Sequence[str]) -> None:
    unknown = sorted(set(required_fields) - PLACE_FIELD_NAMES)
    if unknown:
        raise ValueError(f"Unknown place fields: {', '.join(unknown)}")


def build_query(candidate: CandidateRestaurant, location_hint: str = "") -> str:
    parts = [candidate.name.strip()]
    if candidate.neighborhood:
        parts.append(candidate.neighborhood.strip())
    if location_hint and location_hint.strip():
        parts.append(location_hint.strip())
    return " ".join(p for p in parts if p)


def missing_fields(place: PlaceMatch, required_fields: Sequence[str]) -> List[str]:
    return [name for name in required_fields if getattr(place, name) is None]


def resolve(
    client: PlaceSearcher,
    candidate: CandidateRestaurant,
    location_hint: str = "",
    required_fields: Sequence[str] = config.DEFAULT_REQUIRED_PLACE_FIELDS,
) -> Optional[ResolvedRestaurant]:
    """Resolve one candidate, or return None when the match is unusable.

    Raises ResolutionError when the search call itself fails.
    """
    query = build_query(candidate, location_hint)
    logger.info("Fetching Google Maps data for %s", candidate.name)
    try:
        matches = client.search_text(query)
    except HttpError as exc:
        raise ResolutionError(f"Place search failed for {candidate.name!r}: {exc}") from exc

    if not matches:
        logger.warning("No results found for %s: %s", candidate.name, query)
        return None

    place = matches[0]
    missing = missing_fields(place, required_fields)
    if missing:
        logger.warning(
            "Skipping %s: first match %s is missing %s",
            candidate.name,
            place.place_id,
            ", ".join(missing),
        )
        return None
    return ResolvedRestaurant.from_candidate(candidate, query, place)


def resolve_all(
    client: PlaceSearcher,
    candidates: Sequence[CandidateRestaurant],
    location_hint: str = "",
    delay_seconds: float = config.PLACES_REQUEST_DELAY_SECONDS,
    required_fields: Sequence[str] = config.DEFAULT_REQUIRED_PLACE_FIELDS,
    sleep: Callable[[float], None] = time.sleep,
) -> List[ResolvedRestaurant]:
    """Resolve candidates in order, pausing ``delay_seconds`` between searches.

    A failure on one candidate is logged and that candidate dropped; the rest
    of the batch still runs.
    """
    validate_required_fields(required_fields)
    resolved: List[ResolvedRestaurant] = []
    for index, candidate in enumerate(candidates):
        if index and delay_seconds > 0:
            sleep(delay_seconds)
        try:
            result = resolve(client, candidate, location_hint, required_fields)
        except ResolutionError as exc:
            logger.warning("Error fetching Maps data for %s: %s", candidate.name, exc)
            continue
        if result is not None:
            resolved.append(result)
    return resolved
