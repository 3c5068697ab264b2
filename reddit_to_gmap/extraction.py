"""Restaurant extraction stage: chunked calls to the language model."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Protocol, Sequence

from . import config
from .gemini_client import GeminiCallResult
from .models import CandidateRestaurant, Post

logger = logging.getLogger(__name__)


class ExtractionError(RuntimeError):
    pass


class RestaurantExtractor(Protocol):
    def extract_restaurants(self, posts: List[Post]) -> GeminiCallResult:
        ...


def chunked(items: Sequence[Post], size: int) -> Iterator[List[Post]]:
    if size <= 0:
        raise ValueError("chunk size must be positive")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def parse_restaurants(data: Dict[str, Any], posts: Sequence[Post]) -> List[CandidateRestaurant]:
    """Map the model's ``restaurants`` array onto candidates.

    Upvotes are taken from the source post when the model's link matches one
    of the input posts; otherwise the model-reported value is kept.
    """
    scores = {post.permalink: post.score for post in posts}
    candidates: List[CandidateRestaurant] = []
    for item in data.get("restaurants") or []:
        link = item.get("reddit_self_link") or ""
        upvotes = scores.get(link, item.get("upvotes"))
        candidates.append(
            CandidateRestaurant.from_dict(
                {
                    "name": item.get("name"),
                    "upvotes": upvotes,
                    "reddit_url": link,
                    "neighborhood": item.get("neighborhood"),
                    "google_maps_link": item.get("google_maps_link"),
                }
            )
        )
    return candidates


def extract_candidates(
    client: RestaurantExtractor,
    posts: Sequence[Post],
    chunk_size: int = config.EXTRACTION_CHUNK_SIZE,
) -> List[CandidateRestaurant]:
    results: List[CandidateRestaurant] = []
    processed = 0
    for chunk in chunked(posts, chunk_size):
        result = client.extract_restaurants(chunk)
        if not result.ok or result.data is None:
            logger.debug(
                "%s call failed (model %s, prompt %s): %s",
                result.prompt_name,
                result.model,
                result.prompt_hash[:12],
                result.raw_text,
            )
            raise ExtractionError(
                f"Error processing posts chunk {processed + 1}-{processed + len(chunk)}: "
                f"{result.error or result.status}"
            )
        try:
            results.extend(parse_restaurants(result.data, chunk))
        except (KeyError, TypeError, ValueError) as exc:
            raise ExtractionError(f"Unexpected restaurant schema from model: {exc!r}") from exc
        processed += len(chunk)
        logger.info("Processed chunk %s/%s posts", processed, len(posts))
    return results
