"""Pipeline orchestration."""
from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, List, Optional, Sequence, TypeVar

from . import config
from .cache import SnapshotStore
from .extraction import RestaurantExtractor, extract_candidates
from .gemini_client import GeminiClient
from .http import HttpClient, RequestMetrics
from .models import CandidateRestaurant, Post, ResolvedRestaurant
from .places_client import PlacesClient
from .reddit_client import RedditClient
from .reporting import build_csv_filename, write_restaurants_csv
from .resolution import PlaceSearcher, resolve_all, validate_required_fields

logger = logging.getLogger(__name__)

T = TypeVar("T")

STAGE_POSTS = "posts"
STAGE_RESTAURANTS = "restaurants"
STAGE_FULL_RESTAURANTS = "full-restaurants"
STAGE_CSV = "csv"
STAGES = (STAGE_POSTS, STAGE_RESTAURANTS, STAGE_FULL_RESTAURANTS, STAGE_CSV)


@dataclass
class PipelineResult:
    stage: str
    posts: Optional[List[Post]] = None
    candidates: Optional[List[CandidateRestaurant]] = None
    restaurants: Optional[List[ResolvedRestaurant]] = None
    csv_path: Optional[str] = None
    metrics: RequestMetrics = field(default_factory=RequestMetrics)


@dataclass
class PipelineContext:
    run_config: config.RunConfig
    store: SnapshotStore
    reddit_client: RedditClient
    extractor: RestaurantExtractor
    places_client: PlaceSearcher
    metrics: RequestMetrics
    sleep: Callable[[float], None] = time.sleep
    today: Optional[date] = None
    # Stage outputs already produced in this run, so a stage is never fetched twice.
    posts: Optional[List[Post]] = None
    candidates: Optional[List[CandidateRestaurant]] = None
    restaurants: Optional[List[ResolvedRestaurant]] = None


def get_or_fetch(
    store: SnapshotStore,
    cache_key: str,
    use_cache: bool,
    fetch_fn: Callable[[], List[T]],
    decode: Callable[[Any], T],
    metrics: Optional[RequestMetrics] = None,
) -> List[T]:
    """Return the cached snapshot for ``cache_key`` or fetch and store it.

    With ``use_cache`` set and a snapshot present, ``fetch_fn`` is not called.
    Otherwise its result is written under ``cache_key`` before returning.
    """
    if use_cache and store.exists(cache_key):
        items = store.read_models(cache_key, decode)
        logger.info("Found %s items in cache for %s", len(items), cache_key)
        if metrics is not None:
            metrics.inc_cache_hit()
        return items

    items = fetch_fn()
    store.write_models(cache_key, items)
    if metrics is not None:
        metrics.inc_cache_write()
    return items


def dedupe_candidates(candidates: Sequence[CandidateRestaurant]) -> List[CandidateRestaurant]:
    """Sort by upvotes (descending, stable) and keep the first entry per name."""
    ordered = sorted(candidates, key=lambda c: c.upvotes, reverse=True)
    seen = set()
    unique: List[CandidateRestaurant] = []
    for candidate in ordered:
        if candidate.name in seen:
            continue
        seen.add(candidate.name)
        unique.append(candidate)
    return unique


def rank_restaurants(
    restaurants: Sequence[ResolvedRestaurant], limit: int = 0
) -> List[ResolvedRestaurant]:
    ranked = sorted(restaurants, key=lambda r: r.upvotes, reverse=True)
    if limit > 0:
        ranked = ranked[:limit]
    return ranked


def export_posts(ctx: PipelineContext) -> List[Post]:
    if ctx.posts is not None:
        return ctx.posts
    rc = ctx.run_config

    def fetch() -> List[Post]:
        posts = ctx.reddit_client.fetch_posts(rc.subreddit, rc.num_posts, rc.time_range)
        logger.info(
            "Successfully exported %s posts from r/%s (time range: %s)",
            len(posts),
            rc.subreddit,
            rc.time_range,
        )
        return posts

    ctx.posts = get_or_fetch(
        ctx.store, rc.posts_cache_key, rc.use_cache, fetch, Post.from_dict, ctx.metrics
    )
    return ctx.posts


def export_candidates(ctx: PipelineContext) -> List[CandidateRestaurant]:
    if ctx.candidates is not None:
        return ctx.candidates
    rc = ctx.run_config

    def fetch() -> List[CandidateRestaurant]:
        posts = export_posts(ctx)
        logger.info("Parsing %s posts with Gemini", len(posts))
        candidates = dedupe_candidates(extract_candidates(ctx.extractor, posts))
        logger.info("Successfully exported %s restaurants from r/%s", len(candidates), rc.subreddit)
        return candidates

    ctx.candidates = get_or_fetch(
        ctx.store,
        rc.restaurants_cache_key,
        rc.use_cache,
        fetch,
        CandidateRestaurant.from_dict,
        ctx.metrics,
    )
    return ctx.candidates


def export_resolved(ctx: PipelineContext) -> List[ResolvedRestaurant]:
    if ctx.restaurants is not None:
        return ctx.restaurants
    rc = ctx.run_config

    def fetch() -> List[ResolvedRestaurant]:
        candidates = export_candidates(ctx)
        restaurants = resolve_all(
            ctx.places_client,
            candidates,
            location_hint=rc.maps_query_hint,
            delay_seconds=rc.places_delay_seconds,
            required_fields=rc.required_place_fields,
            sleep=ctx.sleep,
        )
        logger.info(
            "Successfully exported %s restaurants with Maps data from r/%s",
            len(restaurants),
            rc.subreddit,
        )
        return restaurants

    ctx.restaurants = get_or_fetch(
        ctx.store,
        rc.full_restaurants_cache_key,
        rc.use_cache,
        fetch,
        ResolvedRestaurant.from_dict,
        ctx.metrics,
    )
    return ctx.restaurants


def export_csv(ctx: PipelineContext) -> str:
    rc = ctx.run_config
    restaurants = rank_restaurants(export_resolved(ctx), rc.num_output)
    filename = build_csv_filename(rc.subreddit, rc.time_range, ctx.today)
    path = os.path.join(rc.output_dir, filename)
    count = write_restaurants_csv(path, restaurants)
    logger.info("Successfully exported %s restaurants to %s", count, path)
    return path


def build_clients(
    settings: config.Settings, metrics: RequestMetrics
) -> tuple[RedditClient, GeminiClient, PlacesClient]:
    reddit_client = RedditClient(
        HttpClient("reddit", timeout=config.HTTP_TIMEOUT_SECONDS, metrics=metrics),
        settings.reddit_client_id,
        settings.reddit_client_secret,
        user_agent=settings.reddit_user_agent,
    )
    gemini_client = GeminiClient(
        HttpClient("gemini", timeout=config.GEMINI_TIMEOUT_SECONDS, metrics=metrics),
        settings.google_gemini_api_key,
        model=settings.gemini_model,
    )
    places_client = PlacesClient(
        HttpClient("places", timeout=config.HTTP_TIMEOUT_SECONDS, metrics=metrics),
        settings.google_maps_api_key,
    )
    return reddit_client, gemini_client, places_client


def run(
    run_config: config.RunConfig,
    settings: Optional[config.Settings] = None,
    stage: str = STAGE_CSV,
    reddit_client: Optional[RedditClient] = None,
    extractor: Optional[RestaurantExtractor] = None,
    places_client: Optional[PlaceSearcher] = None,
    store: Optional[SnapshotStore] = None,
    metrics: Optional[RequestMetrics] = None,
    sleep: Callable[[float], None] = time.sleep,
    today: Optional[date] = None,
) -> PipelineResult:
    if stage not in STAGES:
        raise ValueError(f"stage must be one of: {', '.join(STAGES)}")
    validate_required_fields(run_config.required_place_fields)

    if metrics is None:
        metrics = RequestMetrics()
    if store is None:
        store = SnapshotStore(run_config.cache_dir)

    if reddit_client is None or extractor is None or places_client is None:
        if settings is None:
            raise config.ConfigError("Settings are required when using real API clients")
        default_reddit, default_gemini, default_places = build_clients(settings, metrics)
        reddit_client = reddit_client or default_reddit
        extractor = extractor or default_gemini
        places_client = places_client or default_places

    ctx = PipelineContext(
        run_config=run_config,
        store=store,
        reddit_client=reddit_client,
        extractor=extractor,
        places_client=places_client,
        metrics=metrics,
        sleep=sleep,
        today=today,
    )
    result = PipelineResult(stage=stage, metrics=metrics)

    logger.info("Running stage %s for r/%s", stage, run_config.subreddit)
    if stage == STAGE_POSTS:
        result.posts = export_posts(ctx)
    elif stage == STAGE_RESTAURANTS:
        result.candidates = export_candidates(ctx)
    elif stage == STAGE_FULL_RESTAURANTS:
        result.restaurants = export_resolved(ctx)
    else:
        result.csv_path = export_csv(ctx)
        result.restaurants = ctx.restaurants

    result.posts = result.posts if result.posts is not None else ctx.posts
    result.candidates = result.candidates if result.candidates is not None else ctx.candidates
    logger.info("Run complete: %s", metrics.summary())
    return result
