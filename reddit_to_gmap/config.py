"""Project configuration.

API endpoints and request shapes are centralized here. Credentials come from
the process environment and are validated once at startup into an immutable
``Settings``; per-run options live in ``RunConfig``.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

# --- API endpoints ---

REDDIT_TOKEN_URL = "https://www.reddit.com/api/v1/access_token"
REDDIT_API_BASE_URL = "https://oauth.reddit.com"
REDDIT_WEB_BASE_URL = "https://www.reddit.com"
GEMINI_API_URL_TEMPLATE = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
PLACES_TEXT_SEARCH_URL = "https://places.googleapis.com/v1/places:searchText"
GOOGLE_MAPS_PLACE_URL_TEMPLATE = "https://www.google.com/maps/place/?q=place_id:{place_id}"

# --- Field masks ---

PLACES_FIELD_MASK = (
    "places.id,places.displayName,places.rating,places.userRatingCount,"
    "places.location,places.types,places.primaryType,places.primaryTypeDisplayName,"
    "places.formattedAddress"
)

# --- Reddit ---

REDDIT_PAGE_SIZE = 100
REDDIT_TIME_RANGES = ("hour", "day", "week", "month", "year", "all")
DEFAULT_REDDIT_USER_AGENT = "reddit-to-gmap/1.0"

# --- Gemini ---

DEFAULT_GEMINI_MODEL = "gemini-2.0-flash-lite"
GEMINI_TIMEOUT_SECONDS = 120
GEMINI_MAX_OUTPUT_TOKENS = 8192
EXTRACTION_CHUNK_SIZE = 100

# --- Places ---

PLACES_REQUEST_DELAY_SECONDS = 2.0
DEFAULT_REQUIRED_PLACE_FIELDS: Tuple[str, ...] = ("user_rating_count",)

# --- HTTP ---

HTTP_TIMEOUT_SECONDS = 20

# --- Cache and outputs ---

CACHE_DIR = ".cache"
OUTPUT_DIR = "out"

RESTAURANTS_KEY_SUFFIX = "_restaurants"
FULL_RESTAURANTS_KEY_SUFFIX = "_full_restaurants"

# --- Environment ---

ENV_REDDIT_CLIENT_ID = "REDDIT_CLIENT_ID"
ENV_REDDIT_CLIENT_SECRET = "REDDIT_CLIENT_SECRET"
ENV_GOOGLE_MAPS_API_KEY = "GOOGLE_MAPS_API_KEY"
ENV_GOOGLE_GEMINI_API_KEY = "GOOGLE_GEMINI_API_KEY"
REQUIRED_ENV_VARS = (
    ENV_REDDIT_CLIENT_ID,
    ENV_REDDIT_CLIENT_SECRET,
    ENV_GOOGLE_MAPS_API_KEY,
    ENV_GOOGLE_GEMINI_API_KEY,
)


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    reddit_client_id: str
    reddit_client_secret: str
    google_maps_api_key: str
    google_gemini_api_key: str
    gemini_model: str = DEFAULT_GEMINI_MODEL
    reddit_user_agent: str = DEFAULT_REDDIT_USER_AGENT

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Read credentials from the environment.

        Raises ConfigError naming every missing variable, so a single run
        reports the whole problem instead of the first gap.
        """
        env = os.environ if environ is None else environ
        values = {name: (env.get(name) or "").strip() for name in REQUIRED_ENV_VARS}
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")
        return cls(
            reddit_client_id=values[ENV_REDDIT_CLIENT_ID],
            reddit_client_secret=values[ENV_REDDIT_CLIENT_SECRET],
            google_maps_api_key=values[ENV_GOOGLE_MAPS_API_KEY],
            google_gemini_api_key=values[ENV_GOOGLE_GEMINI_API_KEY],
            gemini_model=(env.get("GEMINI_MODEL") or "").strip() or DEFAULT_GEMINI_MODEL,
            reddit_user_agent=(env.get("REDDIT_USER_AGENT") or "").strip() or DEFAULT_REDDIT_USER_AGENT,
        )


@dataclass(frozen=True)
class RunConfig:
    subreddit: str
    num_posts: int = 10
    time_range: str = "month"
    maps_query_hint: str = ""
    use_cache: bool = True
    num_output: int = 0
    cache_dir: str = CACHE_DIR
    output_dir: str = OUTPUT_DIR
    required_place_fields: Tuple[str, ...] = DEFAULT_REQUIRED_PLACE_FIELDS
    places_delay_seconds: float = PLACES_REQUEST_DELAY_SECONDS

    def __post_init__(self) -> None:
        if not self.subreddit or not self.subreddit.strip():
            raise ConfigError("subreddit is required")
        if self.num_posts <= 0:
            raise ConfigError("num_posts must be positive")
        if self.time_range not in REDDIT_TIME_RANGES:
            raise ConfigError(
                f"time_range must be one of: {', '.join(REDDIT_TIME_RANGES)}"
            )
        if self.num_output < 0:
            raise ConfigError("num_output must be >= 0")
        if self.places_delay_seconds < 0:
            raise ConfigError("places_delay_seconds must be >= 0")

    @property
    def posts_cache_key(self) -> str:
        return self.subreddit

    @property
    def restaurants_cache_key(self) -> str:
        return self.subreddit + RESTAURANTS_KEY_SUFFIX

    @property
    def full_restaurants_cache_key(self) -> str:
        return self.subreddit + FULL_RESTAURANTS_KEY_SUFFIX
