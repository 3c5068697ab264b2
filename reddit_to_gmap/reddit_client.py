"""Reddit API client: client-credentials auth and paginated top listings."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from . import config
from .http import HttpClient, HttpError
from .models import Post

logger = logging.getLogger(__name__)


class AuthError(RuntimeError):
    pass


class FetchError(RuntimeError):
    pass


class RedditClient:
    def __init__(
        self,
        http_client: HttpClient,
        client_id: str,
        client_secret: str,
        user_agent: str = config.DEFAULT_REDDIT_USER_AGENT,
        page_size: int = config.REDDIT_PAGE_SIZE,
    ) -> None:
        self.http = http_client
        self.client_id = client_id
        self.client_secret = client_secret
        self.user_agent = user_agent
        self.page_size = page_size
        self._token: Optional[str] = None

    def _get_token(self) -> str:
        if self._token:
            return self._token
        try:
            resp = self.http.post_form(
                config.REDDIT_TOKEN_URL,
                data={"grant_type": "client_credentials"},
                auth=(self.client_id, self.client_secret),
                headers={"User-Agent": self.user_agent},
            )
        except HttpError as exc:
            raise AuthError(f"Reddit token exchange failed: {exc}") from exc
        token = resp.get("access_token")
        if not token or not isinstance(token, str):
            error = resp.get("error") or "missing access_token"
            raise AuthError(f"Reddit token exchange failed: {error}")
        self._token = token
        return token

    def _fetch_page(
        self, subreddit: str, limit: int, time_range: str, after: Optional[str], count: int
    ) -> Tuple[List[Post], Optional[str]]:
        params: Dict[str, Any] = {"limit": limit, "t": time_range}
        if after:
            params["after"] = after
            params["count"] = count
        headers = {
            "Authorization": f"Bearer {self._get_token()}",
            "User-Agent": self.user_agent,
        }
        url = f"{config.REDDIT_API_BASE_URL}/r/{subreddit}/top"
        try:
            resp = self.http.get_json(url, params=params, headers=headers)
        except HttpError as exc:
            raise FetchError(f"Error fetching posts from r/{subreddit}: {exc}") from exc
        try:
            return parse_listing_response(resp)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise FetchError(f"Malformed listing from r/{subreddit}: {exc!r}") from exc

    def fetch_posts(self, subreddit: str, count: int, time_range: str = "month") -> List[Post]:
        """Return up to ``count`` top posts from ``subreddit`` within ``time_range``.

        Pages of at most ``page_size`` are requested, following the ``after``
        cursor until enough posts are collected or the listing runs out. Any
        failed page aborts the whole fetch.
        """
        if time_range not in config.REDDIT_TIME_RANGES:
            raise ValueError(f"time_range must be one of: {', '.join(config.REDDIT_TIME_RANGES)}")
        if count <= 0:
            return []

        self._get_token()
        posts: List[Post] = []
        after: Optional[str] = None
        while len(posts) < count:
            limit = min(self.page_size, count - len(posts))
            page, next_after = self._fetch_page(subreddit, limit, time_range, after, len(posts))
            posts.extend(page)
            logger.debug("Fetched %s posts from r/%s (total %s)", len(page), subreddit, len(posts))
            if not next_after or not page:
                break
            after = next_after
        return posts[:count]


def parse_listing_response(response: Dict[str, Any]) -> Tuple[List[Post], Optional[str]]:
    data = response.get("data") or {}
    children = data.get("children") or []
    posts: List[Post] = []
    for child in children:
        item = child.get("data") or {}
        permalink = item.get("permalink") or ""
        if permalink and not permalink.startswith("http"):
            permalink = config.REDDIT_WEB_BASE_URL + permalink
        posts.append(
            Post(
                title=item.get("title") or "",
                selftext=item.get("selftext") or "",
                permalink=permalink,
                score=int(item.get("score") or 0),
            )
        )
    after = data.get("after") or None
    return posts, after
