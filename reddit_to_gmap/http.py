"""HTTP client and request accounting shared by the API clients."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import requests

logger = logging.getLogger(__name__)

REQUEST_KINDS = ("reddit", "gemini", "places")


class HttpError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class RequestMetrics:
    network: Dict[str, int] = field(default_factory=lambda: {k: 0 for k in REQUEST_KINDS})
    cache_hits: int = 0
    cache_writes: int = 0

    @property
    def network_total(self) -> int:
        return sum(self.network.values())

    def inc_network(self, kind: str) -> None:
        if kind not in self.network:
            raise ValueError(f"Unknown request kind: {kind}")
        self.network[kind] += 1

    def inc_cache_hit(self) -> None:
        self.cache_hits += 1

    def inc_cache_write(self) -> None:
        self.cache_writes += 1

    def summary(self) -> str:
        parts = [f"{kind}={self.network[kind]}" for kind in REQUEST_KINDS]
        return (
            f"network requests: {', '.join(parts)}; "
            f"cache hits={self.cache_hits}, cache writes={self.cache_writes}"
        )


class HttpClient:
    """Thin wrapper around a requests session.

    Every call is a single attempt: failures surface as HttpError and the
    caller decides whether the run aborts or the item is skipped.
    """

    def __init__(
        self,
        kind: str,
        timeout: int = 20,
        session: Optional[requests.Session] = None,
        metrics: Optional[RequestMetrics] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        if kind not in REQUEST_KINDS:
            raise ValueError(f"Unknown request kind: {kind}")
        self.kind = kind
        self.timeout = timeout
        self.session = session or requests.Session()
        self.metrics = metrics
        self.headers = dict(headers or {})

    def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        return self._send("GET", url, params=params, headers=self._headers(headers))

    def post_json(
        self,
        url: str,
        body: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        merged = self._headers(headers)
        merged["Content-Type"] = "application/json"
        return self._send("POST", url, data=json.dumps(body), headers=merged)

    def post_form(
        self,
        url: str,
        data: Dict[str, str],
        auth: Optional[Tuple[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        return self._send("POST", url, data=data, auth=auth, headers=self._headers(headers))

    def _headers(self, extra: Optional[Dict[str, str]]) -> Dict[str, str]:
        merged = dict(self.headers)
        if extra:
            merged.update(extra)
        return merged

    def _send(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        if self.metrics is not None:
            self.metrics.inc_network(self.kind)
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise HttpError(f"{method} {url} failed: {exc}") from exc

        status = resp.status_code
        if status < 200 or status >= 300:
            logger.error("HTTP %s from %s", status, url)
            raise HttpError(f"HTTP {status} from {url}", status_code=status)
        try:
            payload = resp.json()
        except ValueError as exc:
            logger.error("Non-JSON response from %s", url)
            raise HttpError(f"Non-JSON response from {url}", status_code=status) from exc
        if not isinstance(payload, dict):
            raise HttpError(
                f"Unexpected JSON payload from {url}: {type(payload).__name__}",
                status_code=status,
            )
        return payload
