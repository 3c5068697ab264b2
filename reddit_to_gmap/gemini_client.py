"""Gemini client for classifying Reddit posts into restaurant mentions."""
from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from . import config
from .http import HttpClient, HttpError
from .models import Post

Validator = Callable[[Dict[str, Any]], None]

RESTAURANT_PROMPT_NAME = "reddit_restaurants_v1"

RESTAURANT_PROMPT_TEMPLATE = """
Each input object represents a Reddit post with title, description (selftext), etc., from a food subreddit. For each Reddit post that corresponds to a single restaurant review, transform it into a corresponding entry in the output.

A post is considered a restaurant review if the title mentions a specific restaurant name and the selftext contains details about the dining experience (e.g., food descriptions, reviews, prices). If the title contains the word 'review', 'recommendation', or 'ate at', consider it a restaurant review.

Skip any input Reddit posts that either don't correspond to a restaurant review or that appear to mention a list of restaurants. If a post's restaurant association is unclear, skip it.

For each entry, copy the post's score into "upvotes" and its permalink into "reddit_self_link". Include "neighborhood" only when the post names one.

Input posts:
{posts_json}"""

RESTAURANT_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "restaurants": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "required": ["name", "upvotes", "reddit_self_link"],
                "properties": {
                    "name": {"type": "STRING"},
                    "upvotes": {"type": "INTEGER"},
                    "google_maps_link": {"type": "STRING"},
                    "neighborhood": {"type": "STRING"},
                    "reddit_self_link": {"type": "STRING"},
                },
            },
        }
    },
    "required": ["restaurants"],
}


@dataclass(frozen=True)
class GeminiCallResult:
    status: str
    raw_text: str
    data: Optional[Dict[str, Any]]
    model: str
    prompt_name: str
    prompt_hash: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


def hash_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _strip_code_fences(text: str) -> str:
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    stripped = re.sub(r"^```(?:json)?", "", stripped, flags=re.IGNORECASE).strip()
    stripped = re.sub(r"```$", "", stripped).strip()
    return stripped


def _extract_json_candidate(text: str) -> str:
    """Best-effort extraction of a JSON object from model output."""
    candidate = _strip_code_fences(text)
    if candidate.startswith("{"):
        return candidate
    obj_start = candidate.find("{")
    obj_end = candidate.rfind("}")
    if obj_start != -1 and obj_end != -1 and obj_end > obj_start:
        return candidate[obj_start : obj_end + 1]
    return candidate


def _parse_json_loose(text: str) -> tuple[Optional[Dict[str, Any]], Optional[str]]:
    candidate = _extract_json_candidate(text)
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as exc:
        return None, f"json_decode_error: {exc}"
    if not isinstance(parsed, dict):
        return None, f"json_not_object: {type(parsed).__name__}"
    return parsed, None


def validate_restaurant_payload(data: Dict[str, Any]) -> None:
    restaurants = data.get("restaurants")
    if not isinstance(restaurants, list):
        raise ValueError("restaurants must be a list")
    for index, item in enumerate(restaurants):
        if not isinstance(item, dict):
            raise ValueError(f"restaurants[{index}] must be an object")
        for key in ("name", "upvotes", "reddit_self_link"):
            if key not in item:
                raise ValueError(f"restaurants[{index}] missing {key}")


def build_restaurant_prompt(posts: Sequence[Post]) -> str:
    posts_json = json.dumps([p.to_dict() for p in posts], ensure_ascii=False)
    return RESTAURANT_PROMPT_TEMPLATE.format(posts_json=posts_json)


class GeminiClient:
    def __init__(
        self,
        http_client: HttpClient,
        api_key: str,
        model: str = config.DEFAULT_GEMINI_MODEL,
    ) -> None:
        self.http = http_client
        self.api_key = api_key
        self.model = model

    def _redact(self, text: str) -> str:
        if not text:
            return text
        redacted = text.replace(self.api_key, "[REDACTED]") if self.api_key else text
        redacted = re.sub(r"(key=)[^&\s()]+", r"\1[REDACTED]", redacted)
        return redacted

    def _call_api(
        self, prompt_text: str, response_schema: Optional[Dict[str, Any]]
    ) -> tuple[str, Optional[str], Optional[str]]:
        url = config.GEMINI_API_URL_TEMPLATE.format(model=self.model)
        generation_config: Dict[str, Any] = {
            "temperature": 0,
            "topK": 40,
            "topP": 0.95,
            "maxOutputTokens": config.GEMINI_MAX_OUTPUT_TOKENS,
            "responseMimeType": "application/json",
        }
        if response_schema is not None:
            generation_config["responseSchema"] = response_schema
        payload = {
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": prompt_text}],
                }
            ],
            "generationConfig": generation_config,
        }
        try:
            data = self.http.post_json(url, payload, headers={"x-goog-api-key": self.api_key})
        except HttpError as exc:
            return "", "http_error", f"http_error: {exc}"
        candidates = data.get("candidates") or []
        if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
            return json.dumps(data, ensure_ascii=False), "invalid_json", "no_candidates"
        content = candidates[0].get("content") or {}
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
            return json.dumps(data, ensure_ascii=False), "invalid_json", "no_parts"
        text = parts[0].get("text")
        if not isinstance(text, str):
            return json.dumps(data, ensure_ascii=False), "invalid_json", "missing_text_part"
        return text, None, None

    def generate_json(
        self,
        prompt_name: str,
        prompt_text: str,
        response_schema: Optional[Dict[str, Any]] = None,
        validator: Optional[Validator] = None,
    ) -> GeminiCallResult:
        prompt_hash = hash_text(prompt_text)
        raw_text, error_type, error_detail = self._call_api(prompt_text, response_schema)
        raw_text = self._redact(raw_text)
        if error_type:
            return GeminiCallResult(
                status=error_type,
                raw_text=raw_text,
                data=None,
                model=self.model,
                prompt_name=prompt_name,
                prompt_hash=prompt_hash,
                error=self._redact(error_detail or error_type),
            )

        parsed, parse_error = _parse_json_loose(raw_text)
        if parse_error:
            return GeminiCallResult(
                status="invalid_json",
                raw_text=raw_text,
                data=None,
                model=self.model,
                prompt_name=prompt_name,
                prompt_hash=prompt_hash,
                error=parse_error,
            )
        if validator is not None:
            try:
                validator(parsed)
            except (KeyError, TypeError, ValueError) as exc:
                return GeminiCallResult(
                    status="invalid_json",
                    raw_text=raw_text,
                    data=None,
                    model=self.model,
                    prompt_name=prompt_name,
                    prompt_hash=prompt_hash,
                    error=f"validation_error: {exc}",
                )
        return GeminiCallResult(
            status="ok",
            raw_text=raw_text,
            data=parsed,
            model=self.model,
            prompt_name=prompt_name,
            prompt_hash=prompt_hash,
            error=None,
        )

    def extract_restaurants(self, posts: List[Post]) -> GeminiCallResult:
        return self.generate_json(
            RESTAURANT_PROMPT_NAME,
            build_restaurant_prompt(posts),
            response_schema=RESTAURANT_RESPONSE_SCHEMA,
            validator=validate_restaurant_payload,
        )
