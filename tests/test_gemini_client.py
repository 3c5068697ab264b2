import json

from reddit_to_gmap.gemini_client import (
    RESTAURANT_RESPONSE_SCHEMA,
    GeminiClient,
    build_restaurant_prompt,
)
from reddit_to_gmap.http import HttpClient
from reddit_to_gmap.models import Post


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def request(self, method, url, timeout=None, data=None, headers=None, **kwargs):
        self.calls.append({"method": method, "url": url, "body": json.loads(data), "headers": headers})
        return self.response


def gemini_payload(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def make_client(response):
    session = FakeSession(response)
    client = GeminiClient(HttpClient("gemini", timeout=1, session=session), "secret-key", model="m1")
    return client, session


POSTS = [Post(title="Ate at Joe's", selftext="Great slice", permalink="https://www.reddit.com/r/x/1/", score=12)]


def test_extract_restaurants_sends_schema_and_parses_json():
    text = json.dumps({"restaurants": [{"name": "Joe's", "upvotes": 12, "reddit_self_link": "l"}]})
    client, session = make_client(FakeResponse(gemini_payload(text)))

    result = client.extract_restaurants(POSTS)

    assert result.ok
    assert result.data["restaurants"][0]["name"] == "Joe's"
    call = session.calls[0]
    assert call["url"].endswith("/models/m1:generateContent")
    assert "secret-key" not in call["url"]
    assert call["headers"]["x-goog-api-key"] == "secret-key"
    generation_config = call["body"]["generationConfig"]
    assert generation_config["responseMimeType"] == "application/json"
    assert generation_config["responseSchema"] == RESTAURANT_RESPONSE_SCHEMA
    assert "Great slice" in call["body"]["contents"][0]["parts"][0]["text"]


def test_code_fenced_output_is_accepted():
    text = '```json\n{"restaurants": []}\n```'
    client, _ = make_client(FakeResponse(gemini_payload(text)))

    result = client.extract_restaurants(POSTS)

    assert result.ok
    assert result.data == {"restaurants": []}


def test_http_error_is_reported_with_redacted_detail():
    client, _ = make_client(FakeResponse({"error": "quota"}, status_code=429))

    result = client.extract_restaurants(POSTS)

    assert result.status == "http_error"
    assert result.data is None
    assert "secret-key" not in (result.error or "")


def test_invalid_json_and_schema_errors():
    client, _ = make_client(FakeResponse(gemini_payload("not json at all")))
    assert client.extract_restaurants(POSTS).status == "invalid_json"

    client, _ = make_client(FakeResponse(gemini_payload('{"restaurants": [{"name": "x"}]}')))
    result = client.extract_restaurants(POSTS)
    assert result.status == "invalid_json"
    assert "validation_error" in result.error

    client, _ = make_client(FakeResponse({"candidates": []}))
    assert client.extract_restaurants(POSTS).error == "no_candidates"


def test_prompt_embeds_posts_as_json():
    prompt = build_restaurant_prompt(POSTS)

    assert '"permalink": "https://www.reddit.com/r/x/1/"' in prompt
    assert "list of restaurants" in prompt


def test_non_object_candidates_are_invalid_json():
    client, _ = make_client(FakeResponse({"candidates": ["oops"]}))
    result = client.extract_restaurants(POSTS)
    assert result.status == "invalid_json"
    assert result.error == "no_candidates"

    client, _ = make_client(FakeResponse({"candidates": [{"content": {"parts": ["oops"]}}]}))
    assert client.extract_restaurants(POSTS).error == "no_parts"
