import pytest
import requests

from reddit_to_gmap import config
from reddit_to_gmap.http import HttpClient, RequestMetrics
from reddit_to_gmap.reddit_client import AuthError, FetchError, RedditClient, parse_listing_response


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        return self._payload


class FakeRedditSession:
    """Serves a listing of ``total`` posts, honoring limit/after like the real API."""

    def __init__(self, total, token_payload=None, token_status=200, fail_on_page=None):
        self.total = total
        self.token_payload = token_payload if token_payload is not None else {"access_token": "tok"}
        self.token_status = token_status
        self.fail_on_page = fail_on_page
        self.token_calls = 0
        self.page_calls = []

    def request(self, method, url, timeout=None, params=None, headers=None, data=None, auth=None):
        if url == config.REDDIT_TOKEN_URL:
            self.token_calls += 1
            assert method == "POST"
            assert data == {"grant_type": "client_credentials"}
            assert auth == ("id", "secret")
            return FakeResponse(self.token_payload, self.token_status)

        assert headers["Authorization"] == "Bearer tok"
        self.page_calls.append(dict(params))
        if self.fail_on_page is not None and len(self.page_calls) == self.fail_on_page:
            raise requests.ConnectionError("boom")
        start = int(params["after"].split("_")[1]) + 1 if "after" in params else 0
        end = min(self.total, start + params["limit"])
        children = [
            {
                "data": {
                    "title": f"Post {i}",
                    "selftext": f"Body {i}",
                    "permalink": f"/r/foodnyc/comments/{i}/",
                    "score": 1000 - i,
                }
            }
            for i in range(start, end)
        ]
        after = f"t3_{end - 1}" if end < self.total else None
        return FakeResponse({"data": {"children": children, "after": after}})


def make_client(session, metrics=None):
    http_client = HttpClient("reddit", timeout=1, session=session, metrics=metrics)
    return RedditClient(http_client, "id", "secret")


def test_pagination_requests_pages_of_at_most_100():
    session = FakeRedditSession(total=1000)
    client = make_client(session)

    posts = client.fetch_posts("foodnyc", 250, "month")

    assert len(posts) == 250
    assert [call["limit"] for call in session.page_calls] == [100, 100, 50]
    assert all(call["t"] == "month" for call in session.page_calls)
    assert "after" not in session.page_calls[0]
    assert session.page_calls[1]["after"] == "t3_99"
    assert session.page_calls[1]["count"] == 100
    assert session.page_calls[2]["count"] == 200
    assert posts[0].permalink == "https://www.reddit.com/r/foodnyc/comments/0/"
    assert posts[-1].title == "Post 249"


def test_pagination_stops_when_cursor_runs_out():
    session = FakeRedditSession(total=130)
    client = make_client(session)

    posts = client.fetch_posts("foodnyc", 250, "week")

    assert len(posts) == 130
    assert [call["limit"] for call in session.page_calls] == [100, 100]


def test_token_is_exchanged_once_per_client():
    session = FakeRedditSession(total=10)
    metrics = RequestMetrics()
    client = make_client(session, metrics=metrics)

    client.fetch_posts("foodnyc", 5)
    client.fetch_posts("foodnyc", 5)

    assert session.token_calls == 1
    assert metrics.network["reddit"] == 3


@pytest.mark.parametrize(
    "token_payload,token_status",
    [({"error": "invalid_grant"}, 200), ({"access_token": "tok"}, 401)],
)
def test_failed_token_exchange_raises_auth_error(token_payload, token_status):
    session = FakeRedditSession(total=10, token_payload=token_payload, token_status=token_status)
    client = make_client(session)

    with pytest.raises(AuthError):
        client.fetch_posts("foodnyc", 5)
    assert session.page_calls == []


def test_failed_page_aborts_whole_fetch():
    session = FakeRedditSession(total=1000, fail_on_page=2)
    client = make_client(session)

    with pytest.raises(FetchError):
        client.fetch_posts("foodnyc", 250)
    assert len(session.page_calls) == 2


def test_unknown_time_range_is_rejected():
    client = make_client(FakeRedditSession(total=1))

    with pytest.raises(ValueError):
        client.fetch_posts("foodnyc", 5, "decade")


def test_parse_listing_response_handles_missing_fields():
    posts, after = parse_listing_response(
        {"data": {"children": [{"data": {"title": "t", "permalink": "/r/x/1/"}}], "after": ""}}
    )

    assert after is None
    assert posts[0].selftext == ""
    assert posts[0].score == 0
    assert posts[0].permalink == "https://www.reddit.com/r/x/1/"


class MalformedListingSession:
    def request(self, method, url, timeout=None, params=None, headers=None, data=None, auth=None):
        if url == config.REDDIT_TOKEN_URL:
            return FakeResponse({"access_token": "tok"})
        return FakeResponse({"data": {"children": ["t3_abc"], "after": None}})


def test_malformed_listing_raises_fetch_error():
    client = make_client(MalformedListingSession())

    with pytest.raises(FetchError):
        client.fetch_posts("foodnyc", 5)
