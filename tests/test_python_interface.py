from __future__ import annotations

from typing import Any

import httpx
import pytest

from ihfiction.api.python_interface import AuthSession, FictionApiClient

LINKS = [{"href": "http://127.0.0.1:8000/api/v1/stories/s1", "rel": "self", "method": "GET"}]


def _story_item(story_id: str) -> dict[str, Any]:
    return {
        "story_id": story_id,
        "title": "Harbor Lights",
        "description": "A lighthouse keeper counts ships.",
        "published_at": "2026-01-01T00:00:00+00:00",
        "updated_at": "2026-01-01T00:00:00+00:00",
        "has_content": False,
        "has_chapters": True,
        "has_books": False,
        "chapter_count": 1,
        "author_id": "a1",
        "author_name": "alice",
        "links": LINKS,
    }


def test_session_carries_bearer_header() -> None:
    client = FictionApiClient(api_base_url="http://127.0.0.1:8000/")
    session = client.session("token-123")
    assert client.api_base_url == "http://127.0.0.1:8000"
    assert session == AuthSession(access_token="token-123", api_base_url="http://127.0.0.1:8000")
    assert session.headers == {"Authorization": "Bearer token-123"}


def test_create_story_posts_contract_and_drops_links(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[dict[str, Any]] = []

    def fake_post(url: str, json: object, headers: dict[str, str], timeout: float) -> httpx.Response:
        seen.append({"url": url, "json": json, "headers": headers})
        return httpx.Response(
            status_code=201,
            request=httpx.Request("POST", url),
            json={
                "id": "s1",
                "title": "Harbor Lights",
                "description": "A lighthouse keeper counts ships.",
                "updated_at": "2026-01-01T00:00:00+00:00",
                "owner_id": "a1",
                "owner_name": "alice",
                "links": LINKS,
            },
        )

    monkeypatch.setattr("ihfiction.api.python_interface.httpx.post", fake_post)
    client = FictionApiClient()

    story = client.create_story(
        session=client.session("token-123"),
        title="Harbor Lights",
        description="A lighthouse keeper counts ships.",
        story_type="MultiChapter",
    )

    assert story.id == "s1"
    assert seen[0]["url"] == "http://127.0.0.1:8000/api/v1/stories"
    assert seen[0]["json"]["story_type"] == "MultiChapter"
    assert seen[0]["headers"] == {"Authorization": "Bearer token-123"}


def test_published_listing_reads_items(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[dict[str, Any]] = []

    def fake_get(url: str, params: dict[str, Any], timeout: float) -> httpx.Response:
        seen.append({"url": url, "params": params})
        return httpx.Response(
            status_code=200,
            request=httpx.Request("GET", url),
            json={"items": [_story_item("s1"), _story_item("s2")], "total_count": 2, "links": []},
        )

    monkeypatch.setattr("ihfiction.api.python_interface.httpx.get", fake_get)

    stories = FictionApiClient().list_published_stories(page=2, search="harbor")

    assert [story.story_id for story in stories] == ["s1", "s2"]
    assert seen[0]["params"] == {"page": 2, "page_size": 20, "search": "harbor"}


def test_error_responses_raise(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_get(url: str, timeout: float) -> httpx.Response:
        return httpx.Response(
            status_code=404,
            request=httpx.Request("GET", url),
            json={"status": 404, "title": "Not Found"},
        )

    monkeypatch.setattr("ihfiction.api.python_interface.httpx.get", fake_get)

    with pytest.raises(httpx.HTTPStatusError):
        FictionApiClient().get_story(story_id="missing")
