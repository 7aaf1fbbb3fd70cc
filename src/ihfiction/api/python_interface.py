"""Python-first interface for API interactions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel

from ihfiction.api.contracts import (
    AuthorAccountResponse,
    ChapterContentResponse,
    ChapterWithContentResponse,
    CreateChapterRequest,
    CreateStoryRequest,
    PublishedStoryListItem,
    PublishedStoryResponse,
    PublishStoryResponse,
    RegisterAsAuthorRequest,
    StoryContentResponse,
    StoryMetadataResponse,
    StoryTypeName,
    TagListItem,
    UpdateStoryContentRequest,
    UpdateStoryContentResponse,
)

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True)
class AuthSession:
    """Bearer token issued by the identity provider, bound to one API."""

    access_token: str
    api_base_url: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}


def _model(model: type[ModelT], payload: dict[str, Any]) -> ModelT:
    """Validate a linked payload, dropping hypermedia `links`."""
    return model.model_validate({key: value for key, value in payload.items() if key != "links"})


class FictionApiClient:
    """Tiny typed API client for Python users."""

    def __init__(self, api_base_url: str = "http://127.0.0.1:8000") -> None:
        """Initialize client with an API base URL."""
        self._api_base_url = api_base_url.rstrip("/")

    @property
    def api_base_url(self) -> str:
        """Return normalized API base URL."""
        return self._api_base_url

    def session(self, access_token: str) -> AuthSession:
        """Wrap an OIDC access token obtained from the identity provider."""
        return AuthSession(access_token=access_token, api_base_url=self._api_base_url)

    def register_as_author(self, *, session: AuthSession) -> AuthorAccountResponse:
        """Register the token's user as an author."""
        request = RegisterAsAuthorRequest(accept_terms=True)
        response = httpx.post(
            f"{session.api_base_url}/api/v1/me/author",
            json=request.model_dump(mode="json"),
            headers=session.headers,
            timeout=30.0,
        )
        response.raise_for_status()
        return _model(AuthorAccountResponse, response.json())

    def create_story(
        self,
        *,
        session: AuthSession,
        title: str,
        description: str,
        story_type: StoryTypeName = "SingleBody",
    ) -> StoryMetadataResponse:
        request = CreateStoryRequest(title=title, description=description, story_type=story_type)
        response = httpx.post(
            f"{session.api_base_url}/api/v1/stories",
            json=request.model_dump(mode="json"),
            headers=session.headers,
            timeout=30.0,
        )
        response.raise_for_status()
        return _model(StoryMetadataResponse, response.json())

    def update_story_content(
        self,
        *,
        session: AuthSession,
        story_id: str,
        content: str,
        note1: str | None = None,
        note2: str | None = None,
    ) -> UpdateStoryContentResponse:
        """Replace the markdown body of a single-body story."""
        request = UpdateStoryContentRequest(content=content, note1=note1, note2=note2)
        response = httpx.put(
            f"{session.api_base_url}/api/v1/stories/{story_id}/content",
            json=request.model_dump(mode="json"),
            headers=session.headers,
            timeout=30.0,
        )
        response.raise_for_status()
        return _model(UpdateStoryContentResponse, response.json())

    def add_chapter(
        self,
        *,
        session: AuthSession,
        story_id: str,
        title: str,
        content: str,
    ) -> ChapterWithContentResponse:
        request = CreateChapterRequest(title=title, content=content)
        response = httpx.post(
            f"{session.api_base_url}/api/v1/stories/{story_id}/chapters",
            json=request.model_dump(mode="json"),
            headers=session.headers,
            timeout=30.0,
        )
        response.raise_for_status()
        return _model(ChapterWithContentResponse, response.json())

    def publish_story(self, *, session: AuthSession, story_id: str) -> PublishStoryResponse:
        response = httpx.post(
            f"{session.api_base_url}/api/v1/stories/{story_id}/publish",
            headers=session.headers,
            timeout=30.0,
        )
        response.raise_for_status()
        return _model(PublishStoryResponse, response.json())

    def list_published_stories(
        self, *, page: int = 1, page_size: int = 20, search: str | None = None
    ) -> list[PublishedStoryListItem]:
        """Fetch one page of published stories."""
        params: dict[str, str | int] = {"page": page, "page_size": page_size}
        if search:
            params["search"] = search
        response = httpx.get(
            f"{self._api_base_url}/api/v1/stories/published", params=params, timeout=30.0
        )
        response.raise_for_status()
        return [_model(PublishedStoryListItem, item) for item in response.json()["items"]]

    def get_story(self, *, story_id: str) -> PublishedStoryResponse:
        response = httpx.get(f"{self._api_base_url}/api/v1/stories/{story_id}", timeout=30.0)
        response.raise_for_status()
        return _model(PublishedStoryResponse, response.json())

    def get_story_content(self, *, story_id: str) -> StoryContentResponse:
        response = httpx.get(
            f"{self._api_base_url}/api/v1/stories/{story_id}/content", timeout=30.0
        )
        response.raise_for_status()
        return _model(StoryContentResponse, response.json())

    def get_chapter_content(self, *, chapter_id: str) -> ChapterContentResponse:
        response = httpx.get(
            f"{self._api_base_url}/api/v1/chapters/{chapter_id}/content", timeout=30.0
        )
        response.raise_for_status()
        return _model(ChapterContentResponse, response.json())

    def list_tags(self, *, category: str | None = None) -> list[TagListItem]:
        params = {"category": category} if category else None
        response = httpx.get(f"{self._api_base_url}/api/v1/tags", params=params, timeout=30.0)
        response.raise_for_status()
        return [_model(TagListItem, item) for item in response.json()["items"]]


__all__ = ["AuthSession", "FictionApiClient"]
