"""Named loading profiles for story aggregates."""

from __future__ import annotations

from ihfiction.adapters.sqlite_fiction_store import (
    ALL_STORY_INCLUDES,
    STORY_AUTHORS,
    STORY_BOOKS,
    STORY_CHAPTERS,
    SQLiteFictionStore,
)
from ihfiction.domain.models import Story

_WITH_AUTHORS = frozenset({STORY_AUTHORS})
_FOR_CONVERSION = frozenset({STORY_CHAPTERS, STORY_BOOKS})


class EntityLoaderService:
    """Load stories with a fixed set of related collections."""

    def __init__(self, store: SQLiteFictionStore) -> None:
        self._store = store

    def load_story_with_authors(self, story_id: str, *, include_deleted: bool = False) -> Story | None:
        return self._store.load_story(
            story_id=story_id, include_deleted=include_deleted, include=_WITH_AUTHORS
        )

    def load_story_with_full_details(
        self, story_id: str, *, include_deleted: bool = False
    ) -> Story | None:
        """Owner, authors, tags, story chapters, and books with their chapters."""
        return self._store.load_story(
            story_id=story_id, include_deleted=include_deleted, include=ALL_STORY_INCLUDES
        )

    def load_story_for_conversion(
        self, story_id: str, *, include_deleted: bool = False
    ) -> Story | None:
        return self._store.load_story(
            story_id=story_id, include_deleted=include_deleted, include=_FOR_CONVERSION
        )
