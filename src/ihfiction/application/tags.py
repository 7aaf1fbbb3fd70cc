"""Tag catalogue listing and seeding."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ihfiction.adapters.sqlite_fiction_store import SQLiteFictionStore, TagListing
from ihfiction.api.contracts import TagListItem
from ihfiction.application.querying import (
    PagedCollection,
    PageRequest,
    PaginationOptions,
    SortMapping,
    apply_sort,
    paginate,
    search_contains,
)
from ihfiction.application.sanitization import sanitize_tag
from ihfiction.application.services import FictionServices
from ihfiction.domain.errors import Result
from ihfiction.domain.models import Tag

logger = logging.getLogger(__name__)

TAG_SORT_MAPPINGS = (
    SortMapping("category", "category"),
    SortMapping("value", "value"),
    SortMapping("story_count", "story_count"),
    SortMapping("created_at", "created_at"),
)
TAG_PAGINATION = PaginationOptions(default_page_size=50, max_page_size=200)


def _tag_item(listing: TagListing) -> TagListItem:
    tag = listing.tag
    return TagListItem(
        tag_id=tag.id,
        category=tag.category,
        subcategory=tag.subcategory,
        value=tag.value,
        created_at=tag.created_at_utc,
        story_count=listing.story_count,
        display_format=str(tag),
    )


def list_tags(
    services: FictionServices,
    *,
    page: PageRequest,
    search: str | None = None,
    sort: str | None = None,
    category: str | None = None,
) -> Result[PagedCollection[TagListItem]]:
    items = [
        _tag_item(listing)
        for listing in services.store.list_tags(category=sanitize_tag(category) or None)
    ]
    items = search_contains(
        items, search, lambda item: item.category, lambda item: item.subcategory, lambda item: item.value
    )
    ordered = apply_sort(items, TAG_SORT_MAPPINGS, sort, default="category, value")
    return Result.success(paginate(ordered, page))


def parse_tag_display(display: str) -> tuple[str, str | None, str] | None:
    """Split `category:value` or `category:subcategory:value` into normalized parts."""
    parts = [sanitize_tag(part) for part in display.split(":")]
    if len(parts) not in (2, 3) or not all(parts):
        return None
    if len(parts) == 2:
        return parts[0], None, parts[1]
    return parts[0], parts[1], parts[2]


def seed_tags(store: SQLiteFictionStore, displays: Iterable[str]) -> list[Tag]:
    """Create any missing tags and return every tag named in `displays`."""
    seeded: list[Tag] = []
    for display in displays:
        parsed = parse_tag_display(display)
        if parsed is None:
            logger.warning("tags.seed_skipped display=%s reason=invalid_format", display)
            continue
        category, subcategory, value = parsed
        tag = store.find_tag(category=category, subcategory=subcategory, value=value)
        if tag is None:
            tag = store.create_tag(category=category, subcategory=subcategory, value=value)
            logger.info("tags.created tag_id=%s display=%s", tag.id, tag)
        seeded.append(tag)
    return seeded
