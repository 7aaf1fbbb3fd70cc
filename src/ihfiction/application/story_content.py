"""Reading and writing single-body story content and published chapter lists."""

from __future__ import annotations

import logging

from ihfiction.adapters.sqlite_fiction_store import STORY_CHAPTERS
from ihfiction.api.contracts import (
    PublishedChapterListItem,
    StoryContentResponse,
    UpdateStoryContentRequest,
    UpdateStoryContentResponse,
)
from ihfiction.application.content import write_work_body
from ihfiction.application.querying import (
    PagedCollection,
    PageRequest,
    SortMapping,
    apply_sort,
    paginate,
)
from ihfiction.application.services import FictionServices
from ihfiction.domain.errors import CommonErrors, DomainError, Result
from ihfiction.domain.models import Chapter
from ihfiction.domain.ports import ClaimsPrincipal

logger = logging.getLogger(__name__)

CHAPTER_LIST_SORT_MAPPINGS = (
    SortMapping("order", "order"),
    SortMapping("title", "title"),
    SortMapping("created_at", "created_at_utc"),
    SortMapping("updated_at", "updated_at_utc"),
    SortMapping("published_at", "published_at_utc"),
)


class StoryContentErrors:
    STORY_NOT_PUBLISHED = DomainError(
        "GetStoryContent.StoryNotPublished", "Story is not published and cannot be accessed."
    )
    READ_INVALID_STRUCTURE = DomainError(
        "GetStoryContent.InvalidStoryStructure",
        "Story has chapters or books and cannot have direct content.",
    )
    NO_CONTENT = DomainError("GetStoryContent.NoContent", "Story does not have content yet.")
    CONTENT_NOT_FOUND = DomainError("GetStoryContent.ContentNotFound", "Story content not found.")
    WRITE_INVALID_STRUCTURE = DomainError(
        "UpdateStoryContent.InvalidStoryStructure",
        "Story has chapters or books and cannot have direct content.",
    )


class ListChaptersErrors:
    STORY_NOT_FOUND = DomainError("ListStoryChapters.StoryNotFound", "Story not found.")
    STORY_NOT_PUBLISHED = DomainError("ListStoryChapters.StoryNotPublished", "Story is not published.")


def get_published_story_content(
    services: FictionServices, story_id: str
) -> Result[StoryContentResponse]:
    story = services.loader.load_story_with_full_details(story_id)
    if story is None:
        return Result.failure(CommonErrors.Story.NOT_FOUND)
    if not story.is_published:
        return Result.failure(StoryContentErrors.STORY_NOT_PUBLISHED)
    if story.has_chapters or story.has_books:
        return Result.failure(StoryContentErrors.READ_INVALID_STRUCTURE)
    if story.work_body_id is None:
        return Result.failure(StoryContentErrors.NO_CONTENT)
    body = services.bodies.get_work_body(work_body_id=story.work_body_id)
    if body is None:
        return Result.failure(StoryContentErrors.CONTENT_NOT_FOUND)
    return Result.success(
        StoryContentResponse(
            story_id=story.id,
            title=story.title,
            description=story.description,
            published_at=story.published_at_utc,
            content_id=body.id,
            content=body.content,
            note1=body.note1,
            note2=body.note2,
            content_updated_at=body.updated_at_utc,
        )
    )


def update_story_content(
    services: FictionServices,
    story_id: str,
    claims: ClaimsPrincipal,
    request: UpdateStoryContentRequest,
) -> Result[UpdateStoryContentResponse]:
    """Replace the story body, creating one on first write."""
    author = services.authorization.get_current_author(claims)
    if author.is_failure:
        return Result.failure(author.unwrap_error())
    story = services.loader.load_story_with_full_details(story_id)
    if story is None:
        return Result.failure(CommonErrors.Story.NOT_FOUND)
    author_id = author.unwrap().id
    if story.owner_id != author_id and author_id not in story.author_ids():
        return Result.failure(CommonErrors.Author.NOT_AUTHORIZED)
    if story.has_chapters or story.has_books:
        return Result.failure(StoryContentErrors.WRITE_INVALID_STRUCTURE)

    body = write_work_body(
        services.bodies,
        work_body_id=story.work_body_id,
        content=request.content,
        note1=request.note1,
        note2=request.note2,
        options=services.markdown,
    )
    if story.work_body_id is None:
        services.store.set_story_work_body(story_id=story.id, work_body_id=body.id)
    else:
        services.store.touch_story(story_id=story.id)
    updated = services.loader.load_story_with_authors(story.id)
    logger.info("story.content_updated story_id=%s content_id=%s", story.id, body.id)
    return Result.success(
        UpdateStoryContentResponse(
            story_id=story.id,
            title=story.title,
            content_id=body.id,
            content=body.content,
            note1=body.note1,
            note2=body.note2,
            content_updated_at=body.updated_at_utc,
            updated_at=updated.updated_at_utc if updated else story.updated_at_utc,
        )
    )


def list_published_story_chapters(
    services: FictionServices,
    story_id: str,
    *,
    page: PageRequest,
    sort: str | None = None,
) -> Result[PagedCollection[PublishedChapterListItem]]:
    story = services.store.load_story(story_id=story_id, include=frozenset({STORY_CHAPTERS}))
    if story is None:
        return Result.failure(ListChaptersErrors.STORY_NOT_FOUND)
    if not story.is_published:
        return Result.failure(ListChaptersErrors.STORY_NOT_PUBLISHED)
    published = [chapter for chapter in story.chapters if chapter.is_published]
    ordered = apply_sort(published, CHAPTER_LIST_SORT_MAPPINGS, sort, default="order")
    return Result.success(
        paginate(ordered, page).map(lambda chapter: _chapter_list_item(services, chapter))
    )


def _chapter_list_item(services: FictionServices, chapter: Chapter) -> PublishedChapterListItem:
    length = 0
    if chapter.work_body_id is not None:
        body = services.bodies.get_work_body(work_body_id=chapter.work_body_id)
        length = len(body.content) if body is not None else 0
    return PublishedChapterListItem(
        chapter_id=chapter.id,
        title=chapter.title,
        order=chapter.order,
        published_at=chapter.published_at_utc,
        created_at=chapter.created_at_utc,
        updated_at=chapter.updated_at_utc,
        has_content=chapter.has_content,
        content_length=length,
    )
