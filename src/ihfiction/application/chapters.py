"""Chapter metadata, content, and deletion."""

from __future__ import annotations

import logging

from ihfiction.api.contracts import (
    ChapterContentResponse,
    UpdateChapterContentRequest,
    UpdateChapterContentResponse,
    UpdateChapterMetadataRequest,
    UpdateChapterMetadataResponse,
)
from ihfiction.application.content import write_work_body
from ihfiction.application.sanitization import sanitize_title
from ihfiction.application.services import FictionServices
from ihfiction.domain.errors import CommonErrors, DomainError, Result
from ihfiction.domain.models import Chapter, Story, StoryAccessLevel
from ihfiction.domain.ports import ClaimsPrincipal

logger = logging.getLogger(__name__)


class ChapterContentErrors:
    CHAPTER_NOT_FOUND = DomainError("GetChapterContent.ChapterNotFound", "Chapter not found.")
    STORY_NOT_PUBLISHED = DomainError(
        "GetChapterContent.StoryNotPublished", "Story is not published and cannot be accessed."
    )
    CHAPTER_NOT_PUBLISHED = DomainError(
        "GetChapterContent.ChapterNotPublished", "Chapter is not published and cannot be accessed."
    )
    NO_CONTENT = DomainError("GetChapterContent.NoContent", "Chapter does not have content yet.")
    CONTENT_NOT_FOUND = DomainError("GetChapterContent.ContentNotFound", "Chapter content not found.")


class ChapterMetadataErrors:
    TITLE_EXISTS = DomainError(
        "UpdateChapterMetadata.TitleExists", "A chapter with this title already exists."
    )


class DeleteChapterErrors:
    ALREADY_DELETED = DomainError(
        "DeleteChapter.AlreadyDeleted", "This chapter has already been deleted."
    )


def parent_story(services: FictionServices, chapter: Chapter) -> Story | None:
    """Resolve the story that holds a chapter directly or through its book."""
    story_id = chapter.story_id
    if story_id is None and chapter.book_id is not None:
        book = services.store.get_book(book_id=chapter.book_id)
        story_id = book.story_id if book is not None else None
    if story_id is None:
        return None
    return services.store.load_story(story_id=story_id, include=frozenset())


def get_chapter_content(services: FictionServices, chapter_id: str) -> Result[ChapterContentResponse]:
    chapter = services.store.get_chapter(chapter_id=chapter_id)
    if chapter is None:
        return Result.failure(ChapterContentErrors.CHAPTER_NOT_FOUND)
    story = parent_story(services, chapter)
    if story is None:
        return Result.failure(CommonErrors.Story.NOT_FOUND)
    if not story.is_published:
        return Result.failure(ChapterContentErrors.STORY_NOT_PUBLISHED)
    if not chapter.is_published:
        return Result.failure(ChapterContentErrors.CHAPTER_NOT_PUBLISHED)
    if chapter.work_body_id is None:
        return Result.failure(ChapterContentErrors.NO_CONTENT)
    body = services.bodies.get_work_body(work_body_id=chapter.work_body_id)
    if body is None:
        return Result.failure(ChapterContentErrors.CONTENT_NOT_FOUND)
    return Result.success(
        ChapterContentResponse(
            chapter_id=chapter.id,
            title=chapter.title,
            story_id=story.id,
            story_title=story.title,
            book_id=chapter.book_id,
            published_at=chapter.published_at_utc,
            content_id=body.id,
            content=body.content,
            note1=body.note1,
            note2=body.note2,
            content_updated_at=body.updated_at_utc,
            updated_at=chapter.updated_at_utc,
        )
    )


def update_chapter_metadata(
    services: FictionServices,
    chapter_id: str,
    claims: ClaimsPrincipal,
    request: UpdateChapterMetadataRequest,
) -> Result[UpdateChapterMetadataResponse]:
    access = services.authorization.authorize_chapter_access(
        chapter_id, claims, StoryAccessLevel.EDIT
    )
    if access.is_failure:
        return Result.failure(access.unwrap_error())
    chapter = access.unwrap().chapter
    title = sanitize_title(request.title)
    if title != chapter.title and services.store.chapter_title_exists(
        title=title,
        story_id=chapter.story_id,
        book_id=chapter.book_id,
        exclude_chapter_id=chapter.id,
    ):
        return Result.failure(ChapterMetadataErrors.TITLE_EXISTS)
    services.store.update_chapter_title(chapter_id=chapter.id, title=title)
    updated = services.store.get_chapter(chapter_id=chapter.id)
    if updated is None:
        return Result.failure(CommonErrors.Chapter.NOT_FOUND)
    logger.info("chapter.metadata_updated chapter_id=%s", chapter.id)
    return Result.success(
        UpdateChapterMetadataResponse(
            chapter_id=updated.id, chapter_title=updated.title, updated_at=updated.updated_at_utc
        )
    )


def update_chapter_content(
    services: FictionServices,
    chapter_id: str,
    claims: ClaimsPrincipal,
    request: UpdateChapterContentRequest,
) -> Result[UpdateChapterContentResponse]:
    access = services.authorization.authorize_chapter_access(
        chapter_id, claims, StoryAccessLevel.EDIT
    )
    if access.is_failure:
        return Result.failure(access.unwrap_error())
    chapter = access.unwrap().chapter
    body = write_work_body(
        services.bodies,
        work_body_id=chapter.work_body_id,
        content=request.content,
        note1=request.note1,
        note2=request.note2,
        options=services.markdown,
    )
    if chapter.work_body_id is None:
        services.store.set_chapter_work_body(chapter_id=chapter.id, work_body_id=body.id)
    else:
        services.store.touch_chapter(chapter_id=chapter.id)
    updated = services.store.get_chapter(chapter_id=chapter.id) or chapter
    logger.info("chapter.content_updated chapter_id=%s content_id=%s", chapter.id, body.id)
    return Result.success(
        UpdateChapterContentResponse(
            chapter_id=updated.id,
            chapter_title=updated.title,
            content_id=body.id,
            content=body.content,
            note1=body.note1,
            note2=body.note2,
            content_updated_at=body.updated_at_utc,
            chapter_updated_at=updated.updated_at_utc,
        )
    )


def delete_chapter(
    services: FictionServices, chapter_id: str, claims: ClaimsPrincipal
) -> Result[None]:
    """Soft-delete the chapter; its body is marked for the content reaper first."""
    access = services.authorization.authorize_chapter_access(
        chapter_id, claims, StoryAccessLevel.DELETE, include_deleted=True
    )
    if access.is_failure:
        return Result.failure(access.unwrap_error())
    chapter = access.unwrap().chapter
    if chapter.deleted_at_utc is not None:
        return Result.failure(DeleteChapterErrors.ALREADY_DELETED)
    if chapter.work_body_id is not None:
        services.bodies.mark_pending_delete(work_body_id=chapter.work_body_id)
    services.store.soft_delete_chapter(chapter_id=chapter.id)
    logger.info("chapter.deleted chapter_id=%s content_id=%s", chapter.id, chapter.work_body_id)
    return Result.success(None)
