"""Publication state changes for stories, books, and chapters."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from ihfiction.adapters.sqlite_fiction_store import WorkKind
from ihfiction.api.contracts import (
    PublishStoryResponse,
    PublishWorkRequest,
    PublishWorkResponse,
)
from ihfiction.application.services import FictionServices
from ihfiction.domain.errors import CommonErrors, DomainError, Result
from ihfiction.domain.models import Story
from ihfiction.domain.ports import ClaimsPrincipal

logger = logging.getLogger(__name__)


class PublishStoryErrors:
    ALREADY_PUBLISHED = DomainError("PublishStory.AlreadyPublished", "Story is already published.")
    NO_CONTENT_TO_PUBLISH = DomainError(
        "PublishStory.NoContentToPublish",
        "Story has no content to publish. Add content or chapters before publishing.",
    )
    ONLY_OWNER_CAN_PUBLISH = DomainError(
        "PublishStory.OnlyOwnerCanPublish", "Only the story owner can publish the story."
    )


class UnpublishStoryErrors:
    NOT_PUBLISHED = DomainError("UnpublishStory.NotPublished", "Story is not currently published.")
    ONLY_OWNER_CAN_UNPUBLISH = DomainError(
        "UnpublishStory.OnlyOwnerCanUnpublish", "Only the story owner can unpublish the story."
    )


class PublishWorkErrors:
    WORK_NOT_FOUND = DomainError("PublishWork.WorkNotFound", "Work not found.")
    ALREADY_PUBLISHED = DomainError("PublishWork.AlreadyPublished", "Work is already published.")
    NO_CONTENT_TO_PUBLISH = DomainError("PublishWork.NoContentToPublish", "Work has no content to publish.")
    ONLY_OWNER_CAN_PUBLISH = DomainError(
        "PublishWork.OnlyOwnerCanPublish", "Only the work owner can publish the work."
    )


def _utc_now() -> str:
    return datetime.now(UTC).isoformat()


def _story_state(story: Story) -> PublishStoryResponse:
    return PublishStoryResponse(
        story_id=story.id,
        title=story.title,
        description=story.description,
        published_at=story.published_at_utc,
        updated_at=story.updated_at_utc,
        has_content=story.has_content,
        has_chapters=story.has_chapters,
        has_books=story.has_books,
        chapter_count=len(story.chapters),
    )


def _owned_story(
    services: FictionServices, story_id: str, claims: ClaimsPrincipal, not_owner: DomainError
) -> Result[Story]:
    author = services.authorization.get_current_author(claims)
    if author.is_failure:
        return Result.failure(author.unwrap_error())
    story = services.loader.load_story_for_conversion(story_id)
    if story is None:
        return Result.failure(CommonErrors.Story.NOT_FOUND)
    if story.owner_id != author.unwrap().id:
        return Result.failure(not_owner)
    return Result.success(story)


def _reload(services: FictionServices, story_id: str) -> Result[PublishStoryResponse]:
    story = services.loader.load_story_for_conversion(story_id)
    if story is None:
        return Result.failure(CommonErrors.Story.NOT_FOUND)
    return Result.success(_story_state(story))


def publish_story(
    services: FictionServices, story_id: str, claims: ClaimsPrincipal
) -> Result[PublishStoryResponse]:
    owned = _owned_story(services, story_id, claims, PublishStoryErrors.ONLY_OWNER_CAN_PUBLISH)
    if owned.is_failure:
        return Result.failure(owned.unwrap_error())
    story = owned.unwrap()
    if story.is_published:
        return Result.failure(PublishStoryErrors.ALREADY_PUBLISHED)
    if not (story.has_content or story.has_chapters or story.has_books):
        return Result.failure(PublishStoryErrors.NO_CONTENT_TO_PUBLISH)
    services.store.set_published(kind="story", work_id=story.id, published_at=_utc_now())
    logger.info("story.published story_id=%s", story.id)
    return _reload(services, story.id)


def unpublish_story(
    services: FictionServices, story_id: str, claims: ClaimsPrincipal
) -> Result[PublishStoryResponse]:
    owned = _owned_story(
        services, story_id, claims, UnpublishStoryErrors.ONLY_OWNER_CAN_UNPUBLISH
    )
    if owned.is_failure:
        return Result.failure(owned.unwrap_error())
    story = owned.unwrap()
    if not story.is_published:
        return Result.failure(UnpublishStoryErrors.NOT_PUBLISHED)
    services.store.set_published(kind="story", work_id=story.id, published_at=None)
    logger.info("story.unpublished story_id=%s", story.id)
    return _reload(services, story.id)


@dataclass(frozen=True)
class _WorkSnapshot:
    kind: WorkKind
    id: str
    title: str
    owner_id: str
    published_at_utc: str | None
    updated_at_utc: str
    has_content: bool
    child_count: int
    children: dict[WorkKind, list[str]]


def _snapshot(services: FictionServices, kind: WorkKind, work_id: str) -> _WorkSnapshot | None:
    if kind == "story":
        story = services.loader.load_story_for_conversion(work_id)
        if story is None:
            return None
        book_chapters = [chapter.id for book in story.books for chapter in book.chapters]
        return _WorkSnapshot(
            kind=kind,
            id=story.id,
            title=story.title,
            owner_id=story.owner_id,
            published_at_utc=story.published_at_utc,
            updated_at_utc=story.updated_at_utc,
            has_content=story.has_content,
            child_count=len(story.chapters) + len(story.books),
            children={
                "book": [book.id for book in story.books],
                "chapter": [chapter.id for chapter in story.chapters] + book_chapters,
            },
        )
    if kind == "book":
        book = services.store.get_book(book_id=work_id)
        if book is None:
            return None
        return _WorkSnapshot(
            kind=kind,
            id=book.id,
            title=book.title,
            owner_id=book.owner_id,
            published_at_utc=book.published_at_utc,
            updated_at_utc=book.updated_at_utc,
            has_content=False,
            child_count=len(book.chapters),
            children={"chapter": [chapter.id for chapter in book.chapters]},
        )
    chapter = services.store.get_chapter(chapter_id=work_id)
    if chapter is None:
        return None
    return _WorkSnapshot(
        kind=kind,
        id=chapter.id,
        title=chapter.title,
        owner_id=chapter.owner_id,
        published_at_utc=chapter.published_at_utc,
        updated_at_utc=chapter.updated_at_utc,
        has_content=chapter.has_content,
        child_count=0,
        children={},
    )


def publish_work(
    services: FictionServices, work_id: str, claims: ClaimsPrincipal, request: PublishWorkRequest
) -> Result[PublishWorkResponse]:
    """Publish any work; `publish_all` also publishes every unpublished descendant."""
    author = services.authorization.get_current_author(claims)
    if author.is_failure:
        return Result.failure(author.unwrap_error())
    kind = services.store.find_work_kind(work_id=work_id)
    work = _snapshot(services, kind, work_id) if kind is not None else None
    if work is None:
        return Result.failure(PublishWorkErrors.WORK_NOT_FOUND)
    if work.owner_id != author.unwrap().id:
        return Result.failure(PublishWorkErrors.ONLY_OWNER_CAN_PUBLISH)
    if work.published_at_utc is not None and not request.publish_all:
        return Result.failure(PublishWorkErrors.ALREADY_PUBLISHED)
    if not work.has_content and work.child_count == 0:
        return Result.failure(PublishWorkErrors.NO_CONTENT_TO_PUBLISH)

    now = _utc_now()
    services.store.set_published(kind=work.kind, work_id=work.id, published_at=now)
    if request.publish_all:
        for child_kind, child_ids in work.children.items():
            services.store.publish_works(kind=child_kind, work_ids=child_ids, published_at=now)
    logger.info(
        "work.published work_id=%s kind=%s publish_all=%s", work.id, work.kind, request.publish_all
    )
    published = _snapshot(services, work.kind, work.id) or work
    return Result.success(
        PublishWorkResponse(
            work_id=published.id,
            title=published.title,
            type=published.kind.capitalize(),
            published_at=published.published_at_utc,
            updated_at=published.updated_at_utc,
            has_content=published.has_content,
            has_children=published.child_count > 0,
            child_count=published.child_count,
        )
    )
