"""Chapters, books, and conversions between story structures."""

from __future__ import annotations

import logging

from ihfiction.api.contracts import (
    ChapterWithContentResponse,
    ConvertStoryTypeRequest,
    ConvertStoryTypeResponse,
    CreateBookRequest,
    CreateBookResponse,
    CreateChapterRequest,
    UpdateBookMetadataRequest,
    UpdateBookMetadataResponse,
)
from ihfiction.application.content import write_work_body
from ihfiction.application.sanitization import sanitize_description, sanitize_title
from ihfiction.application.services import FictionServices
from ihfiction.domain.errors import CommonErrors, DomainError, Result
from ihfiction.domain.models import Chapter, StoryAccessLevel, StoryType, WorkBody
from ihfiction.domain.ports import ClaimsPrincipal

logger = logging.getLogger(__name__)


class ChapterErrors:
    STORY_INVALID_STRUCTURE = DomainError(
        "AddChapterToStory.InvalidStoryStructure",
        "Story has direct content or books and cannot have chapters.",
    )
    STORY_TITLE_EXISTS = DomainError(
        "AddChapterToStory.TitleExists", "A chapter with this title already exists in the story."
    )
    BOOK_NOT_FOUND = DomainError("AddChapterToBook.BookNotFound", "The specified book does not exist.")
    NOT_BOOK_OWNER = DomainError(
        "AddChapterToBook.NotBookOwner", "Only the owner of the book can add a chapter."
    )
    BOOK_TITLE_EXISTS = DomainError(
        "AddChapterToBook.TitleExists", "A chapter with this title already exists in the book."
    )


class BookErrors:
    STORY_NOT_FOUND = DomainError("CreateBook.StoryNotFound", "The specified story does not exist.")
    NOT_STORY_OWNER = DomainError("CreateBook.NotStoryOwner", "Only the owner of the story can add a book.")
    CREATE_TITLE_EXISTS = DomainError(
        "CreateBook.TitleExists", "A book with this title already exists in this story."
    )
    UPDATE_TITLE_EXISTS = DomainError(
        "UpdateBookMetadata.TitleExists", "A book with this title already exists in this story."
    )


class ConvertStoryTypeErrors:
    NOT_AUTHORIZED = DomainError(
        "ConvertStoryType.NotAuthorized", "You are not authorized to convert this story."
    )
    INVALID_CONVERSION_PATH = DomainError(
        "ConvertStoryType.InvalidConversionPath", "The requested story type conversion is not valid."
    )
    DOWNGRADE_CHAPTER_CONDITION_NOT_MET = DomainError(
        "ConvertStoryType.DowngradeChapterConditionNotMet",
        "To downgrade, the story must have exactly one chapter.",
    )
    DOWNGRADE_BOOK_CONDITION_NOT_MET = DomainError(
        "ConvertStoryType.DowngradeBookConditionNotMet",
        "To downgrade, the story must have exactly one book.",
    )
    UPGRADE_ONE_SHOT_CONDITION_NOT_MET = DomainError(
        "ConvertStoryType.UpgradeOneShotConditionNotMet",
        "To upgrade, the story must have a WorkBodyId.",
    )
    ALREADY_AT_TARGET_TYPE = DomainError(
        "ConvertStoryType.AlreadyAtTargetType", "The story is already of the target type."
    )


def _chapter_with_content(
    *,
    parent_id: str,
    parent_title: str,
    parent_updated_at: str,
    chapter: Chapter,
    body: WorkBody,
) -> ChapterWithContentResponse:
    return ChapterWithContentResponse(
        parent_id=parent_id,
        parent_title=parent_title,
        parent_updated_at=parent_updated_at,
        chapter_id=chapter.id,
        chapter_title=chapter.title,
        chapter_created_at=chapter.created_at_utc,
        chapter_published_at=chapter.published_at_utc,
        chapter_updated_at=chapter.updated_at_utc,
        content_id=body.id,
        content=body.content,
        note1=body.note1,
        note2=body.note2,
        content_updated_at=body.updated_at_utc,
    )


def add_chapter_to_story(
    services: FictionServices,
    story_id: str,
    claims: ClaimsPrincipal,
    request: CreateChapterRequest,
) -> Result[ChapterWithContentResponse]:
    """Append a chapter whose authors mirror the story's authors."""
    access = services.authorization.authorize_story_access(story_id, claims, StoryAccessLevel.EDIT)
    if access.is_failure:
        return Result.failure(access.unwrap_error())
    story = services.loader.load_story_with_full_details(story_id)
    if story is None:
        return Result.failure(CommonErrors.Story.NOT_FOUND)
    if story.has_content or story.has_books:
        return Result.failure(ChapterErrors.STORY_INVALID_STRUCTURE)
    title = sanitize_title(request.title)
    if services.store.chapter_title_exists(title=title, story_id=story.id):
        return Result.failure(ChapterErrors.STORY_TITLE_EXISTS)

    author = access.unwrap().author
    body = write_work_body(
        services.bodies,
        work_body_id=None,
        content=request.content,
        note1=request.note1,
        note2=request.note2,
        options=services.markdown,
    )
    chapter = services.store.create_chapter(
        owner_id=author.id,
        title=title,
        author_ids=[author.id, *story.author_ids()],
        work_body_id=body.id,
        story_id=story.id,
    )
    parent = services.loader.load_story_with_authors(story.id) or story
    logger.info("chapter.created chapter_id=%s story_id=%s", chapter.id, story.id)
    return Result.success(
        _chapter_with_content(
            parent_id=parent.id,
            parent_title=parent.title,
            parent_updated_at=parent.updated_at_utc,
            chapter=chapter,
            body=body,
        )
    )


def create_book(
    services: FictionServices, story_id: str, claims: ClaimsPrincipal, request: CreateBookRequest
) -> Result[CreateBookResponse]:
    author = services.authorization.get_current_author(claims)
    if author.is_failure:
        return Result.failure(author.unwrap_error())
    story = services.loader.load_story_for_conversion(story_id)
    if story is None:
        return Result.failure(BookErrors.STORY_NOT_FOUND)
    if story.owner_id != author.unwrap().id:
        return Result.failure(BookErrors.NOT_STORY_OWNER)
    title = sanitize_title(request.title)
    if services.store.book_title_exists(story_id=story.id, title=title):
        return Result.failure(BookErrors.CREATE_TITLE_EXISTS)
    book = services.store.create_book(
        story_id=story.id,
        owner_id=author.unwrap().id,
        title=title,
        description=sanitize_description(request.description),
        author_ids=[author.unwrap().id],
    )
    logger.info("book.created book_id=%s story_id=%s", book.id, story.id)
    return Result.success(
        CreateBookResponse(
            id=book.id,
            title=book.title,
            description=book.description,
            updated_at=book.updated_at_utc,
            owner_id=book.owner_id,
            story_id=story.id,
        )
    )


def update_book_metadata(
    services: FictionServices,
    book_id: str,
    claims: ClaimsPrincipal,
    request: UpdateBookMetadataRequest,
) -> Result[UpdateBookMetadataResponse]:
    access = services.authorization.authorize_book_access(book_id, claims, StoryAccessLevel.EDIT)
    if access.is_failure:
        return Result.failure(access.unwrap_error())
    book = access.unwrap().book
    title = sanitize_title(request.title)
    if title != book.title and services.store.book_title_exists(
        story_id=book.story_id, title=title, exclude_book_id=book.id
    ):
        return Result.failure(BookErrors.UPDATE_TITLE_EXISTS)
    # Editors join the book's authors.
    services.store.add_work_author(work_id=book.id, author_id=access.unwrap().author.id)
    services.store.update_book(
        book_id=book.id, title=title, description=sanitize_description(request.description)
    )
    updated = services.store.get_book(book_id=book.id)
    if updated is None:
        return Result.failure(CommonErrors.Book.NOT_FOUND)
    logger.info("book.metadata_updated book_id=%s", book.id)
    return Result.success(
        UpdateBookMetadataResponse(
            book_id=updated.id,
            title=updated.title,
            description=updated.description,
            updated_at=updated.updated_at_utc,
        )
    )


def add_chapter_to_book(
    services: FictionServices, book_id: str, claims: ClaimsPrincipal, request: CreateChapterRequest
) -> Result[ChapterWithContentResponse]:
    author = services.authorization.get_current_author(claims)
    if author.is_failure:
        return Result.failure(author.unwrap_error())
    book = services.store.get_book(book_id=book_id)
    if book is None:
        return Result.failure(ChapterErrors.BOOK_NOT_FOUND)
    if book.owner_id != author.unwrap().id:
        return Result.failure(ChapterErrors.NOT_BOOK_OWNER)
    title = sanitize_title(request.title)
    if services.store.chapter_title_exists(title=title, book_id=book.id):
        return Result.failure(ChapterErrors.BOOK_TITLE_EXISTS)

    body = write_work_body(
        services.bodies,
        work_body_id=None,
        content=request.content,
        note1=request.note1,
        note2=request.note2,
        options=services.markdown,
    )
    chapter = services.store.create_chapter(
        owner_id=author.unwrap().id,
        title=title,
        author_ids=[author.unwrap().id],
        work_body_id=body.id,
        book_id=book.id,
    )
    parent = services.store.get_book(book_id=book.id) or book
    logger.info("chapter.created chapter_id=%s book_id=%s", chapter.id, book.id)
    return Result.success(
        _chapter_with_content(
            parent_id=parent.id,
            parent_title=parent.title,
            parent_updated_at=parent.updated_at_utc,
            chapter=chapter,
            body=body,
        )
    )


def convert_story_type(
    services: FictionServices,
    story_id: str,
    claims: ClaimsPrincipal,
    request: ConvertStoryTypeRequest,
) -> Result[ConvertStoryTypeResponse]:
    """Move between SingleBody, MultiChapter, and MultiBook one step at a time.

    A `New` story is treated as `SingleBody`. Upgrades wrap the existing
    content in `Chapter 1` or `Book 1`; downgrades require exactly one
    chapter or book to unwrap.
    """
    author = services.authorization.get_current_author(claims)
    if author.is_failure:
        return Result.failure(author.unwrap_error())
    story = services.loader.load_story_for_conversion(story_id)
    if story is None:
        return Result.failure(CommonErrors.Story.NOT_FOUND)
    if story.owner_id != author.unwrap().id:
        return Result.failure(ConvertStoryTypeErrors.NOT_AUTHORIZED)

    previous = story.story_type
    current = StoryType.SINGLE_BODY if previous == StoryType.NEW else previous
    target = StoryType(request.target_type)
    if current == target:
        return Result.failure(ConvertStoryTypeErrors.ALREADY_AT_TARGET_TYPE)

    if current == StoryType.SINGLE_BODY and target == StoryType.MULTI_CHAPTER:
        if story.work_body_id is None:
            return Result.failure(ConvertStoryTypeErrors.UPGRADE_ONE_SHOT_CONDITION_NOT_MET)
        services.store.convert_single_body_to_chapter(story=story, work_body_id=story.work_body_id)
    elif current == StoryType.MULTI_CHAPTER and target == StoryType.SINGLE_BODY:
        if len(story.chapters) != 1:
            return Result.failure(ConvertStoryTypeErrors.DOWNGRADE_CHAPTER_CONDITION_NOT_MET)
        services.store.convert_chapter_to_single_body(story_id=story.id, chapter=story.chapters[0])
    elif current == StoryType.MULTI_CHAPTER and target == StoryType.MULTI_BOOK:
        services.store.convert_chapters_to_book(story=story)
    elif current == StoryType.MULTI_BOOK and target == StoryType.MULTI_CHAPTER:
        if len(story.books) != 1:
            return Result.failure(ConvertStoryTypeErrors.DOWNGRADE_BOOK_CONDITION_NOT_MET)
        services.store.convert_book_to_chapters(story_id=story.id, book_id=story.books[0].id)
    else:
        return Result.failure(ConvertStoryTypeErrors.INVALID_CONVERSION_PATH)

    converted = services.loader.load_story_for_conversion(story.id)
    if converted is None:
        return Result.failure(CommonErrors.Story.NOT_FOUND)
    logger.info(
        "story.converted story_id=%s from=%s to=%s",
        story.id,
        previous.value,
        converted.story_type.value,
    )
    return Result.success(
        ConvertStoryTypeResponse(
            story_id=converted.id,
            previous_type=previous.value,
            type=converted.story_type.value,
            updated_at=converted.updated_at_utc,
        )
    )
