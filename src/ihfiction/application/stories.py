"""Story creation, discovery, metadata, tagging, and deletion."""

from __future__ import annotations

import logging

from ihfiction.adapters.sqlite_fiction_store import (
    STORY_AUTHORS,
    STORY_BOOKS,
    STORY_CHAPTERS,
    STORY_TAGS,
)
from ihfiction.api.contracts import (
    AddedTagItem,
    AddTagsRequest,
    AddTagsResponse,
    AuthorReference,
    CreateStoryRequest,
    PublishedBookSummary,
    PublishedChapterSummary,
    PublishedStoryListItem,
    PublishedStoryResponse,
    StoryMetadataResponse,
    TagView,
    UpdateStoryMetadataRequest,
)
from ihfiction.application.querying import (
    PagedCollection,
    PageRequest,
    SortMapping,
    apply_sort,
    paginate,
    search_contains,
)
from ihfiction.application.sanitization import sanitize_description, sanitize_tag, sanitize_title
from ihfiction.application.services import FictionServices
from ihfiction.domain.errors import CommonErrors, DomainError, Result
from ihfiction.domain.models import Chapter, Story, StoryAccessLevel, StoryType, Tag
from ihfiction.domain.ports import ClaimsPrincipal

logger = logging.getLogger(__name__)

PUBLISHED_STORY_SORT_MAPPINGS = (
    SortMapping("published_at", "published_at_utc"),
    SortMapping("title", "title"),
    SortMapping("updated_at", "updated_at_utc"),
)
MAX_TAG_PART_LENGTH = 50


class StoryErrors:
    CREATE_TITLE_EXISTS = DomainError(
        "CreateStory.TitleExists", "A story with this title already exists for this author."
    )
    UPDATE_TITLE_EXISTS = DomainError(
        "UpdateStoryMetadata.TitleExists", "A story with this title already exists for this author."
    )
    DELETE_NOT_AUTHORIZED = DomainError(
        "DeleteStory.NotAuthorized",
        "You are not authorized to delete this story. Only the story owner can delete it.",
    )


class AddTagsErrors:
    NO_TAGS_PROVIDED = DomainError("AddTagsToStory.NoTagsProvided", "At least one tag must be provided.")
    STORY_NOT_FOUND = DomainError("AddTagsToStory.StoryNotFound", "Story not found.")
    ACCESS_DENIED = DomainError(
        "AddTagsToStory.AccessDenied", "You do not have permission to add tags to this story."
    )


def _metadata_response(story: Story) -> StoryMetadataResponse:
    return StoryMetadataResponse(
        id=story.id,
        title=story.title,
        description=story.description,
        updated_at=story.updated_at_utc,
        owner_id=story.owner_id,
        owner_name=story.owner.name if story.owner else "",
    )


def create_story(
    services: FictionServices, claims: ClaimsPrincipal, request: CreateStoryRequest
) -> Result[StoryMetadataResponse]:
    author = services.authorization.get_current_author(claims)
    if author.is_failure:
        return Result.failure(author.unwrap_error())
    owner_id = author.unwrap().id
    title = sanitize_title(request.title)
    if services.store.story_title_exists(owner_id=owner_id, title=title):
        return Result.failure(StoryErrors.CREATE_TITLE_EXISTS)
    work_body_id = None
    if request.story_type == StoryType.SINGLE_BODY.value:
        work_body_id = services.bodies.create_work_body().id
    story = services.store.create_story(
        owner_id=owner_id,
        title=title,
        description=sanitize_description(request.description),
        work_body_id=work_body_id,
    )
    logger.info(
        "story.created story_id=%s owner_id=%s story_type=%s",
        story.id,
        owner_id,
        request.story_type,
    )
    return Result.success(_metadata_response(story))


def list_published_stories(
    services: FictionServices,
    *,
    page: PageRequest,
    search: str | None = None,
    sort: str | None = None,
    author_id: str | None = None,
) -> Result[PagedCollection[PublishedStoryListItem]]:
    stories = services.store.list_stories(
        published_only=True,
        member_id=author_id,
        include=frozenset({STORY_CHAPTERS, STORY_BOOKS}),
    )
    stories = search_contains(
        stories,
        search,
        lambda story: story.title,
        lambda story: story.description,
        lambda story: story.owner.name if story.owner else None,
    )
    ordered = apply_sort(stories, PUBLISHED_STORY_SORT_MAPPINGS, sort, default="published_at desc")
    return Result.success(paginate(ordered, page).map(_published_list_item))


def _published_list_item(story: Story) -> PublishedStoryListItem:
    return PublishedStoryListItem(
        story_id=story.id,
        title=story.title,
        description=story.description,
        published_at=story.published_at_utc,
        updated_at=story.updated_at_utc,
        has_content=story.has_content,
        has_chapters=story.has_chapters,
        has_books=story.has_books,
        chapter_count=len(story.chapters),
        author_id=story.owner_id,
        author_name=story.owner.name if story.owner else "",
    )


def _tag_view(tag: Tag) -> TagView:
    return TagView(
        category=tag.category,
        subcategory=tag.subcategory,
        value=tag.value,
        display_format=str(tag),
    )


def _published_chapters(chapters: tuple[Chapter, ...]) -> list[PublishedChapterSummary]:
    return [
        PublishedChapterSummary(id=chapter.id, title=chapter.title, order=chapter.order)
        for chapter in sorted(chapters, key=lambda item: item.order)
        if chapter.is_published
    ]


def get_published_story(services: FictionServices, story_id: str) -> Result[PublishedStoryResponse]:
    story = services.loader.load_story_with_full_details(story_id)
    if story is None:
        return Result.failure(CommonErrors.Story.NOT_FOUND)
    if not story.is_published:
        return Result.failure(CommonErrors.Story.NOT_PUBLISHED)
    authors = sorted(story.authors, key=lambda author: (author.id != story.owner_id, author.id))
    books = [
        PublishedBookSummary(
            id=book.id,
            title=book.title,
            description=book.description,
            order=book.order,
            chapters=_published_chapters(book.chapters),
        )
        for book in sorted(story.books, key=lambda item: item.order)
        if book.is_published
    ]
    return Result.success(
        PublishedStoryResponse(
            id=story.id,
            title=story.title,
            description=story.description,
            published_at=story.published_at_utc,
            is_published=story.is_published,
            updated_at=story.updated_at_utc,
            created_at=story.created_at_utc,
            owner_id=story.owner_id,
            owner_name=story.owner.name if story.owner else "",
            type=story.story_type.value,
            authors=[AuthorReference(id=author.id, name=author.name) for author in authors],
            tags=[_tag_view(tag) for tag in sorted(story.tags, key=lambda tag: tag.value)],
            books=books,
            chapters=_published_chapters(story.chapters),
        )
    )


def update_story_metadata(
    services: FictionServices,
    story_id: str,
    claims: ClaimsPrincipal,
    request: UpdateStoryMetadataRequest,
) -> Result[StoryMetadataResponse]:
    access = services.authorization.authorize_story_access(story_id, claims, StoryAccessLevel.EDIT)
    if access.is_failure:
        return Result.failure(access.unwrap_error())
    story = access.unwrap().story
    title = sanitize_title(request.title)
    if title != story.title and services.store.story_title_exists(
        owner_id=story.owner_id, title=title, exclude_story_id=story.id
    ):
        return Result.failure(StoryErrors.UPDATE_TITLE_EXISTS)
    services.store.update_story_metadata(
        story_id=story.id, title=title, description=sanitize_description(request.description)
    )
    updated = services.loader.load_story_with_authors(story.id)
    if updated is None:
        return Result.failure(CommonErrors.Story.NOT_FOUND)
    logger.info("story.metadata_updated story_id=%s", story.id)
    return Result.success(_metadata_response(updated))


def delete_story(services: FictionServices, story_id: str, claims: ClaimsPrincipal) -> Result[None]:
    """Soft delete; only the owner may delete and only once."""
    author = services.authorization.get_current_author(claims)
    if author.is_failure:
        return Result.failure(author.unwrap_error())
    story = services.loader.load_story_with_authors(story_id, include_deleted=True)
    if story is None:
        return Result.failure(CommonErrors.Story.NOT_FOUND)
    if story.owner_id != author.unwrap().id:
        return Result.failure(StoryErrors.DELETE_NOT_AUTHORIZED)
    if story.is_deleted:
        return Result.failure(CommonErrors.Story.ALREADY_DELETED)
    services.store.soft_delete_story(story_id=story.id)
    logger.info("story.deleted story_id=%s", story.id)
    return Result.success(None)


def _parse_tag(raw: str) -> tuple[str, str | None, str] | None:
    parts = [part.strip() for part in raw.split(":")]
    if len(parts) not in (2, 3) or any(not part for part in parts):
        return None
    if any(len(part) > MAX_TAG_PART_LENGTH for part in parts):
        return None
    if len(parts) == 2:
        return parts[0], None, parts[1]
    return parts[0], parts[1], parts[2]


def add_tags_to_story(
    services: FictionServices, story_id: str, claims: ClaimsPrincipal, request: AddTagsRequest
) -> Result[AddTagsResponse]:
    """Attach existing tags; malformed, unknown, or duplicate tags are reported as skipped."""
    author = services.authorization.get_current_author(claims)
    if author.is_failure:
        return Result.failure(CommonErrors.Author.NOT_REGISTERED)
    requested = [tag.strip() for tag in request.tags.split(",") if tag.strip()]
    if not requested:
        return Result.failure(AddTagsErrors.NO_TAGS_PROVIDED)
    story = services.store.load_story(
        story_id=story_id, include=frozenset({STORY_AUTHORS, STORY_TAGS})
    )
    if story is None:
        return Result.failure(AddTagsErrors.STORY_NOT_FOUND)
    author_id = author.unwrap().id
    if story.owner_id != author_id and author_id not in story.author_ids():
        return Result.failure(AddTagsErrors.ACCESS_DENIED)

    existing = {str(tag).lower() for tag in story.tags}
    added: list[AddedTagItem] = []
    skipped: list[str] = []
    attach_ids: list[str] = []
    for raw in requested:
        parsed = _parse_tag(raw)
        if parsed is None:
            skipped.append(raw)
            continue
        category, subcategory, value = (
            sanitize_tag(parsed[0]),
            sanitize_tag(parsed[1]) if parsed[1] else None,
            sanitize_tag(parsed[2]),
        )
        tag = services.store.find_tag(category=category, subcategory=subcategory, value=value)
        if tag is None or str(tag).lower() in existing:
            skipped.append(raw)
            continue
        existing.add(str(tag).lower())
        attach_ids.append(tag.id)
        added.append(
            AddedTagItem(
                category=tag.category, subcategory=tag.subcategory, value=tag.value, is_new=False
            )
        )
    if attach_ids:
        services.store.attach_tags(work_id=story.id, tag_ids=attach_ids)
        services.store.touch_story(story_id=story.id)
    logger.info(
        "story.tags_added story_id=%s added=%s skipped=%s", story.id, len(added), len(skipped)
    )
    return Result.success(
        AddTagsResponse(
            story_id=story.id,
            story_title=story.title,
            added_tags=added,
            skipped_tags=skipped,
            total_tags=len(existing),
        )
    )
