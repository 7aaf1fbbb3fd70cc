"""The current author's own stories, including unpublished work."""

from __future__ import annotations

from ihfiction.api.contracts import (
    AuthorStoriesFilter,
    AuthorStoryItem,
    OwnBookChapter,
    OwnBookContentResponse,
    OwnBookSummary,
    OwnChapterContentResponse,
    OwnChapterSummary,
    OwnStoryContentResponse,
)
from ihfiction.application.chapters import parent_story
from ihfiction.application.querying import (
    PagedCollection,
    PageRequest,
    SortMapping,
    apply_sort,
    paginate,
    search_contains,
)
from ihfiction.application.sanitization import sanitize_tag
from ihfiction.application.services import FictionServices
from ihfiction.domain.errors import CommonErrors, Result
from ihfiction.domain.models import Chapter, Story, StoryAccessLevel, WorkBody
from ihfiction.domain.ports import ClaimsPrincipal

AUTHOR_STORY_SORT_MAPPINGS = (
    SortMapping("title", "title"),
    SortMapping("created_at", "created_at_utc"),
    SortMapping("updated_at", "updated_at_utc"),
)


def _has_tags(story: Story, wanted: set[str]) -> bool:
    carried = {tag.value.lower() for tag in story.tags} | {str(tag).lower() for tag in story.tags}
    return wanted <= carried


def list_author_stories(
    services: FictionServices,
    claims: ClaimsPrincipal,
    filters: AuthorStoriesFilter,
    *,
    page: PageRequest,
    search: str | None = None,
    sort: str | None = None,
) -> Result[PagedCollection[AuthorStoryItem]]:
    """Owned and collaborated stories, filterable by tags, publication, and ownership."""
    author = services.authorization.get_current_author(claims)
    if author.is_failure:
        return Result.failure(author.unwrap_error())
    author_id = author.unwrap().id
    stories = services.store.list_stories(member_id=author_id)
    wanted = {sanitize_tag(tag) for tag in (filters.tags or "").split(",") if tag.strip()}
    if wanted:
        stories = [story for story in stories if _has_tags(story, wanted)]
    if filters.is_published is not None:
        stories = [story for story in stories if story.is_published == filters.is_published]
    if filters.is_owned is not None:
        stories = [story for story in stories if (story.owner_id == author_id) == filters.is_owned]
    stories = search_contains(stories, search, lambda story: story.title, lambda story: story.description)
    ordered = apply_sort(stories, AUTHOR_STORY_SORT_MAPPINGS, sort, default="updated_at desc")
    return Result.success(
        paginate(ordered, page).map(
            lambda story: AuthorStoryItem(
                id=story.id,
                title=story.title,
                description=story.description,
                published_at=story.published_at_utc,
                is_published=story.is_published,
                updated_at=story.updated_at_utc,
                created_at=story.created_at_utc,
                is_owned=story.owner_id == author_id,
                collaborator_names=[a.name for a in story.authors if a.id != author_id],
                tags=[str(tag) for tag in story.tags],
                has_content=story.has_content,
                has_chapters=story.has_chapters,
                has_books=story.has_books,
                is_valid=story.is_valid,
            )
        )
    )


def _chapter_summary(chapter: Chapter) -> OwnChapterSummary:
    return OwnChapterSummary(
        id=chapter.id,
        title=chapter.title,
        order=chapter.order,
        published_at=chapter.published_at_utc,
        updated_at=chapter.updated_at_utc,
    )


def _body(services: FictionServices, work_body_id: str | None) -> WorkBody | None:
    if work_body_id is None:
        return None
    return services.bodies.get_work_body(work_body_id=work_body_id)


def get_author_story_content(
    services: FictionServices, story_id: str, claims: ClaimsPrincipal
) -> Result[OwnStoryContentResponse]:
    access = services.authorization.authorize_story_access(story_id, claims, StoryAccessLevel.READ)
    if access.is_failure:
        return Result.failure(access.unwrap_error())
    story = services.loader.load_story_with_full_details(story_id)
    if story is None:
        return Result.failure(CommonErrors.Story.NOT_FOUND)
    body = _body(services, story.work_body_id)
    return Result.success(
        OwnStoryContentResponse(
            id=story.id,
            title=story.title,
            description=story.description,
            published_at=story.published_at_utc,
            is_published=story.is_published,
            updated_at=story.updated_at_utc,
            type=story.story_type.value,
            content_id=body.id if body else None,
            content=body.content if body else None,
            note1=body.note1 if body else None,
            note2=body.note2 if body else None,
            content_updated_at=body.updated_at_utc if body else None,
            chapters=[_chapter_summary(chapter) for chapter in story.chapters],
            books=[
                OwnBookSummary(
                    id=book.id,
                    title=book.title,
                    description=book.description,
                    order=book.order,
                    published_at=book.published_at_utc,
                    chapters=[_chapter_summary(chapter) for chapter in book.chapters],
                )
                for book in story.books
            ],
        )
    )


def get_author_chapter_content(
    services: FictionServices, chapter_id: str, claims: ClaimsPrincipal
) -> Result[OwnChapterContentResponse]:
    access = services.authorization.authorize_chapter_access(
        chapter_id, claims, StoryAccessLevel.READ
    )
    if access.is_failure:
        return Result.failure(access.unwrap_error())
    chapter = access.unwrap().chapter
    story = parent_story(services, chapter)
    if story is None:
        return Result.failure(CommonErrors.Story.NOT_FOUND)
    body = _body(services, chapter.work_body_id)
    return Result.success(
        OwnChapterContentResponse(
            story_id=story.id,
            story_title=story.title,
            id=chapter.id,
            title=chapter.title,
            order=chapter.order,
            published_at=chapter.published_at_utc,
            updated_at=chapter.updated_at_utc,
            content_id=body.id if body else None,
            content=body.content if body else None,
            note1=body.note1 if body else None,
            note2=body.note2 if body else None,
            content_updated_at=body.updated_at_utc if body else None,
        )
    )


def get_author_book_content(
    services: FictionServices, book_id: str, claims: ClaimsPrincipal
) -> Result[OwnBookContentResponse]:
    access = services.authorization.authorize_book_access(book_id, claims, StoryAccessLevel.READ)
    if access.is_failure:
        return Result.failure(access.unwrap_error())
    book = access.unwrap().book
    story = access.unwrap().story
    chapters = []
    for chapter in book.chapters:
        body = _body(services, chapter.work_body_id)
        chapters.append(
            OwnBookChapter(
                id=chapter.id,
                title=chapter.title,
                order=chapter.order,
                published_at=chapter.published_at_utc,
                updated_at=chapter.updated_at_utc,
                content_id=body.id if body else None,
                content=body.content if body else None,
                note1=body.note1 if body else None,
                note2=body.note2 if body else None,
            )
        )
    return Result.success(
        OwnBookContentResponse(
            id=book.id,
            title=book.title,
            description=book.description,
            order=book.order,
            story_id=story.id,
            story_title=story.title,
            chapters=chapters,
            published_at=book.published_at_utc,
            updated_at=book.updated_at_utc,
        )
    )
