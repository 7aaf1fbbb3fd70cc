"""Owner and collaborator checks for stories, chapters, and books."""

from __future__ import annotations

from dataclasses import dataclass

from ihfiction.adapters.sqlite_fiction_store import SQLiteFictionStore
from ihfiction.application.entity_loader import EntityLoaderService
from ihfiction.application.users import UserService
from ihfiction.domain.errors import CommonErrors, DomainError, Result
from ihfiction.domain.models import Author, Book, Chapter, Story, StoryAccessLevel, StoryPermissions
from ihfiction.domain.ports import ClaimsPrincipal


class AuthorizationErrors:
    CHAPTER_NOT_FOUND = DomainError("Authorization.ChapterNotFound", "Chapter not found.")
    OWNER_ONLY_OPERATION = DomainError(
        "Authorization.OwnerOnlyOperation", "Only the owner can perform this operation."
    )
    COLLABORATOR_REQUIRED = DomainError(
        "Authorization.CollaboratorRequired",
        "You must be the owner or a collaborator to perform this operation.",
    )


@dataclass(frozen=True)
class StoryAccess:
    story: Story
    author: Author
    permissions: StoryPermissions


@dataclass(frozen=True)
class ChapterAccess:
    chapter: Chapter
    author: Author
    permissions: StoryPermissions


@dataclass(frozen=True)
class BookAccess:
    book: Book
    story: Story
    author: Author
    permissions: StoryPermissions


def calculate_story_permissions(story: Story, author_id: str) -> StoryPermissions:
    return StoryPermissions(
        is_owner=story.owner_id == author_id,
        is_collaborator=author_id in story.author_ids(),
    )


def calculate_chapter_permissions(chapter: Chapter, author_id: str) -> StoryPermissions:
    return StoryPermissions(
        is_owner=chapter.owner_id == author_id,
        is_collaborator=author_id in chapter.author_ids(),
    )


def access_denied_error(level: StoryAccessLevel) -> DomainError:
    if level in (StoryAccessLevel.DELETE, StoryAccessLevel.PUBLISH):
        return AuthorizationErrors.OWNER_ONLY_OPERATION
    if level == StoryAccessLevel.EDIT:
        return AuthorizationErrors.COLLABORATOR_REQUIRED
    return CommonErrors.Auth.INSUFFICIENT_PERMISSIONS


def chapter_access_denied_error(level: StoryAccessLevel) -> DomainError:
    """Chapters only reserve Delete for the owner; Publish falls through to the generic error."""
    if level == StoryAccessLevel.DELETE:
        return AuthorizationErrors.OWNER_ONLY_OPERATION
    if level == StoryAccessLevel.EDIT:
        return AuthorizationErrors.COLLABORATOR_REQUIRED
    return CommonErrors.Auth.INSUFFICIENT_PERMISSIONS


class AuthorizationService:
    """Resolve the acting author and check access against one work."""

    def __init__(
        self, store: SQLiteFictionStore, users: UserService, loader: EntityLoaderService
    ) -> None:
        self._store = store
        self._users = users
        self._loader = loader

    def get_current_author(self, claims: ClaimsPrincipal) -> Result[Author]:
        result = self._users.get_author(claims)
        if result.is_success:
            return result
        error = result.unwrap_error()
        if error.area == "ClaimsPrincipal":
            return result
        return Result.failure(CommonErrors.Author.NOT_REGISTERED)

    def authorize_story_access(
        self,
        story_id: str,
        claims: ClaimsPrincipal,
        level: StoryAccessLevel,
        *,
        include_deleted: bool = False,
    ) -> Result[StoryAccess]:
        author = self.get_current_author(claims)
        if author.is_failure:
            return Result.failure(author.unwrap_error())
        story = self._loader.load_story_with_authors(story_id, include_deleted=include_deleted)
        if story is None:
            return Result.failure(CommonErrors.Story.NOT_FOUND)
        permissions = calculate_story_permissions(story, author.unwrap().id)
        if not permissions.has_access(level):
            return Result.failure(access_denied_error(level))
        return Result.success(StoryAccess(story=story, author=author.unwrap(), permissions=permissions))

    def authorize_chapter_access(
        self,
        chapter_id: str,
        claims: ClaimsPrincipal,
        level: StoryAccessLevel,
        *,
        include_deleted: bool = False,
    ) -> Result[ChapterAccess]:
        """Check access using the chapter's own owner and authors."""
        author = self.get_current_author(claims)
        if author.is_failure:
            return Result.failure(author.unwrap_error())
        chapter = self._store.get_chapter(chapter_id=chapter_id, include_deleted=include_deleted)
        if chapter is None:
            return Result.failure(AuthorizationErrors.CHAPTER_NOT_FOUND)
        permissions = calculate_chapter_permissions(chapter, author.unwrap().id)
        if not permissions.has_access(level):
            return Result.failure(chapter_access_denied_error(level))
        return Result.success(
            ChapterAccess(chapter=chapter, author=author.unwrap(), permissions=permissions)
        )

    def authorize_book_access(
        self,
        book_id: str,
        claims: ClaimsPrincipal,
        level: StoryAccessLevel,
        *,
        include_deleted: bool = False,
    ) -> Result[BookAccess]:
        """Check access to a book through its parent story."""
        author = self.get_current_author(claims)
        if author.is_failure:
            return Result.failure(author.unwrap_error())
        book = self._store.get_book(book_id=book_id, include_deleted=include_deleted)
        if book is None:
            return Result.failure(CommonErrors.Story.NOT_FOUND)
        story = self._loader.load_story_with_authors(book.story_id, include_deleted=include_deleted)
        if story is None:
            return Result.failure(CommonErrors.Story.NOT_FOUND)
        permissions = calculate_story_permissions(story, author.unwrap().id)
        if not permissions.has_access(level):
            return Result.failure(access_denied_error(level))
        return Result.success(
            BookAccess(book=book, story=story, author=author.unwrap(), permissions=permissions)
        )
