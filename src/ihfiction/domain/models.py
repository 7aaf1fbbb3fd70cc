"""Core fiction domain models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class StoryType(str, Enum):
    """Content structure of a story."""

    NEW = "New"
    SINGLE_BODY = "SingleBody"
    MULTI_CHAPTER = "MultiChapter"
    MULTI_BOOK = "MultiBook"
    UNKNOWN = "Unknown"


class StoryAccessLevel(str, Enum):
    """Access level requested against a work."""

    READ = "Read"
    EDIT = "Edit"
    DELETE = "Delete"
    PUBLISH = "Publish"


@dataclass(frozen=True)
class User:
    """Identity-provider linked account."""

    id: str
    user_id: str
    name: str
    gravatar_email: str | None
    created_at_utc: str
    updated_at_utc: str
    deleted_at_utc: str | None = None


@dataclass(frozen=True)
class Author(User):
    """A promoted user allowed to own and edit works."""

    bio: str | None = None


@dataclass(frozen=True)
class AuthorRef:
    """Lightweight author reference attached to works."""

    id: str
    name: str


@dataclass(frozen=True)
class Tag:
    """Categorized label attached to works."""

    id: str
    category: str
    subcategory: str | None
    value: str
    created_at_utc: str

    def __str__(self) -> str:
        if self.subcategory:
            return f"{self.category}:{self.subcategory}:{self.value}"
        return f"{self.category}:{self.value}"


@dataclass(frozen=True)
class WorkBody:
    """Document-store record holding markdown content for a work."""

    id: str
    content: str
    note1: str | None
    note2: str | None
    updated_at_utc: str
    pending_delete: bool = False


@dataclass(frozen=True)
class Chapter:
    """Chapter attached either directly to a story or to a book."""

    id: str
    title: str
    order: int
    owner_id: str
    story_id: str | None
    book_id: str | None
    work_body_id: str | None
    created_at_utc: str
    updated_at_utc: str
    published_at_utc: str | None = None
    deleted_at_utc: str | None = None
    authors: tuple[AuthorRef, ...] = ()

    @property
    def is_published(self) -> bool:
        return self.published_at_utc is not None

    @property
    def has_content(self) -> bool:
        return bool(self.work_body_id)

    def author_ids(self) -> set[str]:
        return {author.id for author in self.authors}


@dataclass(frozen=True)
class Book:
    """Book grouping chapters inside a multi-book story."""

    id: str
    title: str
    description: str
    order: int
    owner_id: str
    story_id: str
    created_at_utc: str
    updated_at_utc: str
    published_at_utc: str | None = None
    deleted_at_utc: str | None = None
    authors: tuple[AuthorRef, ...] = ()
    chapters: tuple[Chapter, ...] = ()

    @property
    def is_published(self) -> bool:
        return self.published_at_utc is not None

    def author_ids(self) -> set[str]:
        return {author.id for author in self.authors}


@dataclass(frozen=True)
class Story:
    """Top-level work: single body, chapters, or books."""

    id: str
    title: str
    description: str
    owner_id: str
    work_body_id: str | None
    created_at_utc: str
    updated_at_utc: str
    published_at_utc: str | None = None
    deleted_at_utc: str | None = None
    owner: AuthorRef | None = None
    authors: tuple[AuthorRef, ...] = ()
    tags: tuple[Tag, ...] = ()
    chapters: tuple[Chapter, ...] = ()
    books: tuple[Book, ...] = ()

    @property
    def is_published(self) -> bool:
        return self.published_at_utc is not None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at_utc is not None

    @property
    def has_content(self) -> bool:
        return bool(self.work_body_id)

    @property
    def has_chapters(self) -> bool:
        return len(self.chapters) > 0

    @property
    def has_books(self) -> bool:
        return len(self.books) > 0

    @property
    def is_valid(self) -> bool:
        """At most one content structure may be present."""
        return sum((self.has_content, self.has_chapters, self.has_books)) <= 1

    @property
    def story_type(self) -> StoryType:
        if not self.is_valid:
            return StoryType.UNKNOWN
        if self.has_books:
            return StoryType.MULTI_BOOK
        if self.has_chapters:
            return StoryType.MULTI_CHAPTER
        if self.has_content:
            return StoryType.SINGLE_BODY
        return StoryType.NEW

    def author_ids(self) -> set[str]:
        return {author.id for author in self.authors}


@dataclass(frozen=True)
class StoryPermissions:
    """Derived access flags for one author against one work."""

    is_owner: bool
    is_collaborator: bool

    @property
    def can_read(self) -> bool:
        return self.is_owner or self.is_collaborator

    @property
    def can_edit(self) -> bool:
        return self.is_owner or self.is_collaborator

    @property
    def can_delete(self) -> bool:
        return self.is_owner

    @property
    def can_publish(self) -> bool:
        return self.is_owner

    def has_access(self, level: StoryAccessLevel) -> bool:
        if level == StoryAccessLevel.READ:
            return self.can_read
        if level == StoryAccessLevel.EDIT:
            return self.can_edit
        if level == StoryAccessLevel.DELETE:
            return self.can_delete
        if level == StoryAccessLevel.PUBLISH:
            return self.can_publish
        return False
