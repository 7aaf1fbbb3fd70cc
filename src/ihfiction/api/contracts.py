"""Typed contracts shared by API handlers and Python interfaces."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ihfiction.application.validation import no_excessive_whitespace, no_harmful_content

StoryTypeName = Literal["SingleBody", "MultiChapter", "MultiBook"]


class ContractModel(BaseModel):
    """Base model config used by all API contracts."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


def _guard(value: str | None, field_name: str, *, whitespace: int | None = None) -> str | None:
    if whitespace is not None:
        no_excessive_whitespace(value, whitespace, field_name)
    return no_harmful_content(value, field_name)


# Requests


class RegisterAsAuthorRequest(ContractModel):
    accept_terms: bool

    @field_validator("accept_terms")
    @classmethod
    def _require_terms(cls, value: bool) -> bool:
        if not value:
            raise ValueError("You must accept the terms and conditions to become an author.")
        return value


class UpdateAuthorProfileRequest(ContractModel):
    bio: str | None = Field(default=None, max_length=2000)

    @field_validator("bio")
    @classmethod
    def _validate_bio(cls, value: str | None) -> str | None:
        return _guard(value, "bio", whitespace=5)


class StoryTextRequest(ContractModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=10, max_length=2000)

    @field_validator("title")
    @classmethod
    def _validate_title(cls, value: str) -> str:
        return str(_guard(value, "title", whitespace=3))

    @field_validator("description")
    @classmethod
    def _validate_description(cls, value: str) -> str:
        return str(_guard(value, "description", whitespace=5))


class CreateStoryRequest(StoryTextRequest):
    story_type: StoryTypeName = "SingleBody"


class UpdateStoryMetadataRequest(StoryTextRequest):
    """Title and description replacement for a story."""


class ContentRequest(ContractModel):
    content: str = Field(min_length=1, max_length=1_000_000)
    note1: str | None = Field(default=None, max_length=5000)
    note2: str | None = Field(default=None, max_length=5000)

    @field_validator("content", "note1", "note2")
    @classmethod
    def _validate_text(cls, value: str | None) -> str | None:
        return _guard(value, "content")


class UpdateStoryContentRequest(ContentRequest):
    """Markdown body plus two optional author notes."""


class UpdateChapterContentRequest(ContentRequest):
    """Replacement content for one chapter."""


class CreateChapterRequest(ContentRequest):
    title: str = Field(min_length=1, max_length=200)

    @field_validator("title")
    @classmethod
    def _validate_title(cls, value: str) -> str:
        return str(_guard(value, "title"))


class UpdateChapterMetadataRequest(ContractModel):
    title: str = Field(min_length=1, max_length=200)

    @field_validator("title")
    @classmethod
    def _validate_title(cls, value: str) -> str:
        return str(_guard(value, "title"))


class CreateBookRequest(StoryTextRequest):
    """New book title and description."""


class UpdateBookMetadataRequest(CreateBookRequest):
    """Title and description replacement for a book."""


class AddTagsRequest(ContractModel):
    tags: str = Field(min_length=1)


class ConvertStoryTypeRequest(ContractModel):
    target_type: StoryTypeName


class PublishWorkRequest(ContractModel):
    publish_all: bool = False


class AuthorStoriesFilter(ContractModel):
    tags: str | None = Field(default=None, max_length=200)
    is_published: bool | None = None
    is_owned: bool | None = None

    @field_validator("tags")
    @classmethod
    def _validate_tags(cls, value: str | None) -> str | None:
        return _guard(value, "tags")


# Responses


class Link(ContractModel):
    href: str
    rel: str
    method: str = "GET"


class AuthorProfile(ContractModel):
    bio: str | None = None


class WorkReference(ContractModel):
    id: str
    title: str


class AuthorReference(ContractModel):
    id: str
    name: str


class PublishedWorkReference(ContractModel):
    id: str
    title: str
    published_at: str | None = None


class AuthorAccountResponse(ContractModel):
    """Returned after registering or updating the caller's author profile."""

    id: str
    user_id: str
    name: str
    gravatar_email: str | None = None
    updated_at: str
    profile: AuthorProfile


class CurrentAuthorProfileResponse(AuthorAccountResponse):
    works: list[WorkReference] = Field(default_factory=list)
    owned_works: list[WorkReference] = Field(default_factory=list)


class AuthorListItem(ContractModel):
    id: str
    name: str
    bio: str
    created_at: str
    updated_at: str
    total_stories: int
    published_stories: int


class AuthorDetailResponse(ContractModel):
    id: str
    user_id: str
    name: str
    updated_at: str
    deleted_at: str | None = None
    profile: AuthorProfile
    published_stories: list[PublishedWorkReference] = Field(default_factory=list)
    total_stories: int


class TagListItem(ContractModel):
    tag_id: str
    category: str
    subcategory: str | None = None
    value: str
    created_at: str
    story_count: int
    display_format: str


class StoryMetadataResponse(ContractModel):
    """Story fields returned from create and metadata update."""

    id: str
    title: str
    description: str
    updated_at: str
    owner_id: str
    owner_name: str


class ChapterWithContentResponse(ContractModel):
    parent_id: str
    parent_title: str
    parent_updated_at: str
    chapter_id: str
    chapter_title: str
    chapter_created_at: str
    chapter_published_at: str | None = None
    chapter_updated_at: str
    content_id: str
    content: str
    note1: str | None = None
    note2: str | None = None
    content_updated_at: str


class CreateBookResponse(ContractModel):
    id: str
    title: str
    description: str
    updated_at: str
    owner_id: str
    story_id: str


class TagView(ContractModel):
    category: str
    subcategory: str | None = None
    value: str
    display_format: str


class PublishedChapterSummary(ContractModel):
    id: str
    title: str
    order: int


class PublishedBookSummary(ContractModel):
    id: str
    title: str
    description: str
    order: int
    chapters: list[PublishedChapterSummary] = Field(default_factory=list)


class PublishedStoryResponse(ContractModel):
    id: str
    title: str
    description: str
    published_at: str | None = None
    is_published: bool
    updated_at: str
    created_at: str
    owner_id: str
    owner_name: str
    type: str
    authors: list[AuthorReference] = Field(default_factory=list)
    tags: list[TagView] = Field(default_factory=list)
    books: list[PublishedBookSummary] = Field(default_factory=list)
    chapters: list[PublishedChapterSummary] = Field(default_factory=list)


class PublishedStoryListItem(ContractModel):
    story_id: str
    title: str
    description: str
    published_at: str | None = None
    updated_at: str
    has_content: bool
    has_chapters: bool
    has_books: bool
    chapter_count: int
    author_id: str
    author_name: str


class AuthorStoryItem(ContractModel):
    id: str
    title: str
    description: str
    published_at: str | None = None
    is_published: bool
    updated_at: str
    created_at: str
    is_owned: bool
    collaborator_names: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    has_content: bool
    has_chapters: bool
    has_books: bool
    is_valid: bool


class StoryContentResponse(ContractModel):
    """Published single-body story content."""

    story_id: str
    title: str
    description: str
    published_at: str | None = None
    content_id: str
    content: str
    note1: str | None = None
    note2: str | None = None
    content_updated_at: str


class ChapterContentResponse(ContractModel):
    chapter_id: str
    title: str
    story_id: str
    story_title: str
    book_id: str | None = None
    published_at: str | None = None
    content_id: str
    content: str
    note1: str | None = None
    note2: str | None = None
    content_updated_at: str
    updated_at: str


class PublishedChapterListItem(ContractModel):
    chapter_id: str
    title: str
    order: int
    published_at: str | None = None
    created_at: str
    updated_at: str
    has_content: bool
    content_length: int


class UpdateStoryContentResponse(ContractModel):
    story_id: str
    title: str
    content_id: str
    content: str
    note1: str | None = None
    note2: str | None = None
    content_updated_at: str
    updated_at: str


class UpdateChapterContentResponse(ContractModel):
    chapter_id: str
    chapter_title: str
    content_id: str
    content: str
    note1: str | None = None
    note2: str | None = None
    content_updated_at: str
    chapter_updated_at: str


class UpdateChapterMetadataResponse(ContractModel):
    chapter_id: str
    chapter_title: str
    updated_at: str


class UpdateBookMetadataResponse(ContractModel):
    book_id: str
    title: str
    description: str
    updated_at: str


class AddedTagItem(ContractModel):
    category: str
    subcategory: str | None = None
    value: str
    is_new: bool


class AddTagsResponse(ContractModel):
    story_id: str
    story_title: str
    added_tags: list[AddedTagItem] = Field(default_factory=list)
    skipped_tags: list[str] = Field(default_factory=list)
    total_tags: int


class ConvertStoryTypeResponse(ContractModel):
    story_id: str
    previous_type: str
    type: str
    updated_at: str


class PublishStoryResponse(ContractModel):
    story_id: str
    title: str
    description: str
    published_at: str | None = None
    updated_at: str
    has_content: bool
    has_chapters: bool
    has_books: bool
    chapter_count: int


class PublishWorkResponse(ContractModel):
    work_id: str
    title: str
    type: str
    published_at: str | None = None
    updated_at: str
    has_content: bool
    has_children: bool
    child_count: int


class OwnChapterSummary(ContractModel):
    id: str
    title: str
    order: int
    published_at: str | None = None
    updated_at: str


class OwnBookSummary(ContractModel):
    id: str
    title: str
    description: str
    order: int
    published_at: str | None = None
    chapters: list[OwnChapterSummary] = Field(default_factory=list)


class OwnStoryContentResponse(ContractModel):
    id: str
    title: str
    description: str
    published_at: str | None = None
    is_published: bool
    updated_at: str
    type: str
    content_id: str | None = None
    content: str | None = None
    note1: str | None = None
    note2: str | None = None
    content_updated_at: str | None = None
    chapters: list[OwnChapterSummary] = Field(default_factory=list)
    books: list[OwnBookSummary] = Field(default_factory=list)


class OwnChapterContentResponse(ContractModel):
    story_id: str
    story_title: str
    id: str
    title: str
    order: int
    published_at: str | None = None
    updated_at: str
    content_id: str | None = None
    content: str | None = None
    note1: str | None = None
    note2: str | None = None
    content_updated_at: str | None = None


class OwnBookChapter(ContractModel):
    id: str
    title: str
    order: int
    published_at: str | None = None
    updated_at: str
    content_id: str | None = None
    content: str | None = None
    note1: str | None = None
    note2: str | None = None


class OwnBookContentResponse(ContractModel):
    id: str
    title: str
    description: str
    order: int
    story_id: str
    story_title: str
    chapters: list[OwnBookChapter] = Field(default_factory=list)
    published_at: str | None = None
    updated_at: str
