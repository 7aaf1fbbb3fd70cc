"""Domain models, errors, and ports for fiction publishing."""

from ihfiction.domain.errors import CommonErrors, DomainError, Result
from ihfiction.domain.models import (
    Author,
    AuthorRef,
    Book,
    Chapter,
    Story,
    StoryAccessLevel,
    StoryPermissions,
    StoryType,
    Tag,
    User,
    WorkBody,
)
from ihfiction.domain.ports import ClaimsPrincipal, IdentityAdmin, WorkBodyStore

__all__ = [
    "Author",
    "AuthorRef",
    "Book",
    "Chapter",
    "ClaimsPrincipal",
    "CommonErrors",
    "DomainError",
    "IdentityAdmin",
    "Result",
    "Story",
    "StoryAccessLevel",
    "StoryPermissions",
    "StoryType",
    "Tag",
    "User",
    "WorkBody",
    "WorkBodyStore",
]
