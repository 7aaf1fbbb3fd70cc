"""Domain error values and the result railway used by use cases."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class DomainError:
    """Expected, reportable failure with a dotted `Area.Reason` code."""

    code: str
    description: str

    @property
    def area(self) -> str:
        return self.code.split(".", maxsplit=1)[0]


@dataclass(frozen=True)
class Result(Generic[T]):
    """Success value or domain error; never both."""

    value: T | None = None
    error: DomainError | None = None

    @classmethod
    def success(cls, value: T) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: DomainError) -> Result[T]:
        return cls(error=error)

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    def unwrap(self) -> T:
        """Return the success value or raise when the result is a failure."""
        if self.error is not None:
            raise RuntimeError(f"Result is a failure: {self.error.code}")
        return self.value  # type: ignore[return-value]

    def unwrap_error(self) -> DomainError:
        if self.error is None:
            raise RuntimeError("Result is a success.")
        return self.error


class CommonErrors:
    """Shared error values reused across use cases."""

    class Database:
        SAVE_FAILED = DomainError(
            "Database.SaveFailed", "A database error occurred while saving changes."
        )
        CONCURRENCY_CONFLICT = DomainError(
            "Database.ConcurrencyConflict",
            "The resource was modified by another user. Please refresh and try again.",
        )
        CONNECTION_FAILED = DomainError(
            "Database.ConnectionFailed", "Failed to connect to the database."
        )

    class Author:
        NOT_FOUND = DomainError("Author.NotFound", "Author not found.")
        NOT_REGISTERED = DomainError(
            "Author.NotRegistered",
            "You must be registered as an author to perform this action.",
        )
        NOT_AUTHORIZED = DomainError(
            "Author.NotAuthorized", "You are not authorized to perform this action."
        )

    class Story:
        NOT_FOUND = DomainError("Story.NotFound", "Story not found.")
        EXISTS = DomainError("Story.Exists", "A story with this title already exists.")
        ALREADY_DELETED = DomainError("Story.AlreadyDeleted", "Story has already been deleted.")
        NOT_PUBLISHED = DomainError("Story.NotPublished", "Story is not published.")

    class Auth:
        NOT_FOUND = DomainError("Auth.NotFound", "User not found.")
        INVALID_CLAIMS = DomainError(
            "Auth.InvalidClaims", "Invalid or missing authentication claims."
        )
        INSUFFICIENT_PERMISSIONS = DomainError(
            "Auth.InsufficientPermissions", "Insufficient permissions to perform this action."
        )

    class Chapter:
        NOT_FOUND = DomainError("Chapter.NotFound", "Chapter not found.")
        ALREADY_DELETED = DomainError(
            "Chapter.AlreadyDeleted", "Chapter has already been deleted."
        )
        NOT_PUBLISHED = DomainError("Chapter.NotPublished", "Chapter is not published.")
        NO_CONTENT = DomainError("Chapter.NoContent", "Chapter does not have content yet.")

    class Book:
        NOT_FOUND = DomainError("Book.NotFound", "Book not found.")
        ALREADY_DELETED = DomainError("Book.AlreadyDeleted", "Book has already been deleted.")
        NOT_PUBLISHED = DomainError("Book.NotPublished", "Book is not published.")
        NO_CONTENT = DomainError("Book.NoContent", "Book does not have content yet.")
        NOT_AUTHORIZED = DomainError(
            "Book.NotAuthorized", "You are not authorized to perform this action."
        )
