"""User lookup, lazy creation, and author promotion."""

from __future__ import annotations

import logging
import sqlite3
from uuid import UUID

from ihfiction.adapters.sqlite_fiction_store import SQLiteFictionStore
from ihfiction.application.sanitization import sanitize_name
from ihfiction.domain.errors import CommonErrors, DomainError, Result
from ihfiction.domain.models import Author, User
from ihfiction.domain.ports import ClaimsPrincipal

logger = logging.getLogger(__name__)


class UserErrors:
    NOT_FOUND = DomainError("User.NotFound", "User not found.")
    ALREADY_EXISTS = DomainError("User.AlreadyExists", "User already exists.")
    NOT_AUTHOR = DomainError("User.NotAuthor", "User is not an author.")


class ClaimsErrors:
    MISSING_CLAIM = DomainError(
        "ClaimsPrincipal.MissingClaim", "The NameIdentifier claim is missing from the principal."
    )
    UNPARSABLE_ID = DomainError(
        "ClaimsPrincipal.UnparsableId", "The NameIdentifier claim could not be parsed to a GUID."
    )


def subject_uid(claims: ClaimsPrincipal) -> Result[str]:
    """Return the canonical UUID string of the token subject."""
    subject = (claims.subject or "").strip()
    if not subject:
        return Result.failure(ClaimsErrors.MISSING_CLAIM)
    try:
        return Result.success(str(UUID(subject)))
    except ValueError:
        return Result.failure(ClaimsErrors.UNPARSABLE_ID)


def display_name(claims: ClaimsPrincipal, uid: str) -> str:
    for candidate in (claims.preferred_username, claims.name):
        name = sanitize_name(candidate)
        if name:
            return name
    return f"Unknown User {uid}"


class UserService:
    """Resolve local users for identity-provider subjects."""

    def __init__(self, store: SQLiteFictionStore) -> None:
        self._store = store

    def get_user(self, claims: ClaimsPrincipal) -> Result[User]:
        uid = subject_uid(claims)
        if uid.is_failure:
            return Result.failure(uid.unwrap_error())
        user = self._store.get_user_by_subject(user_id=uid.unwrap())
        return Result.failure(UserErrors.NOT_FOUND) if user is None else Result.success(user)

    def get_user_by_id(self, id: str) -> Result[User]:
        user = self._store.get_user(id=id)
        return Result.failure(UserErrors.NOT_FOUND) if user is None else Result.success(user)

    def get_or_create_user(self, claims: ClaimsPrincipal) -> Result[User]:
        """Return the user for the token subject, inserting it on first sight."""
        uid = subject_uid(claims)
        if uid.is_failure:
            return Result.failure(uid.unwrap_error())
        existing = self._store.get_user_by_subject(user_id=uid.unwrap())
        if existing is not None:
            return Result.success(existing)
        try:
            user = self._store.create_user(
                user_id=uid.unwrap(), name=display_name(claims, uid.unwrap())
            )
        except sqlite3.IntegrityError:
            logger.warning("user.create_conflict user_id=%s", uid.unwrap())
            return Result.failure(CommonErrors.Database.SAVE_FAILED)
        logger.info("user.created id=%s user_id=%s", user.id, user.user_id)
        return Result.success(user)

    def promote_to_author(self, user: User) -> Result[Author]:
        author = self._store.promote_to_author(id=user.id)
        if author is None:
            return Result.failure(UserErrors.NOT_FOUND)
        logger.info("user.promoted id=%s", user.id)
        return Result.success(author)

    def get_author(self, claims: ClaimsPrincipal) -> Result[Author]:
        user = self.get_user(claims)
        if user.is_failure:
            return Result.failure(user.unwrap_error())
        author = self._store.get_author(id=user.unwrap().id)
        if author is None:
            return Result.failure(CommonErrors.Author.NOT_FOUND)
        return Result.success(author)
