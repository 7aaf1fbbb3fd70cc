"""Author registration, profiles, and public author listings."""

from __future__ import annotations

import logging

from ihfiction.adapters.sqlite_fiction_store import STORY_AUTHORS, AuthorListing
from ihfiction.api.contracts import (
    AuthorAccountResponse,
    AuthorDetailResponse,
    AuthorListItem,
    AuthorProfile,
    CurrentAuthorProfileResponse,
    PublishedWorkReference,
    UpdateAuthorProfileRequest,
    WorkReference,
)
from ihfiction.application.querying import (
    PagedCollection,
    PageRequest,
    SortMapping,
    apply_sort,
    paginate,
    search_contains,
)
from ihfiction.application.sanitization import sanitize_bio
from ihfiction.application.services import FictionServices
from ihfiction.domain.errors import CommonErrors, Result
from ihfiction.domain.models import Author
from ihfiction.domain.ports import ClaimsPrincipal

logger = logging.getLogger(__name__)

AUTHOR_SORT_MAPPINGS = (
    SortMapping("name", "name"),
    SortMapping("created_at", "created_at_utc"),
    SortMapping("updated_at", "updated_at_utc"),
)
AUTHORS_DEFAULT_PAGE_SIZE = 30


def _account_response(author: Author) -> AuthorAccountResponse:
    return AuthorAccountResponse(
        id=author.id,
        user_id=author.user_id,
        name=author.name,
        gravatar_email=author.gravatar_email,
        updated_at=author.updated_at_utc,
        profile=AuthorProfile(bio=author.bio),
    )


def register_as_author(
    services: FictionServices, claims: ClaimsPrincipal
) -> Result[AuthorAccountResponse]:
    """Create the local user if needed, grant the author role, then promote."""
    user = services.users.get_or_create_user(claims)
    if user.is_failure:
        return Result.failure(user.unwrap_error())
    if services.identity_admin is None:
        logger.warning(
            "author.role_assignment_skipped user_id=%s reason=identity_admin_unconfigured",
            user.unwrap().user_id,
        )
    else:
        assigned = services.identity_admin.assign_client_role(
            user_id=user.unwrap().user_id,
            client_id=services.role_client_id,
            role_name=services.author_role,
        )
        if assigned.is_failure:
            return Result.failure(assigned.unwrap_error())
    author = services.users.promote_to_author(user.unwrap())
    if author.is_failure:
        return Result.failure(author.unwrap_error())
    logger.info("author.registered id=%s", author.unwrap().id)
    return Result.success(_account_response(author.unwrap()))


def get_current_author_profile(
    services: FictionServices, claims: ClaimsPrincipal
) -> Result[CurrentAuthorProfileResponse]:
    author = services.authorization.get_current_author(claims)
    if author.is_failure:
        return Result.failure(author.unwrap_error())
    current = author.unwrap()
    stories = services.store.list_stories(
        member_id=current.id, include=frozenset({STORY_AUTHORS})
    )
    works = [
        WorkReference(id=story.id, title=story.title)
        for story in stories
        if current.id in story.author_ids()
    ]
    owned = [
        WorkReference(id=story.id, title=story.title)
        for story in stories
        if story.owner_id == current.id
    ]
    account = _account_response(current)
    return Result.success(
        CurrentAuthorProfileResponse(**account.model_dump(), works=works, owned_works=owned)
    )


def update_own_profile(
    services: FictionServices, claims: ClaimsPrincipal, request: UpdateAuthorProfileRequest
) -> Result[AuthorAccountResponse]:
    author = services.authorization.get_current_author(claims)
    if author.is_failure:
        return Result.failure(author.unwrap_error())
    updated = services.store.update_author_bio(id=author.unwrap().id, bio=sanitize_bio(request.bio))
    if updated is None:
        return Result.failure(CommonErrors.Author.NOT_FOUND)
    logger.info("author.profile_updated id=%s", updated.id)
    return Result.success(_account_response(updated))


def list_authors(
    services: FictionServices,
    *,
    page: PageRequest,
    search: str | None = None,
    sort: str | None = None,
) -> Result[PagedCollection[AuthorListItem]]:
    """Authors with at least one published, non-deleted story."""
    listings = [item for item in services.store.list_authors() if item.published_stories > 0]
    listings = search_contains(
        listings, search, lambda item: item.name, lambda item: item.bio
    )
    ordered = apply_sort(listings, AUTHOR_SORT_MAPPINGS, sort, default="name")
    return Result.success(paginate(ordered, page).map(_author_list_item))


def _author_list_item(listing: AuthorListing) -> AuthorListItem:
    return AuthorListItem(
        id=listing.id,
        name=listing.name,
        bio=listing.bio,
        created_at=listing.created_at_utc,
        updated_at=listing.updated_at_utc,
        total_stories=listing.total_stories,
        published_stories=listing.published_stories,
    )


def get_author(services: FictionServices, author_id: str) -> Result[AuthorDetailResponse]:
    author = services.store.get_author(id=author_id)
    if author is None:
        return Result.failure(CommonErrors.Author.NOT_FOUND)
    owned = services.store.list_stories(owner_id=author.id, include=frozenset())
    published = [
        PublishedWorkReference(id=story.id, title=story.title, published_at=story.published_at_utc)
        for story in owned
        if story.is_published
    ]
    return Result.success(
        AuthorDetailResponse(
            id=author.id,
            user_id=author.user_id,
            name=author.name,
            updated_at=author.updated_at_utc,
            deleted_at=author.deleted_at_utc,
            profile=AuthorProfile(bio=author.bio),
            published_stories=published,
            total_stories=len(owned),
        )
    )
