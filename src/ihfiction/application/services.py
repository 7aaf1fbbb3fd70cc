"""Dependency bundle handed to use cases."""

from __future__ import annotations

from dataclasses import dataclass, field

from ihfiction.adapters.sqlite_fiction_store import SQLiteFictionStore
from ihfiction.application.authorization import AuthorizationService
from ihfiction.application.content import ContentReaper
from ihfiction.application.entity_loader import EntityLoaderService
from ihfiction.application.markdown import DEFAULT_MARKDOWN_OPTIONS, MarkdownOptions
from ihfiction.application.querying import PaginationOptions
from ihfiction.application.users import UserService
from ihfiction.domain.ports import IdentityAdmin, WorkBodyStore

DEFAULT_AUTHOR_ROLE = "author"
DEFAULT_ROLE_CLIENT_ID = "fiction-api"


@dataclass(frozen=True)
class FictionServices:
    store: SQLiteFictionStore
    bodies: WorkBodyStore
    users: UserService
    loader: EntityLoaderService
    authorization: AuthorizationService
    reaper: ContentReaper
    identity_admin: IdentityAdmin | None = None
    pagination: PaginationOptions = field(default_factory=PaginationOptions)
    markdown: MarkdownOptions = DEFAULT_MARKDOWN_OPTIONS
    author_role: str = DEFAULT_AUTHOR_ROLE
    role_client_id: str = DEFAULT_ROLE_CLIENT_ID

    @classmethod
    def build(
        cls,
        *,
        store: SQLiteFictionStore,
        bodies: WorkBodyStore,
        identity_admin: IdentityAdmin | None = None,
        pagination: PaginationOptions | None = None,
        author_role: str = DEFAULT_AUTHOR_ROLE,
        role_client_id: str = DEFAULT_ROLE_CLIENT_ID,
    ) -> FictionServices:
        users = UserService(store)
        loader = EntityLoaderService(store)
        return cls(
            store=store,
            bodies=bodies,
            users=users,
            loader=loader,
            authorization=AuthorizationService(store, users, loader),
            reaper=ContentReaper(store, bodies),
            identity_admin=identity_admin,
            pagination=pagination or PaginationOptions(),
            author_role=author_role,
            role_client_id=role_client_id,
        )
