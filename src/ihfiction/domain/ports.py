"""Ports for content persistence and identity-provider administration."""

from __future__ import annotations

from typing import Protocol

from ihfiction.domain.errors import Result
from ihfiction.domain.models import WorkBody


class WorkBodyStore(Protocol):
    """Persists content bodies referenced from story and chapter metadata."""

    def create_work_body(
        self, *, content: str = "", note1: str | None = None, note2: str | None = None
    ) -> WorkBody: ...

    def get_work_body(self, *, work_body_id: str) -> WorkBody | None: ...

    def upsert_work_body(
        self,
        *,
        work_body_id: str,
        content: str,
        note1: str | None,
        note2: str | None,
    ) -> WorkBody: ...

    def mark_pending_delete(self, *, work_body_id: str) -> bool: ...

    def list_pending_delete(self) -> list[str]: ...

    def delete_work_body(self, *, work_body_id: str) -> bool: ...


class IdentityAdmin(Protocol):
    """Role administration against the external identity provider."""

    def assign_client_role(self, *, user_id: str, client_id: str, role_name: str) -> Result[None]: ...

    def assign_realm_role(self, *, user_id: str, role_name: str) -> Result[None]: ...


class ClaimsPrincipal(Protocol):
    """Verified identity claims carried by an authenticated request."""

    @property
    def subject(self) -> str | None: ...

    @property
    def preferred_username(self) -> str | None: ...

    @property
    def name(self) -> str | None: ...
