"""Select the content-body backend from environment configuration."""

from __future__ import annotations

from pathlib import Path

from ihfiction.adapters.document_work_body_store import DocumentWorkBodyStore
from ihfiction.adapters.settings import env_str
from ihfiction.adapters.sqlite_work_body_store import SQLiteWorkBodyStore
from ihfiction.domain.ports import WorkBodyStore


def create_work_body_store(*, db_path: Path) -> WorkBodyStore:
    """Build the configured content store next to the metadata database."""
    backend = env_str("IHFICTION_CONTENT_BACKEND", "document").lower()
    if backend == "document":
        return DocumentWorkBodyStore(db_path=db_path)
    if backend == "sqlite":
        return SQLiteWorkBodyStore(db_path=db_path)
    raise RuntimeError(
        "Unsupported IHFICTION_CONTENT_BACKEND value. Expected document or sqlite."
    )
