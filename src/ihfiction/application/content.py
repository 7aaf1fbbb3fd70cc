"""Work body lifecycle helpers shared by content use cases."""

from __future__ import annotations

import logging

from ihfiction.adapters.sqlite_fiction_store import SQLiteFictionStore
from ihfiction.application.markdown import (
    MarkdownOptions,
    sanitize_markdown_content,
    sanitize_markdown_note,
)
from ihfiction.domain.models import WorkBody
from ihfiction.domain.ports import WorkBodyStore

logger = logging.getLogger(__name__)


class ContentReaper:
    """Delete work bodies that are marked pending and no longer referenced."""

    def __init__(self, store: SQLiteFictionStore, bodies: WorkBodyStore) -> None:
        self._store = store
        self._bodies = bodies

    def reap(self) -> int:
        pending = self._bodies.list_pending_delete()
        if not pending:
            return 0
        referenced = self._store.referenced_work_body_ids()
        removed = 0
        for work_body_id in pending:
            if work_body_id in referenced:
                continue
            if self._bodies.delete_work_body(work_body_id=work_body_id):
                removed += 1
        logger.info("content.reap pending=%s removed=%s", len(pending), removed)
        return removed


def write_work_body(
    bodies: WorkBodyStore,
    *,
    work_body_id: str | None,
    content: str,
    note1: str | None,
    note2: str | None,
    options: MarkdownOptions,
) -> WorkBody:
    """Sanitize markdown and create or replace the referenced body."""
    clean_content = sanitize_markdown_content(content, options)
    clean_note1 = sanitize_markdown_note(note1, options)
    clean_note2 = sanitize_markdown_note(note2, options)
    if work_body_id is None:
        return bodies.create_work_body(content=clean_content, note1=clean_note1, note2=clean_note2)
    return bodies.upsert_work_body(
        work_body_id=work_body_id, content=clean_content, note1=clean_note1, note2=clean_note2
    )
