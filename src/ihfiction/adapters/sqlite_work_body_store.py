"""SQLite table backend for work content bodies."""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from pathlib import Path

from ihfiction.adapters.work_body_ids import new_work_body_id
from ihfiction.domain.models import WorkBody


class SQLiteWorkBodyStore:
    """Keep work bodies in a `work_bodies` table of a dedicated database file."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path.with_name(f"{db_path.stem}.work_bodies.db")
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS work_bodies (
                    id TEXT PRIMARY KEY,
                    content TEXT NOT NULL,
                    note1 TEXT,
                    note2 TEXT,
                    updated_at_utc TEXT NOT NULL,
                    pending_delete INTEGER NOT NULL DEFAULT 0
                )
                """
            )

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(str(self._db_path))
        connection.row_factory = sqlite3.Row
        return connection

    def create_work_body(
        self, *, content: str = "", note1: str | None = None, note2: str | None = None
    ) -> WorkBody:
        return self.upsert_work_body(
            work_body_id=new_work_body_id(), content=content, note1=note1, note2=note2
        )

    def get_work_body(self, *, work_body_id: str) -> WorkBody | None:
        with self._connect() as connection:
            row = connection.execute(
                """
                SELECT id, content, note1, note2, updated_at_utc, pending_delete
                FROM work_bodies WHERE id = ?
                """,
                (work_body_id,),
            ).fetchone()
        if row is None:
            return None
        return WorkBody(
            id=str(row["id"]),
            content=str(row["content"]),
            note1=row["note1"],
            note2=row["note2"],
            updated_at_utc=str(row["updated_at_utc"]),
            pending_delete=bool(row["pending_delete"]),
        )

    def upsert_work_body(
        self,
        *,
        work_body_id: str,
        content: str,
        note1: str | None,
        note2: str | None,
    ) -> WorkBody:
        now = datetime.now(UTC).isoformat()
        with self._connect() as connection:
            connection.execute(
                """
                INSERT INTO work_bodies (id, content, note1, note2, updated_at_utc, pending_delete)
                VALUES (?, ?, ?, ?, ?, 0)
                ON CONFLICT(id) DO UPDATE SET
                    content = excluded.content,
                    note1 = excluded.note1,
                    note2 = excluded.note2,
                    updated_at_utc = excluded.updated_at_utc,
                    pending_delete = 0
                """,
                (work_body_id, content, note1, note2, now),
            )
        return WorkBody(
            id=work_body_id, content=content, note1=note1, note2=note2, updated_at_utc=now
        )

    def mark_pending_delete(self, *, work_body_id: str) -> bool:
        with self._connect() as connection:
            cursor = connection.execute(
                "UPDATE work_bodies SET pending_delete = 1, updated_at_utc = ? WHERE id = ?",
                (datetime.now(UTC).isoformat(), work_body_id),
            )
        return cursor.rowcount > 0

    def list_pending_delete(self) -> list[str]:
        with self._connect() as connection:
            rows = connection.execute(
                "SELECT id FROM work_bodies WHERE pending_delete = 1 ORDER BY id"
            ).fetchall()
        return [str(row["id"]) for row in rows]

    def delete_work_body(self, *, work_body_id: str) -> bool:
        with self._connect() as connection:
            cursor = connection.execute("DELETE FROM work_bodies WHERE id = ?", (work_body_id,))
        return cursor.rowcount > 0
