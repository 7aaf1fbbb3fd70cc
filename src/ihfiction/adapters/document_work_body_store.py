"""File-backed document store for work content bodies."""

from __future__ import annotations

import json
import os
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ihfiction.adapters.work_body_ids import new_work_body_id
from ihfiction.domain.models import WorkBody

WORK_BODY_SCHEMA_VERSION = "work_body.v1"
_ID_PATTERN = re.compile(r"^[0-9a-f]{24}$")


class DocumentWorkBodyStore:
    """Persist each work body as one JSON document beside the metadata database."""

    def __init__(self, db_path: Path) -> None:
        self._documents_dir = db_path.with_name(f"{db_path.stem}.work_bodies")
        self._meta_path = db_path.with_name(f"{db_path.stem}.work_bodies_meta.json")
        self._documents_dir.mkdir(parents=True, exist_ok=True)
        self._ensure_schema_version()

    def _ensure_schema_version(self) -> None:
        if not self._meta_path.exists():
            self._meta_path.write_text(
                json.dumps(
                    {
                        "schema_key": "work_bodies",
                        "schema_version": WORK_BODY_SCHEMA_VERSION,
                        "updated_at_utc": datetime.now(UTC).isoformat(),
                    },
                    ensure_ascii=False,
                ),
                encoding="utf-8",
            )
            return
        payload = json.loads(self._meta_path.read_text(encoding="utf-8"))
        version = str(payload.get("schema_version", ""))
        if version != WORK_BODY_SCHEMA_VERSION:
            raise RuntimeError(
                "Work body schema version mismatch: "
                f"store={version}, expected={WORK_BODY_SCHEMA_VERSION}"
            )

    def _document_path(self, work_body_id: str) -> Path | None:
        if not _ID_PATTERN.match(work_body_id):
            return None
        return self._documents_dir / f"{work_body_id}.json"

    def _write(self, body: WorkBody) -> None:
        path = self._document_path(body.id)
        if path is None:
            raise ValueError(f"Invalid work body id: {body.id}")
        document = {
            "_id": body.id,
            "content": body.content,
            "note1": body.note1,
            "note2": body.note2,
            "updated_at_utc": body.updated_at_utc,
            "pending_delete": body.pending_delete,
        }
        staging = path.with_suffix(".json.tmp")
        staging.write_text(json.dumps(document, ensure_ascii=False), encoding="utf-8")
        os.replace(staging, path)

    @staticmethod
    def _from_document(payload: dict[str, Any]) -> WorkBody:
        return WorkBody(
            id=str(payload["_id"]),
            content=str(payload.get("content", "")),
            note1=payload.get("note1"),
            note2=payload.get("note2"),
            updated_at_utc=str(payload["updated_at_utc"]),
            pending_delete=bool(payload.get("pending_delete", False)),
        )

    def create_work_body(
        self, *, content: str = "", note1: str | None = None, note2: str | None = None
    ) -> WorkBody:
        body = WorkBody(
            id=new_work_body_id(),
            content=content,
            note1=note1,
            note2=note2,
            updated_at_utc=datetime.now(UTC).isoformat(),
        )
        self._write(body)
        return body

    def get_work_body(self, *, work_body_id: str) -> WorkBody | None:
        path = self._document_path(work_body_id)
        if path is None or not path.exists():
            return None
        return self._from_document(json.loads(path.read_text(encoding="utf-8")))

    def upsert_work_body(
        self,
        *,
        work_body_id: str,
        content: str,
        note1: str | None,
        note2: str | None,
    ) -> WorkBody:
        """Replace the document content; an upsert always clears the pending-delete mark."""
        body = WorkBody(
            id=work_body_id,
            content=content,
            note1=note1,
            note2=note2,
            updated_at_utc=datetime.now(UTC).isoformat(),
        )
        self._write(body)
        return body

    def mark_pending_delete(self, *, work_body_id: str) -> bool:
        current = self.get_work_body(work_body_id=work_body_id)
        if current is None:
            return False
        self._write(
            WorkBody(
                id=current.id,
                content=current.content,
                note1=current.note1,
                note2=current.note2,
                updated_at_utc=datetime.now(UTC).isoformat(),
                pending_delete=True,
            )
        )
        return True

    def list_pending_delete(self) -> list[str]:
        pending: list[str] = []
        for path in sorted(self._documents_dir.glob("*.json")):
            payload = json.loads(path.read_text(encoding="utf-8"))
            if payload.get("pending_delete"):
                pending.append(str(payload["_id"]))
        return pending

    def delete_work_body(self, *, work_body_id: str) -> bool:
        path = self._document_path(work_body_id)
        if path is None or not path.exists():
            return False
        path.unlink()
        return True
