"""SQLite-backed persistence for users, authors, works, and tags."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal
from uuid import uuid4

from ihfiction.domain.models import Author, AuthorRef, Book, Chapter, Story, Tag, User

WorkKind = Literal["story", "book", "chapter"]

STORY_AUTHORS = "authors"
STORY_TAGS = "tags"
STORY_CHAPTERS = "chapters"
STORY_BOOKS = "books"
ALL_STORY_INCLUDES = frozenset({STORY_AUTHORS, STORY_TAGS, STORY_CHAPTERS, STORY_BOOKS})

_WORK_TABLES: dict[WorkKind, str] = {"story": "stories", "book": "books", "chapter": "chapters"}


@dataclass(frozen=True)
class AuthorListing:
    """Author row with story counters used by public listings."""

    id: str
    name: str
    bio: str
    created_at_utc: str
    updated_at_utc: str
    total_stories: int
    published_stories: int


@dataclass(frozen=True)
class TagListing:
    """Tag row with attached story count."""

    tag: Tag
    story_count: int


def _utc_now() -> str:
    return datetime.now(UTC).isoformat()


class SQLiteFictionStore:
    """Persist and query fiction metadata from one SQLite database."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(str(self._db_path))
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    def _initialize_schema(self) -> None:
        with self._connect() as connection:
            connection.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL,
                    gravatar_email TEXT,
                    created_at_utc TEXT NOT NULL,
                    updated_at_utc TEXT NOT NULL,
                    deleted_at_utc TEXT
                );
                CREATE TABLE IF NOT EXISTS authors (
                    id TEXT PRIMARY KEY,
                    promoted_at_utc TEXT NOT NULL,
                    FOREIGN KEY (id) REFERENCES users(id)
                );
                CREATE TABLE IF NOT EXISTS profiles (
                    id TEXT PRIMARY KEY,
                    bio TEXT,
                    updated_at_utc TEXT NOT NULL,
                    FOREIGN KEY (id) REFERENCES users(id)
                );
                CREATE TABLE IF NOT EXISTS stories (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL,
                    owner_id TEXT NOT NULL,
                    work_body_id TEXT,
                    created_at_utc TEXT NOT NULL,
                    updated_at_utc TEXT NOT NULL,
                    published_at_utc TEXT,
                    deleted_at_utc TEXT,
                    FOREIGN KEY (owner_id) REFERENCES authors(id)
                );
                CREATE TABLE IF NOT EXISTS books (
                    id TEXT PRIMARY KEY,
                    story_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL,
                    sort_order INTEGER NOT NULL,
                    owner_id TEXT NOT NULL,
                    created_at_utc TEXT NOT NULL,
                    updated_at_utc TEXT NOT NULL,
                    published_at_utc TEXT,
                    deleted_at_utc TEXT,
                    FOREIGN KEY (story_id) REFERENCES stories(id),
                    FOREIGN KEY (owner_id) REFERENCES authors(id)
                );
                CREATE TABLE IF NOT EXISTS chapters (
                    id TEXT PRIMARY KEY,
                    story_id TEXT,
                    book_id TEXT,
                    title TEXT NOT NULL,
                    sort_order INTEGER NOT NULL,
                    owner_id TEXT NOT NULL,
                    work_body_id TEXT,
                    created_at_utc TEXT NOT NULL,
                    updated_at_utc TEXT NOT NULL,
                    published_at_utc TEXT,
                    deleted_at_utc TEXT,
                    FOREIGN KEY (story_id) REFERENCES stories(id),
                    FOREIGN KEY (book_id) REFERENCES books(id),
                    FOREIGN KEY (owner_id) REFERENCES authors(id),
                    CHECK ((story_id IS NULL) <> (book_id IS NULL))
                );
                CREATE TABLE IF NOT EXISTS work_authors (
                    work_id TEXT NOT NULL,
                    author_id TEXT NOT NULL,
                    PRIMARY KEY (work_id, author_id),
                    FOREIGN KEY (author_id) REFERENCES authors(id)
                );
                CREATE TABLE IF NOT EXISTS tags (
                    id TEXT PRIMARY KEY,
                    category TEXT NOT NULL,
                    subcategory TEXT NOT NULL DEFAULT '',
                    value TEXT NOT NULL,
                    created_at_utc TEXT NOT NULL,
                    UNIQUE (category, subcategory, value)
                );
                CREATE TABLE IF NOT EXISTS work_tags (
                    work_id TEXT NOT NULL,
                    tag_id TEXT NOT NULL,
                    PRIMARY KEY (work_id, tag_id),
                    FOREIGN KEY (tag_id) REFERENCES tags(id)
                );
                CREATE INDEX IF NOT EXISTS idx_stories_owner_updated
                ON stories(owner_id, updated_at_utc DESC);
                CREATE INDEX IF NOT EXISTS idx_chapters_story ON chapters(story_id, sort_order);
                CREATE INDEX IF NOT EXISTS idx_chapters_book ON chapters(book_id, sort_order);
                CREATE INDEX IF NOT EXISTS idx_books_story ON books(story_id, sort_order);
                CREATE INDEX IF NOT EXISTS idx_work_authors_author ON work_authors(author_id);
                """
            )

    # Users and authors

    def create_user(
        self, *, user_id: str, name: str, gravatar_email: str | None = None
    ) -> User:
        """Insert a user row; duplicate subjects raise `sqlite3.IntegrityError`."""
        now = _utc_now()
        local_id = uuid4().hex
        with self._connect() as connection:
            connection.execute(
                """
                INSERT INTO users (id, user_id, name, gravatar_email, created_at_utc, updated_at_utc)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (local_id, user_id, name, gravatar_email, now, now),
            )
        return User(
            id=local_id,
            user_id=user_id,
            name=name,
            gravatar_email=gravatar_email,
            created_at_utc=now,
            updated_at_utc=now,
        )

    def get_user_by_subject(self, *, user_id: str) -> User | None:
        """Load one user by external identity-provider subject."""
        with self._connect() as connection:
            row = connection.execute(
                """
                SELECT id, user_id, name, gravatar_email, created_at_utc, updated_at_utc, deleted_at_utc
                FROM users
                WHERE user_id = ?
                """,
                (user_id,),
            ).fetchone()
        return None if row is None else self._user_from_row(row)

    def get_user(self, *, id: str) -> User | None:
        with self._connect() as connection:
            row = connection.execute(
                """
                SELECT id, user_id, name, gravatar_email, created_at_utc, updated_at_utc, deleted_at_utc
                FROM users
                WHERE id = ?
                """,
                (id,),
            ).fetchone()
        return None if row is None else self._user_from_row(row)

    def promote_to_author(self, *, id: str) -> Author | None:
        """Mark a user as author, keeping any profile already stored under its id."""
        now = _utc_now()
        with self._connect() as connection:
            exists = connection.execute("SELECT 1 FROM users WHERE id = ?", (id,)).fetchone()
            if exists is None:
                return None
            connection.execute(
                "INSERT OR IGNORE INTO authors (id, promoted_at_utc) VALUES (?, ?)",
                (id, now),
            )
            connection.execute(
                "INSERT OR IGNORE INTO profiles (id, bio, updated_at_utc) VALUES (?, NULL, ?)",
                (id, now),
            )
            connection.execute("UPDATE users SET updated_at_utc = ? WHERE id = ?", (now, id))
        return self.get_author(id=id)

    def get_author(self, *, id: str) -> Author | None:
        with self._connect() as connection:
            row = connection.execute(
                """
                SELECT u.id, u.user_id, u.name, u.gravatar_email, u.created_at_utc,
                       u.updated_at_utc, u.deleted_at_utc, p.bio
                FROM authors a
                JOIN users u ON u.id = a.id
                LEFT JOIN profiles p ON p.id = a.id
                WHERE a.id = ?
                """,
                (id,),
            ).fetchone()
        return None if row is None else self._author_from_row(row)

    def update_author_bio(self, *, id: str, bio: str | None) -> Author | None:
        now = _utc_now()
        with self._connect() as connection:
            connection.execute(
                """
                INSERT INTO profiles (id, bio, updated_at_utc) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET bio = excluded.bio, updated_at_utc = excluded.updated_at_utc
                """,
                (id, bio, now),
            )
            connection.execute("UPDATE users SET updated_at_utc = ? WHERE id = ?", (now, id))
        return self.get_author(id=id)

    def list_authors(self) -> list[AuthorListing]:
        """List non-deleted authors with owned story counters."""
        with self._connect() as connection:
            rows = connection.execute(
                """
                SELECT u.id, u.name, COALESCE(p.bio, '') AS bio, u.created_at_utc, u.updated_at_utc,
                       COUNT(s.id) AS total_stories,
                       COUNT(s.published_at_utc) AS published_stories
                FROM authors a
                JOIN users u ON u.id = a.id
                LEFT JOIN profiles p ON p.id = a.id
                LEFT JOIN stories s ON s.owner_id = a.id AND s.deleted_at_utc IS NULL
                WHERE u.deleted_at_utc IS NULL
                GROUP BY u.id
                """
            ).fetchall()
        return [
            AuthorListing(
                id=str(row["id"]),
                name=str(row["name"]),
                bio=str(row["bio"]),
                created_at_utc=str(row["created_at_utc"]),
                updated_at_utc=str(row["updated_at_utc"]),
                total_stories=int(row["total_stories"]),
                published_stories=int(row["published_stories"]),
            )
            for row in rows
        ]

    # Stories

    def create_story(
        self,
        *,
        owner_id: str,
        title: str,
        description: str,
        work_body_id: str | None,
    ) -> Story:
        """Create a story owned by `owner_id`; the owner joins the authors set."""
        now = _utc_now()
        story_id = uuid4().hex
        with self._connect() as connection:
            connection.execute(
                """
                INSERT INTO stories (id, title, description, owner_id, work_body_id, created_at_utc, updated_at_utc)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (story_id, title, description, owner_id, work_body_id, now, now),
            )
            self._add_work_authors(connection, work_id=story_id, author_ids=[owner_id])
        story = self.load_story(story_id=story_id, include=frozenset({STORY_AUTHORS}))
        if story is None:
            raise RuntimeError(f"Story {story_id} missing after insert.")
        return story

    def story_title_exists(
        self, *, owner_id: str, title: str, exclude_story_id: str | None = None
    ) -> bool:
        with self._connect() as connection:
            row = connection.execute(
                """
                SELECT 1 FROM stories
                WHERE owner_id = ? AND title = ? AND deleted_at_utc IS NULL AND id != ?
                LIMIT 1
                """,
                (owner_id, title, exclude_story_id or ""),
            ).fetchone()
        return row is not None

    def load_story(
        self,
        *,
        story_id: str,
        include_deleted: bool = False,
        include: frozenset[str] = ALL_STORY_INCLUDES,
    ) -> Story | None:
        """Load a story aggregate with the requested related collections."""
        with self._connect() as connection:
            row = connection.execute(
                f"""
                {self._STORY_SELECT}
                WHERE s.id = ? {'' if include_deleted else 'AND s.deleted_at_utc IS NULL'}
                """,
                (story_id,),
            ).fetchone()
            if row is None:
                return None
            return self._assemble_story(connection, row, include)

    def list_stories(
        self,
        *,
        published_only: bool = False,
        member_id: str | None = None,
        owner_id: str | None = None,
        include: frozenset[str] = ALL_STORY_INCLUDES,
    ) -> list[Story]:
        """List non-deleted stories, optionally published-only or scoped to an author."""
        clauses = ["s.deleted_at_utc IS NULL"]
        params: list[str] = []
        if published_only:
            clauses.append("s.published_at_utc IS NOT NULL")
        if owner_id is not None:
            clauses.append("s.owner_id = ?")
            params.append(owner_id)
        if member_id is not None:
            clauses.append(
                "(s.owner_id = ? OR EXISTS (SELECT 1 FROM work_authors wa "
                "WHERE wa.work_id = s.id AND wa.author_id = ?))"
            )
            params.extend([member_id, member_id])
        with self._connect() as connection:
            rows = connection.execute(
                f"""
                {self._STORY_SELECT}
                WHERE {' AND '.join(clauses)}
                ORDER BY s.updated_at_utc DESC
                """,
                params,
            ).fetchall()
            return [self._assemble_story(connection, row, include) for row in rows]

    def update_story_metadata(self, *, story_id: str, title: str, description: str) -> None:
        with self._connect() as connection:
            connection.execute(
                "UPDATE stories SET title = ?, description = ?, updated_at_utc = ? WHERE id = ?",
                (title, description, _utc_now(), story_id),
            )

    def set_story_work_body(self, *, story_id: str, work_body_id: str | None) -> None:
        with self._connect() as connection:
            connection.execute(
                "UPDATE stories SET work_body_id = ?, updated_at_utc = ? WHERE id = ?",
                (work_body_id, _utc_now(), story_id),
            )

    def touch_story(self, *, story_id: str) -> None:
        with self._connect() as connection:
            connection.execute(
                "UPDATE stories SET updated_at_utc = ? WHERE id = ?", (_utc_now(), story_id)
            )

    def soft_delete_story(self, *, story_id: str) -> None:
        now = _utc_now()
        with self._connect() as connection:
            connection.execute(
                "UPDATE stories SET deleted_at_utc = ?, updated_at_utc = ? WHERE id = ?",
                (now, now, story_id),
            )

    def add_work_author(self, *, work_id: str, author_id: str) -> None:
        with self._connect() as connection:
            self._add_work_authors(connection, work_id=work_id, author_ids=[author_id])

    # Chapters

    def create_chapter(
        self,
        *,
        owner_id: str,
        title: str,
        author_ids: Iterable[str],
        work_body_id: str | None,
        story_id: str | None = None,
        book_id: str | None = None,
    ) -> Chapter:
        """Append a chapter to a story or a book with `order = max + 1`."""
        if (story_id is None) == (book_id is None):
            raise ValueError("Exactly one of story_id or book_id is required.")
        now = _utc_now()
        chapter_id = uuid4().hex
        with self._connect() as connection:
            next_order = self._next_chapter_order(connection, story_id=story_id, book_id=book_id)
            connection.execute(
                """
                INSERT INTO chapters (
                    id, story_id, book_id, title, sort_order, owner_id, work_body_id,
                    created_at_utc, updated_at_utc
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (chapter_id, story_id, book_id, title, next_order, owner_id, work_body_id, now, now),
            )
            self._add_work_authors(connection, work_id=chapter_id, author_ids=author_ids)
            self._touch_parent(connection, story_id=story_id, book_id=book_id, now=now)
        chapter = self.get_chapter(chapter_id=chapter_id)
        if chapter is None:
            raise RuntimeError(f"Chapter {chapter_id} missing after insert.")
        return chapter

    def get_chapter(self, *, chapter_id: str, include_deleted: bool = False) -> Chapter | None:
        with self._connect() as connection:
            row = connection.execute(
                f"""
                {self._CHAPTER_SELECT}
                WHERE id = ? {'' if include_deleted else 'AND deleted_at_utc IS NULL'}
                """,
                (chapter_id,),
            ).fetchone()
            if row is None:
                return None
            return self._chapter_from_row(row, self._work_authors(connection, str(row["id"])))

    def chapter_title_exists(
        self,
        *,
        title: str,
        story_id: str | None = None,
        book_id: str | None = None,
        exclude_chapter_id: str | None = None,
    ) -> bool:
        """Case-insensitive sibling title check inside one story or one book."""
        column = "story_id" if story_id is not None else "book_id"
        parent_id = story_id if story_id is not None else book_id
        with self._connect() as connection:
            row = connection.execute(
                f"""
                SELECT 1 FROM chapters
                WHERE {column} = ? AND LOWER(title) = LOWER(?) AND deleted_at_utc IS NULL AND id != ?
                LIMIT 1
                """,
                (parent_id, title, exclude_chapter_id or ""),
            ).fetchone()
        return row is not None

    def update_chapter_title(self, *, chapter_id: str, title: str) -> None:
        with self._connect() as connection:
            connection.execute(
                "UPDATE chapters SET title = ?, updated_at_utc = ? WHERE id = ?",
                (title, _utc_now(), chapter_id),
            )

    def set_chapter_work_body(self, *, chapter_id: str, work_body_id: str) -> None:
        with self._connect() as connection:
            connection.execute(
                "UPDATE chapters SET work_body_id = ?, updated_at_utc = ? WHERE id = ?",
                (work_body_id, _utc_now(), chapter_id),
            )

    def touch_chapter(self, *, chapter_id: str) -> None:
        with self._connect() as connection:
            connection.execute(
                "UPDATE chapters SET updated_at_utc = ? WHERE id = ?", (_utc_now(), chapter_id)
            )

    def soft_delete_chapter(self, *, chapter_id: str) -> None:
        now = _utc_now()
        with self._connect() as connection:
            connection.execute(
                "UPDATE chapters SET deleted_at_utc = ?, updated_at_utc = ? WHERE id = ?",
                (now, now, chapter_id),
            )

    # Books

    def create_book(
        self,
        *,
        story_id: str,
        owner_id: str,
        title: str,
        description: str,
        author_ids: Iterable[str],
    ) -> Book:
        now = _utc_now()
        book_id = uuid4().hex
        with self._connect() as connection:
            self._insert_book(
                connection,
                book_id=book_id,
                story_id=story_id,
                owner_id=owner_id,
                title=title,
                description=description,
                author_ids=author_ids,
                now=now,
            )
            self._touch_parent(connection, story_id=story_id, book_id=None, now=now)
        book = self.get_book(book_id=book_id)
        if book is None:
            raise RuntimeError(f"Book {book_id} missing after insert.")
        return book

    def get_book(self, *, book_id: str, include_deleted: bool = False) -> Book | None:
        with self._connect() as connection:
            row = connection.execute(
                f"""
                {self._BOOK_SELECT}
                WHERE id = ? {'' if include_deleted else 'AND deleted_at_utc IS NULL'}
                """,
                (book_id,),
            ).fetchone()
            if row is None:
                return None
            return self._book_from_row(connection, row)

    def book_title_exists(
        self, *, story_id: str, title: str, exclude_book_id: str | None = None
    ) -> bool:
        with self._connect() as connection:
            row = connection.execute(
                """
                SELECT 1 FROM books
                WHERE story_id = ? AND title = ? AND deleted_at_utc IS NULL AND id != ?
                LIMIT 1
                """,
                (story_id, title, exclude_book_id or ""),
            ).fetchone()
        return row is not None

    def update_book(self, *, book_id: str, title: str, description: str) -> None:
        with self._connect() as connection:
            connection.execute(
                "UPDATE books SET title = ?, description = ?, updated_at_utc = ? WHERE id = ?",
                (title, description, _utc_now(), book_id),
            )

    # Story structure conversion

    def convert_single_body_to_chapter(self, *, story: Story, work_body_id: str) -> Chapter:
        """Move story content into a new `Chapter 1` and clear the story body."""
        now = _utc_now()
        chapter_id = uuid4().hex
        with self._connect() as connection:
            connection.execute(
                """
                INSERT INTO chapters (
                    id, story_id, book_id, title, sort_order, owner_id, work_body_id,
                    created_at_utc, updated_at_utc
                )
                VALUES (?, ?, NULL, 'Chapter 1', 1, ?, ?, ?, ?)
                """,
                (chapter_id, story.id, story.owner_id, work_body_id, now, now),
            )
            self._add_work_authors(connection, work_id=chapter_id, author_ids=[story.owner_id])
            connection.execute(
                "UPDATE stories SET work_body_id = NULL, updated_at_utc = ? WHERE id = ?",
                (now, story.id),
            )
        chapter = self.get_chapter(chapter_id=chapter_id)
        if chapter is None:
            raise RuntimeError(f"Chapter {chapter_id} missing after conversion.")
        return chapter

    def convert_chapter_to_single_body(self, *, story_id: str, chapter: Chapter) -> None:
        """Adopt the only chapter's content as the story body and drop the chapter."""
        now = _utc_now()
        with self._connect() as connection:
            connection.execute(
                "UPDATE stories SET work_body_id = ?, updated_at_utc = ? WHERE id = ?",
                (chapter.work_body_id, now, story_id),
            )
            connection.execute("DELETE FROM work_authors WHERE work_id = ?", (chapter.id,))
            connection.execute("DELETE FROM work_tags WHERE work_id = ?", (chapter.id,))
            connection.execute("DELETE FROM chapters WHERE id = ?", (chapter.id,))

    def convert_chapters_to_book(self, *, story: Story) -> Book:
        """Create `Book 1` and move every story chapter into it."""
        now = _utc_now()
        book_id = uuid4().hex
        with self._connect() as connection:
            self._insert_book(
                connection,
                book_id=book_id,
                story_id=story.id,
                owner_id=story.owner_id,
                title="Book 1",
                description="Book 1 description",
                author_ids=[story.owner_id],
                now=now,
            )
            connection.execute(
                """
                UPDATE chapters SET book_id = ?, story_id = NULL, updated_at_utc = ?
                WHERE story_id = ?
                """,
                (book_id, now, story.id),
            )
            connection.execute(
                "UPDATE stories SET updated_at_utc = ? WHERE id = ?", (now, story.id)
            )
        book = self.get_book(book_id=book_id)
        if book is None:
            raise RuntimeError(f"Book {book_id} missing after conversion.")
        return book

    def convert_book_to_chapters(self, *, story_id: str, book_id: str) -> None:
        """Move the only book's chapters back onto the story and drop the book."""
        now = _utc_now()
        with self._connect() as connection:
            connection.execute(
                """
                UPDATE chapters SET story_id = ?, book_id = NULL, updated_at_utc = ?
                WHERE book_id = ?
                """,
                (story_id, now, book_id),
            )
            connection.execute("DELETE FROM work_authors WHERE work_id = ?", (book_id,))
            connection.execute("DELETE FROM work_tags WHERE work_id = ?", (book_id,))
            connection.execute("DELETE FROM books WHERE id = ?", (book_id,))
            connection.execute(
                "UPDATE stories SET updated_at_utc = ? WHERE id = ?", (now, story_id)
            )

    # Works

    def find_work_kind(self, *, work_id: str) -> WorkKind | None:
        """Return which work table holds `work_id`, ignoring soft-deleted rows."""
        with self._connect() as connection:
            for kind, table in _WORK_TABLES.items():
                row = connection.execute(
                    f"SELECT 1 FROM {table} WHERE id = ? AND deleted_at_utc IS NULL",
                    (work_id,),
                ).fetchone()
                if row is not None:
                    return kind
        return None

    def publish_works(self, *, kind: WorkKind, work_ids: Iterable[str], published_at: str) -> None:
        """Set publication time on works that are not yet published."""
        ids = list(work_ids)
        if not ids:
            return
        table = _WORK_TABLES[kind]
        with self._connect() as connection:
            connection.executemany(
                f"""
                UPDATE {table} SET published_at_utc = ?, updated_at_utc = ?
                WHERE id = ? AND published_at_utc IS NULL
                """,
                [(published_at, published_at, work_id) for work_id in ids],
            )

    def set_published(self, *, kind: WorkKind, work_id: str, published_at: str | None) -> None:
        table = _WORK_TABLES[kind]
        with self._connect() as connection:
            connection.execute(
                f"UPDATE {table} SET published_at_utc = ?, updated_at_utc = ? WHERE id = ?",
                (published_at, _utc_now(), work_id),
            )

    def referenced_work_body_ids(self) -> set[str]:
        """Return content ids still referenced by a story or a live chapter row."""
        with self._connect() as connection:
            rows = connection.execute(
                """
                SELECT work_body_id FROM stories WHERE work_body_id IS NOT NULL
                UNION
                SELECT work_body_id FROM chapters
                WHERE work_body_id IS NOT NULL AND deleted_at_utc IS NULL
                """
            ).fetchall()
        return {str(row["work_body_id"]) for row in rows}

    # Tags

    def create_tag(self, *, category: str, value: str, subcategory: str | None = None) -> Tag:
        now = _utc_now()
        tag_id = uuid4().hex
        with self._connect() as connection:
            connection.execute(
                """
                INSERT INTO tags (id, category, subcategory, value, created_at_utc)
                VALUES (?, ?, ?, ?, ?)
                """,
                (tag_id, category, subcategory or "", value, now),
            )
        return Tag(
            id=tag_id,
            category=category,
            subcategory=subcategory or None,
            value=value,
            created_at_utc=now,
        )

    def find_tag(self, *, category: str, value: str, subcategory: str | None = None) -> Tag | None:
        with self._connect() as connection:
            row = connection.execute(
                """
                SELECT id, category, subcategory, value, created_at_utc FROM tags
                WHERE LOWER(category) = LOWER(?) AND LOWER(subcategory) = LOWER(?)
                  AND LOWER(value) = LOWER(?)
                """,
                (category, subcategory or "", value),
            ).fetchone()
        return None if row is None else self._tag_from_row(row)

    def attach_tags(self, *, work_id: str, tag_ids: Iterable[str]) -> None:
        with self._connect() as connection:
            connection.executemany(
                "INSERT OR IGNORE INTO work_tags (work_id, tag_id) VALUES (?, ?)",
                [(work_id, tag_id) for tag_id in tag_ids],
            )

    def list_tags(self, *, category: str | None = None) -> list[TagListing]:
        """List tags with the number of non-deleted stories carrying each."""
        clause = "WHERE t.category = ?" if category else ""
        params = (category,) if category else ()
        with self._connect() as connection:
            rows = connection.execute(
                f"""
                SELECT t.id, t.category, t.subcategory, t.value, t.created_at_utc,
                       COUNT(s.id) AS story_count
                FROM tags t
                LEFT JOIN work_tags wt ON wt.tag_id = t.id
                LEFT JOIN stories s ON s.id = wt.work_id AND s.deleted_at_utc IS NULL
                {clause}
                GROUP BY t.id
                """,
                params,
            ).fetchall()
        return [
            TagListing(tag=self._tag_from_row(row), story_count=int(row["story_count"]))
            for row in rows
        ]

    # Row assembly

    _STORY_SELECT = """
        SELECT s.id, s.title, s.description, s.owner_id, s.work_body_id, s.created_at_utc,
               s.updated_at_utc, s.published_at_utc, s.deleted_at_utc, u.name AS owner_name
        FROM stories s
        JOIN users u ON u.id = s.owner_id
    """
    _CHAPTER_SELECT = """
        SELECT id, story_id, book_id, title, sort_order, owner_id, work_body_id,
               created_at_utc, updated_at_utc, published_at_utc, deleted_at_utc
        FROM chapters
    """
    _BOOK_SELECT = """
        SELECT id, story_id, title, description, sort_order, owner_id,
               created_at_utc, updated_at_utc, published_at_utc, deleted_at_utc
        FROM books
    """

    def _assemble_story(
        self, connection: sqlite3.Connection, row: sqlite3.Row, include: frozenset[str]
    ) -> Story:
        story_id = str(row["id"])
        authors: tuple[AuthorRef, ...] = ()
        tags: tuple[Tag, ...] = ()
        chapters: tuple[Chapter, ...] = ()
        books: tuple[Book, ...] = ()
        if STORY_AUTHORS in include:
            authors = self._work_authors(connection, story_id)
        if STORY_TAGS in include:
            tags = self._work_tags(connection, story_id)
        if STORY_CHAPTERS in include:
            chapters = tuple(self._load_chapters(connection, story_id=story_id, book_id=None))
        if STORY_BOOKS in include:
            book_rows = connection.execute(
                f"""
                {self._BOOK_SELECT}
                WHERE story_id = ? AND deleted_at_utc IS NULL
                ORDER BY sort_order
                """,
                (story_id,),
            ).fetchall()
            books = tuple(self._book_from_row(connection, book_row) for book_row in book_rows)
        return Story(
            id=story_id,
            title=str(row["title"]),
            description=str(row["description"]),
            owner_id=str(row["owner_id"]),
            work_body_id=row["work_body_id"],
            created_at_utc=str(row["created_at_utc"]),
            updated_at_utc=str(row["updated_at_utc"]),
            published_at_utc=row["published_at_utc"],
            deleted_at_utc=row["deleted_at_utc"],
            owner=AuthorRef(id=str(row["owner_id"]), name=str(row["owner_name"])),
            authors=authors,
            tags=tags,
            chapters=chapters,
            books=books,
        )

    def _load_chapters(
        self, connection: sqlite3.Connection, *, story_id: str | None, book_id: str | None
    ) -> list[Chapter]:
        column = "story_id" if story_id is not None else "book_id"
        parent_id = story_id if story_id is not None else book_id
        rows = connection.execute(
            f"""
            {self._CHAPTER_SELECT}
            WHERE {column} = ? AND deleted_at_utc IS NULL
            ORDER BY sort_order
            """,
            (parent_id,),
        ).fetchall()
        return [
            self._chapter_from_row(row, self._work_authors(connection, str(row["id"])))
            for row in rows
        ]

    def _book_from_row(self, connection: sqlite3.Connection, row: sqlite3.Row) -> Book:
        book_id = str(row["id"])
        return Book(
            id=book_id,
            title=str(row["title"]),
            description=str(row["description"]),
            order=int(row["sort_order"]),
            owner_id=str(row["owner_id"]),
            story_id=str(row["story_id"]),
            created_at_utc=str(row["created_at_utc"]),
            updated_at_utc=str(row["updated_at_utc"]),
            published_at_utc=row["published_at_utc"],
            deleted_at_utc=row["deleted_at_utc"],
            authors=self._work_authors(connection, book_id),
            chapters=tuple(self._load_chapters(connection, story_id=None, book_id=book_id)),
        )

    def _insert_book(
        self,
        connection: sqlite3.Connection,
        *,
        book_id: str,
        story_id: str,
        owner_id: str,
        title: str,
        description: str,
        author_ids: Iterable[str],
        now: str,
    ) -> None:
        row = connection.execute(
            "SELECT COALESCE(MAX(sort_order), 0) AS max_order FROM books WHERE story_id = ?",
            (story_id,),
        ).fetchone()
        connection.execute(
            """
            INSERT INTO books (
                id, story_id, title, description, sort_order, owner_id, created_at_utc, updated_at_utc
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (book_id, story_id, title, description, int(row["max_order"]) + 1, owner_id, now, now),
        )
        self._add_work_authors(connection, work_id=book_id, author_ids=author_ids)

    @staticmethod
    def _next_chapter_order(
        connection: sqlite3.Connection, *, story_id: str | None, book_id: str | None
    ) -> int:
        column = "story_id" if story_id is not None else "book_id"
        parent_id = story_id if story_id is not None else book_id
        row = connection.execute(
            "SELECT COALESCE(MAX(sort_order), 0) AS max_order FROM chapters "
            f"WHERE {column} = ? AND deleted_at_utc IS NULL",
            (parent_id,),
        ).fetchone()
        return int(row["max_order"]) + 1

    @staticmethod
    def _touch_parent(
        connection: sqlite3.Connection, *, story_id: str | None, book_id: str | None, now: str
    ) -> None:
        if story_id is not None:
            connection.execute("UPDATE stories SET updated_at_utc = ? WHERE id = ?", (now, story_id))
        if book_id is not None:
            connection.execute("UPDATE books SET updated_at_utc = ? WHERE id = ?", (now, book_id))

    @staticmethod
    def _add_work_authors(
        connection: sqlite3.Connection, *, work_id: str, author_ids: Iterable[str]
    ) -> None:
        connection.executemany(
            "INSERT OR IGNORE INTO work_authors (work_id, author_id) VALUES (?, ?)",
            [(work_id, author_id) for author_id in dict.fromkeys(author_ids)],
        )

    @staticmethod
    def _work_authors(connection: sqlite3.Connection, work_id: str) -> tuple[AuthorRef, ...]:
        rows = connection.execute(
            """
            SELECT u.id, u.name FROM work_authors wa
            JOIN users u ON u.id = wa.author_id
            WHERE wa.work_id = ?
            ORDER BY u.name
            """,
            (work_id,),
        ).fetchall()
        return tuple(AuthorRef(id=str(row["id"]), name=str(row["name"])) for row in rows)

    def _work_tags(self, connection: sqlite3.Connection, work_id: str) -> tuple[Tag, ...]:
        rows = connection.execute(
            """
            SELECT t.id, t.category, t.subcategory, t.value, t.created_at_utc
            FROM work_tags wt
            JOIN tags t ON t.id = wt.tag_id
            WHERE wt.work_id = ?
            """,
            (work_id,),
        ).fetchall()
        return tuple(self._tag_from_row(row) for row in rows)

    @staticmethod
    def _chapter_from_row(row: sqlite3.Row, authors: tuple[AuthorRef, ...]) -> Chapter:
        return Chapter(
            id=str(row["id"]),
            title=str(row["title"]),
            order=int(row["sort_order"]),
            owner_id=str(row["owner_id"]),
            story_id=row["story_id"],
            book_id=row["book_id"],
            work_body_id=row["work_body_id"],
            created_at_utc=str(row["created_at_utc"]),
            updated_at_utc=str(row["updated_at_utc"]),
            published_at_utc=row["published_at_utc"],
            deleted_at_utc=row["deleted_at_utc"],
            authors=authors,
        )

    @staticmethod
    def _tag_from_row(row: sqlite3.Row) -> Tag:
        return Tag(
            id=str(row["id"]),
            category=str(row["category"]),
            subcategory=str(row["subcategory"]) or None,
            value=str(row["value"]),
            created_at_utc=str(row["created_at_utc"]),
        )

    @staticmethod
    def _user_from_row(row: sqlite3.Row) -> User:
        return User(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            name=str(row["name"]),
            gravatar_email=row["gravatar_email"],
            created_at_utc=str(row["created_at_utc"]),
            updated_at_utc=str(row["updated_at_utc"]),
            deleted_at_utc=row["deleted_at_utc"],
        )

    @staticmethod
    def _author_from_row(row: sqlite3.Row) -> Author:
        return Author(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            name=str(row["name"]),
            gravatar_email=row["gravatar_email"],
            created_at_utc=str(row["created_at_utc"]),
            updated_at_utc=str(row["updated_at_utc"]),
            deleted_at_utc=row["deleted_at_utc"],
            bio=row["bio"],
        )
