from __future__ import annotations

import sqlite3
from pathlib import Path
from uuid import uuid4

import pytest

from ihfiction.adapters.sqlite_fiction_store import SQLiteFictionStore
from ihfiction.domain.models import Author, StoryType


def _author(store: SQLiteFictionStore, name: str) -> Author:
    user = store.create_user(user_id=str(uuid4()), name=name)
    author = store.promote_to_author(id=user.id)
    assert author is not None
    return author


def test_schema_is_created_on_first_use(tmp_path: Path) -> None:
    db_path = tmp_path / "nested" / "fiction.db"
    SQLiteFictionStore(db_path=db_path)

    with sqlite3.connect(db_path) as connection:
        tables = {
            row[0]
            for row in connection.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        }

    assert {"users", "authors", "stories", "chapters", "books", "tags", "work_tags"} <= tables


def test_duplicate_subject_is_rejected(tmp_path: Path) -> None:
    store = SQLiteFictionStore(db_path=tmp_path / "fiction.db")
    subject = str(uuid4())
    store.create_user(user_id=subject, name="alice")

    with pytest.raises(sqlite3.IntegrityError):
        store.create_user(user_id=subject, name="alice again")


def test_story_owner_joins_authors_and_type_follows_content(tmp_path: Path) -> None:
    store = SQLiteFictionStore(db_path=tmp_path / "fiction.db")
    owner = _author(store, "alice")

    story = store.create_story(
        owner_id=owner.id, title="Harbor Lights", description="Ships.", work_body_id=None
    )
    assert story.author_ids() == {owner.id}
    assert story.story_type is StoryType.NEW

    store.create_chapter(
        owner_id=owner.id,
        title="Arrival",
        author_ids=[owner.id],
        work_body_id="a" * 24,
        story_id=story.id,
    )
    store.create_chapter(
        owner_id=owner.id,
        title="Departure",
        author_ids=[owner.id],
        work_body_id="b" * 24,
        story_id=story.id,
    )
    loaded = store.load_story(story_id=story.id)

    assert loaded is not None
    assert loaded.story_type is StoryType.MULTI_CHAPTER
    assert [(chapter.title, chapter.order) for chapter in loaded.chapters] == [
        ("Arrival", 1),
        ("Departure", 2),
    ]


def test_chapter_needs_exactly_one_parent(tmp_path: Path) -> None:
    store = SQLiteFictionStore(db_path=tmp_path / "fiction.db")
    owner = _author(store, "alice")

    with pytest.raises(ValueError):
        store.create_chapter(owner_id=owner.id, title="Orphan", author_ids=[], work_body_id=None)


def test_title_checks_are_scoped(tmp_path: Path) -> None:
    store = SQLiteFictionStore(db_path=tmp_path / "fiction.db")
    alice = _author(store, "alice")
    bob = _author(store, "bob")
    story = store.create_story(
        owner_id=alice.id, title="Harbor Lights", description="Ships.", work_body_id=None
    )
    chapter = store.create_chapter(
        owner_id=alice.id,
        title="Arrival",
        author_ids=[alice.id],
        work_body_id=None,
        story_id=story.id,
    )

    assert store.story_title_exists(owner_id=alice.id, title="Harbor Lights")
    assert not store.story_title_exists(owner_id=bob.id, title="Harbor Lights")
    assert not store.story_title_exists(
        owner_id=alice.id, title="Harbor Lights", exclude_story_id=story.id
    )
    assert store.chapter_title_exists(story_id=story.id, title="ARRIVAL")
    assert not store.chapter_title_exists(
        story_id=story.id, title="arrival", exclude_chapter_id=chapter.id
    )


def test_list_stories_filters_published_owner_and_membership(tmp_path: Path) -> None:
    store = SQLiteFictionStore(db_path=tmp_path / "fiction.db")
    alice = _author(store, "alice")
    bob = _author(store, "bob")
    first = store.create_story(owner_id=alice.id, title="One", description="1", work_body_id=None)
    second = store.create_story(owner_id=alice.id, title="Two", description="2", work_body_id=None)
    third = store.create_story(owner_id=bob.id, title="Three", description="3", work_body_id=None)
    store.add_work_author(work_id=third.id, author_id=alice.id)
    store.set_published(kind="story", work_id=second.id, published_at="2026-01-01T00:00:00+00:00")
    store.soft_delete_story(story_id=first.id)

    published = store.list_stories(published_only=True)
    owned = store.list_stories(owner_id=alice.id)
    membership = store.list_stories(member_id=alice.id)

    assert [story.id for story in published] == [second.id]
    assert [story.id for story in owned] == [second.id]
    assert {story.id for story in membership} == {second.id, third.id}
    assert store.load_story(story_id=first.id) is None
    assert store.load_story(story_id=first.id, include_deleted=True) is not None


def test_publish_works_leaves_already_published_rows(tmp_path: Path) -> None:
    store = SQLiteFictionStore(db_path=tmp_path / "fiction.db")
    owner = _author(store, "alice")
    story = store.create_story(owner_id=owner.id, title="One", description="1", work_body_id=None)
    early = store.create_chapter(
        owner_id=owner.id, title="A", author_ids=[owner.id], work_body_id=None, story_id=story.id
    )
    late = store.create_chapter(
        owner_id=owner.id, title="B", author_ids=[owner.id], work_body_id=None, story_id=story.id
    )
    store.set_published(kind="chapter", work_id=early.id, published_at="2026-01-01T00:00:00+00:00")

    store.publish_works(
        kind="chapter", work_ids=[early.id, late.id], published_at="2026-02-02T00:00:00+00:00"
    )

    early_after = store.get_chapter(chapter_id=early.id)
    late_after = store.get_chapter(chapter_id=late.id)
    assert early_after is not None and late_after is not None
    assert early_after.published_at_utc == "2026-01-01T00:00:00+00:00"
    assert late_after.published_at_utc == "2026-02-02T00:00:00+00:00"
    assert store.find_work_kind(work_id=late.id) == "chapter"
    assert store.find_work_kind(work_id="missing") is None


def test_chapters_move_into_book_and_back(tmp_path: Path) -> None:
    store = SQLiteFictionStore(db_path=tmp_path / "fiction.db")
    owner = _author(store, "alice")
    story = store.create_story(owner_id=owner.id, title="One", description="1", work_body_id=None)
    store.create_chapter(
        owner_id=owner.id, title="A", author_ids=[owner.id], work_body_id=None, story_id=story.id
    )
    loaded = store.load_story(story_id=story.id)
    assert loaded is not None

    book = store.convert_chapters_to_book(story=loaded)
    as_books = store.load_story(story_id=story.id)

    assert book.title == "Book 1"
    assert as_books is not None
    assert as_books.story_type is StoryType.MULTI_BOOK
    assert [chapter.title for chapter in as_books.books[0].chapters] == ["A"]

    store.convert_book_to_chapters(story_id=story.id, book_id=book.id)
    as_chapters = store.load_story(story_id=story.id)

    assert as_chapters is not None
    assert as_chapters.story_type is StoryType.MULTI_CHAPTER
    assert store.get_book(book_id=book.id) is None


def test_tags_match_case_insensitively_and_count_stories(tmp_path: Path) -> None:
    store = SQLiteFictionStore(db_path=tmp_path / "fiction.db")
    owner = _author(store, "alice")
    story = store.create_story(owner_id=owner.id, title="One", description="1", work_body_id=None)
    genre = store.create_tag(category="genre", value="Mystery")
    store.create_tag(category="mood", value="Dark")
    store.attach_tags(work_id=story.id, tag_ids=[genre.id, genre.id])

    found = store.find_tag(category="GENRE", value="mystery")
    listings = {listing.tag.value: listing.story_count for listing in store.list_tags()}
    genre_only = store.list_tags(category="genre")

    assert found is not None and found.id == genre.id
    assert str(genre) == "genre:Mystery"
    assert listings == {"Mystery": 1, "Dark": 0}
    assert [listing.tag.id for listing in genre_only] == [genre.id]


def test_referenced_work_body_ids_cover_stories_and_chapters(tmp_path: Path) -> None:
    store = SQLiteFictionStore(db_path=tmp_path / "fiction.db")
    owner = _author(store, "alice")
    single = store.create_story(
        owner_id=owner.id, title="One", description="1", work_body_id="a" * 24
    )
    chaptered = store.create_story(
        owner_id=owner.id, title="Two", description="2", work_body_id=None
    )
    store.create_chapter(
        owner_id=owner.id,
        title="A",
        author_ids=[owner.id],
        work_body_id="b" * 24,
        story_id=chaptered.id,
    )

    assert store.referenced_work_body_ids() == {"a" * 24, "b" * 24}
    assert single.story_type is StoryType.SINGLE_BODY


def test_soft_deleted_chapter_is_hidden_and_releases_its_body(tmp_path: Path) -> None:
    store = SQLiteFictionStore(db_path=tmp_path / "fiction.db")
    owner = _author(store, "alice")
    story = store.create_story(owner_id=owner.id, title="One", description="1", work_body_id=None)
    first = store.create_chapter(
        owner_id=owner.id,
        title="Arrival",
        author_ids=[owner.id],
        work_body_id="c" * 24,
        story_id=story.id,
    )

    store.soft_delete_chapter(chapter_id=first.id)
    replacement = store.create_chapter(
        owner_id=owner.id,
        title="Arrival",
        author_ids=[owner.id],
        work_body_id="d" * 24,
        story_id=story.id,
    )
    deleted = store.get_chapter(chapter_id=first.id, include_deleted=True)
    loaded = store.load_story(story_id=story.id)

    assert store.get_chapter(chapter_id=first.id) is None
    assert deleted is not None and deleted.deleted_at_utc is not None
    assert deleted.author_ids() == {owner.id}
    assert replacement.order == 1
    assert loaded is not None and [chapter.id for chapter in loaded.chapters] == [replacement.id]
    assert store.referenced_work_body_ids() == {"d" * 24}


def test_author_listing_counts_owned_and_published_stories(tmp_path: Path) -> None:
    store = SQLiteFictionStore(db_path=tmp_path / "fiction.db")
    owner = _author(store, "alice")
    store.update_author_bio(id=owner.id, bio="Writes about harbors.")
    story = store.create_story(owner_id=owner.id, title="One", description="1", work_body_id=None)
    store.create_story(owner_id=owner.id, title="Two", description="2", work_body_id=None)
    store.set_published(kind="story", work_id=story.id, published_at="2026-01-01T00:00:00+00:00")

    (listing,) = store.list_authors()

    assert listing.name == "alice"
    assert listing.bio == "Writes about harbors."
    assert listing.total_stories == 2
    assert listing.published_stories == 1
