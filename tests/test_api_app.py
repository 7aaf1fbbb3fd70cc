from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from uuid import uuid4

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient

from ihfiction.api.app import create_app
from ihfiction.api.oidc import reset_oidc_caches
from ihfiction.domain.errors import DomainError, Result

ISSUER = "https://id.example.test/realms/fiction"
_SIGNING_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)


class RecordingIdentityAdmin:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[dict[str, str]] = []

    def assign_client_role(self, *, user_id: str, client_id: str, role_name: str) -> Result[None]:
        self.calls.append({"user_id": user_id, "client_id": client_id, "role_name": role_name})
        if self.fail:
            return Result.failure(
                DomainError("Keycloak.SetResourceRole", "Failed to set role for user.")
            )
        return Result.success(None)


def _jwks() -> dict[str, Any]:
    jwk = json.loads(jwt.algorithms.RSAAlgorithm.to_jwk(_SIGNING_KEY.public_key()))
    jwk["kid"] = "test-kid"
    return {"keys": [jwk]}


def _token(subject: str, *, roles: tuple[str, ...] = ("author",), username: str = "alice") -> str:
    return jwt.encode(
        {
            "iss": ISSUER,
            "aud": "fiction-api",
            "sub": subject,
            "preferred_username": username,
            "resource_access": {"fiction-api": {"roles": list(roles)}},
        },
        _SIGNING_KEY,
        algorithm="RS256",
        headers={"kid": "test-kid"},
    )


def _headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _client(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, admin: RecordingIdentityAdmin | None = None
) -> TestClient:
    monkeypatch.setenv("IHFICTION_OIDC_ISSUER", ISSUER)
    monkeypatch.setenv("IHFICTION_OIDC_JWKS_JSON", json.dumps(_jwks()))
    monkeypatch.delenv("IHFICTION_OIDC_AUDIENCE", raising=False)
    monkeypatch.delenv("IHFICTION_CONTENT_BACKEND", raising=False)
    reset_oidc_caches()
    return TestClient(
        create_app(
            db_path=tmp_path / "fiction.db", identity_admin=admin or RecordingIdentityAdmin()
        )
    )


def _registered_author(client: TestClient, username: str = "alice") -> dict[str, str]:
    subject = str(uuid4())
    response = client.post(
        "/api/v1/me/author",
        json={"accept_terms": True},
        headers=_headers(_token(subject, roles=(), username=username)),
    )
    assert response.status_code == 201
    return _headers(_token(subject, username=username))


def _story(
    client: TestClient, headers: dict[str, str], *, title: str, story_type: str
) -> dict[str, Any]:
    response = client.post(
        "/api/v1/stories",
        json={
            "title": title,
            "description": "A lighthouse keeper counts ships.",
            "story_type": story_type,
        },
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()


def test_health_endpoint_returns_ok_payload(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "ihfiction"}


def test_api_root_lists_fiction_endpoints(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    payload = client.get("/api/v1").json()
    assert payload["auth"] == "oidc-bearer"
    assert "/api/v1/stories/published" in payload["endpoints"]
    assert "/api/v1/works/{work_id}/publish" in payload["endpoints"]


def test_register_assigns_author_role_and_points_at_profile(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    admin = RecordingIdentityAdmin()
    client = _client(tmp_path, monkeypatch, admin)
    subject = str(uuid4())

    response = client.post(
        "/api/v1/me/author",
        json={"accept_terms": True},
        headers=_headers(_token(subject, roles=())),
    )

    assert response.status_code == 201
    payload = response.json()
    assert payload["user_id"] == subject
    assert payload["name"] == "alice"
    assert response.headers["location"].endswith(f"/api/v1/authors/{payload['id']}")
    assert admin.calls == [
        {"user_id": subject, "client_id": "fiction-api", "role_name": "author"}
    ]


def test_register_fails_when_role_assignment_fails(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    client = _client(tmp_path, monkeypatch, RecordingIdentityAdmin(fail=True))

    response = client.post(
        "/api/v1/me/author",
        json={"accept_terms": True},
        headers=_headers(_token(str(uuid4()), roles=())),
    )

    assert response.status_code == 500
    assert "domain_error" not in response.json()


def test_register_requires_accepting_terms(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)

    response = client.post(
        "/api/v1/me/author",
        json={"accept_terms": False},
        headers=_headers(_token(str(uuid4()), roles=())),
    )

    assert response.status_code == 400


def test_missing_or_invalid_token_is_unauthorized(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    client = _client(tmp_path, monkeypatch)

    missing = client.get("/api/v1/me/author")
    invalid = client.get("/api/v1/me/author", headers=_headers("not-a-jwt"))

    assert missing.status_code == 401
    assert invalid.status_code == 401


def test_token_without_author_role_is_forbidden(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    client = _client(tmp_path, monkeypatch)

    response = client.post(
        "/api/v1/stories",
        json={"title": "Harbor Lights", "description": "A lighthouse keeper counts ships."},
        headers=_headers(_token(str(uuid4()), roles=())),
    )

    assert response.status_code == 403
    assert response.json()["domain_error"]["code"] == "Auth.InsufficientPermissions"


def test_author_role_without_registration_is_forbidden(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    client = _client(tmp_path, monkeypatch)

    response = client.get("/api/v1/me/author", headers=_headers(_token(str(uuid4()))))

    assert response.status_code == 403
    assert response.json()["domain_error"]["code"] == "Author.NotRegistered"


def test_chaptered_story_publish_lifecycle(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _registered_author(client)

    created = client.post(
        "/api/v1/stories",
        json={
            "title": "Harbor Lights",
            "description": "A lighthouse keeper counts ships.",
            "story_type": "MultiChapter",
        },
        headers=headers,
    )
    assert created.status_code == 201
    story_id = created.json()["id"]
    assert created.headers["location"].endswith(f"/api/v1/me/stories/{story_id}/content")
    assert {link["rel"] for link in created.json()["links"]} >= {"self"}

    chapter = client.post(
        f"/api/v1/stories/{story_id}/chapters",
        json={"title": "Arrival", "content": "# Arrival\n\nThe fog lifts."},
        headers=headers,
    )
    assert chapter.status_code == 201
    chapter_id = chapter.json()["chapter_id"]

    unpublished = client.get(f"/api/v1/stories/{story_id}")
    assert unpublished.status_code == 400
    assert unpublished.json()["domain_error"]["code"] == "Story.NotPublished"

    published = client.post(f"/api/v1/stories/{story_id}/publish", headers=headers)
    assert published.status_code == 200
    assert published.json()["published_at"] is not None
    assert published.json()["chapter_count"] == 1

    hidden_chapter = client.get(f"/api/v1/chapters/{chapter_id}/content")
    assert hidden_chapter.status_code != 200

    cascade = client.post(
        f"/api/v1/works/{story_id}/publish", json={"publish_all": True}, headers=headers
    )
    assert cascade.status_code == 200
    assert cascade.json()["type"] == "Story"

    listing = client.get("/api/v1/stories/published")
    assert listing.status_code == 200
    items = listing.json()["items"]
    assert [item["story_id"] for item in items] == [story_id]
    assert items[0]["chapter_count"] == 1
    assert items[0]["author_name"] == "alice"

    detail = client.get(f"/api/v1/stories/{story_id}")
    assert detail.status_code == 200
    assert detail.json()["type"] == "MultiChapter"
    assert [entry["title"] for entry in detail.json()["chapters"]] == ["Arrival"]

    content = client.get(f"/api/v1/chapters/{chapter_id}/content")
    assert content.status_code == 200
    assert content.json()["content"] == "# Arrival\n\nThe fog lifts."
    assert content.json()["story_title"] == "Harbor Lights"

    chapters = client.get(f"/api/v1/stories/{story_id}/chapters")
    assert chapters.status_code == 200
    assert [item["chapter_id"] for item in chapters.json()["items"]] == [chapter_id]


def test_single_body_content_round_trip(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _registered_author(client)
    story_id = _story(client, headers, title="Tide Tables", story_type="SingleBody")["id"]

    empty_publish = client.post(f"/api/v1/stories/{story_id}/publish", headers=headers)
    updated = client.put(
        f"/api/v1/stories/{story_id}/content",
        json={
            "content": "High water at noon.\n\n\n\nSee the [tide chart](http://tides.example.com).",
            "note1": "  thanks  ",
        },
        headers=headers,
    )

    assert empty_publish.status_code == 200
    assert updated.status_code == 200
    assert updated.json()["content"] == "High water at noon.\n\nSee the tide chart."
    assert updated.json()["note1"] == "thanks"

    public = client.get(f"/api/v1/stories/{story_id}/content")
    assert public.status_code == 200
    assert public.json()["content"] == "High water at noon.\n\nSee the tide chart."


def test_new_story_without_content_cannot_be_published(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _registered_author(client)
    story_id = _story(client, headers, title="Empty Pier", story_type="MultiChapter")["id"]

    response = client.post(f"/api/v1/stories/{story_id}/publish", headers=headers)

    assert response.status_code == 400
    assert response.json()["domain_error"]["code"] == "PublishStory.NoContentToPublish"


def test_duplicate_story_title_conflicts(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _registered_author(client)
    _story(client, headers, title="Harbor Lights", story_type="SingleBody")

    response = client.post(
        "/api/v1/stories",
        json={"title": "Harbor Lights", "description": "Another lighthouse keeper."},
        headers=headers,
    )

    assert response.status_code == 409
    assert response.json()["domain_error"]["code"] == "CreateStory.TitleExists"


def test_other_authors_cannot_edit_story(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    owner = _registered_author(client, "alice")
    stranger = _registered_author(client, "bob")
    story_id = _story(client, owner, title="Harbor Lights", story_type="SingleBody")["id"]

    response = client.put(
        f"/api/v1/stories/{story_id}",
        json={"title": "Stolen Lights", "description": "A lighthouse keeper counts ships."},
        headers=stranger,
    )

    assert response.status_code == 403


def test_field_selection_and_unknown_fields(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _registered_author(client)
    story_id = _story(client, headers, title="Harbor Lights", story_type="SingleBody")["id"]

    shaped = client.get(
        f"/api/v1/me/stories/{story_id}/content", params={"fields": "Title"}, headers=headers
    )
    rejected = client.get(
        f"/api/v1/me/stories/{story_id}/content", params={"fields": "title,colour"}, headers=headers
    )

    assert shaped.status_code == 200
    assert set(shaped.json()) == {"title", "links"}
    assert rejected.status_code == 400
    assert rejected.json()["errors"]["fields"] == [
        "Data shaping field(s): colour is not valid."
    ]


def test_workspace_lists_own_stories(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _registered_author(client)
    story_id = _story(client, headers, title="Harbor Lights", story_type="SingleBody")["id"]

    response = client.get("/api/v1/me/stories", headers=headers)

    assert response.status_code == 200
    (item,) = response.json()["items"]
    assert item["id"] == story_id
    assert item["is_owned"] is True
    assert item["is_published"] is False


def test_unknown_sort_field_is_rejected(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)

    response = client.get("/api/v1/stories/published", params={"sort": "popularity desc"})

    assert response.status_code == 400
    assert "sort" in response.json()["errors"]


def test_deleting_chapter_reaps_its_content(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _registered_author(client)
    story_id = _story(client, headers, title="Harbor Lights", story_type="MultiChapter")["id"]
    chapter = client.post(
        f"/api/v1/stories/{story_id}/chapters",
        json={"title": "Arrival", "content": "The fog lifts."},
        headers=headers,
    ).json()

    deleted = client.delete(f"/api/v1/chapters/{chapter['chapter_id']}", headers=headers)

    assert deleted.status_code == 204
    bodies = client.app.state.services.bodies
    assert bodies.get_work_body(work_body_id=chapter["content_id"]) is None
    assert client.get(f"/api/v1/chapters/{chapter['chapter_id']}/content").status_code == 404


def test_tags_listing_is_public(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    store = client.app.state.services.store
    store.create_tag(category="genre", value="mystery")

    response = client.get("/api/v1/tags", params={"category": "genre"})

    assert response.status_code == 200
    (item,) = response.json()["items"]
    assert item["value"] == "mystery"
    assert item["display_format"] == "genre:mystery"


def _author_id(client: TestClient, headers: dict[str, str]) -> str:
    response = client.get("/api/v1/me/author", headers=headers)
    assert response.status_code == 200
    return response.json()["id"]


def _chapter(
    client: TestClient, headers: dict[str, str], path: str, *, title: str, content: str
) -> dict[str, Any]:
    response = client.post(path, json={"title": title, "content": content}, headers=headers)
    assert response.status_code == 201
    return response.json()


def _convert(
    client: TestClient, headers: dict[str, str], story_id: str, target: str
) -> Any:
    return client.post(
        f"/api/v1/stories/{story_id}/convert", json={"target_type": target}, headers=headers
    )


def test_deleting_chapter_twice_conflicts(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _registered_author(client)
    story_id = _story(client, headers, title="Harbor Lights", story_type="MultiChapter")["id"]
    chapter = _chapter(
        client,
        headers,
        f"/api/v1/stories/{story_id}/chapters",
        title="Arrival",
        content="The fog lifts.",
    )

    first = client.delete(f"/api/v1/chapters/{chapter['chapter_id']}", headers=headers)
    second = client.delete(f"/api/v1/chapters/{chapter['chapter_id']}", headers=headers)

    assert first.status_code == 204
    assert second.status_code == 409
    assert second.json()["domain_error"]["code"] == "DeleteChapter.AlreadyDeleted"
    bodies = client.app.state.services.bodies
    assert bodies.get_work_body(work_body_id=chapter["content_id"]) is None
    workspace = client.get(f"/api/v1/me/stories/{story_id}/content", headers=headers).json()
    assert workspace["chapters"] == []


def test_story_type_conversions_walk_one_step_at_a_time(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _registered_author(client)
    stranger = _registered_author(client, "bob")
    story_id = _story(client, headers, title="Tide Tables", story_type="SingleBody")["id"]
    client.put(
        f"/api/v1/stories/{story_id}/content",
        json={"content": "High water at noon."},
        headers=headers,
    )

    same = _convert(client, headers, story_id, "SingleBody")
    assert same.status_code == 409
    assert same.json()["domain_error"]["code"] == "ConvertStoryType.AlreadyAtTargetType"
    assert _convert(client, stranger, story_id, "MultiChapter").status_code == 403

    to_chapters = _convert(client, headers, story_id, "MultiChapter")
    assert to_chapters.status_code == 200
    assert (to_chapters.json()["previous_type"], to_chapters.json()["type"]) == (
        "SingleBody",
        "MultiChapter",
    )
    workspace = client.get(f"/api/v1/me/stories/{story_id}/content", headers=headers).json()
    assert [chapter["title"] for chapter in workspace["chapters"]] == ["Chapter 1"]
    assert workspace["content_id"] is None

    to_books = _convert(client, headers, story_id, "MultiBook")
    assert to_books.status_code == 200
    assert to_books.json()["type"] == "MultiBook"
    skipped = _convert(client, headers, story_id, "SingleBody")
    assert skipped.status_code == 400
    assert skipped.json()["domain_error"]["code"] == "ConvertStoryType.InvalidConversionPath"

    assert _convert(client, headers, story_id, "MultiChapter").json()["type"] == "MultiChapter"
    back = _convert(client, headers, story_id, "SingleBody")
    assert back.status_code == 200
    assert back.json()["type"] == "SingleBody"
    restored = client.get(f"/api/v1/me/stories/{story_id}/content", headers=headers).json()
    assert restored["content"] == "High water at noon."
    assert restored["chapters"] == []


def test_downgrades_need_exactly_one_child(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _registered_author(client)
    chaptered = _story(client, headers, title="Harbor Lights", story_type="MultiChapter")["id"]
    for title in ("Arrival", "Departure"):
        _chapter(
            client,
            headers,
            f"/api/v1/stories/{chaptered}/chapters",
            title=title,
            content="The fog lifts.",
        )
    shelved = _story(client, headers, title="Collected Tides", story_type="MultiBook")["id"]
    for title in ("Spring Tides", "Neap Tides"):
        client.post(
            f"/api/v1/stories/{shelved}/books",
            json={"title": title, "description": "Tides of one season."},
            headers=headers,
        )

    one_chapter = _convert(client, headers, chaptered, "SingleBody")
    one_book = _convert(client, headers, shelved, "MultiChapter")

    assert one_chapter.status_code == 400
    assert one_chapter.json()["domain_error"]["code"] == (
        "ConvertStoryType.DowngradeChapterConditionNotMet"
    )
    assert one_book.status_code == 400
    assert one_book.json()["domain_error"]["code"] == (
        "ConvertStoryType.DowngradeBookConditionNotMet"
    )


def test_books_and_their_chapters(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _registered_author(client)
    stranger = _registered_author(client, "bob")
    story_id = _story(client, headers, title="Collected Tides", story_type="MultiBook")["id"]
    book_body = {"title": "Spring Tides", "description": "Tides of one season."}

    created = client.post(f"/api/v1/stories/{story_id}/books", json=book_body, headers=headers)
    assert created.status_code == 201
    book_id = created.json()["id"]
    assert created.json()["story_id"] == story_id
    assert created.headers["location"].endswith(f"/api/v1/me/books/{book_id}/content")

    duplicate = client.post(f"/api/v1/stories/{story_id}/books", json=book_body, headers=headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["domain_error"]["code"] == "CreateBook.TitleExists"
    foreign = client.post(
        f"/api/v1/stories/{story_id}/books",
        json={"title": "Borrowed", "description": "Not my story at all."},
        headers=stranger,
    )
    assert foreign.status_code == 403
    assert foreign.json()["domain_error"]["code"] == "CreateBook.NotStoryOwner"

    client.post(
        f"/api/v1/stories/{story_id}/books",
        json={"title": "Neap Tides", "description": "Tides of another season."},
        headers=headers,
    )
    clash = client.put(
        f"/api/v1/books/{book_id}",
        json={"title": "Neap Tides", "description": "Tides of one season."},
        headers=headers,
    )
    assert clash.status_code == 409
    assert clash.json()["domain_error"]["code"] == "UpdateBookMetadata.TitleExists"
    renamed = client.put(
        f"/api/v1/books/{book_id}",
        json={"title": "Spring  Tides Revised", "description": "Tides of one season."},
        headers=headers,
    )
    assert renamed.status_code == 200
    assert renamed.json()["title"] == "Spring Tides Revised"
    assert client.put(
        f"/api/v1/books/{book_id}", json=book_body, headers=stranger
    ).json()["domain_error"]["code"] == "Authorization.CollaboratorRequired"

    chapter = _chapter(
        client,
        headers,
        f"/api/v1/books/{book_id}/chapters",
        title="Dawn",
        content="The tide turns.",
    )
    assert chapter["parent_id"] == book_id
    repeat = client.post(
        f"/api/v1/books/{book_id}/chapters",
        json={"title": "DAWN", "content": "Again."},
        headers=headers,
    )
    assert repeat.status_code == 409
    assert repeat.json()["domain_error"]["code"] == "AddChapterToBook.TitleExists"
    intruder = client.post(
        f"/api/v1/books/{book_id}/chapters",
        json={"title": "Dusk", "content": "Uninvited."},
        headers=stranger,
    )
    assert intruder.status_code == 403
    assert intruder.json()["domain_error"]["code"] == "AddChapterToBook.NotBookOwner"

    content = client.get(f"/api/v1/me/books/{book_id}/content", headers=headers)
    assert content.status_code == 200
    assert content.json()["story_id"] == story_id
    assert [(item["title"], item["content"]) for item in content.json()["chapters"]] == [
        ("Dawn", "The tide turns.")
    ]


def test_publish_work_on_book_and_chapter(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _registered_author(client)
    story_id = _story(client, headers, title="Collected Tides", story_type="MultiBook")["id"]
    book_id = client.post(
        f"/api/v1/stories/{story_id}/books",
        json={"title": "Spring Tides", "description": "Tides of one season."},
        headers=headers,
    ).json()["id"]
    path = f"/api/v1/books/{book_id}/chapters"
    dawn = _chapter(client, headers, path, title="Dawn", content="The tide turns.")

    empty_book = client.post(
        f"/api/v1/stories/{story_id}/books",
        json={"title": "Neap Tides", "description": "Tides of another season."},
        headers=headers,
    ).json()["id"]
    assert client.post(
        f"/api/v1/works/{empty_book}/publish", json={}, headers=headers
    ).json()["domain_error"]["code"] == "PublishWork.NoContentToPublish"

    book = client.post(f"/api/v1/works/{book_id}/publish", json={"publish_all": True}, headers=headers)
    assert book.status_code == 200
    assert (book.json()["type"], book.json()["child_count"]) == ("Book", 1)
    chapters = client.get(f"/api/v1/me/books/{book_id}/content", headers=headers).json()["chapters"]
    assert chapters[0]["id"] == dawn["chapter_id"]
    assert chapters[0]["published_at"] is not None

    again = client.post(f"/api/v1/works/{book_id}/publish", json={}, headers=headers)
    assert again.status_code == 409
    assert again.json()["domain_error"]["code"] == "PublishWork.AlreadyPublished"
    cascade_again = client.post(
        f"/api/v1/works/{book_id}/publish", json={"publish_all": True}, headers=headers
    )
    assert cascade_again.status_code == 200

    dusk = _chapter(client, headers, path, title="Dusk", content="The tide ebbs.")
    single = client.post(f"/api/v1/works/{dusk['chapter_id']}/publish", headers=headers)
    assert single.status_code == 200
    assert single.json()["type"] == "Chapter"
    assert single.json()["has_content"] is True
    missing = client.post("/api/v1/works/not-a-work/publish", json={}, headers=headers)
    assert missing.status_code == 404


def test_story_deletion_is_owner_only_and_happens_once(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    client = _client(tmp_path, monkeypatch)
    owner = _registered_author(client)
    stranger = _registered_author(client, "bob")
    story_id = _story(client, owner, title="Harbor Lights", story_type="SingleBody")["id"]

    refused = client.delete(f"/api/v1/stories/{story_id}", headers=stranger)
    deleted = client.delete(f"/api/v1/stories/{story_id}", headers=owner)
    repeated = client.delete(f"/api/v1/stories/{story_id}", headers=owner)

    assert refused.status_code == 403
    assert refused.json()["domain_error"]["code"] == "DeleteStory.NotAuthorized"
    assert deleted.status_code == 204
    assert repeated.status_code == 409
    assert repeated.json()["domain_error"]["code"] == "Story.AlreadyDeleted"
    assert client.get("/api/v1/me/stories", headers=owner).json()["items"] == []
    assert client.get(f"/api/v1/me/stories/{story_id}/content", headers=owner).status_code == 404


def test_adding_tags_attaches_known_tags_and_skips_the_rest(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _registered_author(client)
    stranger = _registered_author(client, "bob")
    store = client.app.state.services.store
    store.create_tag(category="genre", value="mystery")
    store.create_tag(category="audience", subcategory="age", value="adult")
    story_id = _story(client, headers, title="Harbor Lights", story_type="SingleBody")["id"]

    first = client.post(
        f"/api/v1/stories/{story_id}/tags",
        json={"tags": "Genre:Mystery, audience:age:adult, genre:unknown, malformed"},
        headers=headers,
    )
    second = client.post(
        f"/api/v1/stories/{story_id}/tags", json={"tags": "genre:mystery"}, headers=headers
    )
    refused = client.post(
        f"/api/v1/stories/{story_id}/tags", json={"tags": "genre:mystery"}, headers=stranger
    )
    blank = client.post(f"/api/v1/stories/{story_id}/tags", json={"tags": " , "}, headers=headers)

    assert first.status_code == 200
    assert [
        (tag["category"], tag["subcategory"], tag["value"], tag["is_new"])
        for tag in first.json()["added_tags"]
    ] == [("genre", None, "mystery", False), ("audience", "age", "adult", False)]
    assert first.json()["skipped_tags"] == ["genre:unknown", "malformed"]
    assert first.json()["total_tags"] == 2
    assert second.json()["added_tags"] == []
    assert second.json()["skipped_tags"] == ["genre:mystery"]
    assert second.json()["total_tags"] == 2
    assert refused.status_code == 403
    assert refused.json()["domain_error"]["code"] == "AddTagsToStory.AccessDenied"
    assert blank.status_code == 400
    assert blank.json()["domain_error"]["code"] == "AddTagsToStory.NoTagsProvided"


def test_author_profile_update_and_public_author_pages(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    client = _client(tmp_path, monkeypatch)
    alice = _registered_author(client, "alice")
    bob = _registered_author(client, "bob")
    alice_id = _author_id(client, alice)
    story_id = _story(client, alice, title="Tide Tables", story_type="SingleBody")["id"]
    _story(client, alice, title="Draft Harbor", story_type="SingleBody")
    _story(client, bob, title="Unfinished Pier", story_type="SingleBody")
    client.post(f"/api/v1/stories/{story_id}/publish", headers=alice)

    updated = client.put(
        "/api/v1/me/author", json={"bio": "  Keeps   a lighthouse. "}, headers=alice
    )
    harmful = client.put("/api/v1/me/author", json={"bio": "<script>x</script>"}, headers=alice)

    assert updated.status_code == 200
    assert updated.json()["profile"] == {"bio": "Keeps a lighthouse."}
    assert client.get("/api/v1/me/author", headers=alice).json()["profile"]["bio"] == (
        "Keeps a lighthouse."
    )
    assert harmful.status_code == 400

    listing = client.get("/api/v1/authors")
    assert listing.status_code == 200
    (item,) = listing.json()["items"]
    assert (item["id"], item["name"], item["bio"]) == (alice_id, "alice", "Keeps a lighthouse.")
    assert (item["published_stories"], item["total_stories"]) == (1, 2)
    assert client.get("/api/v1/authors", params={"search": "lighthouse"}).json()["items"]
    assert client.get("/api/v1/authors", params={"q": "nobody"}).json()["items"] == []

    detail = client.get(f"/api/v1/authors/{alice_id}")
    assert detail.status_code == 200
    assert detail.json()["total_stories"] == 2
    assert [work["id"] for work in detail.json()["published_stories"]] == [story_id]
    assert client.get("/api/v1/authors/missing").status_code == 404
