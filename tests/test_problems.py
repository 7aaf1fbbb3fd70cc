from __future__ import annotations

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from ihfiction.api.problems import (
    PROBLEM_MEDIA_TYPE,
    DataShapingError,
    DomainFailure,
    ResponseMappingService,
    install_problem_handlers,
    status_for,
)
from ihfiction.application.querying import SortValidationError
from ihfiction.domain.errors import CommonErrors, DomainError


@pytest.mark.parametrize(
    ("code", "expected"),
    [
        ("Author.NotRegistered", 403),
        ("Auth.InsufficientPermissions", 403),
        ("ClaimsPrincipal.MissingClaim", 403),
        ("DeleteStory.NotAuthorized", 403),
        ("Authorization.CollaboratorRequired", 403),
        ("CreateBook.NotStoryOwner", 403),
        ("PublishStory.OnlyOwnerCanPublish", 403),
        ("Story.NotFound", 404),
        ("Authorization.ChapterNotFound", 404),
        ("CreateStory.TitleExists", 409),
        ("DeleteChapter.AlreadyDeleted", 409),
        ("ConvertStoryType.AlreadyAtTargetType", 409),
        ("Validation.Required", 400),
        ("ListTags.InvalidPage", 400),
        ("Content.TooLarge", 400),
        ("PublishStory.NoContentToPublish", 400),
        ("UnpublishStory.NotPublished", 400),
        ("AddTags.NoTagsProvided", 400),
        ("Database.SaveFailed", 500),
        ("Keycloak.TokenFetch", 500),
        ("Session.Unauthenticated", 401),
        ("Something.Conflict", 409),
        ("Something.Unexpected", 500),
    ],
)
def test_status_for_follows_code_precedence(code: str, expected: int) -> None:
    assert status_for(DomainError(code, "description")) == expected


def _app() -> FastAPI:
    app = FastAPI()
    install_problem_handlers(app, ResponseMappingService())

    @app.get("/stories/{story_id}")
    def get_story(story_id: str) -> dict[str, str]:
        raise DomainFailure(CommonErrors.Story.NOT_FOUND)

    @app.get("/broken")
    def broken() -> dict[str, str]:
        raise DomainFailure(CommonErrors.Database.SAVE_FAILED)

    @app.get("/shaped")
    def shaped() -> dict[str, str]:
        raise DataShapingError(["nope", "other"])

    @app.get("/sorted")
    def sorted_listing() -> dict[str, str]:
        raise SortValidationError(["bogus"])

    @app.get("/mapped")
    def mapped(request: Request) -> JSONResponse:
        return ResponseMappingService().to_problem(
            DomainError("UpdateStoryMetadata.TitleExists", "Title taken."), request
        )

    return app


def test_domain_failure_renders_problem_with_domain_error() -> None:
    client = TestClient(_app())
    response = client.get("/stories/abc")
    assert response.status_code == 404
    assert response.headers["content-type"].startswith(PROBLEM_MEDIA_TYPE)
    payload = response.json()
    assert payload["status"] == 404
    assert payload["title"] == "Not Found"
    assert payload["detail"] == "Story not found."
    assert payload["instance"] == "/stories/abc"
    assert payload["domain_error"] == {"code": "Story.NotFound", "description": "Story not found."}


def test_server_errors_hide_domain_detail() -> None:
    client = TestClient(_app())
    response = client.get("/broken")
    assert response.status_code == 500
    payload = response.json()
    assert "domain_error" not in payload
    assert payload["detail"] == "An unexpected error occurred while processing your request."


def test_data_shaping_and_sort_errors_are_validation_problems() -> None:
    client = TestClient(_app())
    shaped = client.get("/shaped")
    sorted_response = client.get("/sorted")
    assert shaped.status_code == 400
    assert shaped.json()["errors"]["fields"] == [
        "Data shaping field(s): nope, other are not valid."
    ]
    assert sorted_response.status_code == 400
    assert sorted_response.json()["errors"]["sort"] == ["Sort field is invalid."]


def test_mapper_can_be_called_directly_from_handlers() -> None:
    client = TestClient(_app())
    response = client.get("/mapped")
    assert response.status_code == 409
    assert response.json()["domain_error"]["code"] == "UpdateStoryMetadata.TitleExists"


def test_unknown_routes_render_problem_documents() -> None:
    client = TestClient(_app())
    response = client.get("/missing")
    assert response.status_code == 404
    assert response.json()["instance"] == "/missing"


def test_single_field_message_uses_singular_verb() -> None:
    assert str(DataShapingError(["nope"])) == "Data shaping field(s): nope is not valid."
