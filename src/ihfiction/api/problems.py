"""RFC 9110 problem documents for domain failures and unhandled errors."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ihfiction.application.querying import SortValidationError
from ihfiction.domain.errors import DomainError

logger = logging.getLogger(__name__)

PROBLEM_MEDIA_TYPE = "application/problem+json"

_TYPE_BY_STATUS = {
    400: "https://datatracker.ietf.org/doc/html/rfc9110#section-15.5.1",
    401: "https://datatracker.ietf.org/doc/html/rfc9110#section-15.5.2",
    403: "https://datatracker.ietf.org/doc/html/rfc9110#section-15.5.4",
    404: "https://datatracker.ietf.org/doc/html/rfc9110#section-15.5.5",
    409: "https://datatracker.ietf.org/doc/html/rfc9110#section-15.5.10",
    500: "https://tools.ietf.org/html/rfc9110#section-15.6.1",
}
_TITLE_BY_STATUS = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    409: "Conflict",
    500: "An error occurred while processing your request.",
}
UNEXPECTED_DETAIL = "An unexpected error occurred while processing your request."
VALIDATION_TITLE = "One or more validation errors occurred."

_FORBIDDEN_CODES = {"Author.NotRegistered", "Auth.InsufficientPermissions"}
_FORBIDDEN_SUFFIXES = (
    ".AccessDenied",
    ".OwnerOnlyOperation",
    ".CollaboratorRequired",
    ".NotStoryOwner",
    ".NotBookOwner",
)
_NOT_FOUND_CODES = {
    "Story.NotFound",
    "Chapter.NotFound",
    "Book.NotFound",
    "General.NotFound",
    "Author.NotFound",
    "User.NotFound",
    "Content.NotFound",
}
_CONFLICT_SUFFIXES = (".TitleExists", ".AlreadyDeleted", ".AlreadyPublished", ".Exists", ".AlreadyAtTargetType")
_BAD_REQUEST_SUFFIXES = ("ConditionNotMet", "NoContentToPublish", "NotPublished", "NoTagsProvided")
_FALLBACK_BY_REASON = {
    "UNAUTHENTICATED": 401,
    "UNAUTHORIZED": 403,
    "NOTAUTHORIZED": 403,
    "NOTREGISTERED": 403,
    "INVALIDCLAIMS": 403,
    "INSUFFICIENTPERMISSIONS": 403,
    "NOTFOUND": 404,
    "ALREADYDELETED": 404,
    "CONFLICT": 409,
    "EXISTS": 409,
}


def status_for(error: DomainError) -> int:
    """Resolve the HTTP status for a domain error code, first match wins."""
    code = error.code
    if (
        code in _FORBIDDEN_CODES
        or code.startswith("ClaimsPrincipal.")
        or code.endswith("NotAuthorized")
        or code.endswith(_FORBIDDEN_SUFFIXES)
        or ".OnlyOwnerCan" in code
    ):
        return status.HTTP_403_FORBIDDEN
    if code in _NOT_FOUND_CODES or code.endswith("NotFound"):
        return status.HTTP_404_NOT_FOUND
    if code.endswith(_CONFLICT_SUFFIXES):
        return status.HTTP_409_CONFLICT
    if (
        code.startswith("Validation.")
        or ".Invalid" in code
        or code == "Content.TooLarge"
        or code.endswith(_BAD_REQUEST_SUFFIXES)
    ):
        return status.HTTP_400_BAD_REQUEST
    if code.startswith(("Database.", "Keycloak.")):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    reason = code.rsplit(".", maxsplit=1)[-1].upper()
    return _FALLBACK_BY_REASON.get(reason, status.HTTP_500_INTERNAL_SERVER_ERROR)


def problem_response(
    status_code: int,
    *,
    instance: str,
    title: str | None = None,
    detail: str | None = None,
    extensions: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body: dict[str, Any] = {
        "type": _TYPE_BY_STATUS.get(status_code, _TYPE_BY_STATUS[500]),
        "title": title or _TITLE_BY_STATUS.get(status_code, "Error"),
        "status": status_code,
        "detail": detail,
        "instance": instance,
    }
    body.update(extensions or {})
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body),
        media_type=PROBLEM_MEDIA_TYPE,
        headers=headers,
    )


class ResponseMappingService:
    """Turn failed use-case results into problem responses."""

    def to_problem(self, error: DomainError, request: Request) -> JSONResponse:
        status_code = status_for(error)
        instance = request.url.path
        if status_code >= 500:
            logger.error("domain.failure code=%s status=%s path=%s", error.code, status_code, instance)
            return problem_response(status_code, instance=instance, detail=UNEXPECTED_DETAIL)
        logger.info("domain.failure code=%s status=%s path=%s", error.code, status_code, instance)
        return problem_response(
            status_code,
            instance=instance,
            detail=error.description,
            extensions={"domain_error": {"code": error.code, "description": error.description}},
        )


class DomainFailure(Exception):
    """Raised from dependencies to short-circuit a request with a domain error."""

    def __init__(self, error: DomainError) -> None:
        super().__init__(error.code)
        self.error = error


class DataShapingError(ValueError):
    """Raised before a handler runs when `fields` names unknown properties."""

    def __init__(self, fields: list[str]) -> None:
        verb = "is" if len(fields) == 1 else "are"
        super().__init__(f"Data shaping field(s): {', '.join(fields)} {verb} not valid.")
        self.fields = fields


def _validation_errors(exc: RequestValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for item in exc.errors():
        location = [str(part) for part in item.get("loc", ()) if part not in ("body", "query", "path")]
        key = ".".join(location) or "request"
        message = str(item.get("msg", "Invalid value."))
        errors.setdefault(key, []).append(message.removeprefix("Value error, "))
    return errors


def install_problem_handlers(app: FastAPI, mapper: ResponseMappingService) -> None:
    """Register validation, HTTP, and catch-all handlers on the app."""

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return problem_response(
            status.HTTP_400_BAD_REQUEST,
            instance=request.url.path,
            title=VALIDATION_TITLE,
            extensions={"errors": _validation_errors(exc)},
        )

    @app.exception_handler(DataShapingError)
    async def _data_shaping(request: Request, exc: DataShapingError) -> JSONResponse:
        return problem_response(
            status.HTTP_400_BAD_REQUEST,
            instance=request.url.path,
            title=VALIDATION_TITLE,
            extensions={"errors": {"fields": [str(exc)]}},
        )

    @app.exception_handler(SortValidationError)
    async def _sort_validation(request: Request, exc: SortValidationError) -> JSONResponse:
        return problem_response(
            status.HTTP_400_BAD_REQUEST,
            instance=request.url.path,
            title=VALIDATION_TITLE,
            extensions={"errors": {"sort": [str(exc)]}},
        )

    @app.exception_handler(DomainFailure)
    async def _domain_failure(request: Request, exc: DomainFailure) -> JSONResponse:
        return mapper.to_problem(exc.error, request)

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return problem_response(
            exc.status_code,
            instance=request.url.path,
            detail=str(exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("api.unhandled_exception path=%s", request.url.path)
        return problem_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            instance=request.url.path,
            detail=UNEXPECTED_DETAIL,
        )
