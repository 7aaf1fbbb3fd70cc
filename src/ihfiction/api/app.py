"""FastAPI application for fiction publishing workflows."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, TypeVar

import httpx
import jwt
from fastapi import (
    BackgroundTasks,
    Depends,
    FastAPI,
    HTTPException,
    Query,
    Request,
    Response,
    status,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from ihfiction.adapters.keycloak_admin import create_identity_admin
from ihfiction.adapters.settings import env_str
from ihfiction.adapters.sqlite_fiction_store import SQLiteFictionStore
from ihfiction.adapters.work_body_store_factory import create_work_body_store
from ihfiction.api.contracts import (
    AddTagsRequest,
    AddTagsResponse,
    AuthorAccountResponse,
    AuthorDetailResponse,
    AuthorListItem,
    AuthorStoriesFilter,
    AuthorStoryItem,
    ChapterContentResponse,
    ChapterWithContentResponse,
    ConvertStoryTypeRequest,
    ConvertStoryTypeResponse,
    CreateBookRequest,
    CreateBookResponse,
    CreateChapterRequest,
    CreateStoryRequest,
    CurrentAuthorProfileResponse,
    Link,
    OwnBookContentResponse,
    OwnChapterContentResponse,
    OwnStoryContentResponse,
    PublishedChapterListItem,
    PublishedStoryListItem,
    PublishedStoryResponse,
    PublishStoryResponse,
    PublishWorkRequest,
    PublishWorkResponse,
    RegisterAsAuthorRequest,
    StoryContentResponse,
    StoryMetadataResponse,
    TagListItem,
    UpdateAuthorProfileRequest,
    UpdateBookMetadataRequest,
    UpdateBookMetadataResponse,
    UpdateChapterContentRequest,
    UpdateChapterContentResponse,
    UpdateChapterMetadataRequest,
    UpdateChapterMetadataResponse,
    UpdateStoryContentRequest,
    UpdateStoryContentResponse,
    UpdateStoryMetadataRequest,
)
from ihfiction.api.links import Linked, LinkService
from ihfiction.api.oidc import OidcClaims, validate_oidc_token
from ihfiction.api.problems import DomainFailure, ResponseMappingService, install_problem_handlers
from ihfiction.api.shaping import FieldSelection, shape, shape_collection, shaped_fields
from ihfiction.application import (
    authors,
    chapters,
    publishing,
    stories,
    story_content,
    structure,
    tags,
    workspace,
)
from ihfiction.application.querying import (
    PagedCollection,
    PageRequest,
    PaginationOptions,
    create_page_request,
)
from ihfiction.application.services import (
    DEFAULT_AUTHOR_ROLE,
    DEFAULT_ROLE_CLIENT_ID,
    FictionServices,
)
from ihfiction.domain.errors import CommonErrors, Result
from ihfiction.domain.ports import IdentityAdmin, WorkBodyStore

DEFAULT_DB_PATH = Path("work/local/ihfiction.db")

logger = logging.getLogger(__name__)

T = TypeVar("T")


class HealthResponse(BaseModel):
    """Simple health payload for liveness checks."""

    status: Literal["ok"] = "ok"
    service: str = "ihfiction"


class ApiRootResponse(BaseModel):
    """Describes currently available API capabilities."""

    name: str = "ihfiction"
    persistence: Literal["sqlite"] = "sqlite"
    auth: Literal["oidc-bearer"] = "oidc-bearer"
    endpoints: list[str] = Field(
        default_factory=lambda: [
            "/healthz",
            "/api/v1",
            "/api/v1/me/author",
            "/api/v1/me/stories",
            "/api/v1/me/stories/{story_id}/content",
            "/api/v1/me/chapters/{chapter_id}/content",
            "/api/v1/me/books/{book_id}/content",
            "/api/v1/authors",
            "/api/v1/authors/{author_id}",
            "/api/v1/stories",
            "/api/v1/stories/published",
            "/api/v1/stories/{story_id}",
            "/api/v1/stories/{story_id}/content",
            "/api/v1/stories/{story_id}/chapters",
            "/api/v1/stories/{story_id}/books",
            "/api/v1/stories/{story_id}/tags",
            "/api/v1/stories/{story_id}/convert",
            "/api/v1/stories/{story_id}/publish",
            "/api/v1/stories/{story_id}/unpublish",
            "/api/v1/works/{work_id}/publish",
            "/api/v1/chapters/{chapter_id}",
            "/api/v1/chapters/{chapter_id}/content",
            "/api/v1/books/{book_id}",
            "/api/v1/books/{book_id}/chapters",
            "/api/v1/tags",
        ]
    )


@dataclass(frozen=True)
class ListingQuery:
    """Paging, search, and sort values shared by every listing route."""

    page: PageRequest
    search: str | None
    sort: str | None


def _resolve_db_path(db_path: Path | None) -> Path:
    """Resolve DB path from explicit arg, env var, then default path."""
    if db_path is not None:
        return db_path
    env_value = os.environ.get("IHFICTION_DB_PATH", "").strip()
    if env_value:
        return Path(env_value)
    return DEFAULT_DB_PATH


def _cors_origins() -> list[str]:
    raw = os.environ.get("IHFICTION_CORS_ORIGINS", "").strip()
    if raw:
        return [origin.strip() for origin in raw.split(",") if origin.strip()]
    return [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
    ]


def _unwrap(result: Result[T]) -> T:
    if result.is_failure:
        raise DomainFailure(result.unwrap_error())
    return result.unwrap()


def _listing_query(options: PaginationOptions) -> Callable[..., ListingQuery]:
    def dependency(
        page: int | None = Query(default=None),
        page_size: int | None = Query(default=None),
        search: str | None = Query(default=None, max_length=200),
        q: str | None = Query(default=None, max_length=200),
        sort: str | None = Query(default=None, max_length=200),
    ) -> ListingQuery:
        return ListingQuery(
            page=create_page_request(page, page_size, options),
            search=search if search is not None else q,
            sort=sort,
        )

    return dependency


def _single(
    value: BaseModel,
    links: list[Link],
    fields: FieldSelection,
    *,
    status_code: int = status.HTTP_200_OK,
    location: str | None = None,
) -> JSONResponse:
    headers = {"Location": location} if location else None
    return JSONResponse(
        shape(Linked(value, links), fields), status_code=status_code, headers=headers
    )


def _story_links(linker: LinkService, story_id: str) -> list[Link]:
    return [
        linker.create("get_story", "self", story_id=story_id),
        linker.create("get_story_content", "content", story_id=story_id),
        linker.create("list_story_chapters", "chapters", story_id=story_id),
    ]


def _own_story_links(linker: LinkService, story_id: str) -> list[Link]:
    return [
        linker.create("get_my_story_content", "self", story_id=story_id),
        linker.create("update_story", "update", "PUT", story_id=story_id),
        linker.create("update_story_content", "update-content", "PUT", story_id=story_id),
        linker.create("publish_story", "publish", "POST", story_id=story_id),
        linker.create("delete_story", "delete", "DELETE", story_id=story_id),
    ]


def _chapter_links(linker: LinkService, chapter_id: str) -> list[Link]:
    return [
        linker.create("get_chapter_content", "self", chapter_id=chapter_id),
        linker.create("update_chapter", "update", "PUT", chapter_id=chapter_id),
        linker.create("update_chapter_content", "update-content", "PUT", chapter_id=chapter_id),
        linker.create("delete_chapter", "delete", "DELETE", chapter_id=chapter_id),
    ]


def _book_links(linker: LinkService, book_id: str) -> list[Link]:
    return [
        linker.create("get_my_book_content", "self", book_id=book_id),
        linker.create("update_book", "update", "PUT", book_id=book_id),
        linker.create("add_book_chapter", "add-chapter", "POST", book_id=book_id),
    ]


def _author_links(linker: LinkService, author_id: str) -> list[Link]:
    return [
        linker.create("get_author", "self", author_id=author_id),
        linker.create("list_published_stories", "stories", author_id=author_id),
    ]


def _collection(
    linker: LinkService,
    route_name: str,
    collection: PagedCollection[Any],
    listing: ListingQuery,
    fields: FieldSelection,
    item_links: Callable[[Any], list[Link]],
    **params: Any,
) -> JSONResponse:
    linked = linker.linked_collection(
        route_name,
        collection,
        item_links,
        search=listing.search,
        sort=listing.sort,
        **params,
    )
    return JSONResponse(shape_collection(linked, fields))


def create_app(
    db_path: Path | None = None,
    *,
    identity_admin: IdentityAdmin | None = None,
    work_body_store: WorkBodyStore | None = None,
) -> FastAPI:
    """Create the API application."""
    effective_db_path = _resolve_db_path(db_path)
    store = SQLiteFictionStore(db_path=effective_db_path)
    bodies = work_body_store or create_work_body_store(db_path=effective_db_path)
    services = FictionServices.build(
        store=store,
        bodies=bodies,
        identity_admin=identity_admin if identity_admin is not None else create_identity_admin(),
        pagination=PaginationOptions.from_env(),
        author_role=env_str("IHFICTION_AUTHOR_ROLE", DEFAULT_AUTHOR_ROLE),
        role_client_id=env_str("IHFICTION_ROLE_CLIENT_ID", DEFAULT_ROLE_CLIENT_ID),
    )
    mapper = ResponseMappingService()
    bearer = HTTPBearer(auto_error=False)
    listing = _listing_query(services.pagination)
    author_listing = _listing_query(
        services.pagination.override(default_page_size=authors.AUTHORS_DEFAULT_PAGE_SIZE)
    )
    tag_listing = _listing_query(tags.TAG_PAGINATION)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        removed = services.reaper.reap()
        logger.info("api.startup_reap removed=%s", removed)
        yield

    app = FastAPI(
        title="IHFiction API",
        version="0.1.0",
        description=(
            "Fiction publishing API: author accounts, stories, books, chapters, "
            "content bodies, tags, and publication workflows."
        ),
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        openapi_tags=[
            {"name": "system", "description": "Service health and runtime metadata."},
            {"name": "api", "description": "API discovery and root-level capability listing."},
            {"name": "authors", "description": "Author registration, profiles, and listings."},
            {"name": "stories", "description": "Story metadata, structure, and tagging."},
            {"name": "content", "description": "Story and chapter content bodies."},
            {"name": "chapters", "description": "Chapter metadata and lifecycle."},
            {"name": "books", "description": "Book metadata and book chapters."},
            {"name": "publishing", "description": "Publish and unpublish workflows."},
            {"name": "workspace", "description": "The current author's own works."},
            {"name": "tags", "description": "Tag catalogue."},
        ],
        swagger_ui_parameters={
            "displayRequestDuration": True,
            "defaultModelsExpandDepth": -1,
        },
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_problem_handlers(app, mapper)
    app.state.services = services

    logger.info(
        "api.start db_path=%s content_store=%s identity_admin=%s",
        effective_db_path,
        type(bodies).__name__,
        services.identity_admin is not None,
    )

    def current_claims(
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    ) -> OidcClaims:
        if credentials is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing bearer token",
                headers={"WWW-Authenticate": "Bearer"},
            )
        try:
            return validate_oidc_token(credentials.credentials)
        except (jwt.PyJWTError, httpx.HTTPError, RuntimeError, ValueError) as exc:
            logger.info("auth.token_rejected reason=%s", type(exc).__name__)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
                headers={"WWW-Authenticate": "Bearer"},
            ) from exc

    def current_author(claims: OidcClaims = Depends(current_claims)) -> OidcClaims:
        if not claims.has_role(services.author_role):
            raise DomainFailure(CommonErrors.Auth.INSUFFICIENT_PERMISSIONS)
        return claims

    @app.get("/healthz", response_model=HealthResponse, tags=["system"])
    def healthz() -> HealthResponse:
        return HealthResponse()

    @app.get("/api/v1", response_model=ApiRootResponse, tags=["api"])
    def api_v1_root() -> ApiRootResponse:
        return ApiRootResponse()

    # Authors

    @app.post("/api/v1/me/author", tags=["authors"], status_code=201, name="register_as_author")
    def register_as_author(
        request: Request,
        payload: RegisterAsAuthorRequest,
        claims: OidcClaims = Depends(current_claims),
        fields: FieldSelection = Depends(shaped_fields(AuthorAccountResponse)),
    ) -> JSONResponse:
        account = _unwrap(authors.register_as_author(services, claims))
        linker = LinkService(request)
        links = [
            linker.create("get_current_author", "self"),
            linker.create("update_current_author", "update", "PUT"),
        ]
        return _single(
            account,
            links,
            fields,
            status_code=status.HTTP_201_CREATED,
            location=str(request.url_for("get_author", author_id=account.id)),
        )

    @app.get("/api/v1/me/author", tags=["authors"], name="get_current_author")
    def get_current_author(
        request: Request,
        claims: OidcClaims = Depends(current_author),
        fields: FieldSelection = Depends(shaped_fields(CurrentAuthorProfileResponse)),
    ) -> JSONResponse:
        profile = _unwrap(authors.get_current_author_profile(services, claims))
        linker = LinkService(request)
        links = [
            linker.create("get_current_author", "self"),
            linker.create("update_current_author", "update", "PUT"),
            linker.create("list_my_stories", "stories"),
        ]
        return _single(profile, links, fields)

    @app.put("/api/v1/me/author", tags=["authors"], name="update_current_author")
    def update_current_author(
        request: Request,
        payload: UpdateAuthorProfileRequest,
        claims: OidcClaims = Depends(current_author),
        fields: FieldSelection = Depends(shaped_fields(AuthorAccountResponse)),
    ) -> JSONResponse:
        account = _unwrap(authors.update_own_profile(services, claims, payload))
        linker = LinkService(request)
        return _single(account, [linker.create("get_current_author", "self")], fields)

    @app.get("/api/v1/authors", tags=["authors"], name="list_authors")
    def list_authors(
        request: Request,
        query: ListingQuery = Depends(author_listing),
        fields: FieldSelection = Depends(shaped_fields(AuthorListItem)),
    ) -> JSONResponse:
        collection = _unwrap(
            authors.list_authors(services, page=query.page, search=query.search, sort=query.sort)
        )
        linker = LinkService(request)
        return _collection(
            linker,
            "list_authors",
            collection,
            query,
            fields,
            lambda item: _author_links(linker, item.id),
        )

    @app.get("/api/v1/authors/{author_id}", tags=["authors"], name="get_author")
    def get_author(
        request: Request,
        author_id: str,
        fields: FieldSelection = Depends(shaped_fields(AuthorDetailResponse)),
    ) -> JSONResponse:
        detail = _unwrap(authors.get_author(services, author_id))
        return _single(detail, _author_links(LinkService(request), detail.id), fields)

    # Stories

    @app.post("/api/v1/stories", tags=["stories"], status_code=201, name="create_story")
    def create_story(
        request: Request,
        payload: CreateStoryRequest,
        claims: OidcClaims = Depends(current_author),
        fields: FieldSelection = Depends(shaped_fields(StoryMetadataResponse)),
    ) -> JSONResponse:
        story = _unwrap(stories.create_story(services, claims, payload))
        linker = LinkService(request)
        return _single(
            story,
            _own_story_links(linker, story.id),
            fields,
            status_code=status.HTTP_201_CREATED,
            location=str(request.url_for("get_my_story_content", story_id=story.id)),
        )

    @app.get("/api/v1/stories/published", tags=["stories"], name="list_published_stories")
    def list_published_stories(
        request: Request,
        author_id: str | None = Query(default=None, max_length=64),
        query: ListingQuery = Depends(listing),
        fields: FieldSelection = Depends(shaped_fields(PublishedStoryListItem)),
    ) -> JSONResponse:
        collection = _unwrap(
            stories.list_published_stories(
                services,
                page=query.page,
                search=query.search,
                sort=query.sort,
                author_id=author_id,
            )
        )
        linker = LinkService(request)
        return _collection(
            linker,
            "list_published_stories",
            collection,
            query,
            fields,
            lambda item: _story_links(linker, item.story_id),
            author_id=author_id,
        )

    @app.get("/api/v1/stories/{story_id}", tags=["stories"], name="get_story")
    def get_story(
        request: Request,
        story_id: str,
        fields: FieldSelection = Depends(shaped_fields(PublishedStoryResponse)),
    ) -> JSONResponse:
        story = _unwrap(stories.get_published_story(services, story_id))
        return _single(story, _story_links(LinkService(request), story.id), fields)

    @app.put("/api/v1/stories/{story_id}", tags=["stories"], name="update_story")
    def update_story(
        request: Request,
        story_id: str,
        payload: UpdateStoryMetadataRequest,
        claims: OidcClaims = Depends(current_author),
        fields: FieldSelection = Depends(shaped_fields(StoryMetadataResponse)),
    ) -> JSONResponse:
        story = _unwrap(stories.update_story_metadata(services, story_id, claims, payload))
        return _single(story, _own_story_links(LinkService(request), story.id), fields)

    @app.delete("/api/v1/stories/{story_id}", tags=["stories"], status_code=204, name="delete_story")
    def delete_story(story_id: str, claims: OidcClaims = Depends(current_author)) -> Response:
        _unwrap(stories.delete_story(services, story_id, claims))
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/api/v1/stories/{story_id}/tags", tags=["stories"], name="add_story_tags")
    def add_story_tags(
        request: Request,
        story_id: str,
        payload: AddTagsRequest,
        claims: OidcClaims = Depends(current_author),
        fields: FieldSelection = Depends(shaped_fields(AddTagsResponse)),
    ) -> JSONResponse:
        added = _unwrap(stories.add_tags_to_story(services, story_id, claims, payload))
        return _single(added, _own_story_links(LinkService(request), story_id), fields)

    @app.post("/api/v1/stories/{story_id}/convert", tags=["stories"], name="convert_story_type")
    def convert_story_type(
        request: Request,
        story_id: str,
        payload: ConvertStoryTypeRequest,
        claims: OidcClaims = Depends(current_author),
        fields: FieldSelection = Depends(shaped_fields(ConvertStoryTypeResponse)),
    ) -> JSONResponse:
        converted = _unwrap(structure.convert_story_type(services, story_id, claims, payload))
        return _single(converted, _own_story_links(LinkService(request), story_id), fields)

    @app.post("/api/v1/stories/{story_id}/books", tags=["books"], status_code=201, name="create_book")
    def create_book(
        request: Request,
        story_id: str,
        payload: CreateBookRequest,
        claims: OidcClaims = Depends(current_author),
        fields: FieldSelection = Depends(shaped_fields(CreateBookResponse)),
    ) -> JSONResponse:
        book = _unwrap(structure.create_book(services, story_id, claims, payload))
        return _single(
            book,
            _book_links(LinkService(request), book.id),
            fields,
            status_code=status.HTTP_201_CREATED,
            location=str(request.url_for("get_my_book_content", book_id=book.id)),
        )

    # Content

    @app.get("/api/v1/stories/{story_id}/content", tags=["content"], name="get_story_content")
    def get_story_content(
        request: Request,
        story_id: str,
        fields: FieldSelection = Depends(shaped_fields(StoryContentResponse)),
    ) -> JSONResponse:
        content = _unwrap(story_content.get_published_story_content(services, story_id))
        linker = LinkService(request)
        links = [
            linker.create("get_story_content", "self", story_id=story_id),
            linker.create("get_story", "story", story_id=story_id),
        ]
        return _single(content, links, fields)

    @app.put("/api/v1/stories/{story_id}/content", tags=["content"], name="update_story_content")
    def update_story_content(
        request: Request,
        story_id: str,
        payload: UpdateStoryContentRequest,
        claims: OidcClaims = Depends(current_author),
        fields: FieldSelection = Depends(shaped_fields(UpdateStoryContentResponse)),
    ) -> JSONResponse:
        updated = _unwrap(story_content.update_story_content(services, story_id, claims, payload))
        return _single(updated, _own_story_links(LinkService(request), story_id), fields)

    @app.get("/api/v1/stories/{story_id}/chapters", tags=["chapters"], name="list_story_chapters")
    def list_story_chapters(
        request: Request,
        story_id: str,
        query: ListingQuery = Depends(listing),
        fields: FieldSelection = Depends(shaped_fields(PublishedChapterListItem)),
    ) -> JSONResponse:
        collection = _unwrap(
            story_content.list_published_story_chapters(
                services, story_id, page=query.page, sort=query.sort
            )
        )
        linker = LinkService(request)
        return _collection(
            linker,
            "list_story_chapters",
            collection,
            query,
            fields,
            lambda item: [linker.create("get_chapter_content", "content", chapter_id=item.chapter_id)],
            story_id=story_id,
        )

    @app.post(
        "/api/v1/stories/{story_id}/chapters",
        tags=["chapters"],
        status_code=201,
        name="add_story_chapter",
    )
    def add_story_chapter(
        request: Request,
        story_id: str,
        payload: CreateChapterRequest,
        claims: OidcClaims = Depends(current_author),
        fields: FieldSelection = Depends(shaped_fields(ChapterWithContentResponse)),
    ) -> JSONResponse:
        created = _unwrap(structure.add_chapter_to_story(services, story_id, claims, payload))
        return _single(
            created,
            _chapter_links(LinkService(request), created.chapter_id),
            fields,
            status_code=status.HTTP_201_CREATED,
            location=str(
                request.url_for("get_my_chapter_content", chapter_id=created.chapter_id)
            ),
        )

    @app.get("/api/v1/chapters/{chapter_id}/content", tags=["content"], name="get_chapter_content")
    def get_chapter_content(
        request: Request,
        chapter_id: str,
        fields: FieldSelection = Depends(shaped_fields(ChapterContentResponse)),
    ) -> JSONResponse:
        content = _unwrap(chapters.get_chapter_content(services, chapter_id))
        linker = LinkService(request)
        links = [
            linker.create("get_chapter_content", "self", chapter_id=chapter_id),
            linker.create("get_story", "story", story_id=content.story_id),
        ]
        return _single(content, links, fields)

    @app.put(
        "/api/v1/chapters/{chapter_id}/content", tags=["content"], name="update_chapter_content"
    )
    def update_chapter_content(
        request: Request,
        chapter_id: str,
        payload: UpdateChapterContentRequest,
        claims: OidcClaims = Depends(current_author),
        fields: FieldSelection = Depends(shaped_fields(UpdateChapterContentResponse)),
    ) -> JSONResponse:
        updated = _unwrap(chapters.update_chapter_content(services, chapter_id, claims, payload))
        return _single(updated, _chapter_links(LinkService(request), chapter_id), fields)

    # Chapters and books

    @app.put("/api/v1/chapters/{chapter_id}", tags=["chapters"], name="update_chapter")
    def update_chapter(
        request: Request,
        chapter_id: str,
        payload: UpdateChapterMetadataRequest,
        claims: OidcClaims = Depends(current_author),
        fields: FieldSelection = Depends(shaped_fields(UpdateChapterMetadataResponse)),
    ) -> JSONResponse:
        updated = _unwrap(chapters.update_chapter_metadata(services, chapter_id, claims, payload))
        return _single(updated, _chapter_links(LinkService(request), chapter_id), fields)

    @app.delete(
        "/api/v1/chapters/{chapter_id}", tags=["chapters"], status_code=204, name="delete_chapter"
    )
    def delete_chapter(
        chapter_id: str,
        background_tasks: BackgroundTasks,
        claims: OidcClaims = Depends(current_author),
    ) -> Response:
        _unwrap(chapters.delete_chapter(services, chapter_id, claims))
        background_tasks.add_task(services.reaper.reap)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.put("/api/v1/books/{book_id}", tags=["books"], name="update_book")
    def update_book(
        request: Request,
        book_id: str,
        payload: UpdateBookMetadataRequest,
        claims: OidcClaims = Depends(current_author),
        fields: FieldSelection = Depends(shaped_fields(UpdateBookMetadataResponse)),
    ) -> JSONResponse:
        updated = _unwrap(structure.update_book_metadata(services, book_id, claims, payload))
        return _single(updated, _book_links(LinkService(request), book_id), fields)

    @app.post(
        "/api/v1/books/{book_id}/chapters",
        tags=["books"],
        status_code=201,
        name="add_book_chapter",
    )
    def add_book_chapter(
        request: Request,
        book_id: str,
        payload: CreateChapterRequest,
        claims: OidcClaims = Depends(current_author),
        fields: FieldSelection = Depends(shaped_fields(ChapterWithContentResponse)),
    ) -> JSONResponse:
        created = _unwrap(structure.add_chapter_to_book(services, book_id, claims, payload))
        return _single(
            created,
            _chapter_links(LinkService(request), created.chapter_id),
            fields,
            status_code=status.HTTP_201_CREATED,
            location=str(
                request.url_for("get_my_chapter_content", chapter_id=created.chapter_id)
            ),
        )

    # Publishing

    @app.post("/api/v1/stories/{story_id}/publish", tags=["publishing"], name="publish_story")
    def publish_story(
        request: Request,
        story_id: str,
        claims: OidcClaims = Depends(current_author),
        fields: FieldSelection = Depends(shaped_fields(PublishStoryResponse)),
    ) -> JSONResponse:
        published = _unwrap(publishing.publish_story(services, story_id, claims))
        return _single(published, _story_links(LinkService(request), story_id), fields)

    @app.post("/api/v1/stories/{story_id}/unpublish", tags=["publishing"], name="unpublish_story")
    def unpublish_story(
        request: Request,
        story_id: str,
        claims: OidcClaims = Depends(current_author),
        fields: FieldSelection = Depends(shaped_fields(PublishStoryResponse)),
    ) -> JSONResponse:
        unpublished = _unwrap(publishing.unpublish_story(services, story_id, claims))
        return _single(unpublished, _own_story_links(LinkService(request), story_id), fields)

    @app.post("/api/v1/works/{work_id}/publish", tags=["publishing"], name="publish_work")
    def publish_work(
        request: Request,
        work_id: str,
        payload: PublishWorkRequest | None = None,
        claims: OidcClaims = Depends(current_author),
        fields: FieldSelection = Depends(shaped_fields(PublishWorkResponse)),
    ) -> JSONResponse:
        published = _unwrap(
            publishing.publish_work(services, work_id, claims, payload or PublishWorkRequest())
        )
        linker = LinkService(request)
        return _single(
            published, [linker.create("publish_work", "self", "POST", work_id=work_id)], fields
        )

    # Workspace

    @app.get("/api/v1/me/stories", tags=["workspace"], name="list_my_stories")
    def list_my_stories(
        request: Request,
        tags_filter: str | None = Query(default=None, alias="tags", max_length=200),
        is_published: bool | None = Query(default=None),
        is_owned: bool | None = Query(default=None),
        query: ListingQuery = Depends(listing),
        claims: OidcClaims = Depends(current_author),
        fields: FieldSelection = Depends(shaped_fields(AuthorStoryItem)),
    ) -> JSONResponse:
        filters = AuthorStoriesFilter(tags=tags_filter, is_published=is_published, is_owned=is_owned)
        collection = _unwrap(
            workspace.list_author_stories(
                services, claims, filters, page=query.page, search=query.search, sort=query.sort
            )
        )
        linker = LinkService(request)
        return _collection(
            linker,
            "list_my_stories",
            collection,
            query,
            fields,
            lambda item: _own_story_links(linker, item.id),
            tags=tags_filter,
            is_published=is_published,
            is_owned=is_owned,
        )

    @app.get(
        "/api/v1/me/stories/{story_id}/content", tags=["workspace"], name="get_my_story_content"
    )
    def get_my_story_content(
        request: Request,
        story_id: str,
        claims: OidcClaims = Depends(current_author),
        fields: FieldSelection = Depends(shaped_fields(OwnStoryContentResponse)),
    ) -> JSONResponse:
        content = _unwrap(workspace.get_author_story_content(services, story_id, claims))
        return _single(content, _own_story_links(LinkService(request), story_id), fields)

    @app.get(
        "/api/v1/me/chapters/{chapter_id}/content",
        tags=["workspace"],
        name="get_my_chapter_content",
    )
    def get_my_chapter_content(
        request: Request,
        chapter_id: str,
        claims: OidcClaims = Depends(current_author),
        fields: FieldSelection = Depends(shaped_fields(OwnChapterContentResponse)),
    ) -> JSONResponse:
        content = _unwrap(workspace.get_author_chapter_content(services, chapter_id, claims))
        linker = LinkService(request)
        links = [
            linker.create("get_my_chapter_content", "self", chapter_id=chapter_id),
            *_chapter_links(linker, chapter_id)[1:],
        ]
        return _single(content, links, fields)

    @app.get("/api/v1/me/books/{book_id}/content", tags=["workspace"], name="get_my_book_content")
    def get_my_book_content(
        request: Request,
        book_id: str,
        claims: OidcClaims = Depends(current_author),
        fields: FieldSelection = Depends(shaped_fields(OwnBookContentResponse)),
    ) -> JSONResponse:
        content = _unwrap(workspace.get_author_book_content(services, book_id, claims))
        return _single(content, _book_links(LinkService(request), book_id), fields)

    # Tags

    @app.get("/api/v1/tags", tags=["tags"], name="list_tags")
    def list_tags(
        request: Request,
        category: str | None = Query(default=None, max_length=50),
        query: ListingQuery = Depends(tag_listing),
        fields: FieldSelection = Depends(shaped_fields(TagListItem)),
    ) -> JSONResponse:
        collection = _unwrap(
            tags.list_tags(
                services,
                page=query.page,
                search=query.search,
                sort=query.sort,
                category=category,
            )
        )
        linker = LinkService(request)
        return _collection(
            linker, "list_tags", collection, query, fields, lambda _: [], category=category
        )

    return app


app = create_app()
