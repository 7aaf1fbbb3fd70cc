"""Hypermedia links and the linked envelopes returned by the API."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from fastapi import Request
from starlette.routing import Route

from ihfiction.api.contracts import Link
from ihfiction.application.querying import PagedCollection

T = TypeVar("T")


@dataclass(frozen=True)
class Linked(Generic[T]):
    value: T
    links: list[Link] = field(default_factory=list)


@dataclass(frozen=True)
class LinkedPagedCollection(Generic[T]):
    page: PagedCollection[Linked[T]]
    links: list[Link] = field(default_factory=list)


class LinkService:
    """Build absolute links to named routes for the current request."""

    def __init__(self, request: Request) -> None:
        self._request = request

    def _path_param_names(self, route_name: str) -> set[str]:
        for route in self._request.app.router.routes:
            if isinstance(route, Route) and route.name == route_name:
                return set(route.param_convertors)
        return set()

    def create(self, route_name: str, rel: str, method: str = "GET", **params: Any) -> Link:
        """Link to `route_name`; values that are not path parameters become the query string."""
        path_names = self._path_param_names(route_name)
        path_params = {name: str(value) for name, value in params.items() if name in path_names}
        query = {
            name: value
            for name, value in params.items()
            if name not in path_names and value is not None and value != ""
        }
        url = self._request.url_for(route_name, **path_params)
        if query:
            url = url.include_query_params(**query)
        return Link(href=str(url), rel=rel, method=method)

    def collection_links(
        self,
        route_name: str,
        collection: PagedCollection[Any],
        *,
        search: str | None = None,
        sort: str | None = None,
        **params: Any,
    ) -> list[Link]:
        """`self`, plus `next-page` and `previous-page` when those pages exist."""
        carried = {"page_size": collection.page_size, "search": search, "sort": sort, **params}
        page = collection.current_page
        links = [self.create(route_name, "self", page=page, **carried)]
        if collection.page_size * page < collection.total_count:
            links.append(self.create(route_name, "next-page", page=page + 1, **carried))
        if page > 1:
            links.append(self.create(route_name, "previous-page", page=page - 1, **carried))
        return links

    def linked_collection(
        self,
        route_name: str,
        collection: PagedCollection[T],
        item_links: Any,
        *,
        search: str | None = None,
        sort: str | None = None,
        **params: Any,
    ) -> LinkedPagedCollection[T]:
        """Wrap every item with `item_links(item)` and attach the paging links."""
        return LinkedPagedCollection(
            page=collection.map(lambda item: Linked(item, item_links(item))),
            links=self.collection_links(route_name, collection, search=search, sort=sort, **params),
        )
