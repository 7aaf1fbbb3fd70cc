"""Pagination, sorting, and search helpers for in-memory listings."""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from ihfiction.adapters.settings import int_env
from ihfiction.application.sanitization import sanitize_search_query

T = TypeVar("T")


@dataclass(frozen=True)
class PaginationOptions:
    default_page: int = 1
    default_page_size: int = 20
    max_page_size: int = 100

    @classmethod
    def from_env(cls) -> PaginationOptions:
        max_page_size = int_env("IHFICTION_PAGE_SIZE_MAX", 100, minimum=1, maximum=1000)
        return cls(
            default_page_size=int_env(
                "IHFICTION_PAGE_SIZE_DEFAULT", 20, minimum=1, maximum=max_page_size
            ),
            max_page_size=max_page_size,
        )

    def override(
        self, *, default_page_size: int | None = None, max_page_size: int | None = None
    ) -> PaginationOptions:
        return PaginationOptions(
            default_page=self.default_page,
            default_page_size=default_page_size or self.default_page_size,
            max_page_size=max_page_size or self.max_page_size,
        )


@dataclass(frozen=True)
class PageRequest:
    page: int
    page_size: int


def create_page_request(
    page: int | None, page_size: int | None, options: PaginationOptions
) -> PageRequest:
    """Clamp raw query values into a usable page request."""
    resolved_page = max(1, page if page is not None else options.default_page)
    resolved_size = page_size if page_size is not None else options.default_page_size
    return PageRequest(page=resolved_page, page_size=max(1, min(options.max_page_size, resolved_size)))


@dataclass(frozen=True)
class PagedCollection(Generic[T]):
    items: list[T]
    total_count: int
    current_page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size) if self.page_size else 0

    @property
    def has_next_page(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_previous_page(self) -> bool:
        return self.current_page > 1

    def map(self, convert: Callable[[T], Any]) -> PagedCollection[Any]:
        return PagedCollection(
            items=[convert(item) for item in self.items],
            total_count=self.total_count,
            current_page=self.current_page,
            page_size=self.page_size,
        )


def paginate(items: Sequence[T], request: PageRequest) -> PagedCollection[T]:
    """Slice one page; out-of-range pages snap to the last reachable page."""
    total = len(items)
    page = max(1, min(request.page, total // request.page_size + 1))
    start = (page - 1) * request.page_size
    return PagedCollection(
        items=list(items[start : start + request.page_size]),
        total_count=total,
        current_page=page,
        page_size=request.page_size,
    )


@dataclass(frozen=True)
class SortMapping:
    """Public sort field bound to an attribute of the listed item."""

    sort_field: str
    property_name: str
    reverse: bool = False


class SortValidationError(ValueError):
    """Raised when a sort expression names an unknown field."""

    message = "Sort field is invalid."

    def __init__(self, fields: Sequence[str]) -> None:
        super().__init__(self.message)
        self.fields = tuple(fields)


def _sort_terms(sort: str | None) -> list[tuple[str, bool]]:
    terms: list[tuple[str, bool]] = []
    for part in (sort or "").split(","):
        tokens = part.strip().split()
        if not tokens:
            continue
        descending = len(tokens) > 1 and tokens[1].lower() == "desc"
        terms.append((tokens[0], descending))
    return terms


def invalid_sort_fields(mappings: Sequence[SortMapping], sort: str | None) -> list[str]:
    known = {mapping.sort_field.lower() for mapping in mappings}
    return [field for field, _ in _sort_terms(sort) if field.lower() not in known]


def ensure_valid_sort(mappings: Sequence[SortMapping], sort: str | None) -> None:
    invalid = invalid_sort_fields(mappings, sort)
    if invalid:
        raise SortValidationError(invalid)


def _value_of(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def _sort_key(name: str) -> Callable[[Any], tuple[bool, Any]]:
    def key(item: Any) -> tuple[bool, Any]:
        value = _value_of(item, name)
        if isinstance(value, str):
            value = value.casefold()
        return (value is not None, value if value is not None else 0)

    return key


def apply_sort(
    items: Iterable[T],
    mappings: Sequence[SortMapping],
    sort: str | None,
    *,
    default: str,
) -> list[T]:
    """Order items by `field [asc|desc], ...`, falling back to `default` when empty."""
    ensure_valid_sort(mappings, sort)
    terms = _sort_terms(sort) or _sort_terms(default)
    by_field = {mapping.sort_field.lower(): mapping for mapping in mappings}
    ordered = list(items)
    # Stable sorts applied from the least significant term.
    for field, descending in reversed(terms):
        mapping = by_field[field.lower()]
        ordered.sort(key=_sort_key(mapping.property_name), reverse=descending != mapping.reverse)
    return ordered


def search_contains(
    items: Iterable[T], query: str | None, *selectors: Callable[[T], str | None]
) -> list[T]:
    """Keep items where any selector contains the query, ignoring case."""
    term = sanitize_search_query(query).casefold()
    if not term or not selectors:
        return list(items)
    return [
        item
        for item in items
        if any(
            (value := selector(item)) is not None and term in value.casefold()
            for selector in selectors
        )
    ]
