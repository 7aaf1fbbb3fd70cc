"""Field selection (`fields=`) over linked responses and collections."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from functools import cache
from typing import Any

from fastapi import Query
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel

from ihfiction.api.links import Linked, LinkedPagedCollection
from ihfiction.api.problems import DataShapingError

LINKS_FIELD = "links"


@cache
def shapeable_fields(model: type[BaseModel]) -> dict[str, str]:
    """Lower-cased name -> declared name for every field a client may select."""
    names = {name.lower(): name for name in model.model_fields}
    names[LINKS_FIELD] = LINKS_FIELD
    return names


@dataclass(frozen=True)
class FieldSelection:
    """Resolved `fields` parameter; `None` keeps every property."""

    names: frozenset[str] | None = None

    def keep(self, payload: dict[str, Any]) -> dict[str, Any]:
        if self.names is None:
            return payload
        return {key: value for key, value in payload.items() if key in self.names}


def resolve_fields(model: type[BaseModel], fields: str | None) -> FieldSelection:
    requested = [name.strip() for name in (fields or "").split(",") if name.strip()]
    if not requested:
        return FieldSelection()
    known = shapeable_fields(model)
    invalid = [name for name in requested if name.lower() not in known]
    if invalid:
        raise DataShapingError(invalid)
    return FieldSelection(frozenset({known[name.lower()] for name in requested} | {LINKS_FIELD}))


def shaped_fields(model: type[BaseModel]) -> Callable[[str | None], FieldSelection]:
    """Dependency that validates `fields` for `model` before the handler runs."""

    def dependency(
        fields: str | None = Query(default=None, max_length=500, alias="fields"),
    ) -> FieldSelection:
        return resolve_fields(model, fields)

    return dependency


def _plain(value: Any) -> Any:
    if isinstance(value, Linked):
        return _flatten(value)
    if isinstance(value, BaseModel):
        return {name: _plain(getattr(value, name)) for name in type(value).model_fields}
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return jsonable_encoder(value)


def _flatten(linked: Linked[Any]) -> dict[str, Any]:
    """Inner fields plus `links`; nested `Linked` values are flattened the same way."""
    payload = dict(_plain(linked.value))
    payload[LINKS_FIELD] = [link.model_dump(mode="json") for link in linked.links]
    return payload


def shape(linked: Linked[Any], selection: FieldSelection | None = None) -> dict[str, Any]:
    """Flatten a linked value into its fields plus `links`, then apply the selection."""
    return (selection or FieldSelection()).keep(_flatten(linked))


def shape_collection(
    collection: LinkedPagedCollection[Any], selection: FieldSelection | None = None
) -> dict[str, Any]:
    page = collection.page
    return {
        "items": [shape(item, selection) for item in page.items],
        "total_count": page.total_count,
        "current_page": page.current_page,
        "page_size": page.page_size,
        "total_pages": page.total_pages,
        "has_next_page": page.has_next_page,
        "has_previous_page": page.has_previous_page,
        LINKS_FIELD: [link.model_dump(mode="json") for link in collection.links],
    }
