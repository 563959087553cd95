"""Query normalizer: raw transport input -> canonical requests.

Pure functions. Input models in ``schemas`` carry the boundary rules; any
pydantic failure is re-raised as one ValidationError listing every
violated field by its dotted transport name (``filters.rating.min``).
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from catalog_search_common import FieldError, ValidationError
from catalog_search_contracts import (
    CONCRETE_TYPES,
    ContentType,
    FilterSet,
    IntRange,
    RatingRange,
    SearchRequest,
    SortSpec,
    YearRange,
)

from catalog_search_api import schemas

M = TypeVar("M", bound=BaseModel)

QueryItems = Iterable[tuple[str, str]]

_FILTER_KEY = re.compile(r"^filters\[(\w+)\](?:\[(\w+)\])?$")
_LIST_FILTERS = frozenset({"genres", "tags"})
_VALUE_ERROR_PREFIX = "Value error, "


def field_errors(exc: PydanticValidationError) -> list[FieldError]:
    errors = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "body"
        message = error["msg"]
        if message.startswith(_VALUE_ERROR_PREFIX):
            message = message[len(_VALUE_ERROR_PREFIX):]
        errors.append(FieldError(field=field, message=message))
    return errors


def validate_input(model: Type[M], data: Any) -> M:
    """Validate raw input, converting pydantic errors to ValidationError."""
    if not isinstance(data, Mapping):
        raise ValidationError([FieldError(field="body", message="must be a JSON object")])
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(field_errors(e)) from e


def parse_query_items(items: QueryItems) -> dict[str, Any]:
    """Fold query-string pairs into a nested dict.

    ``q`` is an alias of ``query``. ``filters[genres]`` / ``filters[tags]``
    may repeat and may hold comma-separated values; ``filters[rating][min]``
    nests one level.
    """
    raw: dict[str, Any] = {}
    filters: dict[str, Any] = {}

    for key, value in items:
        match = _FILTER_KEY.match(key)
        if match:
            name, sub = match.groups()
            if name in _LIST_FILTERS and sub is None:
                terms = filters.setdefault(name, [])
                terms.extend(part for part in value.split(",") if part.strip())
            elif sub is not None:
                nested = filters.get(name)
                if not isinstance(nested, dict):
                    nested = filters[name] = {}
                nested[sub] = value
            else:
                filters[name] = value
        elif key in ("query", "q"):
            raw.setdefault("query", value)
        else:
            raw[key] = value

    if filters:
        raw["filters"] = filters
    return raw


def _rating(params: schemas.RatingParams | None) -> RatingRange | None:
    if params is None or (params.min is None and params.max is None):
        return None
    return RatingRange(min=params.min, max=params.max)


def _count(params: schemas.CountParams | None) -> IntRange | None:
    if params is None or (params.min is None and params.max is None):
        return None
    return IntRange(min=params.min, max=params.max)


def normalize_global(items: QueryItems) -> SearchRequest:
    """Global search query string -> SearchRequest (text required)."""
    params = validate_input(schemas.GlobalSearchParams, parse_query_items(items))
    filters = params.filters
    return SearchRequest(
        text=params.query,
        type=params.type,
        filters=FilterSet(
            genres=filters.genres,
            tags=filters.tags,
            year=filters.year,
            status=filters.status or None,
            rating_range=_rating(filters.rating),
            adult=filters.adult,
        ),
        sort=SortSpec(field=params.sort_by, order=params.sort_order),
        page=params.page,
        limit=params.limit,
    )


def normalize_advanced(body: Any) -> SearchRequest:
    """Advanced search JSON body -> SearchRequest.

    Text is optional so filter-only browsing works. Always spans every
    content type; the body's ``type`` filters on media format.
    """
    params = validate_input(schemas.AdvancedSearchBody, {} if body is None else body)
    year_range = None
    if params.year is not None and (params.year.from_ is not None or params.year.to is not None):
        year_range = YearRange(from_=params.year.from_, to=params.year.to)

    return SearchRequest(
        text=params.title or None,
        description=params.description or None,
        type=ContentType.ALL,
        filters=FilterSet(
            genres=params.genres,
            tags=params.tags,
            year_range=year_range,
            status=params.status or None,
            rating_range=_rating(params.rating),
            adult=params.adult,
            media_format=params.type or None,
            episodes=_count(params.episodes),
            duration=_count(params.duration),
        ),
        sort=SortSpec(field=params.sort_by, order=params.sort_order),
        page=params.page,
        limit=params.limit,
    )


def normalize_suggestions(items: QueryItems) -> schemas.SuggestionParams:
    return validate_input(schemas.SuggestionParams, parse_query_items(items))


def normalize_filters(items: QueryItems) -> ContentType:
    return validate_input(schemas.FiltersParams, parse_query_items(items)).type


def normalize_trending(items: QueryItems) -> schemas.TrendingParams:
    return validate_input(schemas.TrendingParams, parse_query_items(items))


def normalize_reindex(content_type: str, entity_id: str) -> tuple[ContentType, str]:
    """Validate the re-index path; only concrete types have an index."""
    path = validate_input(schemas.ReindexPath, {"type": content_type, "id": entity_id})
    return ContentType(path.type), path.id


def normalize_bulk_reindex(content_type: str) -> tuple[ContentType, ...]:
    """Validate a full-rebuild path; ``all`` expands to every concrete type."""
    path = validate_input(schemas.BulkReindexPath, {"type": content_type})
    resolved = ContentType(path.type)
    return CONCRETE_TYPES if resolved is ContentType.ALL else (resolved,)
