"""Search endpoints.

Every handler reads the raw request and hands it to the query normalizer,
so input errors surface as one 400 listing every violated field rather
than FastAPI's default 422.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from fastapi import APIRouter, Header, Request

from catalog_search_common import FieldError, ValidationError
from catalog_search_contracts import FilterVocabulary, ResultPage, SuggestionResponse

from catalog_search_api import normalizer, schemas
from catalog_search_api.service import SearchService

router = APIRouter()


def get_service(request: Request) -> SearchService:
    return request.app.state.search_service


async def _json_body(request: Request) -> Any:
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except ValueError as e:
        raise ValidationError([FieldError(field="body", message="invalid JSON")]) from e


@router.get("/global", response_model=ResultPage, response_model_by_alias=True)
async def global_search(request: Request) -> ResultPage:
    """Search anime, manga, characters, users and novels.

    Query parameters: ``query`` (or ``q``), ``type``, ``page``, ``limit``,
    ``sortBy``, ``sortOrder`` and bracketed filters such as
    ``filters[genres]=Action,Drama`` or ``filters[rating][min]=7``.
    """
    search_request = normalizer.normalize_global(request.query_params.multi_items())
    return await get_service(request).global_search(search_request)


@router.post("/advanced", response_model=ResultPage, response_model_by_alias=True)
async def advanced_search(request: Request) -> ResultPage:
    """Cross-type search with title/description matching and facet aggregations."""
    search_request = normalizer.normalize_advanced(await _json_body(request))
    return await get_service(request).advanced_search(search_request)


@router.get(
    "/suggestions",
    response_model=SuggestionResponse,
    response_model_by_alias=True,
)
async def suggestions(request: Request) -> SuggestionResponse:
    """Typeahead suggestions for a title prefix."""
    params = normalizer.normalize_suggestions(request.query_params.multi_items())
    return await get_service(request).suggestions(params)


@router.get("/filters", response_model=FilterVocabulary, response_model_by_alias=True)
async def filters(request: Request) -> FilterVocabulary:
    """Genres, tags, year bounds, media formats and statuses for filter UIs."""
    content_type = normalizer.normalize_filters(request.query_params.multi_items())
    return await get_service(request).filters(content_type)


@router.get(
    "/trending",
    response_model=schemas.TrendingResponse,
    response_model_by_alias=True,
)
async def trending(request: Request) -> schemas.TrendingResponse:
    """Most popular anime and manga. ``period`` is echoed back."""
    params = normalizer.normalize_trending(request.query_params.multi_items())
    return await get_service(request).trending(params)


@router.post(
    "/index/{content_type}/{entity_id}",
    response_model=schemas.ReindexResponse,
)
async def reindex(
    content_type: str,
    entity_id: str,
    request: Request,
    x_user_role: Optional[str] = Header(None),
) -> schemas.ReindexResponse:
    """Rebuild one entity's index document from the catalog (admin only)."""
    service = get_service(request)
    service.require_admin(x_user_role)
    resolved_type, resolved_id = normalizer.normalize_reindex(content_type, entity_id)
    return await service.reindex(x_user_role, resolved_type, resolved_id)


@router.post(
    "/index/{content_type}",
    response_model=schemas.BulkReindexResponse,
    response_model_by_alias=True,
)
async def rebuild_index(
    content_type: str,
    request: Request,
    x_user_role: Optional[str] = Header(None),
) -> schemas.BulkReindexResponse:
    """Re-index every catalog row of one type, or of all types (admin only)."""
    service = get_service(request)
    service.require_admin(x_user_role, action="bulk_reindex")
    content_types = normalizer.normalize_bulk_reindex(content_type)
    return await service.rebuild_index(x_user_role, content_types)
