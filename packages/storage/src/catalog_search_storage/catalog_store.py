"""CatalogStore - relational reads over catalog entities.

Provides:
- Fallback search (per-type page + count queries, run concurrently)
- Prefix suggestions
- Entity fetch for re-indexing (one id, or every row in id-ordered batches)
- Trending ranking

Rows are returned as plain dicts tagged with their content type; the API
layer maps them to SearchResult / SuggestionItem.
"""

import asyncio
import math
from dataclasses import dataclass
from typing import Any, AsyncIterator

import asyncpg
from catalog_search_common import EntityNotFoundError, StorageError, get_logger
from catalog_search_contracts import ContentType, SearchRequest

from catalog_search_storage.connection import get_connection_pool
from catalog_search_storage.fallback import (
    ENTITY_SPECS,
    CompiledQuery,
    compile_document,
    compile_document_batch,
    compile_trending,
    plan_search,
    plan_suggestions,
)

logger = get_logger(__name__)

TRENDING_TYPES = (ContentType.ANIME, ContentType.MANGA)


@dataclass
class EntityRow:
    content_type: ContentType
    row: dict[str, Any]


@dataclass
class FallbackPage:
    rows: list[EntityRow]
    total: int
    approximate: bool


async def _fetch_page(pool: asyncpg.Pool, query: CompiledQuery) -> tuple[list[dict], int]:
    # One snapshot, so the count always covers the page it is reported with
    async with pool.acquire() as conn:
        async with conn.transaction(isolation="repeatable_read", readonly=True):
            rows = await conn.fetch(query.sql, *query.params)
            total = await conn.fetchval(query.count_sql, *query.count_params)
    return [dict(row) for row in rows], int(total or 0)


async def _fetch_rows(pool: asyncpg.Pool, query: CompiledQuery) -> list[dict]:
    async with pool.acquire() as conn:
        rows = await conn.fetch(query.sql, *query.params)
    return [dict(row) for row in rows]


class CatalogStore:
    """Read operations for catalog entities.

    All operations use the global connection pool.
    """

    @staticmethod
    async def search(request: SearchRequest, advanced: bool = False) -> FallbackPage:
        """Search the relational catalog.

        Args:
            request: Canonical request
            advanced: Span every type and match text against titles only

        Returns:
            FallbackPage with at most ``request.limit`` rows

        Raises:
            StorageError: If a query fails
        """
        plan = plan_search(request, advanced=advanced)
        if plan.excluded:
            logger.debug(
                "fallback_types_excluded",
                types=[t.value for t in plan.excluded],
                reason="unsupported_filter",
            )
        if not plan.queries:
            return FallbackPage(rows=[], total=0, approximate=plan.approximate)

        pool = await get_connection_pool()
        try:
            parts = await asyncio.gather(*(_fetch_page(pool, q) for q in plan.queries))
        except Exception as e:
            logger.error("fallback_search_failed", error=str(e))
            raise StorageError(f"Fallback search failed: {e}") from e

        rows: list[EntityRow] = []
        total = 0
        for query, (page_rows, count) in zip(plan.queries, parts):
            rows.extend(EntityRow(query.content_type, row) for row in page_rows)
            total += count

        return FallbackPage(rows=rows[: request.limit], total=total, approximate=plan.approximate)

    @staticmethod
    async def suggest(
        prefix: str, content_types: tuple[ContentType, ...], limit: int
    ) -> list[EntityRow]:
        """Prefix matches per type, concatenated in type order, capped at limit."""
        queries = plan_suggestions(prefix, content_types, limit)
        if not queries:
            return []

        pool = await get_connection_pool()
        try:
            parts = await asyncio.gather(*(_fetch_rows(pool, q) for q in queries))
        except Exception as e:
            logger.error("fallback_suggest_failed", error=str(e))
            raise StorageError(f"Fallback suggestions failed: {e}") from e

        rows = [
            EntityRow(query.content_type, row)
            for query, part in zip(queries, parts)
            for row in part
        ]
        return rows[:limit]

    @staticmethod
    async def get_document(content_type: ContentType, entity_id: str) -> dict[str, Any]:
        """Fetch one entity with genre and tag names, keyed for the index.

        Raises:
            EntityNotFoundError: Unknown id (or a non-numeric one)
            StorageError: If the query fails
        """
        spec = ENTITY_SPECS[content_type]
        try:
            numeric_id = int(entity_id)
        except ValueError:
            raise EntityNotFoundError(content_type.value, entity_id) from None

        pool = await get_connection_pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(compile_document(spec), numeric_id)
        except Exception as e:
            logger.error(
                "entity_fetch_failed",
                content_type=content_type.value,
                id=entity_id,
                error=str(e),
            )
            raise StorageError(f"Failed to fetch {content_type.value} {entity_id}: {e}") from e

        if row is None:
            raise EntityNotFoundError(content_type.value, entity_id)
        return dict(row)

    @staticmethod
    async def trending(limit: int) -> list[EntityRow]:
        """Anime and manga ranked by trending, then popularity, then id."""
        per_type = math.ceil(limit / len(TRENDING_TYPES))
        queries = [compile_trending(ENTITY_SPECS[t], per_type) for t in TRENDING_TYPES]

        pool = await get_connection_pool()
        try:
            parts = await asyncio.gather(*(_fetch_rows(pool, q) for q in queries))
        except Exception as e:
            logger.error("trending_fetch_failed", error=str(e))
            raise StorageError(f"Failed to fetch trending content: {e}") from e

        rows = [
            EntityRow(query.content_type, row)
            for query, part in zip(queries, parts)
            for row in part
        ]
        return rows[:limit]

    @staticmethod
    async def iter_documents(
        content_type: ContentType, batch_size: int = 500
    ) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield every entity of a type as index-keyed dicts, ``batch_size`` at a time.

        Batches are keyset-paged on id, so rows inserted behind the cursor
        are skipped rather than shifting later pages.

        Raises:
            StorageError: If a batch query fails
        """
        spec = ENTITY_SPECS[content_type]
        sql = compile_document_batch(spec)
        pool = await get_connection_pool()
        last_id = 0

        while True:
            try:
                async with pool.acquire() as conn:
                    rows = await conn.fetch(sql, last_id, batch_size)
            except Exception as e:
                logger.error(
                    "document_batch_failed",
                    content_type=content_type.value,
                    after_id=last_id,
                    error=str(e),
                )
                raise StorageError(f"Failed to read {content_type.value} documents: {e}") from e

            if not rows:
                return
            batch = [dict(row) for row in rows]
            yield batch
            if len(batch) < batch_size:
                return
            last_id = batch[-1]["id"]
