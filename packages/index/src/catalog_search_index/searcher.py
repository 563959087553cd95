"""Index-path search: single index, multi-index fan-out, advanced, suggest.

Also owns the write side: index bootstrap (create missing indices with
their mappings) and single or bulk document upserts.

Returns raw hits tagged with their content type; mapping to SearchResult
happens in the API's result normalizer.

Fan-out (type=all):
    one sub-search per concrete index, size ceil(limit / n) each,
    offset (page - 1) * size, identical filters and sort. Hits are merged,
    re-sorted by score (stable) only for relevance sort, truncated to limit.
    Any sub-search failure or timeout cancels the rest and propagates.
"""

import asyncio
import math
from dataclasses import dataclass, field
from typing import Any, Awaitable, Optional, TypeVar

from catalog_search_common import IndexQueryError, get_logger
from catalog_search_contracts import CONCRETE_TYPES, ContentType, SearchRequest, SortField

from catalog_search_index.client import IndexBackend
from catalog_search_index.mappings import index_definition
from catalog_search_index.query_builder import (
    SUGGEST_NAME,
    build_index_document,
    build_search_body,
    build_suggest_body,
    content_type_from_index,
    index_name,
    index_pattern,
)

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class IndexHit:
    """One hit (or suggester option) and the content type it came from."""

    content_type: ContentType
    hit: dict[str, Any]

    @property
    def score(self) -> float:
        return float(self.hit.get("_score") or 0.0)


@dataclass
class IndexHits:
    hits: list[IndexHit]
    total: int
    approximate: bool = False
    aggregations: Optional[dict[str, Any]] = None


@dataclass
class BulkResult:
    indexed: int = 0
    failed: int = 0


@dataclass
class _Parsed:
    hits: list[IndexHit] = field(default_factory=list)
    total: int = 0


def hits_total(response: dict[str, Any]) -> int:
    """``hits.total`` as an int (object form ``{"value": n}`` or legacy int)."""
    total = response.get("hits", {}).get("total", 0)
    if isinstance(total, dict):
        return int(total.get("value", 0))
    return int(total or 0)


async def gather_or_cancel(*aws: Awaitable[T]) -> list[T]:
    """Run concurrently; on the first failure cancel the rest and re-raise."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class IndexSearcher:
    """Runs catalog searches against the index backend.

    Args:
        backend: Any object implementing IndexBackend
        prefix: Index name prefix (``{prefix}_{type}``)
        subsearch_timeout_seconds: Bound on each fan-out/suggest sub-call
    """

    def __init__(
        self,
        backend: IndexBackend,
        prefix: str = "catalog",
        subsearch_timeout_seconds: float = 5.0,
    ) -> None:
        self.backend = backend
        self.prefix = prefix
        self.subsearch_timeout_seconds = subsearch_timeout_seconds

    def _parse(self, response: dict[str, Any], default_type: Optional[ContentType]) -> _Parsed:
        parsed = _Parsed(total=hits_total(response))
        for hit in response.get("hits", {}).get("hits", []):
            content_type = content_type_from_index(self.prefix, hit.get("_index", "")) or default_type
            if content_type is None:
                logger.warning("index_hit_unknown_type", index=hit.get("_index"), id=hit.get("_id"))
                continue
            parsed.hits.append(IndexHit(content_type=content_type, hit=hit))
        return parsed

    async def _bounded(self, index: str, clause: str, aw: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(aw, timeout=self.subsearch_timeout_seconds)
        except asyncio.TimeoutError as e:
            raise IndexQueryError(
                f"Sub-search timed out after {self.subsearch_timeout_seconds}s",
                index=index,
                clause=clause,
            ) from e

    async def search(self, request: SearchRequest) -> IndexHits:
        """Global search; fans out across every index for type=all."""
        if request.type is ContentType.ALL:
            return await self.fan_out(request)

        index = index_name(self.prefix, request.type)
        response = await self.backend.search(index, build_search_body(request))
        parsed = self._parse(response, default_type=request.type)
        return IndexHits(hits=parsed.hits, total=parsed.total)

    async def fan_out(self, request: SearchRequest) -> IndexHits:
        size = math.ceil(request.limit / len(CONCRETE_TYPES))
        body = build_search_body(request, from_=(request.page - 1) * size, size=size)

        async def sub_search(content_type: ContentType) -> _Parsed:
            index = index_name(self.prefix, content_type)
            response = await self._bounded(index, "fanout", self.backend.search(index, body))
            return self._parse(response, default_type=content_type)

        parts = await gather_or_cancel(*(sub_search(ct) for ct in CONCRETE_TYPES))

        merged = [hit for part in parts for hit in part.hits]
        if request.sort.field is SortField.RELEVANCE:
            merged.sort(key=lambda h: h.score, reverse=True)

        total = sum(part.total for part in parts)
        logger.debug("index_fanout_merged", indices=len(parts), hits=len(merged), total=total)
        return IndexHits(hits=merged[: request.limit], total=total, approximate=True)

    async def advanced(self, request: SearchRequest) -> IndexHits:
        """One search over every index with aggregations."""
        index = index_pattern(self.prefix)
        response = await self.backend.search(index, build_search_body(request, advanced=True))
        parsed = self._parse(response, default_type=None)
        return IndexHits(
            hits=parsed.hits,
            total=parsed.total,
            aggregations=response.get("aggregations") or {},
        )

    async def suggest(
        self, query: str, content_types: tuple[ContentType, ...], limit: int
    ) -> list[IndexHit]:
        """Completion suggestions per index, merged by suggester score."""
        body = build_suggest_body(query, limit)

        async def per_type(content_type: ContentType) -> list[IndexHit]:
            index = index_name(self.prefix, content_type)
            response = await self._bounded(index, "suggest", self.backend.suggest(index, body))
            options: list[IndexHit] = []
            for entry in response.get("suggest", {}).get(SUGGEST_NAME, []):
                for option in entry.get("options", []):
                    options.append(IndexHit(content_type=content_type, hit=option))
            return options

        parts = await gather_or_cancel(*(per_type(ct) for ct in content_types))
        merged = [option for part in parts for option in part]
        merged.sort(key=lambda h: h.score, reverse=True)
        return merged[:limit]

    async def index_entity(
        self, content_type: ContentType, entity_id: str, entity: dict[str, Any]
    ) -> dict[str, Any]:
        index = index_name(self.prefix, content_type)
        document = build_index_document(entity)
        response = await self.backend.index_document(index, entity_id, document)
        logger.info(
            "index_document_written",
            index=index,
            id=entity_id,
            result=response.get("result"),
        )
        return response

    async def ensure_indices(
        self, content_types: tuple[ContentType, ...] = CONCRETE_TYPES
    ) -> list[str]:
        """Create each missing index with its settings and mappings.

        Existing indices are left untouched, so this is safe to run on every
        start. Returns the names of the indices this call created.
        """
        created: list[str] = []
        for content_type in content_types:
            index = index_name(self.prefix, content_type)
            if await self.backend.index_exists(index):
                continue
            if await self.backend.create_index(index, index_definition(content_type)):
                created.append(index)
        logger.info("index_bootstrap_checked", indices=len(content_types), created=created)
        return created

    async def bulk_index(
        self, content_type: ContentType, entities: list[dict[str, Any]]
    ) -> BulkResult:
        """Upsert a batch of catalog entities; item-level rejections are counted."""
        if not entities:
            return BulkResult()

        index = index_name(self.prefix, content_type)
        documents = [(str(entity["id"]), build_index_document(entity)) for entity in entities]
        response = await self.backend.bulk_index(index, documents)

        errors = [
            item["index"]["error"]
            for item in response.get("items", [])
            if item.get("index", {}).get("error")
        ]
        if errors:
            logger.warning(
                "bulk_index_rejected_items",
                index=index,
                rejected=len(errors),
                first_error=errors[0],
            )
        return BulkResult(indexed=len(documents) - len(errors), failed=len(errors))
