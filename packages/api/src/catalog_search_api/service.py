"""Search service: routes each call to the index or the relational fallback.

Per call:
    probe -> index attempt -> done
                           -> index failed -> fallback attempt -> done
          -> fallback attempt -> done
A response always records the path that produced it (``search_method``).
When the fallback fails too the caller gets SearchUnavailableError.

Advanced search is the exception: an index query error is surfaced as 503
unless ``advanced_search_fallback_on_error`` is set, because the relational
path cannot reproduce its aggregations.
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional

from catalog_search_common import (
    AuthorizationError,
    IndexBackendError,
    IndexUnavailableError,
    SearchUnavailableError,
    Settings,
    StorageError,
    get_logger,
    instrument_function,
)
from catalog_search_contracts import (
    ContentType,
    FilterVocabulary,
    ResultPage,
    SearchMethod,
    SearchRequest,
    SuggestionResponse,
)
from catalog_search_index import AvailabilityProber, IndexBackend, IndexSearcher, index_name
from catalog_search_storage import CatalogStore, VocabularyStore

from catalog_search_api import metrics, schemas
from catalog_search_api.results import (
    result_from_hit,
    result_from_row,
    suggestion_from_option,
    suggestion_from_row,
)

logger = get_logger(__name__)

ADMIN_ROLES = frozenset({"admin", "super_admin"})

# Types with a completion suggester in the index; users only have a prefix match
SUGGESTER_TYPES: tuple[ContentType, ...] = (
    ContentType.ANIME,
    ContentType.MANGA,
    ContentType.CHARACTERS,
    ContentType.NOVELS,
)

MEDIA_FORMATS: dict[str, list[str]] = {
    "anime": ["TV", "MOVIE", "OVA", "ONA", "SPECIAL", "MUSIC"],
    "manga": ["MANGA", "MANHWA", "MANHUA", "NOVEL", "ONE_SHOT", "DOUJINSHI"],
    "novels": ["LIGHT_NOVEL", "WEB_NOVEL"],
}

STATUSES: dict[str, list[str]] = {
    "anime": ["FINISHED", "RELEASING", "NOT_YET_RELEASED", "CANCELLED"],
    "manga": ["FINISHED", "RELEASING", "NOT_YET_RELEASED", "CANCELLED", "HIATUS"],
    "novels": ["FINISHED", "RELEASING", "NOT_YET_RELEASED", "CANCELLED", "HIATUS"],
}


def _for_type(table: dict[str, list[str]], content_type: ContentType) -> dict[str, list[str]]:
    if content_type is ContentType.ALL:
        return {key: list(values) for key, values in table.items()}
    values = table.get(content_type.value)
    return {content_type.value: list(values)} if values else {}


class SearchService:
    """Hybrid search over the index and the relational catalog.

    Args:
        index: Index backend (any object with ping/search/suggest/index_document)
        settings: Application settings
        prober: Optional prober; built from ``index`` when omitted
    """

    def __init__(
        self,
        index: IndexBackend,
        settings: Settings,
        prober: Optional[AvailabilityProber] = None,
    ) -> None:
        self.index = index
        self.searcher = IndexSearcher(
            index,
            prefix=settings.index_prefix,
            subsearch_timeout_seconds=settings.index_subsearch_timeout_seconds,
        )
        self.prober = prober or AvailabilityProber(index, ttl_seconds=settings.index_probe_ttl_seconds)
        self.advanced_fallback_on_error = settings.advanced_search_fallback_on_error

    # -------------------------------------------------------------------------
    # Routing helpers
    # -------------------------------------------------------------------------

    def _index_failed(self, endpoint: str, error: Exception) -> None:
        index = getattr(error, "index", None)
        clause = getattr(error, "clause", None)
        logger.warning(
            "index_search_failed",
            endpoint=endpoint,
            index=index,
            clause=clause,
            error=str(error),
            error_type=type(error).__name__,
        )
        metrics.track_index_failure(index, clause or endpoint)
        self.prober.invalidate()

    def _falling_back(self, endpoint: str, reason: str) -> None:
        logger.info("search_fallback", endpoint=endpoint, reason=reason)
        metrics.track_fallback(endpoint, reason)

    def _completed(self, endpoint: str, method: SearchMethod, count: int, start: float) -> None:
        duration = time.perf_counter() - start
        logger.info(
            "search_completed",
            endpoint=endpoint,
            search_method=method.value,
            results=count,
            duration_ms=round(duration * 1000, 2),
        )
        metrics.track_search(endpoint, method.value, count, duration)

    async def _fallback_page(
        self, endpoint: str, request: SearchRequest, advanced: bool, start: float
    ) -> ResultPage:
        try:
            fallback = await CatalogStore.search(request, advanced=advanced)
        except StorageError as e:
            logger.error("fallback_search_failed", endpoint=endpoint, error=str(e))
            raise SearchUnavailableError("Search is temporarily unavailable") from e

        page = ResultPage.build(
            results=[result_from_row(row) for row in fallback.rows],
            total=fallback.total,
            page=request.page,
            limit=request.limit,
            search_method=SearchMethod.FALLBACK,
            approximate=fallback.approximate,
        )
        self._completed(endpoint, SearchMethod.FALLBACK, len(page.results), start)
        return page

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    @instrument_function("search.global")
    async def global_search(self, request: SearchRequest) -> ResultPage:
        """Search one content type, or every type via index fan-out."""
        start = time.perf_counter()

        if not await self.prober.is_available():
            self._falling_back("global", "unavailable")
            return await self._fallback_page("global", request, advanced=False, start=start)

        try:
            hits = await self.searcher.search(request)
        except Exception as e:
            self._index_failed("global", e)
            self._falling_back("global", "index_error")
            return await self._fallback_page("global", request, advanced=False, start=start)

        page = ResultPage.build(
            results=[result_from_hit(hit) for hit in hits.hits],
            total=hits.total,
            page=request.page,
            limit=request.limit,
            search_method=SearchMethod.INDEX,
            approximate=hits.approximate,
        )
        self._completed("global", SearchMethod.INDEX, len(page.results), start)
        return page

    @instrument_function("search.advanced")
    async def advanced_search(self, request: SearchRequest) -> ResultPage:
        """Cross-type search with aggregations.

        Raises:
            SearchUnavailableError: Index query failed and fallback-on-error
                is disabled, or both paths failed
        """
        start = time.perf_counter()

        if not await self.prober.is_available():
            self._falling_back("advanced", "unavailable")
            return await self._fallback_page("advanced", request, advanced=True, start=start)

        try:
            hits = await self.searcher.advanced(request)
        except Exception as e:
            self._index_failed("advanced", e)
            if not self.advanced_fallback_on_error:
                raise SearchUnavailableError("Advanced search is temporarily unavailable") from e
            self._falling_back("advanced", "index_error")
            return await self._fallback_page("advanced", request, advanced=True, start=start)

        page = ResultPage.build(
            results=[result_from_hit(hit) for hit in hits.hits],
            total=hits.total,
            page=request.page,
            limit=request.limit,
            search_method=SearchMethod.INDEX,
            aggregations=hits.aggregations,
        )
        self._completed("advanced", SearchMethod.INDEX, len(page.results), start)
        return page

    @instrument_function("search.suggestions")
    async def suggestions(self, params: schemas.SuggestionParams) -> SuggestionResponse:
        """Typeahead suggestions; the index suggester first, prefix match otherwise."""
        start = time.perf_counter()
        types = SUGGESTER_TYPES if params.type is ContentType.ALL else (params.type,)

        if not all(t in SUGGESTER_TYPES for t in types):
            self._falling_back("suggestions", "no_suggester")
        elif not await self.prober.is_available():
            self._falling_back("suggestions", "unavailable")
        else:
            try:
                options = await self.searcher.suggest(params.query, types, params.limit)
            except Exception as e:
                self._index_failed("suggestions", e)
                self._falling_back("suggestions", "index_error")
            else:
                items = [suggestion_from_option(option) for option in options]
                self._completed("suggestions", SearchMethod.INDEX, len(items), start)
                return SuggestionResponse(
                    suggestions=items, query=params.query, search_method=SearchMethod.INDEX
                )

        try:
            rows = await CatalogStore.suggest(params.query, types, params.limit)
        except StorageError as e:
            logger.error("fallback_suggest_failed", error=str(e))
            raise SearchUnavailableError("Suggestions are temporarily unavailable") from e

        items = [suggestion_from_row(row) for row in rows]
        self._completed("suggestions", SearchMethod.FALLBACK, len(items), start)
        return SuggestionResponse(
            suggestions=items, query=params.query, search_method=SearchMethod.FALLBACK
        )

    # -------------------------------------------------------------------------
    # Facets and curated lists (always relational)
    # -------------------------------------------------------------------------

    async def filters(self, content_type: ContentType = ContentType.ALL) -> FilterVocabulary:
        """Filter vocabulary; served even when the index is down."""
        try:
            genres, tags, years = await asyncio.gather(
                VocabularyStore.list_genres(),
                VocabularyStore.list_tags(),
                VocabularyStore.year_bounds(),
            )
        except StorageError as e:
            logger.error("filter_vocabulary_failed", error=str(e))
            raise SearchUnavailableError("Filters are temporarily unavailable") from e

        return FilterVocabulary(
            genres=genres,
            tags=tags,
            year_range=years,
            types=_for_type(MEDIA_FORMATS, content_type),
            statuses=_for_type(STATUSES, content_type),
        )

    async def trending(self, params: schemas.TrendingParams) -> schemas.TrendingResponse:
        start = time.perf_counter()
        try:
            rows = await CatalogStore.trending(params.limit)
        except StorageError as e:
            logger.error("trending_failed", error=str(e))
            raise SearchUnavailableError("Trending content is temporarily unavailable") from e

        results = [result_from_row(row) for row in rows]
        self._completed("trending", SearchMethod.FALLBACK, len(results), start)
        return schemas.TrendingResponse(results=results, period=params.period, limit=params.limit)

    # -------------------------------------------------------------------------
    # Indexing
    # -------------------------------------------------------------------------

    async def index_available(self) -> bool:
        return await self.prober.is_available()

    async def initialize_index(self) -> list[str]:
        """Create missing indices at startup; failures leave search on the fallback."""
        try:
            created = await self.searcher.ensure_indices()
        except IndexBackendError as e:
            logger.warning("index_bootstrap_failed", error=str(e), index=getattr(e, "index", None))
            return []
        if created:
            logger.info("index_bootstrap_created", indices=created)
        return created

    def require_admin(self, role: Optional[str], action: str = "reindex") -> None:
        """Raises AuthorizationError unless ``role`` is admin/super_admin."""
        if (role or "").strip().lower() not in ADMIN_ROLES:
            logger.warning("admin_action_forbidden", role=role, action=action)
            raise AuthorizationError("Admin role required")

    async def _require_index(self, content_type: ContentType) -> None:
        if not await self.prober.is_available():
            raise IndexUnavailableError(
                "Search index is unavailable",
                index=index_name(self.searcher.prefix, content_type),
                clause="ping",
            )

    async def reindex(
        self, role: Optional[str], content_type: ContentType, entity_id: str
    ) -> schemas.ReindexResponse:
        """Rebuild one entity's index document (admin only).

        Raises:
            AuthorizationError: Role is not admin/super_admin
            IndexUnavailableError: Index is down
            EntityNotFoundError: Entity does not exist
            IndexBackendError: Write failed after retries
        """
        self.require_admin(role)
        await self._require_index(content_type)

        document = await CatalogStore.get_document(content_type, entity_id)
        try:
            response = await self.searcher.index_entity(content_type, entity_id, document)
        except IndexBackendError as e:
            self._index_failed("reindex", e)
            raise

        return schemas.ReindexResponse(
            message=f"{content_type.value} {entity_id} indexed",
            index=index_name(self.searcher.prefix, content_type),
            id=entity_id,
            result=response.get("result"),
        )

    async def rebuild_index(
        self,
        role: Optional[str],
        content_types: tuple[ContentType, ...],
        batch_size: int = 500,
    ) -> schemas.BulkReindexResponse:
        """Re-index every catalog row of the given types (admin only).

        Missing indices are created first. Rows are read in id order and sent
        in bulk batches; documents the index rejects are counted, not raised.

        Raises:
            AuthorizationError: Role is not admin/super_admin
            IndexUnavailableError: Index is down
            StorageError: Catalog read failed
            IndexBackendError: A bulk request failed after retries
        """
        self.require_admin(role, action="bulk_reindex")
        await self._require_index(content_types[0])

        start = time.perf_counter()
        try:
            created = await self.searcher.ensure_indices(content_types)
        except IndexBackendError as e:
            self._index_failed("bulk_reindex", e)
            raise

        indexed: dict[str, int] = {}
        failed: dict[str, int] = {}
        for content_type in content_types:
            index = index_name(self.searcher.prefix, content_type)
            indexed[index] = failed[index] = 0
            async for batch in CatalogStore.iter_documents(content_type, batch_size=batch_size):
                try:
                    result = await self.searcher.bulk_index(content_type, batch)
                except IndexBackendError as e:
                    self._index_failed("bulk_reindex", e)
                    raise
                indexed[index] += result.indexed
                failed[index] += result.failed

        logger.info(
            "bulk_reindex_completed",
            indexed=indexed,
            failed=failed,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return schemas.BulkReindexResponse(
            message=f"{sum(indexed.values())} documents indexed",
            created_indices=created,
            indexed=indexed,
            failed=failed,
        )
