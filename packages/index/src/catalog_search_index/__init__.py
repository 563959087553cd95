"""Catalog Search Index - Full-text index access.

Version: 1.0.0

This package provides:
- IndexClient: httpx client for an Elasticsearch-compatible REST API
- Index Query Builder: SearchRequest -> JSON query DSL
- Index definitions: analysis settings and per-type field mappings
- AvailabilityProber: cheap liveness check with positive-only caching
- IndexSearcher: single-index, fan-out, advanced and suggest searches
"""

from catalog_search_index.client import IndexBackend, IndexClient
from catalog_search_index.mappings import index_definition
from catalog_search_index.prober import AvailabilityProber
from catalog_search_index.query_builder import (
    build_filter_clauses,
    build_index_document,
    build_search_body,
    build_suggest_body,
    content_type_from_index,
    index_name,
    index_pattern,
)
from catalog_search_index.searcher import (
    BulkResult,
    IndexHit,
    IndexHits,
    IndexSearcher,
    gather_or_cancel,
    hits_total,
)

__version__ = "1.0.0"

__all__ = [
    # Client
    "IndexBackend",
    "IndexClient",
    # Probe
    "AvailabilityProber",
    # Query building
    "build_filter_clauses",
    "build_index_document",
    "build_search_body",
    "build_suggest_body",
    "content_type_from_index",
    "index_name",
    "index_pattern",
    # Mappings
    "index_definition",
    # Searching
    "BulkResult",
    "IndexHit",
    "IndexHits",
    "IndexSearcher",
    "gather_or_cancel",
    "hits_total",
]
