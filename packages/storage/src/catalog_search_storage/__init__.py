"""Catalog Search Storage - PostgreSQL access for the relational path.

Version: 1.0.0

This package provides:
- Connection pool management (asyncpg)
- Relational fallback builder (SearchRequest -> SQL)
- CatalogStore: fallback search, suggestions, entity fetch, trending
- VocabularyStore: genres, tags, year range
"""

from catalog_search_storage.catalog_store import CatalogStore, EntityRow, FallbackPage
from catalog_search_storage.connection import (
    DatabaseConfig,
    check_connection_health,
    close_connection_pool,
    get_connection_pool,
)
from catalog_search_storage.fallback import (
    ENTITY_SPECS,
    TYPE_CAP,
    CompiledQuery,
    EntitySpec,
    FallbackPlan,
    compile_document,
    compile_document_batch,
    compile_search,
    compile_suggestion,
    compile_trending,
    escape_like,
    plan_search,
    plan_suggestions,
)
from catalog_search_storage.vocabulary_store import VocabularyStore

__version__ = "1.0.0"

__all__ = [
    # Connection
    "DatabaseConfig",
    "get_connection_pool",
    "close_connection_pool",
    "check_connection_health",
    # Fallback builder
    "ENTITY_SPECS",
    "TYPE_CAP",
    "CompiledQuery",
    "EntitySpec",
    "FallbackPlan",
    "compile_document",
    "compile_document_batch",
    "compile_search",
    "compile_suggestion",
    "compile_trending",
    "escape_like",
    "plan_search",
    "plan_suggestions",
    # Stores
    "CatalogStore",
    "EntityRow",
    "FallbackPage",
    "VocabularyStore",
]
