"""Catalog Search Contracts - Pure Pydantic schemas.

Version: 1.0.0

This package contains ONLY Pydantic schemas with no business logic.
Dependencies: pydantic only (no logging, no DB drivers, no HTTP).
"""

from catalog_search_contracts.models import (
    CONCRETE_TYPES,
    ContentType,
    # Requests
    FilterSet,
    IntRange,
    RatingRange,
    SearchRequest,
    SortField,
    SortOrder,
    SortSpec,
    YearRange,
    # Results
    EntityStats,
    ResultPage,
    SearchMethod,
    SearchResult,
    # Suggestions
    SuggestionItem,
    SuggestionResponse,
    # Facets
    FilterVocabulary,
    RatingBounds,
    VocabularyTerm,
    YearBounds,
)

__version__ = "1.0.0"

__all__ = [
    "CONCRETE_TYPES",
    "ContentType",
    # Requests
    "FilterSet",
    "IntRange",
    "RatingRange",
    "SearchRequest",
    "SortField",
    "SortOrder",
    "SortSpec",
    "YearRange",
    # Results
    "EntityStats",
    "ResultPage",
    "SearchMethod",
    "SearchResult",
    # Suggestions
    "SuggestionItem",
    "SuggestionResponse",
    # Facets
    "FilterVocabulary",
    "RatingBounds",
    "VocabularyTerm",
    "YearBounds",
]
