"""Result normalizer: backend documents/rows -> SearchResult / SuggestionItem.

The single place where backend shapes are unified. Pure mapping; inputs
are never mutated. Relational rows carry no relevance, so their score is
always 0.0.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from catalog_search_contracts import EntityStats, SearchResult, SuggestionItem
from catalog_search_index import IndexHit
from catalog_search_storage import EntityRow


def _title(source: dict[str, Any]) -> str:
    return str(source.get("title") or source.get("name") or source.get("username") or "")


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _float(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    return None


def _int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float, Decimal)):
        return int(value)
    return None


def _names(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(name) for name in value if name]


def _stats(favorites: Any, reviews: Any) -> Optional[EntityStats]:
    """Counts for types that have them; None when both are absent."""
    if favorites is None and reviews is None:
        return None
    return EntityStats(favorites=_int(favorites) or 0, reviews=_int(reviews) or 0)


def _source_stats(source: dict[str, Any]) -> Optional[EntityStats]:
    stats = source.get("stats")
    if not isinstance(stats, dict):
        return None
    return _stats(stats.get("favorites"), stats.get("reviews"))


def _hit_id(hit: dict[str, Any]) -> str:
    source = hit.get("_source") or {}
    return str(hit.get("_id") or source.get("id") or "")


def result_from_hit(index_hit: IndexHit) -> SearchResult:
    """Index hit (``_id``, ``_score``, ``_source``, ``highlight``) -> SearchResult."""
    hit = index_hit.hit
    source = hit.get("_source") or {}
    highlight = hit.get("highlight") or None
    return SearchResult(
        type=index_hit.content_type,
        id=_hit_id(hit),
        title=_title(source),
        title_english=_text(source.get("titleEnglish")),
        synopsis=_text(source.get("synopsis")) or _text(source.get("description")),
        cover_image=_text(source.get("coverImage")),
        rating=_float(source.get("rating")),
        popularity=_int(source.get("popularity")),
        media_type=_text(source.get("type")),
        genres=_names(source.get("genres")),
        stats=_source_stats(source),
        score=index_hit.score,
        highlight={field: list(fragments) for field, fragments in highlight.items()}
        if highlight
        else None,
    )


def result_from_row(entity_row: EntityRow) -> SearchResult:
    """Relational row (already aliased by the fallback builder) -> SearchResult."""
    row = entity_row.row
    return SearchResult(
        type=entity_row.content_type,
        id=str(row["id"]),
        title=str(row.get("title") or ""),
        title_english=_text(row.get("title_english")),
        synopsis=_text(row.get("synopsis")),
        cover_image=_text(row.get("cover_image")),
        rating=_float(row.get("rating")),
        popularity=_int(row.get("popularity")),
        media_type=_text(row.get("media_type")),
        genres=_names(row.get("genres")),
        stats=_stats(row.get("favorites_count"), row.get("reviews_count")),
        score=0.0,
    )


def suggestion_from_option(option: IndexHit) -> SuggestionItem:
    source = option.hit.get("_source") or {}
    return SuggestionItem(
        type=option.content_type,
        id=_hit_id(option.hit),
        title=_title(source),
        title_english=_text(source.get("titleEnglish")),
        cover_image=_text(source.get("coverImage")),
        media_type=_text(source.get("type")),
    )


def suggestion_from_row(entity_row: EntityRow) -> SuggestionItem:
    row = entity_row.row
    return SuggestionItem(
        type=entity_row.content_type,
        id=str(row["id"]),
        title=str(row.get("title") or ""),
        title_english=_text(row.get("title_english")),
        cover_image=_text(row.get("cover_image")),
        media_type=_text(row.get("media_type")),
    )
