"""Compile a SearchRequest into the index's JSON query DSL.

Query shape:
    bool.must    weighted multi_match on the text fields, or match_all
    bool.filter  one clause per present filter
    highlight    title / synopsis / description
    sort         omitted for relevance (score order)
    aggs         advanced search only

All builders return fresh dicts; nothing here touches the network.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from catalog_search_contracts import ContentType, FilterSet, SearchRequest, SortField, SortSpec

# Field weights: title highest, then title variants, then genres, then free text
TEXT_FIELDS = [
    "title^3",
    "titleEnglish^2",
    "titleRomaji^2",
    "titleJapanese^2",
    "synopsis",
    "description",
    "genres^1.5",
    "tags",
]
TITLE_FIELDS = ["title^3", "titleEnglish^2", "titleRomaji^2", "titleJapanese^2"]
DESCRIPTION_FIELDS = ["synopsis", "description"]

HIGHLIGHT_FIELDS = ("title", "synopsis", "description")

# (field, type assumed in indices that do not map it)
SORT_FIELDS = {
    SortField.POPULARITY: ("popularity", "integer"),
    SortField.RATING: ("rating", "float"),
    SortField.CREATED: ("createdAt", "date"),
    SortField.UPDATED: ("updatedAt", "date"),
    SortField.TITLE: ("title.keyword", "keyword"),
}

SUGGEST_SOURCE = ["title", "titleEnglish", "coverImage", "type"]
SUGGEST_NAME = "title_suggest"

TITLE_VARIANTS = ("title", "titleEnglish", "titleRomaji", "titleJapanese")

STATS_KEYS = {"favoritesCount": "favorites", "reviewsCount": "reviews"}


def index_name(prefix: str, content_type: ContentType) -> str:
    """Concrete index for one content type, e.g. ``catalog_anime``."""
    if content_type is ContentType.ALL:
        raise ValueError("ContentType.ALL has no single index; use index_pattern()")
    return f"{prefix}_{content_type.value}"


def index_pattern(prefix: str) -> str:
    """Wildcard covering every content index, e.g. ``catalog_*``."""
    return f"{prefix}_*"


def content_type_from_index(prefix: str, index: str) -> Optional[ContentType]:
    """Recover the content type from a hit's ``_index``.

    Tolerates versioned physical names behind aliases (``catalog_anime_v2``).
    """
    head = f"{prefix}_"
    if not index.startswith(head):
        return None
    name = index[len(head):].split("_", 1)[0]
    try:
        content_type = ContentType(name)
    except ValueError:
        return None
    return None if content_type is ContentType.ALL else content_type


def text_clause(text: str, fields: list[str]) -> dict[str, Any]:
    return {
        "multi_match": {
            "query": text,
            "fields": list(fields),
            "type": "best_fields",
            "fuzziness": "AUTO",
        }
    }


def _range(field: str, gte: Any = None, lte: Any = None) -> Optional[dict[str, Any]]:
    bounds = {}
    if gte is not None:
        bounds["gte"] = gte
    if lte is not None:
        bounds["lte"] = lte
    if not bounds:
        return None
    return {"range": {field: bounds}}


def build_filter_clauses(filters: FilterSet) -> list[dict[str, Any]]:
    """One filter clause per present filter, in a fixed order."""
    clauses: list[Optional[dict[str, Any]]] = []

    if filters.genres:
        clauses.append({"terms": {"genres.keyword": list(filters.genres)}})
    if filters.tags:
        clauses.append({"terms": {"tags.keyword": list(filters.tags)}})
    if filters.year is not None:
        clauses.append(_range("year", filters.year, filters.year))
    if filters.year_range is not None:
        clauses.append(_range("year", filters.year_range.from_, filters.year_range.to))
    if filters.status:
        clauses.append({"term": {"status.keyword": filters.status}})
    if filters.rating_range is not None:
        clauses.append(_range("rating", filters.rating_range.min, filters.rating_range.max))
    if filters.adult is not None:
        clauses.append({"term": {"adult": filters.adult}})
    if filters.media_format:
        clauses.append({"term": {"type.keyword": filters.media_format}})
    if filters.episodes is not None:
        clauses.append(_range("episodes", filters.episodes.min, filters.episodes.max))
    if filters.duration is not None:
        clauses.append(_range("duration", filters.duration.min, filters.duration.max))

    return [c for c in clauses if c is not None]


def build_sort(sort: SortSpec) -> Optional[list[dict[str, Any]]]:
    """Field sort that tolerates indices without the field (characters have no rating)."""
    if sort.field is SortField.RELEVANCE:
        return None
    field, unmapped_type = SORT_FIELDS[sort.field]
    return [{field: {"order": sort.order.value, "unmapped_type": unmapped_type}}]


def build_aggregations() -> dict[str, Any]:
    return {
        "types": {"terms": {"field": "type.keyword"}},
        "genres": {"terms": {"field": "genres.keyword", "size": 20}},
        "years": {"terms": {"field": "year", "size": 10}},
        "ratings": {"histogram": {"field": "rating", "interval": 1, "min_doc_count": 1}},
    }


def build_search_body(
    request: SearchRequest,
    from_: Optional[int] = None,
    size: Optional[int] = None,
    advanced: bool = False,
) -> dict[str, Any]:
    """Build a ``_search`` body.

    Args:
        request: Canonical request
        from_: Hit offset (defaults to the request's page offset)
        size: Page size (defaults to ``request.limit``)
        advanced: Match ``text`` against title fields only and add aggregations

    Returns:
        JSON-serializable query body
    """
    must: list[dict[str, Any]] = []
    if request.text:
        must.append(text_clause(request.text, TITLE_FIELDS if advanced else TEXT_FIELDS))
    if request.description:
        must.append(text_clause(request.description, DESCRIPTION_FIELDS))
    if not must:
        must.append({"match_all": {}})

    body: dict[str, Any] = {
        "query": {"bool": {"must": must, "filter": build_filter_clauses(request.filters)}},
        "from": request.offset if from_ is None else from_,
        "size": request.limit if size is None else size,
        "highlight": {"fields": {field: {} for field in HIGHLIGHT_FIELDS}},
    }

    sort = build_sort(request.sort)
    if sort is not None:
        body["sort"] = sort
    if advanced:
        body["aggs"] = build_aggregations()
    return body


def build_suggest_body(prefix: str, limit: int) -> dict[str, Any]:
    return {
        "_source": list(SUGGEST_SOURCE),
        "suggest": {
            SUGGEST_NAME: {
                "prefix": prefix,
                "completion": {"field": SUGGEST_NAME, "size": limit, "skip_duplicates": True},
            }
        },
    }


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


def _year_of(value: Any) -> Optional[int]:
    if isinstance(value, (datetime, date)):
        return value.year
    if isinstance(value, str) and len(value) >= 4 and value[:4].isdigit():
        return int(value[:4])
    return None


def build_index_document(entity: dict[str, Any]) -> dict[str, Any]:
    """Build the document stored in the index for a catalog entity.

    ``entity`` is the camelCase mapping produced by the catalog store,
    with ``genres``/``tags`` already resolved to names. Adds the derived
    ``year`` and the completion input from every non-empty title variant,
    and folds ``favoritesCount``/``reviewsCount`` into ``stats`` when the
    type has them.
    """
    document = {
        key: _jsonable(value) for key, value in entity.items() if key not in STATS_KEYS
    }
    counts = {name: entity.get(key) for key, name in STATS_KEYS.items()}
    if any(value is not None for value in counts.values()):
        document["stats"] = {name: int(value or 0) for name, value in counts.items()}
    document["genres"] = list(entity.get("genres") or [])
    document["tags"] = list(entity.get("tags") or [])
    document["year"] = _year_of(entity.get("startDate"))

    inputs: list[str] = []
    for key in TITLE_VARIANTS:
        value = entity.get(key)
        if value and value not in inputs:
            inputs.append(value)
    document[SUGGEST_NAME] = {"input": inputs}
    return document
