"""Relational fallback builder: SearchRequest -> parameterised SQL.

One query (plus a count query) per concrete entity type:

    text         OR'd ILIKE '%text%' across the entity's text columns
    genres/tags  EXISTS against the many-to-many association table
    year         start_date in [Jan 1 year, Jan 1 year+1)
    other        equality / inclusive range predicates

Rows also carry genre names and favorites/reviews counts (anime, manga and
novels; NULL for the other types) from correlated subqueries.

An entity without a column for a requested filter is left out of the plan.
Multi-type plans cap each type at min(5, ceil(limit / types)) and report an
approximate total (sum of independent counts). Every ORDER BY ends with
``e.id ASC`` so pages are deterministic.

LIKE patterns use PostgreSQL's default escape character (backslash).
"""

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from catalog_search_contracts import (
    CONCRETE_TYPES,
    ContentType,
    FilterSet,
    SearchRequest,
    SortField,
    SortOrder,
)

TYPE_CAP = 5
STATS_TABLES = ("favorites", "reviews")


@dataclass(frozen=True)
class Link:
    """Many-to-many association between an entity and genres or tags."""

    table: str
    entity_fk: str
    vocabulary: str
    vocabulary_fk: str

    def names_expr(self) -> str:
        return (
            f"COALESCE((SELECT array_agg(v.name ORDER BY v.name) FROM {self.table} l "
            f"JOIN {self.vocabulary} v ON v.id = l.{self.vocabulary_fk} "
            f"WHERE l.{self.entity_fk} = e.id), ARRAY[]::text[])"
        )

    def membership_expr(self, placeholder: str) -> str:
        return (
            f"EXISTS (SELECT 1 FROM {self.table} l "
            f"JOIN {self.vocabulary} v ON v.id = l.{self.vocabulary_fk} "
            f"WHERE l.{self.entity_fk} = e.id AND v.name = ANY({placeholder}::text[]))"
        )


@dataclass(frozen=True)
class EntitySpec:
    """How one entity type maps onto its table.

    ``result_columns`` maps the normalized result keys to columns (None
    selects NULL). ``document_columns`` maps index document keys to columns.
    ``filter_columns`` keys: start_date, status, rating, adult, format,
    episodes, duration. ``stats_fk`` is the column of the favorites and
    reviews tables pointing at this entity; types without one have no stats.
    """

    content_type: ContentType
    table: str
    result_columns: dict[str, Optional[str]]
    document_columns: dict[str, str]
    text_columns: tuple[str, ...]
    title_columns: tuple[str, ...]
    description_columns: tuple[str, ...]
    prefix_columns: tuple[str, ...]
    popularity_column: str
    sort_columns: dict[SortField, str]
    filter_columns: dict[str, str] = field(default_factory=dict)
    genre_link: Optional[Link] = None
    tag_link: Optional[Link] = None
    base_predicates: tuple[str, ...] = ()
    trending_column: Optional[str] = None
    stats_fk: Optional[str] = None

    def supports(self, filters: FilterSet) -> bool:
        """False when a present filter has no equivalent for this entity."""
        needed: list[bool] = []
        if filters.genres:
            needed.append(self.genre_link is not None)
        if filters.tags:
            needed.append(self.tag_link is not None)
        if filters.year is not None or filters.year_range is not None:
            needed.append("start_date" in self.filter_columns)
        if filters.status:
            needed.append("status" in self.filter_columns)
        if filters.rating_range is not None:
            needed.append("rating" in self.filter_columns)
        if filters.adult is not None:
            needed.append("adult" in self.filter_columns)
        if filters.media_format:
            needed.append("format" in self.filter_columns)
        if filters.episodes is not None:
            needed.append("episodes" in self.filter_columns)
        if filters.duration is not None:
            needed.append("duration" in self.filter_columns)
        return all(needed)


def _media_spec(
    content_type: ContentType,
    table: str,
    link_prefix: str,
    extra_filters: dict[str, str] | None = None,
    extra_document: dict[str, str] | None = None,
) -> EntitySpec:
    fk = f"{link_prefix}_id"
    return EntitySpec(
        content_type=content_type,
        table=table,
        result_columns={
            "id": "id",
            "title": "title",
            "title_english": "title_english",
            "synopsis": "synopsis",
            "cover_image": "cover_image",
            "rating": "rating",
            "popularity": "popularity",
            "media_type": "type",
        },
        document_columns={
            "id": "id",
            "title": "title",
            "titleEnglish": "title_english",
            "titleRomaji": "title_romaji",
            "titleJapanese": "title_japanese",
            "synopsis": "synopsis",
            "description": "description",
            "coverImage": "cover_image",
            "type": "type",
            "status": "status",
            "startDate": "start_date",
            "rating": "rating",
            "popularity": "popularity",
            "adult": "adult",
            "createdAt": "created_at",
            "updatedAt": "updated_at",
            **(extra_document or {}),
        },
        text_columns=("title", "title_english", "title_romaji", "synopsis", "description"),
        title_columns=("title", "title_english", "title_romaji", "title_japanese"),
        description_columns=("synopsis", "description"),
        prefix_columns=("title", "title_english"),
        popularity_column="popularity",
        sort_columns={
            SortField.POPULARITY: "popularity",
            SortField.RATING: "rating",
            SortField.CREATED: "created_at",
            SortField.UPDATED: "updated_at",
            SortField.TITLE: "title",
        },
        filter_columns={
            "start_date": "start_date",
            "status": "status",
            "rating": "rating",
            "adult": "adult",
            "format": "type",
            **(extra_filters or {}),
        },
        genre_link=Link(f"{link_prefix}_genres", fk, "genres", "genre_id"),
        tag_link=Link(f"{link_prefix}_tags", fk, "tags", "tag_id"),
        trending_column="trending",
        stats_fk=fk,
    )


ENTITY_SPECS: dict[ContentType, EntitySpec] = {
    ContentType.ANIME: _media_spec(
        ContentType.ANIME,
        "animes",
        "anime",
        extra_filters={"episodes": "episodes", "duration": "duration"},
        extra_document={"episodes": "episodes", "duration": "duration"},
    ),
    ContentType.MANGA: _media_spec(
        ContentType.MANGA,
        "mangas",
        "manga",
        extra_document={"chapters": "chapters", "volumes": "volumes"},
    ),
    ContentType.NOVELS: _media_spec(
        ContentType.NOVELS,
        "novels",
        "novel",
        extra_document={"chapters": "chapters", "volumes": "volumes"},
    ),
    ContentType.CHARACTERS: EntitySpec(
        content_type=ContentType.CHARACTERS,
        table="characters",
        result_columns={
            "id": "id",
            "title": "name",
            "title_english": None,
            "synopsis": "description",
            "cover_image": "image",
            "rating": None,
            "popularity": "favourites",
            "media_type": None,
        },
        document_columns={
            "id": "id",
            "title": "name",
            "titleJapanese": "name_native",
            "description": "description",
            "coverImage": "image",
            "popularity": "favourites",
            "createdAt": "created_at",
            "updatedAt": "updated_at",
        },
        text_columns=("name", "name_native", "description"),
        title_columns=("name", "name_native"),
        description_columns=("description",),
        prefix_columns=("name",),
        popularity_column="favourites",
        sort_columns={
            SortField.POPULARITY: "favourites",
            SortField.CREATED: "created_at",
            SortField.UPDATED: "updated_at",
            SortField.TITLE: "name",
        },
    ),
    ContentType.USERS: EntitySpec(
        content_type=ContentType.USERS,
        table="users",
        result_columns={
            "id": "id",
            "title": "username",
            "title_english": "display_name",
            "synopsis": "bio",
            "cover_image": "avatar",
            "rating": None,
            "popularity": "follower_count",
            "media_type": None,
        },
        document_columns={
            "id": "id",
            "title": "username",
            "titleEnglish": "display_name",
            "description": "bio",
            "coverImage": "avatar",
            "popularity": "follower_count",
            "createdAt": "created_at",
            "updatedAt": "updated_at",
        },
        text_columns=("username", "display_name", "bio"),
        title_columns=("username", "display_name"),
        description_columns=("bio",),
        prefix_columns=("username",),
        popularity_column="follower_count",
        sort_columns={
            SortField.POPULARITY: "follower_count",
            SortField.CREATED: "created_at",
            SortField.UPDATED: "updated_at",
            SortField.TITLE: "username",
        },
        base_predicates=("e.is_active = TRUE", "e.profile_public = TRUE"),
    ),
}


@dataclass
class CompiledQuery:
    """SQL for one entity type. ``count_sql`` shares the leading params."""

    content_type: ContentType
    sql: str
    params: list[Any]
    count_sql: Optional[str] = None
    count_params: list[Any] = field(default_factory=list)


@dataclass
class FallbackPlan:
    queries: list[CompiledQuery]
    approximate: bool
    excluded: tuple[ContentType, ...] = ()


class _Params:
    """Collects positional parameters and hands out ``$n`` placeholders."""

    def __init__(self) -> None:
        self.values: list[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so user text matches literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _ilike_any(columns: tuple[str, ...], placeholder: str) -> str:
    return "(" + " OR ".join(f"e.{column} ILIKE {placeholder}" for column in columns) + ")"


def _stats_exprs(spec: EntitySpec) -> dict[str, str]:
    """Correlated COUNT(*) per stats table, keyed by table name."""
    if spec.stats_fk is None:
        return {table: "NULL" for table in STATS_TABLES}
    return {
        table: f"(SELECT COUNT(*) FROM {table} s WHERE s.{spec.stats_fk} = e.id)"
        for table in STATS_TABLES
    }


def _select_list(spec: EntitySpec) -> str:
    parts = [
        f"e.{column} AS {alias}" if column else f"NULL AS {alias}"
        for alias, column in spec.result_columns.items()
    ]
    genres = spec.genre_link.names_expr() if spec.genre_link else "ARRAY[]::text[]"
    parts.append(f"{genres} AS genres")
    parts.extend(f"{expr} AS {table}_count" for table, expr in _stats_exprs(spec).items())
    return ", ".join(parts)


def _range(column: str, low: Any, high: Any, params: _Params) -> list[str]:
    clauses = []
    if low is not None:
        clauses.append(f"e.{column} >= {params.add(low)}")
    if high is not None:
        clauses.append(f"e.{column} <= {params.add(high)}")
    return clauses


def _where(
    spec: EntitySpec, request: SearchRequest, advanced: bool, params: _Params
) -> list[str]:
    clauses = list(spec.base_predicates)

    if request.text:
        columns = spec.title_columns if advanced else spec.text_columns
        clauses.append(_ilike_any(columns, params.add(f"%{escape_like(request.text)}%")))
    if request.description:
        clauses.append(
            _ilike_any(spec.description_columns, params.add(f"%{escape_like(request.description)}%"))
        )

    filters = request.filters
    columns = spec.filter_columns
    if filters.genres and spec.genre_link:
        clauses.append(spec.genre_link.membership_expr(params.add(list(filters.genres))))
    if filters.tags and spec.tag_link:
        clauses.append(spec.tag_link.membership_expr(params.add(list(filters.tags))))
    if filters.year is not None:
        start = columns["start_date"]
        clauses.append(f"e.{start} >= {params.add(date(filters.year, 1, 1))}")
        clauses.append(f"e.{start} < {params.add(date(filters.year + 1, 1, 1))}")
    if filters.year_range is not None:
        start = columns["start_date"]
        if filters.year_range.from_ is not None:
            clauses.append(f"e.{start} >= {params.add(date(filters.year_range.from_, 1, 1))}")
        if filters.year_range.to is not None:
            clauses.append(f"e.{start} < {params.add(date(filters.year_range.to + 1, 1, 1))}")
    if filters.status:
        clauses.append(f"e.{columns['status']} = {params.add(filters.status)}")
    if filters.rating_range is not None:
        clauses.extend(
            _range(columns["rating"], filters.rating_range.min, filters.rating_range.max, params)
        )
    if filters.adult is not None:
        clauses.append(f"e.{columns['adult']} = {params.add(filters.adult)}")
    if filters.media_format:
        clauses.append(f"e.{columns['format']} = {params.add(filters.media_format)}")
    if filters.episodes is not None:
        clauses.extend(
            _range(columns["episodes"], filters.episodes.min, filters.episodes.max, params)
        )
    if filters.duration is not None:
        clauses.extend(
            _range(columns["duration"], filters.duration.min, filters.duration.max, params)
        )

    return clauses


def _where_sql(clauses: list[str]) -> str:
    return f" WHERE {' AND '.join(clauses)}" if clauses else ""


def order_by(spec: EntitySpec, field_: SortField, order: SortOrder) -> str:
    """ORDER BY body; relevance (or an unsupported field) means popularity desc."""
    column = spec.sort_columns.get(field_)
    if field_ is SortField.RELEVANCE or column is None:
        return f"e.{spec.popularity_column} DESC NULLS LAST, e.id ASC"
    direction = "ASC" if order is SortOrder.ASC else "DESC"
    return f"e.{column} {direction} NULLS LAST, e.id ASC"


def compile_search(
    spec: EntitySpec,
    request: SearchRequest,
    limit: int,
    offset: int,
    advanced: bool = False,
) -> CompiledQuery:
    """Page query and count query for one entity type.

    The caller checks ``spec.supports(request.filters)`` first.
    """
    params = _Params()
    where = _where_sql(_where(spec, request, advanced, params))
    count_params = list(params.values)

    sql = (
        f"SELECT {_select_list(spec)} FROM {spec.table} e{where} "
        f"ORDER BY {order_by(spec, request.sort.field, request.sort.order)} "
        f"LIMIT {params.add(limit)} OFFSET {params.add(offset)}"
    )
    count_sql = f"SELECT COUNT(*) FROM {spec.table} e{where}"
    return CompiledQuery(
        content_type=spec.content_type,
        sql=sql,
        params=params.values,
        count_sql=count_sql,
        count_params=count_params,
    )


def plan_search(request: SearchRequest, advanced: bool = False) -> FallbackPlan:
    """Compile the per-type queries for a search.

    Advanced search always spans every concrete type.
    """
    types = CONCRETE_TYPES if advanced else request.type.concrete_types()
    supported = [ENTITY_SPECS[t] for t in types if ENTITY_SPECS[t].supports(request.filters)]
    excluded = tuple(t for t in types if not ENTITY_SPECS[t].supports(request.filters))
    multi = advanced or request.type is ContentType.ALL

    if multi:
        size = min(TYPE_CAP, math.ceil(request.limit / max(len(supported), 1)))
        offset = (request.page - 1) * size
    else:
        size = request.limit
        offset = request.offset

    queries = [compile_search(spec, request, size, offset, advanced) for spec in supported]
    return FallbackPlan(queries=queries, approximate=multi, excluded=excluded)


def compile_suggestion(spec: EntitySpec, prefix: str, limit: int) -> CompiledQuery:
    """Case-insensitive prefix match, popularity desc then id asc."""
    params = _Params()
    clauses = list(spec.base_predicates)
    clauses.append(_ilike_any(spec.prefix_columns, params.add(f"{escape_like(prefix)}%")))
    sql = (
        f"SELECT {_select_list(spec)} FROM {spec.table} e{_where_sql(clauses)} "
        f"ORDER BY {order_by(spec, SortField.RELEVANCE, SortOrder.DESC)} "
        f"LIMIT {params.add(limit)}"
    )
    return CompiledQuery(content_type=spec.content_type, sql=sql, params=params.values)


def plan_suggestions(
    prefix: str, content_types: tuple[ContentType, ...], limit: int
) -> list[CompiledQuery]:
    """One prefix query per type, each capped at ceil(limit / types)."""
    if not content_types:
        return []
    per_type = math.ceil(limit / len(content_types))
    return [compile_suggestion(ENTITY_SPECS[t], prefix, per_type) for t in content_types]


def _document_select(spec: EntitySpec) -> str:
    parts = [f'e.{column} AS "{key}"' for key, column in spec.document_columns.items()]
    genres = spec.genre_link.names_expr() if spec.genre_link else "ARRAY[]::text[]"
    tags = spec.tag_link.names_expr() if spec.tag_link else "ARRAY[]::text[]"
    parts.append(f'{genres} AS "genres"')
    parts.append(f'{tags} AS "tags"')
    parts.extend(f'{expr} AS "{table}Count"' for table, expr in _stats_exprs(spec).items())
    return f"SELECT {', '.join(parts)} FROM {spec.table} e"


def compile_document(spec: EntitySpec) -> str:
    """Fetch one entity by id (``$1``) with genre and tag names and stats counts."""
    clauses = ["e.id = $1", *spec.base_predicates]
    return f"{_document_select(spec)}{_where_sql(clauses)}"


def compile_document_batch(spec: EntitySpec) -> str:
    """Keyset page of documents: ids after ``$1``, at most ``$2`` rows, id order."""
    clauses = ["e.id > $1", *spec.base_predicates]
    return f"{_document_select(spec)}{_where_sql(clauses)} ORDER BY e.id ASC LIMIT $2"


def compile_trending(spec: EntitySpec, limit: int) -> CompiledQuery:
    if spec.trending_column is None:
        raise ValueError(f"{spec.content_type.value} has no trending ranking")
    params = _Params()
    sql = (
        f"SELECT {_select_list(spec)} FROM {spec.table} e "
        f"ORDER BY e.{spec.trending_column} DESC NULLS LAST, "
        f"e.{spec.popularity_column} DESC NULLS LAST, e.id ASC "
        f"LIMIT {params.add(limit)}"
    )
    return CompiledQuery(content_type=spec.content_type, sql=sql, params=params.values)
