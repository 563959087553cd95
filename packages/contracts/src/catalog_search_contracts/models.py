"""Pydantic models for the catalog search system.

These schemas define the contract between all packages. Python attributes
are snake_case; the wire format (by alias) is camelCase, e.g.
``title_english`` <-> ``titleEnglish``.

Contracts are immutable once validated.
"""

import math
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class _Contract(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class ContentType(str, Enum):
    """Catalog entity types. ``ALL`` selects every concrete type."""

    ALL = "all"
    ANIME = "anime"
    MANGA = "manga"
    CHARACTERS = "characters"
    USERS = "users"
    NOVELS = "novels"

    def concrete_types(self) -> tuple["ContentType", ...]:
        """Expand ALL into the concrete types; a concrete type expands to itself."""
        if self is ContentType.ALL:
            return CONCRETE_TYPES
        return (self,)


CONCRETE_TYPES: tuple[ContentType, ...] = (
    ContentType.ANIME,
    ContentType.MANGA,
    ContentType.CHARACTERS,
    ContentType.USERS,
    ContentType.NOVELS,
)


class SortField(str, Enum):
    RELEVANCE = "relevance"
    POPULARITY = "popularity"
    RATING = "rating"
    CREATED = "created"
    UPDATED = "updated"
    TITLE = "title"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SearchMethod(str, Enum):
    """Backend path that actually produced a response."""

    INDEX = "index"
    FALLBACK = "fallback"


# === Filters ===


class RatingRange(_Contract):
    min: Optional[float] = None
    max: Optional[float] = None


class IntRange(_Contract):
    """Inclusive integer bounds (episodes, duration)."""

    min: Optional[int] = None
    max: Optional[int] = None


class YearRange(_Contract):
    """Inclusive year bounds. Serialized as ``{"from": .., "to": ..}``."""

    from_: Optional[int] = Field(default=None, alias="from")
    to: Optional[int] = None


class FilterSet(_Contract):
    """Filters shared by both backends.

    ``year`` is an exact year; ``year_range``, ``media_format``, ``episodes``
    and ``duration`` come from advanced search.
    """

    genres: Optional[tuple[str, ...]] = None
    tags: Optional[tuple[str, ...]] = None
    year: Optional[int] = None
    year_range: Optional[YearRange] = None
    status: Optional[str] = None
    rating_range: Optional[RatingRange] = None
    adult: Optional[bool] = None
    media_format: Optional[str] = None
    episodes: Optional[IntRange] = None
    duration: Optional[IntRange] = None

    @field_validator("genres", "tags", mode="before")
    @classmethod
    def dedupe_terms(cls, v: Any) -> Optional[tuple[str, ...]]:
        """Strip, drop blanks, de-duplicate keeping first-seen order."""
        if v is None:
            return None
        if isinstance(v, str):
            v = [v]
        seen: dict[str, None] = {}
        for term in v:
            term = str(term).strip()
            if term:
                seen.setdefault(term, None)
        return tuple(seen) or None


class SortSpec(_Contract):
    field: SortField = SortField.RELEVANCE
    order: SortOrder = SortOrder.DESC


# === Requests ===


class SearchRequest(_Contract):
    """Canonical, validated search request.

    Built only by the query normalizer. ``text`` is the primary text query
    (title text for advanced search); ``description`` is advanced search's
    synopsis/description text.
    """

    text: Optional[str] = None
    description: Optional[str] = None
    type: ContentType = ContentType.ALL
    filters: FilterSet = Field(default_factory=FilterSet)
    sort: SortSpec = Field(default_factory=SortSpec)
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=50)

    @field_validator("text", "description")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def has_text(self) -> bool:
        return self.text is not None or self.description is not None


# === Results ===


class EntityStats(_Contract):
    """Community counts for anime, manga and novels."""

    favorites: int = Field(default=0, ge=0)
    reviews: int = Field(default=0, ge=0)


class SearchResult(_Contract):
    """A single search hit, whichever backend produced it."""

    type: ContentType
    id: str
    title: str
    title_english: Optional[str] = None
    synopsis: Optional[str] = None
    cover_image: Optional[str] = None
    rating: Optional[float] = None
    popularity: Optional[int] = None
    media_type: Optional[str] = None
    genres: list[str] = Field(default_factory=list)
    stats: Optional[EntityStats] = None
    score: float = 0.0
    highlight: Optional[dict[str, list[str]]] = None


class ResultPage(_Contract):
    """A page of results plus pagination state.

    Use ``ResultPage.build`` so the pagination flags always agree with
    ``total``, ``page`` and ``limit``.
    """

    results: list[SearchResult]
    total: int = Field(ge=0)
    page: int = Field(ge=1)
    limit: int = Field(ge=1)
    total_pages: int = Field(ge=0)
    has_next: bool
    has_prev: bool
    search_method: SearchMethod
    approximate: bool = False
    aggregations: Optional[dict[str, Any]] = None

    @model_validator(mode="after")
    def check_total_covers_results(self) -> "ResultPage":
        if self.total < len(self.results):
            raise ValueError("total must be >= number of results")
        return self

    @classmethod
    def build(
        cls,
        results: list[SearchResult],
        total: int,
        page: int,
        limit: int,
        search_method: SearchMethod,
        approximate: bool = False,
        aggregations: Optional[dict[str, Any]] = None,
    ) -> "ResultPage":
        return cls(
            results=results,
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit),
            has_next=page * limit < total,
            has_prev=page > 1,
            search_method=search_method,
            approximate=approximate,
            aggregations=aggregations,
        )


# === Suggestions ===


class SuggestionItem(_Contract):
    type: ContentType
    id: str
    title: str
    title_english: Optional[str] = None
    cover_image: Optional[str] = None
    media_type: Optional[str] = None


class SuggestionResponse(_Contract):
    suggestions: list[SuggestionItem]
    query: str
    search_method: SearchMethod


# === Facets ===


class VocabularyTerm(_Contract):
    """A genre or tag from the relational lookup tables."""

    id: int
    name: str
    description: Optional[str] = None


class YearBounds(_Contract):
    min: int
    max: int


class RatingBounds(_Contract):
    min: float = 0.0
    max: float = 10.0
    step: float = 0.1


class FilterVocabulary(_Contract):
    """Everything a client needs to build filters."""

    genres: list[VocabularyTerm]
    tags: list[VocabularyTerm]
    year_range: YearBounds
    types: dict[str, list[str]]
    statuses: dict[str, list[str]]
    rating_range: RatingBounds = Field(default_factory=RatingBounds)
