"""Pydantic schemas for API transport models.

Raw input models mirror what clients send (query strings, JSON bodies) and
carry every boundary rule; the query normalizer turns them into the
canonical contracts. Response models not covered by the contracts package
live here too.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from catalog_search_contracts import ContentType, SearchResult, SortField, SortOrder

MIN_YEAR = 1900


def max_year() -> int:
    return datetime.now(timezone.utc).year + 2


def _check_year(value: Optional[int]) -> Optional[int]:
    if value is not None and not MIN_YEAR <= value <= max_year():
        raise ValueError(f"must be between {MIN_YEAR} and {max_year()}")
    return value


def _strip(value: object) -> object:
    return value.strip() if isinstance(value, str) else value


class _Wire(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _Input(_Wire):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# === Raw input: ranges ===


class RatingParams(_Input):
    min: Optional[float] = Field(None, ge=0, le=10)
    max: Optional[float] = Field(None, ge=0, le=10)

    @model_validator(mode="after")
    def check_order(self) -> RatingParams:
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError("min must be less than or equal to max")
        return self


class CountParams(_Input):
    """Episodes or duration bounds."""

    min: Optional[int] = Field(None, ge=1)
    max: Optional[int] = Field(None, ge=1)

    @model_validator(mode="after")
    def check_order(self) -> CountParams:
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError("min must be less than or equal to max")
        return self


class YearParams(_Input):
    from_: Optional[int] = Field(None, alias="from")
    to: Optional[int] = None

    @field_validator("from_", "to")
    @classmethod
    def check_years(cls, v: Optional[int]) -> Optional[int]:
        return _check_year(v)

    @model_validator(mode="after")
    def check_order(self) -> YearParams:
        if self.from_ is not None and self.to is not None and self.from_ > self.to:
            raise ValueError("from must be less than or equal to to")
        return self


# === Raw input: endpoints ===


class GlobalFilterParams(_Input):
    """Bracketed ``filters[...]`` query parameters of global search.

    Unknown filter names are rejected rather than silently ignored.
    """

    model_config = ConfigDict(extra="forbid")

    genres: Optional[list[str]] = None
    tags: Optional[list[str]] = None
    year: Optional[int] = None
    status: Optional[str] = None
    rating: Optional[RatingParams] = None
    adult: Optional[bool] = None

    @field_validator("year")
    @classmethod
    def check_year(cls, v: Optional[int]) -> Optional[int]:
        return _check_year(v)


class GlobalSearchParams(_Input):
    query: str = Field(..., min_length=1, max_length=200)
    type: ContentType = ContentType.ALL
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=50)
    sort_by: SortField = SortField.RELEVANCE
    sort_order: SortOrder = SortOrder.DESC
    filters: GlobalFilterParams = Field(default_factory=GlobalFilterParams)

    @field_validator("query", mode="before")
    @classmethod
    def strip_query(cls, v: object) -> object:
        return _strip(v)


class AdvancedSearchBody(_Input):
    """JSON body of advanced search. ``type`` is a media format (TV, MANGA, ...)."""

    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=500)
    genres: Optional[list[str]] = None
    tags: Optional[list[str]] = None
    type: Optional[str] = None
    status: Optional[str] = None
    year: Optional[YearParams] = None
    rating: Optional[RatingParams] = None
    episodes: Optional[CountParams] = None
    duration: Optional[CountParams] = None
    adult: Optional[bool] = None
    sort_by: SortField = SortField.RELEVANCE
    sort_order: SortOrder = SortOrder.DESC
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=50)

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, v: object) -> object:
        return _strip(v)


class SuggestionParams(_Input):
    query: str = Field(..., min_length=1, max_length=100)
    type: ContentType = ContentType.ALL
    limit: int = Field(5, ge=1, le=10)

    @field_validator("query", mode="before")
    @classmethod
    def strip_query(cls, v: object) -> object:
        return _strip(v)


class FiltersParams(_Input):
    type: ContentType = ContentType.ALL


class TrendingParams(_Input):
    period: Literal["24h", "7d", "30d"] = "24h"
    limit: int = Field(10, ge=1, le=50)


class ReindexPath(_Input):
    type: Literal["anime", "manga", "characters", "users", "novels"]
    id: str = Field(..., min_length=1)


class BulkReindexPath(_Input):
    type: Literal["all", "anime", "manga", "characters", "users", "novels"]


# === Responses ===


class ErrorDetail(_Wire):
    field: str
    message: str


class ErrorResponse(_Wire):
    error: str
    message: str
    details: Optional[list[ErrorDetail]] = None


class TrendingResponse(_Wire):
    results: list[SearchResult]
    period: str
    limit: int
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ReindexResponse(_Wire):
    message: str
    index: str
    id: str
    result: Optional[str] = None


class BulkReindexResponse(_Wire):
    """Per-index document counts from a full rebuild."""

    message: str
    created_indices: list[str] = Field(default_factory=list)
    indexed: dict[str, int] = Field(default_factory=dict)
    failed: dict[str, int] = Field(default_factory=dict)


class HealthCheck(_Wire):
    """Health check response."""

    status: str = "healthy"
    version: str = "1.0.0"
    database: str = "connected"
    index: str = "available"
