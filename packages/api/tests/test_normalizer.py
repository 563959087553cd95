"""Tests for raw input -> canonical request normalization."""

from __future__ import annotations

import pytest

from catalog_search_common import ValidationError
from catalog_search_contracts import CONCRETE_TYPES, ContentType, SortField, SortOrder

from catalog_search_api import normalizer


def fields_of(exc: ValidationError) -> set[str]:
    return {e.field for e in exc.errors}


class TestParseQueryItems:

    def test_nested_filters(self):
        raw = normalizer.parse_query_items(
            [
                ("query", "naruto"),
                ("filters[rating][min]", "7"),
                ("filters[rating][max]", "9"),
                ("filters[status]", "FINISHED"),
            ]
        )

        assert raw == {
            "query": "naruto",
            "filters": {"rating": {"min": "7", "max": "9"}, "status": "FINISHED"},
        }

    def test_list_filters_split_and_repeat(self):
        raw = normalizer.parse_query_items(
            [
                ("filters[genres]", "Action, Drama"),
                ("filters[genres]", "Comedy"),
                ("filters[tags]", ",,"),
            ]
        )

        assert raw["filters"]["genres"] == ["Action", " Drama", "Comedy"]
        assert raw["filters"]["tags"] == []

    def test_query_wins_over_q(self):
        raw = normalizer.parse_query_items([("query", "first"), ("q", "second")])

        assert raw["query"] == "first"


class TestNormalizeGlobal:

    def test_defaults(self):
        request = normalizer.normalize_global([("query", "  naruto  ")])

        assert request.text == "naruto"
        assert request.type is ContentType.ALL
        assert request.page == 1
        assert request.limit == 10
        assert request.sort.field is SortField.RELEVANCE
        assert request.sort.order is SortOrder.DESC
        assert request.filters.genres is None

    def test_full_request(self):
        request = normalizer.normalize_global(
            [
                ("query", "naruto"),
                ("type", "manga"),
                ("page", "3"),
                ("limit", "25"),
                ("sortBy", "popularity"),
                ("sortOrder", "asc"),
                ("filters[genres]", "Action, Drama,Action"),
                ("filters[adult]", "false"),
            ]
        )

        assert request.type is ContentType.MANGA
        assert request.offset == 50
        assert request.sort.field is SortField.POPULARITY
        assert request.sort.order is SortOrder.ASC
        assert request.filters.genres == ("Action", "Drama")
        assert request.filters.adult is False

    def test_collects_every_error(self):
        with pytest.raises(ValidationError) as exc_info:
            normalizer.normalize_global(
                [
                    ("query", "x" * 201),
                    ("limit", "100"),
                    ("page", "-1"),
                    ("sortBy", "random"),
                    ("filters[year]", "1800"),
                ]
            )

        assert fields_of(exc_info.value) == {"query", "limit", "page", "sortBy", "filters.year"}

    def test_empty_status_is_ignored(self):
        request = normalizer.normalize_global([("query", "x"), ("filters[status]", "")])

        assert request.filters.status is None


class TestNormalizeAdvanced:

    def test_filter_only_body(self):
        request = normalizer.normalize_advanced(
            {"year": {"from": 2020, "to": 2021}, "episodes": {"min": 12}, "type": "TV"}
        )

        assert request.text is None
        assert request.type is ContentType.ALL
        assert request.limit == 20
        assert request.filters.year_range.from_ == 2020
        assert request.filters.year_range.to == 2021
        assert request.filters.episodes.min == 12
        assert request.filters.episodes.max is None
        assert request.filters.media_format == "TV"

    def test_empty_body(self):
        request = normalizer.normalize_advanced(None)

        assert request.has_text is False
        assert request.filters.year_range is None

    def test_blank_title_is_no_text(self):
        request = normalizer.normalize_advanced({"title": "   ", "description": "ninja village"})

        assert request.text is None
        assert request.description == "ninja village"

    def test_inverted_ranges(self):
        with pytest.raises(ValidationError) as exc_info:
            normalizer.normalize_advanced(
                {"year": {"from": 2021, "to": 2020}, "duration": {"min": 30, "max": 10}}
            )

        assert fields_of(exc_info.value) == {"year", "duration"}

    def test_rejects_non_object(self):
        with pytest.raises(ValidationError) as exc_info:
            normalizer.normalize_advanced("naruto")

        assert fields_of(exc_info.value) == {"body"}


class TestOtherEndpoints:

    def test_suggestions_defaults(self):
        params = normalizer.normalize_suggestions([("q", "nar")])

        assert params.query == "nar"
        assert params.type is ContentType.ALL
        assert params.limit == 5

    def test_filters_type(self):
        assert normalizer.normalize_filters([]) is ContentType.ALL
        assert normalizer.normalize_filters([("type", "novels")]) is ContentType.NOVELS

    def test_trending(self):
        params = normalizer.normalize_trending([("period", "30d")])

        assert params.period == "30d"
        assert params.limit == 10

    def test_reindex(self):
        assert normalizer.normalize_reindex("users", "15") == (ContentType.USERS, "15")

    def test_reindex_rejects_all(self):
        with pytest.raises(ValidationError) as exc_info:
            normalizer.normalize_reindex("all", "15")

        assert fields_of(exc_info.value) == {"type"}

    def test_bulk_reindex_expands_all(self):
        assert normalizer.normalize_bulk_reindex("all") == CONCRETE_TYPES
        assert normalizer.normalize_bulk_reindex("novels") == (ContentType.NOVELS,)

    def test_bulk_reindex_rejects_unknown_type(self):
        with pytest.raises(ValidationError) as exc_info:
            normalizer.normalize_bulk_reindex("books")

        assert fields_of(exc_info.value) == {"type"}
