"""Tests for mapping index hits and relational rows onto results."""

from __future__ import annotations

from decimal import Decimal

from catalog_search_contracts import ContentType
from catalog_search_index import IndexHit
from catalog_search_storage import EntityRow

from catalog_search_api.results import (
    result_from_hit,
    result_from_row,
    suggestion_from_option,
    suggestion_from_row,
)


def test_result_from_hit():
    hit = {
        "_index": "catalog_anime",
        "_id": "16498",
        "_score": 12.5,
        "_source": {
            "title": "Shingeki no Kyojin",
            "titleEnglish": "Attack on Titan",
            "synopsis": "Humanity fights back.",
            "coverImage": "https://img.example/aot.jpg",
            "rating": 8.5,
            "popularity": 900000,
            "type": "TV",
            "genres": ["Action", "Drama"],
        },
        "highlight": {"title": ["<em>Shingeki</em> no Kyojin"]},
    }

    result = result_from_hit(IndexHit(content_type=ContentType.ANIME, hit=hit))

    assert result.type is ContentType.ANIME
    assert result.id == "16498"
    assert result.title_english == "Attack on Titan"
    assert result.score == 12.5
    assert result.popularity == 900000
    assert result.genres == ["Action", "Drama"]
    assert result.highlight == {"title": ["<em>Shingeki</em> no Kyojin"]}


def test_result_from_hit_character_uses_name():
    hit = {"_id": "3", "_score": None, "_source": {"name": "Levi", "description": "Captain"}}

    result = result_from_hit(IndexHit(content_type=ContentType.CHARACTERS, hit=hit))

    assert result.title == "Levi"
    assert result.synopsis == "Captain"
    assert result.score == 0.0
    assert result.highlight is None


def test_result_from_row():
    row = {
        "id": 7,
        "title": "Berserk",
        "title_english": None,
        "synopsis": "",
        "rating": Decimal("9.40"),
        "popularity": 5000,
        "media_type": "MANGA",
        "genres": ["Action", None],
    }

    result = result_from_row(EntityRow(ContentType.MANGA, row))

    assert result.id == "7"
    assert result.rating == 9.4
    assert result.synopsis is None
    assert result.genres == ["Action"]
    assert result.score == 0.0
    assert row["rating"] == Decimal("9.40")


def test_result_from_row_missing_columns():
    result = result_from_row(EntityRow(ContentType.USERS, {"id": 1, "title": "kenji"}))

    assert result.title == "kenji"
    assert result.genres == []
    assert result.popularity is None


def test_suggestions():
    option = {
        "_id": "5",
        "_score": 3.0,
        "_source": {"title": "Monster", "coverImage": "m.jpg", "type": "MANGA"},
    }

    item = suggestion_from_option(IndexHit(content_type=ContentType.MANGA, hit=option))
    assert (item.id, item.title, item.cover_image, item.media_type) == ("5", "Monster", "m.jpg", "MANGA")

    item = suggestion_from_row(EntityRow(ContentType.USERS, {"id": 9, "title": "monster_fan"}))
    assert (item.type, item.id, item.title) == (ContentType.USERS, "9", "monster_fan")
