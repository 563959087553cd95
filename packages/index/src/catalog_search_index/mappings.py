"""Index settings and field mappings, one definition per content type.

Every field the query builder filters, sorts or aggregates on through a
``.keyword`` suffix is mapped as text with a keyword subfield; the
suggester reads the ``title_suggest`` completion field. Documents of all
types share the title/description field names, so one query body works
across ``{prefix}_*``.
"""

import copy
from typing import Any

from catalog_search_contracts import ContentType

from catalog_search_index.query_builder import SUGGEST_NAME

ANALYSIS: dict[str, Any] = {
    "analyzer": {
        "catalog_text": {
            "type": "custom",
            "tokenizer": "standard",
            "filter": ["lowercase", "asciifolding", "catalog_synonyms", "stop", "snowball"],
        },
    },
    "filter": {
        "catalog_synonyms": {
            "type": "synonym",
            "synonyms": [
                "anime, animation",
                "manga, comic",
                "manhwa, webtoon",
                "shounen, shonen",
                "shoujo, shojo",
            ],
        },
    },
}


def _text(keyword: bool = False, analyzer: str = "catalog_text") -> dict[str, Any]:
    field: dict[str, Any] = {"type": "text", "analyzer": analyzer}
    if keyword:
        field["fields"] = {"keyword": {"type": "keyword", "ignore_above": 256}}
    return field


_COMMON: dict[str, Any] = {
    "id": {"type": "keyword"},
    "title": _text(keyword=True),
    "titleEnglish": _text(keyword=True),
    "titleJapanese": _text(analyzer="cjk"),
    "description": _text(),
    "coverImage": {"type": "keyword", "index": False},
    "popularity": {"type": "integer"},
    "createdAt": {"type": "date"},
    "updatedAt": {"type": "date"},
    SUGGEST_NAME: {"type": "completion"},
}

_MEDIA: dict[str, Any] = {
    **_COMMON,
    "titleRomaji": _text(keyword=True),
    "synopsis": _text(),
    "type": _text(keyword=True),
    "status": _text(keyword=True),
    "genres": _text(keyword=True),
    "tags": _text(keyword=True),
    "startDate": {"type": "date"},
    "year": {"type": "integer"},
    "rating": {"type": "float"},
    "adult": {"type": "boolean"},
    "stats": {
        "properties": {
            "favorites": {"type": "integer"},
            "reviews": {"type": "integer"},
        }
    },
}

PROPERTIES: dict[ContentType, dict[str, Any]] = {
    ContentType.ANIME: {**_MEDIA, "episodes": {"type": "integer"}, "duration": {"type": "integer"}},
    ContentType.MANGA: {**_MEDIA, "chapters": {"type": "integer"}, "volumes": {"type": "integer"}},
    ContentType.NOVELS: {**_MEDIA, "chapters": {"type": "integer"}, "volumes": {"type": "integer"}},
    ContentType.CHARACTERS: dict(_COMMON),
    ContentType.USERS: dict(_COMMON),
}


def index_definition(content_type: ContentType) -> dict[str, Any]:
    """Body for ``PUT /{index}``: analysis settings plus the type's mappings."""
    if content_type is ContentType.ALL:
        raise ValueError("ContentType.ALL has no index definition")
    return {
        "settings": {"analysis": copy.deepcopy(ANALYSIS)},
        "mappings": {"properties": copy.deepcopy(PROPERTIES[content_type])},
    }
