"""Test configuration for API tests.

The index is replaced by ``FakeIndexBackend``, an in-memory store that
evaluates the subset of the query DSL the service emits. Relational
stores are patched where the service imports them.
"""

from __future__ import annotations

import fnmatch
from collections import Counter
from typing import Any, AsyncGenerator, Optional
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from catalog_search_common import IndexQueryError, Settings
from catalog_search_contracts import ContentType, VocabularyTerm, YearBounds
from catalog_search_storage import EntityRow, FallbackPage

from catalog_search_api.main import create_app
from catalog_search_api.service import SearchService


def _field(name: str) -> str:
    name = name.split("^", 1)[0]
    return name[: -len(".keyword")] if name.endswith(".keyword") else name


def _matches_text(source: dict, clause: dict) -> bool:
    query = clause["query"].lower()
    for field in clause["fields"]:
        value = source.get(_field(field))
        values = value if isinstance(value, list) else [value]
        if any(isinstance(v, str) and query in v.lower() for v in values):
            return True
    return False


def _matches_filter(source: dict, clause: dict) -> bool:
    kind, spec = next(iter(clause.items()))
    field, expected = next(iter(spec.items()))
    value = source.get(_field(field))
    if kind == "term":
        return value == expected
    if kind == "terms":
        values = value if isinstance(value, list) else [value]
        return any(v in expected for v in values)
    if kind == "range":
        if value is None:
            return False
        if "gte" in expected and value < expected["gte"]:
            return False
        if "lte" in expected and value > expected["lte"]:
            return False
        return True
    raise AssertionError(f"unexpected filter clause {clause}")


class FakeIndexBackend:
    """In-memory index backend.

    Attributes:
        available: What ``ping`` answers
        failing: Index names (or patterns) whose search/suggest raise
        searches: Every (index, body) sent to ``search``
        writes: Every (index, id, document) sent to ``index_document``
        definitions: Index name -> body of every ``create_index`` call
        rejected: Document ids ``bulk_index`` reports as item errors
    """

    def __init__(self) -> None:
        self.available = True
        self.failing: set[str] = set()
        self.write_error: Optional[Exception] = None
        self.docs: dict[str, dict[str, dict]] = {}
        self.searches: list[tuple[str, dict]] = []
        self.suggests: list[tuple[str, dict]] = []
        self.writes: list[tuple[str, str, dict]] = []
        self.definitions: dict[str, dict] = {}
        self.bulk_batches: list[tuple[str, list[str]]] = []
        self.rejected: set[str] = set()

    def add(self, index: str, doc_id: str, score: float = 1.0, **source: Any) -> None:
        self.docs.setdefault(index, {})[doc_id] = {"score": score, "source": source}

    def _indices(self, pattern: str) -> list[str]:
        return sorted(name for name in self.docs if fnmatch.fnmatchcase(name, pattern))

    def _check(self, index: str, clause: str) -> None:
        if index in self.failing:
            raise IndexQueryError("injected failure", index=index, clause=clause)

    async def ping(self) -> bool:
        return self.available

    async def search(self, index: str, body: dict) -> dict:
        self.searches.append((index, body))
        self._check(index, "search")

        query = body["query"]["bool"]
        matched = []
        for name in self._indices(index):
            for doc_id, doc in self.docs[name].items():
                source = doc["source"]
                if not all(
                    "match_all" in clause or _matches_text(source, clause["multi_match"])
                    for clause in query["must"]
                ):
                    continue
                if not all(_matches_filter(source, clause) for clause in query["filter"]):
                    continue
                matched.append({"_index": name, "_id": doc_id, "_score": doc["score"], "_source": source})

        matched.sort(key=lambda h: h["_score"], reverse=True)
        start = body.get("from", 0)
        response: dict[str, Any] = {
            "hits": {
                "total": {"value": len(matched), "relation": "eq"},
                "hits": matched[start : start + body.get("size", 10)],
            }
        }
        if "aggs" in body:
            types = Counter(h["_source"].get("type") for h in matched if h["_source"].get("type"))
            response["aggregations"] = {
                "types": {"buckets": [{"key": k, "doc_count": v} for k, v in types.most_common()]}
            }
        return response

    async def suggest(self, index: str, body: dict) -> dict:
        self.suggests.append((index, body))
        self._check(index, "suggest")

        spec = body["suggest"]["title_suggest"]
        prefix = spec["prefix"].lower()
        options = [
            {"_index": index, "_id": doc_id, "_score": doc["score"], "_source": doc["source"]}
            for doc_id, doc in self.docs.get(index, {}).items()
            if doc["source"].get("title", "").lower().startswith(prefix)
        ]
        options.sort(key=lambda o: o["_score"], reverse=True)
        size = spec["completion"]["size"]
        return {"suggest": {"title_suggest": [{"text": spec["prefix"], "options": options[:size]}]}}

    async def index_document(self, index: str, doc_id: str, document: dict) -> dict:
        if self.write_error is not None:
            raise self.write_error
        result = "updated" if doc_id in self.docs.get(index, {}) else "created"
        self.writes.append((index, doc_id, document))
        self.add(index, doc_id, **document)
        return {"_index": index, "_id": doc_id, "result": result}

    async def index_exists(self, index: str) -> bool:
        if self.write_error is not None:
            raise self.write_error
        return index in self.docs or index in self.definitions

    async def create_index(self, index: str, definition: dict) -> bool:
        if index in self.definitions:
            return False
        self.definitions[index] = definition
        return True

    async def bulk_index(self, index: str, documents: list[tuple[str, dict]]) -> dict:
        if self.write_error is not None:
            raise self.write_error
        self.bulk_batches.append((index, [doc_id for doc_id, _ in documents]))
        items = []
        for doc_id, document in documents:
            if doc_id in self.rejected:
                error = {"type": "mapper_parsing_exception"}
                items.append({"index": {"_id": doc_id, "status": 400, "error": error}})
                continue
            self.add(index, doc_id, **document)
            items.append({"index": {"_id": doc_id, "status": 201}})
        return {"errors": bool(self.rejected), "items": items}


def _row(content_type: ContentType, entity_id: int, title: str, **extra: Any) -> EntityRow:
    return EntityRow(content_type, {"id": entity_id, "title": title, "genres": [], **extra})


@pytest.fixture
def make_row():
    """Build a relational row as the fallback builder aliases it."""
    return _row


@pytest.fixture
def fake_index() -> FakeIndexBackend:
    return FakeIndexBackend()


@pytest.fixture
def mock_storage():
    """Mock all relational store operations."""
    with patch("catalog_search_api.service.CatalogStore") as catalog_mock, \
         patch("catalog_search_api.service.VocabularyStore") as vocabulary_mock:

        catalog_mock.search = AsyncMock(return_value=FallbackPage(rows=[], total=0, approximate=False))
        catalog_mock.suggest = AsyncMock(return_value=[])
        catalog_mock.get_document = AsyncMock(return_value={"id": 1, "title": "Naruto"})
        catalog_mock.trending = AsyncMock(return_value=[])

        documents: dict[ContentType, list[dict]] = {}

        async def iter_documents(content_type, batch_size=500):
            rows = documents.get(content_type, [])
            for start in range(0, len(rows), batch_size):
                yield rows[start : start + batch_size]

        catalog_mock.iter_documents = MagicMock(side_effect=iter_documents)

        vocabulary_mock.list_genres = AsyncMock(
            return_value=[VocabularyTerm(id=1, name="Action"), VocabularyTerm(id=2, name="Drama")]
        )
        vocabulary_mock.list_tags = AsyncMock(return_value=[VocabularyTerm(id=7, name="Ninja")])
        vocabulary_mock.year_bounds = AsyncMock(return_value=YearBounds(min=1963, max=2025))

        yield {"catalog": catalog_mock, "vocabulary": vocabulary_mock, "documents": documents}


@pytest.fixture
def settings() -> Settings:
    return Settings(index_probe_ttl_seconds=0)


@pytest.fixture
def app(fake_index, mock_storage, settings) -> FastAPI:
    """App with the fake index and mocked stores.

    ASGITransport does not run the lifespan, so the service is attached directly.
    """
    app = create_app()
    app.state.search_service = SearchService(fake_index, settings)
    return app


@pytest.fixture
async def app_client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
