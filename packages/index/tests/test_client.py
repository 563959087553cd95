"""Tests for IndexClient.

Uses respx to mock httpx requests for deterministic testing.
"""

import json

import httpx
import pytest
import respx
from httpx import Response

from catalog_search_common import IndexQueryError, IndexUnavailableError
from catalog_search_index import IndexClient

BASE = "http://index.test:9200"


@pytest.fixture
def sample_search_response() -> dict:
    return {
        "took": 3,
        "hits": {
            "total": {"value": 1, "relation": "eq"},
            "hits": [
                {
                    "_index": "catalog_anime",
                    "_id": "20",
                    "_score": 7.1,
                    "_source": {"title": "Naruto", "type": "TV"},
                }
            ],
        },
    }


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_context_manager_opens_and_closes(self):
        async with IndexClient(BASE) as client:
            assert client._client is not None
        assert client._client is None

    @pytest.mark.asyncio
    async def test_unopened_client_is_unavailable(self):
        client = IndexClient(BASE)

        with pytest.raises(IndexUnavailableError):
            await client.search("catalog_anime", {})

    def test_from_settings(self):
        from catalog_search_common import Settings

        settings = Settings(index_url="http://es:9200/", index_ping_timeout_seconds=1.5)
        client = IndexClient.from_settings(settings)

        assert client.base_url == "http://es:9200"
        assert client.ping_timeout_seconds == 1.5


class TestPing:
    @pytest.mark.asyncio
    @respx.mock
    async def test_ping_ok(self):
        respx.head(f"{BASE}/").mock(return_value=Response(200))

        async with IndexClient(BASE) as client:
            assert await client.ping() is True

    @pytest.mark.asyncio
    @respx.mock
    async def test_ping_unhealthy_status(self):
        respx.head(f"{BASE}/").mock(return_value=Response(503))

        async with IndexClient(BASE) as client:
            assert await client.ping() is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_ping_connection_error(self):
        respx.head(f"{BASE}/").mock(side_effect=httpx.ConnectError("refused"))

        async with IndexClient(BASE) as client:
            with pytest.raises(IndexUnavailableError) as exc_info:
                await client.ping()

        assert exc_info.value.clause == "ping"


class TestSearch:
    @pytest.mark.asyncio
    @respx.mock
    async def test_search_posts_body(self, sample_search_response):
        route = respx.post(f"{BASE}/catalog_anime/_search").mock(
            return_value=Response(200, json=sample_search_response)
        )

        async with IndexClient(BASE) as client:
            response = await client.search("catalog_anime", {"query": {"match_all": {}}})

        assert response["hits"]["hits"][0]["_id"] == "20"
        assert route.called
        assert json.loads(route.calls.last.request.content) == {"query": {"match_all": {}}}

    @pytest.mark.asyncio
    @respx.mock
    async def test_error_status_raises_query_error(self):
        respx.post(f"{BASE}/catalog_anime/_search").mock(
            return_value=Response(400, json={"error": {"type": "parsing_exception"}})
        )

        async with IndexClient(BASE) as client:
            with pytest.raises(IndexQueryError) as exc_info:
                await client.search("catalog_anime", {})

        assert exc_info.value.index == "catalog_anime"
        assert exc_info.value.clause == "search"

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_raises_query_error(self):
        respx.post(f"{BASE}/catalog_manga/_search").mock(
            side_effect=httpx.ReadTimeout("slow")
        )

        async with IndexClient(BASE) as client:
            with pytest.raises(IndexQueryError):
                await client.search("catalog_manga", {})

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_error_raises_unavailable(self):
        respx.post(f"{BASE}/catalog_manga/_search").mock(
            side_effect=httpx.ConnectError("refused")
        )

        async with IndexClient(BASE) as client:
            with pytest.raises(IndexUnavailableError):
                await client.search("catalog_manga", {})

    @pytest.mark.asyncio
    @respx.mock
    async def test_suggest_tags_clause(self):
        respx.post(f"{BASE}/catalog_anime/_search").mock(return_value=Response(500))

        async with IndexClient(BASE) as client:
            with pytest.raises(IndexQueryError) as exc_info:
                await client.suggest("catalog_anime", {})

        assert exc_info.value.clause == "suggest"


class TestIndexDocument:
    @pytest.mark.asyncio
    @respx.mock
    async def test_put_document(self):
        route = respx.put(f"{BASE}/catalog_anime/_doc/20").mock(
            return_value=Response(200, json={"result": "updated", "_id": "20"})
        )

        async with IndexClient(BASE) as client:
            response = await client.index_document("catalog_anime", "20", {"title": "Naruto"})

        assert response["result"] == "updated"
        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_transient_transport_error_is_retried(self):
        route = respx.put(f"{BASE}/catalog_anime/_doc/20").mock(
            side_effect=[
                httpx.ConnectError("refused"),
                Response(201, json={"result": "created"}),
            ]
        )

        async with IndexClient(BASE) as client:
            response = await client.index_document("catalog_anime", "20", {"title": "Naruto"})

        assert response["result"] == "created"
        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_persistent_transport_error_raises_unavailable(self):
        route = respx.put(f"{BASE}/catalog_anime/_doc/20").mock(
            side_effect=httpx.ConnectError("refused")
        )

        async with IndexClient(BASE) as client:
            with pytest.raises(IndexUnavailableError) as exc_info:
                await client.index_document("catalog_anime", "20", {})

        assert route.call_count == 3
        assert exc_info.value.clause == "index"

    @pytest.mark.asyncio
    @respx.mock
    async def test_rejected_document_is_not_retried(self):
        route = respx.put(f"{BASE}/catalog_anime/_doc/20").mock(
            return_value=Response(400, json={"error": "mapper_parsing_exception"})
        )

        async with IndexClient(BASE) as client:
            with pytest.raises(IndexQueryError):
                await client.index_document("catalog_anime", "20", {})

        assert route.call_count == 1


class TestIndexManagement:
    @pytest.mark.asyncio
    @respx.mock
    async def test_exists(self):
        respx.head(f"{BASE}/catalog_anime").mock(return_value=Response(200))
        respx.head(f"{BASE}/catalog_manga").mock(return_value=Response(404))

        async with IndexClient(BASE) as client:
            assert await client.index_exists("catalog_anime") is True
            assert await client.index_exists("catalog_manga") is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_exists_error_status_raises(self):
        respx.head(f"{BASE}/catalog_anime").mock(return_value=Response(403))

        async with IndexClient(BASE) as client:
            with pytest.raises(IndexQueryError) as exc_info:
                await client.index_exists("catalog_anime")

        assert exc_info.value.clause == "exists"

    @pytest.mark.asyncio
    @respx.mock
    async def test_create_sends_definition(self):
        route = respx.put(f"{BASE}/catalog_anime").mock(
            return_value=Response(200, json={"acknowledged": True})
        )
        definition = {"mappings": {"properties": {"title_suggest": {"type": "completion"}}}}

        async with IndexClient(BASE) as client:
            assert await client.create_index("catalog_anime", definition) is True

        assert json.loads(route.calls.last.request.content) == definition

    @pytest.mark.asyncio
    @respx.mock
    async def test_create_race_is_not_an_error(self):
        respx.put(f"{BASE}/catalog_anime").mock(
            return_value=Response(
                400, json={"error": {"type": "resource_already_exists_exception"}}
            )
        )

        async with IndexClient(BASE) as client:
            assert await client.create_index("catalog_anime", {}) is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_create_rejected_definition_raises(self):
        respx.put(f"{BASE}/catalog_anime").mock(
            return_value=Response(400, json={"error": {"type": "mapper_parsing_exception"}})
        )

        async with IndexClient(BASE) as client:
            with pytest.raises(IndexQueryError) as exc_info:
                await client.create_index("catalog_anime", {})

        assert exc_info.value.clause == "create"


class TestBulkIndex:
    @pytest.mark.asyncio
    @respx.mock
    async def test_posts_ndjson_actions(self):
        route = respx.post(f"{BASE}/_bulk").mock(
            return_value=Response(200, json={"errors": False, "items": []})
        )

        async with IndexClient(BASE) as client:
            await client.bulk_index(
                "catalog_anime", [("1", {"title": "Naruto"}), ("2", {"title": "Bleach"})]
            )

        request = route.calls.last.request
        assert request.headers["content-type"] == "application/x-ndjson"
        lines = request.content.decode().splitlines()
        assert [json.loads(line) for line in lines] == [
            {"index": {"_index": "catalog_anime", "_id": "1"}},
            {"title": "Naruto"},
            {"index": {"_index": "catalog_anime", "_id": "2"}},
            {"title": "Bleach"},
        ]
        assert request.content.endswith(b"\n")

    @pytest.mark.asyncio
    @respx.mock
    async def test_transient_transport_error_is_retried(self):
        route = respx.post(f"{BASE}/_bulk").mock(
            side_effect=[
                httpx.ConnectError("refused"),
                Response(200, json={"errors": False, "items": []}),
            ]
        )

        async with IndexClient(BASE) as client:
            await client.bulk_index("catalog_manga", [("1", {"title": "Berserk"})])

        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_rejected_request_raises_query_error(self):
        respx.post(f"{BASE}/_bulk").mock(return_value=Response(413))

        async with IndexClient(BASE) as client:
            with pytest.raises(IndexQueryError) as exc_info:
                await client.bulk_index("catalog_manga", [("1", {})])

        assert exc_info.value.clause == "bulk"
