"""Async HTTP client for an Elasticsearch-compatible index.

Calls the search service needs:
- ping            HEAD /
- search/suggest  POST /{index}/_search
- index_document  PUT  /{index}/_doc/{id}
- index_exists    HEAD /{index}
- create_index    PUT  /{index}
- bulk_index      POST /_bulk (NDJSON)

Transport failures map to IndexUnavailableError; error responses and
timeouts map to IndexQueryError. Reads are never retried; document writes
(single and bulk) are idempotent upserts by id and are retried on transport
errors.
"""

import json
from typing import Any, Optional, Protocol

import httpx
from catalog_search_common import (
    IndexQueryError,
    IndexUnavailableError,
    Settings,
    get_logger,
    retry_on_exception,
)

logger = get_logger(__name__)


class IndexBackend(Protocol):
    """What the search service needs from an index backend."""

    async def ping(self) -> bool: ...

    async def search(self, index: str, body: dict[str, Any]) -> dict[str, Any]: ...

    async def suggest(self, index: str, body: dict[str, Any]) -> dict[str, Any]: ...

    async def index_document(
        self, index: str, doc_id: str, document: dict[str, Any]
    ) -> dict[str, Any]: ...

    async def index_exists(self, index: str) -> bool: ...

    async def create_index(self, index: str, definition: dict[str, Any]) -> bool: ...

    async def bulk_index(
        self, index: str, documents: list[tuple[str, dict[str, Any]]]
    ) -> dict[str, Any]: ...


class IndexClient:
    """httpx-based index backend.

    Example:
        >>> async with IndexClient("http://localhost:9200") as client:
        ...     if await client.ping():
        ...         response = await client.search("catalog_anime", body)
    """

    def __init__(
        self,
        base_url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout_seconds: float = 10.0,
        ping_timeout_seconds: float = 3.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.password = password
        self.timeout_seconds = timeout_seconds
        self.ping_timeout_seconds = ping_timeout_seconds
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "IndexClient":
        return cls(
            base_url=settings.index_url,
            username=settings.index_username,
            password=settings.index_password,
            timeout_seconds=settings.index_timeout_seconds,
            ping_timeout_seconds=settings.index_ping_timeout_seconds,
        )

    async def open(self) -> None:
        if self._client is not None:
            return
        auth = (self.username, self.password or "") if self.username else None
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=auth,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            timeout=httpx.Timeout(self.timeout_seconds),
        )
        logger.info("index_client_opened", base_url=self.base_url, has_auth=auth is not None)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("index_client_closed")

    async def __aenter__(self) -> "IndexClient":
        await self.open()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    def _require_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise IndexUnavailableError("Index client not opened", clause="client")
        return self._client

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def ping(self) -> bool:
        """True when the cluster answers HEAD / with 2xx within the ping timeout.

        Raises:
            IndexUnavailableError: On transport errors (including timeout)
        """
        client = self._require_client()
        try:
            response = await client.head("/", timeout=self.ping_timeout_seconds)
        except httpx.TransportError as e:
            raise IndexUnavailableError(f"Index ping failed: {e}", clause="ping") from e
        return response.is_success

    async def search(self, index: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", f"/{index}/_search", body, index=index, clause="search")

    async def suggest(self, index: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", f"/{index}/_search", body, index=index, clause="suggest")

    async def index_document(
        self, index: str, doc_id: str, document: dict[str, Any]
    ) -> dict[str, Any]:
        """Upsert a document by id.

        Raises:
            IndexUnavailableError: Transport still failing after retries
            IndexQueryError: Index rejected the document
        """
        path = f"/{index}/_doc/{doc_id}"
        try:
            response = await self._put_with_retry(path, document)
        except httpx.TransportError as e:
            raise IndexUnavailableError(
                f"Index write failed: {e}", index=index, clause="index"
            ) from e

        self._raise_for_status(response, path, index, "index")
        return response.json()

    async def index_exists(self, index: str) -> bool:
        """True on 200, False on 404; any other status is an IndexQueryError."""
        response = await self._send("HEAD", f"/{index}", index=index, clause="exists")
        if response.status_code == 404:
            return False
        self._raise_for_status(response, f"/{index}", index, "exists")
        return True

    async def create_index(self, index: str, definition: dict[str, Any]) -> bool:
        """Create an index with settings and mappings.

        Returns False when another process created it first.
        """
        response = await self._send(
            "PUT", f"/{index}", index=index, clause="create", json=definition
        )
        if response.status_code == 400 and "resource_already_exists_exception" in response.text:
            return False
        self._raise_for_status(response, f"/{index}", index, "create")
        logger.info("index_created", index=index)
        return True

    async def bulk_index(
        self, index: str, documents: list[tuple[str, dict[str, Any]]]
    ) -> dict[str, Any]:
        """Upsert many documents in one ``_bulk`` call.

        Per-item failures are reported in the response (``errors``, ``items``),
        not raised.

        Raises:
            IndexUnavailableError: Transport still failing after retries
            IndexQueryError: The bulk request itself was rejected
        """
        lines = []
        for doc_id, document in documents:
            lines.append(json.dumps({"index": {"_index": index, "_id": doc_id}}))
            lines.append(json.dumps(document, default=str))
        payload = ("\n".join(lines) + "\n").encode()

        try:
            response = await self._bulk_with_retry(payload)
        except httpx.TransportError as e:
            raise IndexUnavailableError(
                f"Index bulk write failed: {e}", index=index, clause="bulk"
            ) from e
        self._raise_for_status(response, "/_bulk", index, "bulk")
        return response.json()

    @retry_on_exception(
        (httpx.TransportError,),
        max_attempts=3,
        min_wait_seconds=0.2,
        max_wait_seconds=2.0,
    )
    async def _bulk_with_retry(self, payload: bytes) -> httpx.Response:
        client = self._require_client()
        return await client.post(
            "/_bulk", content=payload, headers={"Content-Type": "application/x-ndjson"}
        )

    @retry_on_exception(
        (httpx.TransportError,),
        max_attempts=3,
        min_wait_seconds=0.2,
        max_wait_seconds=2.0,
    )
    async def _put_with_retry(self, path: str, document: dict[str, Any]) -> httpx.Response:
        client = self._require_client()
        return await client.put(path, json=document)

    async def _send(
        self, method: str, path: str, index: str, clause: str, **kwargs: Any
    ) -> httpx.Response:
        client = self._require_client()
        logger.debug("index_request", method=method, path=path)

        try:
            return await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise IndexQueryError(
                f"Index request timed out: {path}", index=index, clause=clause
            ) from e
        except httpx.TransportError as e:
            raise IndexUnavailableError(
                f"Index unreachable: {e}", index=index, clause=clause
            ) from e

    @staticmethod
    def _raise_for_status(response: httpx.Response, path: str, index: str, clause: str) -> None:
        if response.status_code >= 400:
            raise IndexQueryError(
                f"Index error {response.status_code} at {path}: {response.text[:500]}",
                index=index,
                clause=clause,
            )

    async def _request(
        self,
        method: str,
        path: str,
        body: dict[str, Any],
        index: str,
        clause: str,
    ) -> dict[str, Any]:
        response = await self._send(method, path, index=index, clause=clause, json=body)
        self._raise_for_status(response, path, index, clause)
        return response.json()
