"""Shared test fixtures for storage package.

Stores are exercised against a mocked asyncpg pool: no database needed.
``mock_pool.conn`` is the AsyncMock connection every ``acquire()`` yields.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest


class FakeAcquire:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        return self.conn

    async def __aexit__(self, *args):
        return False


class FakeTransaction:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        return False


class FakePool:
    """Minimal stand-in for asyncpg.Pool."""

    def __init__(self):
        self.conn = AsyncMock()
        self.conn.fetch.return_value = []
        self.conn.fetchval.return_value = 0
        self.conn.fetchrow.return_value = None
        self.conn.transaction = MagicMock(return_value=FakeTransaction())
        self.acquired = 0

    def acquire(self):
        self.acquired += 1
        return FakeAcquire(self.conn)

    async def close(self):
        pass


@pytest.fixture
def mock_pool():
    """Patch the pool used by both stores."""
    pool = FakePool()
    get_pool = AsyncMock(return_value=pool)
    with patch("catalog_search_storage.catalog_store.get_connection_pool", get_pool), patch(
        "catalog_search_storage.vocabulary_store.get_connection_pool", get_pool
    ):
        yield pool
