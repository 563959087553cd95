"""asyncpg pool for the relational search path.

One pool per process, created in the API lifespan. Fallback queries are
read-only and bounded: the pool sets a server-side ``statement_timeout`` so
a runaway ILIKE scan cannot hold a connection past the request.
"""

from dataclasses import dataclass, field
from typing import Optional

import asyncpg
from catalog_search_common import Settings, StorageError, get_logger, get_settings

logger = get_logger(__name__)


@dataclass
class DatabaseConfig:
    """Pool settings for the catalog database.

    Attributes:
        dsn: PostgreSQL connection string
        min_pool_size: Connections opened eagerly
        max_pool_size: Upper bound; concurrent per-type fallback queries share it
        command_timeout: Client-side timeout per query, in seconds
        statement_timeout_ms: Server-side timeout per statement (0 disables)
        application_name: Reported in pg_stat_activity
    """

    dsn: str = field(default_factory=lambda: get_settings().database_url)
    min_pool_size: int = 2
    max_pool_size: int = 10
    command_timeout: float = 30.0
    statement_timeout_ms: int = 10_000
    application_name: str = "catalog-search"

    @classmethod
    def from_settings(cls, settings: Settings) -> "DatabaseConfig":
        return cls(dsn=settings.database_url)

    def server_settings(self) -> dict[str, str]:
        settings = {"application_name": self.application_name}
        if self.statement_timeout_ms > 0:
            settings["statement_timeout"] = str(self.statement_timeout_ms)
        return settings


_connection_pool: Optional[asyncpg.Pool] = None


async def get_connection_pool(config: Optional[DatabaseConfig] = None) -> asyncpg.Pool:
    """Return the process-wide pool, creating it on first use.

    Raises:
        StorageError: If the pool cannot be created
    """
    global _connection_pool

    if _connection_pool is not None:
        return _connection_pool

    config = config or DatabaseConfig()
    try:
        _connection_pool = await asyncpg.create_pool(
            dsn=config.dsn,
            min_size=config.min_pool_size,
            max_size=config.max_pool_size,
            command_timeout=config.command_timeout,
            server_settings=config.server_settings(),
        )
    except Exception as e:
        logger.error("connection_pool_creation_failed", error=str(e))
        raise StorageError(f"Failed to create connection pool: {e}") from e

    logger.info(
        "connection_pool_created",
        min_size=config.min_pool_size,
        max_size=config.max_pool_size,
    )
    return _connection_pool


async def close_connection_pool() -> None:
    """Close the pool; called from the API lifespan on shutdown."""
    global _connection_pool

    pool, _connection_pool = _connection_pool, None
    if pool is None:
        return
    try:
        await pool.close()
    except Exception as e:
        logger.warning("connection_pool_close_failed", error=str(e))
    else:
        logger.info("connection_pool_closed")


async def check_connection_health() -> bool:
    """True when a pooled connection answers ``SELECT 1``."""
    try:
        pool = await get_connection_pool()
        async with pool.acquire() as conn:
            return await conn.fetchval("SELECT 1") == 1
    except Exception as e:
        logger.error("health_check_failed", error=str(e))
        return False
