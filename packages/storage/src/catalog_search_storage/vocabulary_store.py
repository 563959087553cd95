"""VocabularyStore - genre/tag lookups and the catalog year range."""

from datetime import datetime, timezone

from catalog_search_common import StorageError, get_logger
from catalog_search_contracts import VocabularyTerm, YearBounds

from catalog_search_storage.connection import get_connection_pool

logger = get_logger(__name__)

DEFAULT_MIN_YEAR = 1960

YEAR_RANGE_SQL = """
    SELECT MIN(year) AS min_year, MAX(year) AS max_year
    FROM (
        SELECT EXTRACT(YEAR FROM start_date)::int AS year FROM animes WHERE start_date IS NOT NULL
        UNION ALL
        SELECT EXTRACT(YEAR FROM start_date)::int AS year FROM mangas WHERE start_date IS NOT NULL
        UNION ALL
        SELECT EXTRACT(YEAR FROM start_date)::int AS year FROM novels WHERE start_date IS NOT NULL
    ) years
"""


class VocabularyStore:
    """Filter vocabulary from the relational lookup tables."""

    @staticmethod
    async def list_genres() -> list[VocabularyTerm]:
        pool = await get_connection_pool()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch("SELECT id, name, description FROM genres ORDER BY name")
        except Exception as e:
            logger.error("genre_list_failed", error=str(e))
            raise StorageError(f"Failed to list genres: {e}") from e
        return [VocabularyTerm(**dict(row)) for row in rows]

    @staticmethod
    async def list_tags(include_adult: bool = False) -> list[VocabularyTerm]:
        """List tags ordered by name; adult tags only when asked for."""
        sql = "SELECT id, name, description FROM tags"
        if not include_adult:
            sql += " WHERE adult = FALSE"
        sql += " ORDER BY name"

        pool = await get_connection_pool()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(sql)
        except Exception as e:
            logger.error("tag_list_failed", error=str(e))
            raise StorageError(f"Failed to list tags: {e}") from e
        return [VocabularyTerm(**dict(row)) for row in rows]

    @staticmethod
    async def year_bounds() -> YearBounds:
        """Earliest and latest start year across anime, manga and novels.

        Defaults to 1960..current year for an empty catalog.
        """
        pool = await get_connection_pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(YEAR_RANGE_SQL)
        except Exception as e:
            logger.error("year_range_failed", error=str(e))
            raise StorageError(f"Failed to compute year range: {e}") from e

        current_year = datetime.now(timezone.utc).year
        min_year = row["min_year"] if row and row["min_year"] is not None else DEFAULT_MIN_YEAR
        max_year = row["max_year"] if row and row["max_year"] is not None else current_year
        return YearBounds(min=min_year, max=max_year)
