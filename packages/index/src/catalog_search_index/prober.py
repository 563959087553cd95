"""Availability probe deciding whether a call tries the index path."""

import time
from typing import Callable, Optional

from catalog_search_common import get_logger

from catalog_search_index.client import IndexBackend

logger = get_logger(__name__)


class AvailabilityProber:
    """Short-timeout liveness check with a positive-only cache.

    A successful probe may be reused for ``ttl_seconds``; a failed one is
    never cached, so recovery is seen on the next call. Never raises.
    """

    def __init__(
        self,
        backend: IndexBackend,
        ttl_seconds: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._backend = backend
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._available_until: Optional[float] = None

    async def is_available(self) -> bool:
        now = self._clock()
        if self._available_until is not None and now < self._available_until:
            return True

        try:
            available = await self._backend.ping()
        except Exception as e:
            logger.warning("index_probe_failed", error=str(e), error_type=type(e).__name__)
            available = False

        if available and self._ttl_seconds > 0:
            self._available_until = now + self._ttl_seconds
        else:
            self._available_until = None

        if not available:
            logger.warning("index_unavailable")
        return available

    def invalidate(self) -> None:
        """Drop a cached positive result (e.g. after an index query failed)."""
        self._available_until = None
