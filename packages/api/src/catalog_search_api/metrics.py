"""Prometheus metrics for catalog search.

HTTP level (every route):
    catalog_search_http_requests_total{endpoint, method, status}
    catalog_search_http_request_duration_seconds{endpoint, method}
    catalog_search_http_requests_in_progress{endpoint}

Search routing (search service):
    catalog_search_requests_total{endpoint, search_method}
    catalog_search_duration_seconds{endpoint, search_method}
    catalog_search_index_failures_total{index, operation}
    catalog_search_fallback_total{endpoint, reason}
    catalog_search_results_returned{endpoint}
    catalog_search_empty_total{endpoint}

A rising ``fallback_total{reason="unavailable"}`` with flat
``index_failures_total`` means the probe is failing, not the queries.
"""

import time
from contextlib import contextmanager
from typing import Iterator, Optional

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from starlette.responses import Response

_LATENCY_BUCKETS = (0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

HTTP_REQUESTS = Counter(
    "catalog_search_http_requests_total",
    "HTTP requests by route and status code",
    ["endpoint", "method", "status"],
)
HTTP_LATENCY = Histogram(
    "catalog_search_http_request_duration_seconds",
    "Wall time per HTTP request",
    ["endpoint", "method"],
    buckets=_LATENCY_BUCKETS,
)
HTTP_IN_FLIGHT = Gauge(
    "catalog_search_http_requests_in_progress",
    "HTTP requests being served",
    ["endpoint"],
)

SEARCHES = Counter(
    "catalog_search_requests_total",
    "Searches served, by endpoint and the path that answered (index/fallback)",
    ["endpoint", "search_method"],
)
SEARCH_LATENCY = Histogram(
    "catalog_search_duration_seconds",
    "Search time including probe and any fallback",
    ["endpoint", "search_method"],
    buckets=_LATENCY_BUCKETS[:-1],
)
INDEX_FAILURES = Counter(
    "catalog_search_index_failures_total",
    "Index calls that failed, by index and operation",
    ["index", "operation"],
)
FALLBACKS = Counter(
    "catalog_search_fallback_total",
    "Requests routed to the relational path, by endpoint and reason",
    ["endpoint", "reason"],
)
RESULTS_RETURNED = Histogram(
    "catalog_search_results_returned",
    "Results per response",
    ["endpoint"],
    buckets=(0, 1, 2, 3, 5, 10, 20, 50),
)
EMPTY_RESULTS = Counter(
    "catalog_search_empty_total",
    "Responses with no results",
    ["endpoint"],
)


@contextmanager
def instrument_request(endpoint: str, method: str) -> Iterator[None]:
    """Track in-flight count and latency around one HTTP request."""
    gauge = HTTP_IN_FLIGHT.labels(endpoint=endpoint)
    gauge.inc()
    started = time.perf_counter()
    try:
        yield
    finally:
        HTTP_LATENCY.labels(endpoint=endpoint, method=method).observe(time.perf_counter() - started)
        gauge.dec()


def track_request_status(endpoint: str, method: str, status: int) -> None:
    HTTP_REQUESTS.labels(endpoint=endpoint, method=method, status=str(status)).inc()


def track_search(
    endpoint: str,
    search_method: str,
    count: int,
    duration: Optional[float] = None,
) -> None:
    """Record a completed search.

    Args:
        endpoint: global, advanced, suggestions or trending
        search_method: index or fallback
        count: Results in the response
        duration: Seconds from probe to response, if measured
    """
    SEARCHES.labels(endpoint=endpoint, search_method=search_method).inc()
    RESULTS_RETURNED.labels(endpoint=endpoint).observe(count)
    if not count:
        EMPTY_RESULTS.labels(endpoint=endpoint).inc()
    if duration is not None:
        SEARCH_LATENCY.labels(endpoint=endpoint, search_method=search_method).observe(duration)


def track_index_failure(index: Optional[str], operation: Optional[str]) -> None:
    INDEX_FAILURES.labels(index=index or "unknown", operation=operation or "unknown").inc()


def track_fallback(endpoint: str, reason: str) -> None:
    """Record a switch to the relational path (unavailable, index_error, no_suggester)."""
    FALLBACKS.labels(endpoint=endpoint, reason=reason).inc()


def render_metrics() -> Response:
    """Current registry in the Prometheus text format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
