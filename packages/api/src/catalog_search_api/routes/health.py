"""Health check endpoints.

Kubernetes-style health checks:
- /health/live - Liveness probe (is the process alive?)
- /health/ready - Readiness probe (can it serve traffic?)
- /health - Combined check with database and index status

Only the database is required for readiness: with the index down every
search still has a relational path.
"""

from __future__ import annotations

import time

from fastapi import APIRouter, Request

from catalog_search_storage import check_connection_health

from catalog_search_api import schemas
from catalog_search_api.metrics import render_metrics

router = APIRouter()


async def _index_available(request: Request) -> bool:
    service = getattr(request.app.state, "search_service", None)
    if service is None:
        return False
    return await service.index_available()


@router.get("/health/live")
async def liveness() -> dict:
    """Liveness probe - is the process alive?"""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness(request: Request) -> dict:
    """Readiness probe - can the service handle traffic?"""
    components = {}
    start = time.time()

    try:
        db_ok = await check_connection_health()
    except Exception as e:
        components["database"] = {"status": "not_ready", "error": str(e)[:100]}
    else:
        components["database"] = {"status": "ready" if db_ok else "not_ready"}

    index_ok = await _index_available(request)
    components["index"] = {"status": "ready" if index_ok else "degraded"}

    elapsed_ms = (time.time() - start) * 1000
    return {
        "status": "ready" if components["database"]["status"] == "ready" else "not_ready",
        "components": components,
        "check_duration_ms": round(elapsed_ms, 2),
    }


@router.get("/health", response_model=schemas.HealthCheck)
async def health_check(request: Request) -> schemas.HealthCheck:
    """Primary health check. Index loss degrades, database loss is unhealthy."""
    try:
        db_ok = await check_connection_health()
    except Exception:
        db_ok = False
    index_ok = await _index_available(request)

    if not db_ok:
        status = "unhealthy"
    elif not index_ok:
        status = "degraded"
    else:
        status = "healthy"

    return schemas.HealthCheck(
        status=status,
        version="1.0.0",
        database="connected" if db_ok else "disconnected",
        index="available" if index_ok else "unavailable",
    )


@router.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return render_metrics()
