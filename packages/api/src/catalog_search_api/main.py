"""FastAPI application for catalog search.

Main entry point for the REST API server.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalog_search_common import (
    AuthorizationError,
    EntityNotFoundError,
    IndexBackendError,
    SearchUnavailableError,
    StorageError,
    ValidationError,
    bind_request_context,
    clear_request_context,
    configure_logging_from_settings,
    get_logger,
    get_settings,
    init_telemetry,
)
from catalog_search_index import IndexClient
from catalog_search_storage import DatabaseConfig, close_connection_pool, get_connection_pool

from catalog_search_api import schemas
from catalog_search_api.metrics import instrument_request, track_request_status
from catalog_search_api.service import SearchService

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown.

    - Startup: logging, telemetry, database pool, index client, missing indices
    - Shutdown: close the index client and the pool
    """
    settings = get_settings()
    configure_logging_from_settings(settings)
    init_telemetry(settings.otel_service_name)
    logger.info("api_starting")

    pool = await get_connection_pool(DatabaseConfig.from_settings(settings))
    index = IndexClient.from_settings(settings)
    await index.open()
    service = SearchService(index, settings)
    await service.initialize_index()
    app.state.search_service = service

    logger.info("api_started", pool_size=pool.get_size(), index_url=settings.index_url)

    yield

    logger.info("api_stopping")
    await index.close()
    await close_connection_pool()
    logger.info("api_stopped")


def _error(
    status_code: int,
    error: str,
    message: str,
    details: Optional[list[schemas.ErrorDetail]] = None,
) -> JSONResponse:
    body = schemas.ErrorResponse(error=error, message=message, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def register_exception_handlers(app: FastAPI) -> None:
    """Map the error taxonomy onto HTTP responses.

    Index and storage diagnostics (index names, clauses, SQL errors) are
    logged and never included in the response body.
    """

    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        details = [schemas.ErrorDetail(field=e.field, message=e.message) for e in exc.errors]
        return _error(400, "validation_error", "Invalid search parameters", details)

    @app.exception_handler(AuthorizationError)
    async def authorization_error(request: Request, exc: AuthorizationError) -> JSONResponse:
        return _error(403, "forbidden", str(exc))

    @app.exception_handler(EntityNotFoundError)
    async def not_found(request: Request, exc: EntityNotFoundError) -> JSONResponse:
        return _error(404, "not_found", str(exc))

    @app.exception_handler(SearchUnavailableError)
    async def search_unavailable(request: Request, exc: SearchUnavailableError) -> JSONResponse:
        return _error(503, "service_unavailable", str(exc))

    @app.exception_handler(IndexBackendError)
    async def index_error(request: Request, exc: IndexBackendError) -> JSONResponse:
        logger.error("index_backend_error", index=exc.index, clause=exc.clause, error=str(exc))
        return _error(503, "service_unavailable", "Search index is unavailable")

    @app.exception_handler(StorageError)
    async def storage_error(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("storage_error", error=str(exc))
        return _error(503, "service_unavailable", "Catalog database is unavailable")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Catalog Search API",
        description="Hybrid search over anime, manga, characters, users and novels",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def http_metrics(request: Request, call_next):
        endpoint = request.url.path
        if endpoint.startswith("/search/index/"):
            endpoint = "/search/index"
        bind_request_context(endpoint=endpoint, method=request.method)
        try:
            with instrument_request(endpoint, request.method):
                response = await call_next(request)
        finally:
            clear_request_context()
        track_request_status(endpoint, request.method, response.status_code)
        return response

    register_exception_handlers(app)

    from catalog_search_api.routes.health import router as health_router
    from catalog_search_api.routes.search import router as search_router

    app.include_router(health_router, tags=["Health"])
    app.include_router(search_router, prefix="/search", tags=["Search"])

    return app


# Create the app instance
app = create_app()
