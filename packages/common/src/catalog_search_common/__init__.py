"""Catalog Search Common - Shared utilities.

Version: 1.0.0

This package provides:
- Settings (pydantic-settings)
- Structured logging (structlog)
- Retry/backoff for idempotent writes (tenacity)
- OpenTelemetry tracing helpers
- The error taxonomy shared by every package
"""

from catalog_search_common.config import Settings, get_settings
from catalog_search_common.errors import (
    AuthorizationError,
    CatalogSearchError,
    EntityNotFoundError,
    FieldError,
    IndexBackendError,
    IndexQueryError,
    IndexUnavailableError,
    SearchUnavailableError,
    StorageError,
    ValidationError,
)
from catalog_search_common.instrumentation import (
    get_tracer,
    init_telemetry,
    instrument_function,
)
from catalog_search_common.logging_config import (
    bind_request_context,
    clear_request_context,
    configure_logging,
    configure_logging_from_settings,
    get_logger,
)
from catalog_search_common.retry import retry_on_exception

__version__ = "1.0.0"

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Logging
    "configure_logging",
    "configure_logging_from_settings",
    "get_logger",
    "bind_request_context",
    "clear_request_context",
    # Retry
    "retry_on_exception",
    # Instrumentation
    "init_telemetry",
    "get_tracer",
    "instrument_function",
    # Errors
    "CatalogSearchError",
    "FieldError",
    "ValidationError",
    "IndexBackendError",
    "IndexUnavailableError",
    "IndexQueryError",
    "EntityNotFoundError",
    "AuthorizationError",
    "StorageError",
    "SearchUnavailableError",
]
