"""Custom error types for the catalog search system.

All errors follow the "fail fast" principle with explicit messages.
Index errors carry enough context (index, clause) to diagnose outages;
that context is logged, never returned to API callers.
"""

from dataclasses import dataclass
from typing import Optional


class CatalogSearchError(Exception):
    """Base exception for all catalog search errors."""

    pass


@dataclass(frozen=True)
class FieldError:
    """A single violated request field."""

    field: str
    message: str


class ValidationError(CatalogSearchError):
    """Request input failed validation.

    Attributes:
        errors: Every violated field, not just the first
    """

    def __init__(self, errors: list[FieldError]):
        self.errors = list(errors)
        fields = ", ".join(e.field for e in self.errors) or "<request>"
        super().__init__(f"Invalid search parameters: {fields}")


class IndexBackendError(CatalogSearchError):
    """Base class for failures of the full-text index.

    Attributes:
        index: Index (or index pattern) involved, if known
        clause: Query part being executed (search, fanout, suggest, ping, index)
    """

    def __init__(
        self,
        message: str,
        index: Optional[str] = None,
        clause: Optional[str] = None,
    ):
        self.index = index
        self.clause = clause
        super().__init__(message)


class IndexUnavailableError(IndexBackendError):
    """Index cannot be reached (probe failure, connection error)."""

    pass


class IndexQueryError(IndexBackendError):
    """Index was reached but the query errored or timed out."""

    pass


class EntityNotFoundError(CatalogSearchError):
    """Catalog entity does not exist."""

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class AuthorizationError(CatalogSearchError):
    """Caller's role claim does not allow the operation."""

    pass


class StorageError(CatalogSearchError):
    """Error during database operations."""

    pass


class SearchUnavailableError(CatalogSearchError):
    """No search path could serve the request."""

    pass
