"""Catalog Search REST API.

FastAPI service for hybrid search over the anime/manga catalog: a full-text
index when it answers, the relational catalog when it does not.
"""

from catalog_search_api.main import app, create_app

__all__ = ["app", "create_app"]
