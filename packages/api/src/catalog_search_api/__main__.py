"""Run the API server: ``python -m catalog_search_api``."""

import uvicorn

from catalog_search_common import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "catalog_search_api.main:app",
        host=settings.api_host,
        port=settings.api_port,
    )


if __name__ == "__main__":
    main()
