"""Structured logging via structlog.

Every package logs snake_case events with keyword context, e.g.

    logger.warning("index_search_failed", index="catalog_anime", clause="fanout")

Events go through the stdlib root logger on stdout, rendered as JSON lines
in production and coloured key/value pairs in development. Request-scoped
fields bound with ``bind_request_context`` are merged into every event.
"""

import logging
import sys

import structlog

from catalog_search_common.config import Settings

_SHARED_PROCESSORS = (
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
)


def _renderers(json_output: bool) -> list:
    if json_output:
        return [structlog.processors.JSONRenderer()]
    return [structlog.dev.set_exc_info, structlog.dev.ConsoleRenderer(colors=True)]


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure stdlib logging and structlog together.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL, in any case
        json_output: JSON lines instead of console rendering
    """
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level.upper())

    structlog.configure(
        processors=[*_SHARED_PROCESSORS, *_renderers(json_output)],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging_from_settings(settings: Settings) -> None:
    configure_logging(level=settings.log_level, json_output=settings.log_format == "json")


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Logger for a module; pass ``__name__``."""
    return structlog.get_logger(name)


def bind_request_context(**context: object) -> None:
    """Attach request-scoped fields (endpoint, method) to every log event.

    Fallback and index-failure events logged deep in the service then carry
    the request they belong to without threading it through every call.
    Fields from a previous request are dropped first.
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**context)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
