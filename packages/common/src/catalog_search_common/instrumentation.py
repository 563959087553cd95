"""OpenTelemetry tracing helpers.

Search entry points are wrapped in spans so a slow fallback or a hanging
fan-out shows up in traces next to the request that caused it. Spans
record the exception and an error status when the wrapped call raises.
"""

import inspect
from functools import wraps
from typing import Any, Callable, Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider

_tracer_provider: Optional[TracerProvider] = None


def init_telemetry(service_name: str = "catalog-search") -> None:
    """Install the process tracer provider (first call wins).

    Exporters are attached by the deployment; without one, spans are
    recorded and dropped.
    """
    global _tracer_provider
    if _tracer_provider is None:
        _tracer_provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
        trace.set_tracer_provider(_tracer_provider)


def get_tracer(name: str) -> trace.Tracer:
    if _tracer_provider is None:
        init_telemetry()
    return trace.get_tracer(name)


def instrument_function(span_name: Optional[str] = None) -> Callable:
    """Run the decorated sync or async callable inside a span.

    Example:
        >>> @instrument_function("search.global")
        ... async def global_search(self, request): ...
    """

    def decorator(func: Callable) -> Callable:
        name = span_name or func.__name__

        def span():
            return get_tracer(func.__module__).start_as_current_span(name)

        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def traced_async(*args: Any, **kwargs: Any) -> Any:
                with span():
                    return await func(*args, **kwargs)

            return traced_async

        @wraps(func)
        def traced(*args: Any, **kwargs: Any) -> Any:
            with span():
                return func(*args, **kwargs)

        return traced

    return decorator
