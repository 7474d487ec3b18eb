"""Sakuin storage OpenTelemetry tracing integration.

Provides a tracing decorator for async store operations.

Span attributes are limited to safe values: the SHA-256 of the id (never the
raw id), the backend name, result sizes and the error type.
"""

from __future__ import annotations

import functools
import hashlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar, cast

from opentelemetry import trace

from sakuin.observability.tracing import is_tracing_enabled
from sakuin.storage.models import StatInfo

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def traced_storage_operation(operation: str) -> Callable[[F], F]:
    """Decorator to trace async store operations with OpenTelemetry.

    The span is named ``sakuin.<store_kind>.<operation>``, where store_kind
    comes from the decorated store's class ("object_store" or
    "document_store").

    Args:
        operation: Operation name (e.g., "put", "get", "stat", "delete").

    Returns:
        Decorated coroutine function that emits spans when tracing is enabled.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(self: Any, entry_id: str, *args: Any, **kwargs: Any) -> Any:
            if not is_tracing_enabled():
                return await func(self, entry_id, *args, **kwargs)

            store_kind = getattr(self, "store_kind", "store")
            tracer = trace.get_tracer(f"sakuin.{store_kind}")

            with tracer.start_as_current_span(f"sakuin.{store_kind}.{operation}") as span:
                id_sha256 = hashlib.sha256(entry_id.encode("utf-8")).hexdigest()
                span.set_attribute("sakuin.id_sha256", id_sha256)
                span.set_attribute("storage.backend", getattr(self, "backend_name", "unknown"))

                try:
                    result = await func(self, entry_id, *args, **kwargs)
                except Exception as e:
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    raise

                _add_result_attributes(span, result)
                return result

        return cast(F, wrapper)

    return decorator


def _add_result_attributes(span: Any, result: Any) -> None:
    """Add result-based attributes to span safely."""
    if isinstance(result, StatInfo):
        span.set_attribute("sakuin.exists", result.exists)
        span.set_attribute("sakuin.size", result.size)
    elif isinstance(result, bytes):
        span.set_attribute("sakuin.size", len(result))
    elif isinstance(result, dict):
        span.set_attribute("sakuin.field_count", len(result))
