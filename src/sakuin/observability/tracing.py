"""OpenTelemetry tracing configuration for sakuin.

Environment Variables:
    SAKUIN_OTEL_ENABLED: Set to "1" to enable tracing (default: disabled)
    SAKUIN_REQUIRE_OTEL: Set to "1" to fail startup if tracing cannot initialize
    SAKUIN_OTEL_SERVICE_NAME: Service name for spans (default: "sakuin")
    SAKUIN_OTEL_EXPORTER: Exporter type - "console" or "otlp" (default: "console")
    SAKUIN_OTEL_EXPORTER_OTLP_ENDPOINT: OTLP endpoint URL (optional)
    SAKUIN_OTEL_TEST_CAPTURE: Set to "1" to use in-memory exporter for tests
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import ReadableSpan, TracerProvider

logger = logging.getLogger(__name__)

SAKUIN_OTEL_ENABLED_ENV = "SAKUIN_OTEL_ENABLED"
SAKUIN_OTEL_TEST_CAPTURE_ENV = "SAKUIN_OTEL_TEST_CAPTURE"

_tracer_provider: TracerProvider | None = None
_is_configured: bool = False
_test_exporter: Any = None


class TracingConfigError(Exception):
    """Raised when tracing configuration fails and SAKUIN_REQUIRE_OTEL=1."""


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    val = os.environ.get(key, "").strip().lower()
    if val in ("1", "true", "yes"):
        return True
    if val in ("0", "false", "no", ""):
        return default
    return default


def _get_env_str(key: str, default: str = "") -> str:
    """Get string from environment variable."""
    return os.environ.get(key, default).strip()


def is_tracing_enabled() -> bool:
    """Check if OpenTelemetry tracing is enabled."""
    return _get_env_bool(SAKUIN_OTEL_ENABLED_ENV, False)


def _create_otlp_exporter(endpoint: str | None) -> Any:
    from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

    kwargs: dict[str, Any] = {}
    if endpoint:
        kwargs["endpoint"] = endpoint
    return OTLPSpanExporter(**kwargs)


def configure_tracing() -> bool:
    """Configure OpenTelemetry tracing for sakuin.

    Idempotent - safe to call multiple times.

    Returns:
        True if tracing is enabled and configured, False otherwise.

    Raises:
        TracingConfigError: If SAKUIN_REQUIRE_OTEL=1 and configuration fails.
    """
    global _tracer_provider, _is_configured, _test_exporter

    enabled = is_tracing_enabled()
    require_otel = _get_env_bool("SAKUIN_REQUIRE_OTEL", False)
    test_capture = _get_env_bool(SAKUIN_OTEL_TEST_CAPTURE_ENV, False)

    if not enabled:
        _is_configured = True
        logger.debug("OpenTelemetry tracing disabled (%s not set)", SAKUIN_OTEL_ENABLED_ENV)
        return False

    # The global TracerProvider can only be set once per process.
    if _test_exporter is not None and test_capture:
        return True
    if _is_configured and _tracer_provider is not None:
        return True

    _is_configured = True

    try:
        from opentelemetry import trace
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import (
            BatchSpanProcessor,
            ConsoleSpanExporter,
            SimpleSpanProcessor,
        )
        from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
            InMemorySpanExporter,
        )

        service_name = _get_env_str("SAKUIN_OTEL_SERVICE_NAME", "sakuin")
        exporter_type = _get_env_str("SAKUIN_OTEL_EXPORTER", "console")
        endpoint = _get_env_str("SAKUIN_OTEL_EXPORTER_OTLP_ENDPOINT", "")

        provider = TracerProvider(resource=Resource.create({"service.name": service_name}))

        if test_capture:
            _test_exporter = InMemorySpanExporter()
            provider.add_span_processor(SimpleSpanProcessor(_test_exporter))
        elif exporter_type == "otlp":
            provider.add_span_processor(BatchSpanProcessor(_create_otlp_exporter(endpoint or None)))
        else:
            provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

        trace.set_tracer_provider(provider)
        _tracer_provider = provider

        logger.info(
            "OpenTelemetry tracing configured: service=%s, exporter=%s",
            service_name,
            "in-memory" if test_capture else exporter_type,
        )
        return True

    except Exception as e:
        logger.error("Failed to configure OpenTelemetry tracing: %s", e)
        if require_otel:
            raise TracingConfigError(
                f"OpenTelemetry tracing required but configuration failed: {e}"
            ) from e
        return False


def get_test_spans() -> list[ReadableSpan]:
    """Get captured spans from the in-memory exporter (for testing)."""
    if _test_exporter is not None:
        return list(_test_exporter.get_finished_spans())
    return []


def clear_test_spans() -> None:
    """Clear captured spans from the in-memory exporter (for testing)."""
    if _test_exporter is not None:
        _test_exporter.clear()


def reset_tracing() -> None:
    """Reset tracing configuration (for testing).

    The TracerProvider cannot be replaced once set, so the test exporter is
    kept and only its spans are cleared.
    """
    global _is_configured

    clear_test_spans()
    _is_configured = False
