"""Sakuin observability helpers."""

from sakuin.observability.tracing import (
    TracingConfigError,
    configure_tracing,
    is_tracing_enabled,
)

__all__ = ["TracingConfigError", "configure_tracing", "is_tracing_enabled"]
