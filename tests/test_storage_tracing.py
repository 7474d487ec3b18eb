"""Tests for sakuin OpenTelemetry tracing of store operations.

Tests use the in-memory exporter (no external collector required).
"""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import Iterator
from pathlib import Path

import pytest

from sakuin.observability.tracing import (
    configure_tracing,
    get_test_spans,
    is_tracing_enabled,
    reset_tracing,
)
from sakuin.storage.errors import ObjectNotFoundError
from sakuin.storage.filesystem_store import FilesystemDocumentStore
from sakuin.storage.memory_store import InMemoryObjectStore

ENTRY_ID = "0f8fad5b-d9cb-469f-a165-70867728950e"


@pytest.fixture
def capture_spans(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Enable tracing with the in-memory exporter for one test."""
    monkeypatch.setenv("SAKUIN_OTEL_ENABLED", "1")
    monkeypatch.setenv("SAKUIN_OTEL_TEST_CAPTURE", "1")
    reset_tracing()
    assert configure_tracing() is True
    yield
    reset_tracing()


class TestTracingConfiguration:
    """Tests for tracing configuration behavior."""

    def test_tracing_disabled_by_default(self) -> None:
        """Tracing is OFF when SAKUIN_OTEL_ENABLED is not set."""
        reset_tracing()
        assert is_tracing_enabled() is False
        assert configure_tracing() is False

    def test_tracing_idempotent(self, capture_spans: None) -> None:
        """configure_tracing() can be called repeatedly."""
        assert configure_tracing() is True
        assert configure_tracing() is True

    def test_disabled_tracing_emits_no_spans(self) -> None:
        reset_tracing()
        asyncio.run(InMemoryObjectStore().put(ENTRY_ID, b"x"))
        assert get_test_spans() == []


class TestStorageSpans:
    """Store operations emit spans with safe attributes."""

    def test_put_span_named_by_store_kind(self, capture_spans: None) -> None:
        asyncio.run(InMemoryObjectStore().put(ENTRY_ID, b"data"))

        names = [span.name for span in get_test_spans()]
        assert names == ["sakuin.object_store.put"]

    def test_span_carries_hashed_id_not_raw_id(self, capture_spans: None) -> None:
        asyncio.run(InMemoryObjectStore().stat(ENTRY_ID))

        (span,) = get_test_spans()
        attributes = dict(span.attributes or {})
        assert attributes["sakuin.id_sha256"] == hashlib.sha256(ENTRY_ID.encode()).hexdigest()
        assert attributes["storage.backend"] == "memory"
        assert attributes["sakuin.exists"] is False
        assert ENTRY_ID not in str(attributes)

    def test_get_span_records_size(self, capture_spans: None) -> None:
        store = InMemoryObjectStore().with_object(ENTRY_ID, b"12345")
        asyncio.run(store.get(ENTRY_ID))

        (span,) = get_test_spans()
        assert dict(span.attributes or {})["sakuin.size"] == 5

    def test_failed_operation_marks_error(self, capture_spans: None) -> None:
        with pytest.raises(ObjectNotFoundError):
            asyncio.run(InMemoryObjectStore().get(ENTRY_ID))

        (span,) = get_test_spans()
        attributes = dict(span.attributes or {})
        assert attributes["error"] is True
        assert attributes["error.type"] == "ObjectNotFoundError"

    def test_document_store_spans(self, capture_spans: None, tmp_path: Path) -> None:
        store = FilesystemDocumentStore(tmp_path)
        asyncio.run(store.upsert(ENTRY_ID, {"a": 1, "b": 2}))
        asyncio.run(store.get(ENTRY_ID))

        spans = get_test_spans()
        assert [span.name for span in spans] == [
            "sakuin.document_store.upsert",
            "sakuin.document_store.get",
        ]
        assert dict(spans[1].attributes or {})["sakuin.field_count"] == 2
        assert dict(spans[1].attributes or {})["storage.backend"] == "filesystem"
