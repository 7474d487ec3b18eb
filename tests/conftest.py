"""Pytest configuration and fixtures for sakuin tests.

This module provides common fixtures and configuration for all tests.
"""

from __future__ import annotations

import os

import pytest

from sakuin.service import IndexService
from sakuin.storage.memory_store import InMemoryDocumentStore, InMemoryObjectStore


@pytest.fixture(autouse=True)
def clear_sakuin_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove SAKUIN_* variables so tests start from default settings."""
    for key in list(os.environ):
        if key.startswith("SAKUIN_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def object_store() -> InMemoryObjectStore:
    """Create an empty in-memory object store."""
    return InMemoryObjectStore()


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    """Create an empty in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def service(
    object_store: InMemoryObjectStore, document_store: InMemoryDocumentStore
) -> IndexService:
    """Create an IndexService over the in-memory stores."""
    return IndexService(object_store, document_store)
