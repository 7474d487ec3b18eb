"""Sakuin storage abstraction.

Two independent stores hold the halves of an index entry:

- ObjectStore: opaque bytes per id
- DocumentStore: JSON-like metadata per id, written by merge-or-insert

Backends:
- InMemoryObjectStore / InMemoryDocumentStore: process memory (dev/test)
- FilesystemObjectStore / FilesystemDocumentStore: local filesystem

Environment Variables:
    SAKUIN_STORE_BASE_DIR: Base directory for the filesystem backends
        (default: OS temp dir / sakuin_store)
"""

from sakuin.storage.document_store import DocumentStore
from sakuin.storage.errors import (
    DocumentNotFoundError,
    InvalidIdentifierError,
    ObjectNotFoundError,
    StorageBackendError,
    StorageError,
)
from sakuin.storage.filesystem_store import FilesystemDocumentStore, FilesystemObjectStore
from sakuin.storage.memory_store import InMemoryDocumentStore, InMemoryObjectStore
from sakuin.storage.models import Document, StatInfo
from sakuin.storage.object_store import ObjectStore

__all__ = [
    "Document",
    "DocumentNotFoundError",
    "DocumentStore",
    "FilesystemDocumentStore",
    "FilesystemObjectStore",
    "InMemoryDocumentStore",
    "InMemoryObjectStore",
    "InvalidIdentifierError",
    "ObjectNotFoundError",
    "ObjectStore",
    "StatInfo",
    "StorageBackendError",
    "StorageError",
]
