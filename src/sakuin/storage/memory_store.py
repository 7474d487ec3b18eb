"""Sakuin in-memory storage backends.

Each store instance is its own mutual-exclusion domain: a lock guards the
backing dict and is never held across an await. The object store and the
document store are not coordinated with each other.

These backends keep nothing across restarts; use them for tests and
single-process development.
"""

from __future__ import annotations

import copy
import logging
import threading

from sakuin.merge import merge_documents
from sakuin.storage.document_store import DocumentStore
from sakuin.storage.errors import DocumentNotFoundError, ObjectNotFoundError
from sakuin.storage.models import MISSING, Document, StatInfo
from sakuin.storage.object_store import ObjectStore
from sakuin.storage.tracing import traced_storage_operation

logger = logging.getLogger(__name__)


class InMemoryObjectStore(ObjectStore):
    """ObjectStore keeping every object in a dict."""

    def __init__(self) -> None:
        self._objects: dict[str, bytes] = {}
        self._lock = threading.Lock()

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "memory"

    @traced_storage_operation("stat")
    async def stat(self, object_id: str) -> StatInfo:
        with self._lock:
            data = self._objects.get(object_id)
        if data is None:
            return MISSING
        return StatInfo(exists=True, size=len(data))

    @traced_storage_operation("get")
    async def get(self, object_id: str) -> bytes:
        with self._lock:
            data = self._objects.get(object_id)
        if data is None:
            raise ObjectNotFoundError(object_id)
        return data

    @traced_storage_operation("put")
    async def put(self, object_id: str, data: bytes) -> None:
        with self._lock:
            self._objects[object_id] = bytes(data)
        logger.debug("Stored object in memory: id=%s size=%d", object_id, len(data))

    @traced_storage_operation("update")
    async def update(self, object_id: str, data: bytes) -> None:
        with self._lock:
            if object_id not in self._objects:
                raise ObjectNotFoundError(object_id)
            self._objects[object_id] = bytes(data)
        logger.debug("Updated object in memory: id=%s size=%d", object_id, len(data))

    @traced_storage_operation("delete")
    async def delete(self, object_id: str) -> None:
        with self._lock:
            if self._objects.pop(object_id, None) is None:
                raise ObjectNotFoundError(object_id)
        logger.debug("Deleted object from memory: id=%s", object_id)

    def with_object(self, object_id: str, data: bytes) -> InMemoryObjectStore:
        """Seed an object synchronously and return self (test helper)."""
        with self._lock:
            self._objects[object_id] = bytes(data)
        return self

    def num_objects(self) -> int:
        """Return the number of stored objects."""
        with self._lock:
            return len(self._objects)


class InMemoryDocumentStore(DocumentStore):
    """DocumentStore keeping every document in a dict."""

    def __init__(self) -> None:
        self._documents: dict[str, Document] = {}
        self._lock = threading.Lock()

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "memory"

    @traced_storage_operation("stat")
    async def stat(self, document_id: str) -> StatInfo:
        with self._lock:
            document = self._documents.get(document_id)
        if document is None:
            return MISSING
        return StatInfo(exists=True, size=len(document))

    @traced_storage_operation("get")
    async def get(self, document_id: str) -> Document:
        with self._lock:
            document = self._documents.get(document_id)
            if document is None:
                raise DocumentNotFoundError(document_id)
            return copy.deepcopy(document)

    @traced_storage_operation("upsert")
    async def upsert(self, document_id: str, document: Document) -> None:
        incoming = copy.deepcopy(document)
        with self._lock:
            existing = self._documents.get(document_id)
            if existing is not None:
                incoming = merge_documents(incoming, existing)
            self._documents[document_id] = incoming
        logger.debug(
            "Upserted document in memory: id=%s merged=%s", document_id, existing is not None
        )

    @traced_storage_operation("delete")
    async def delete(self, document_id: str) -> None:
        with self._lock:
            if self._documents.pop(document_id, None) is None:
                raise DocumentNotFoundError(document_id)
        logger.debug("Deleted document from memory: id=%s", document_id)

    def with_document(self, document_id: str, document: Document) -> InMemoryDocumentStore:
        """Seed a document synchronously and return self (test helper)."""
        with self._lock:
            self._documents[document_id] = copy.deepcopy(document)
        return self

    def num_documents(self) -> int:
        """Return the number of stored documents."""
        with self._lock:
            return len(self._documents)
