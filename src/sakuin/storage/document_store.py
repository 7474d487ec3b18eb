"""Sakuin Document Storage interface definition."""

from __future__ import annotations

from abc import ABC, abstractmethod

from sakuin.storage.models import Document, StatInfo


class DocumentStore(ABC):
    """Abstract base class for document (metadata) storage backends.

    Upsert is the only write path: an upsert onto an existing document merges
    with sakuin.merge.merge_documents, the incoming document taking the
    destination role. There is no whole-document replace.

    Implementations must never hand out aliases of their internal state:
    get returns a copy and upsert copies its input.
    """

    store_kind = "document_store"

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for observability."""
        ...

    @abstractmethod
    async def stat(self, document_id: str) -> StatInfo:
        """Probe a document; size is its number of top-level fields.

        Never raises because the document is absent.
        """
        ...

    @abstractmethod
    async def get(self, document_id: str) -> Document:
        """Retrieve a document.

        Raises:
            DocumentNotFoundError: If the document does not exist.
        """
        ...

    @abstractmethod
    async def upsert(self, document_id: str, document: Document) -> None:
        """Insert a document, or merge it into the existing one.

        Raises:
            MergeTypeConflictError: If a field would change between a nested
                document and a plain value. Nothing is written in that case.
        """
        ...

    @abstractmethod
    async def delete(self, document_id: str) -> None:
        """Delete a document.

        Raises:
            DocumentNotFoundError: If the document does not exist.
        """
        ...
