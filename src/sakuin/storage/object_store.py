"""Sakuin Object Storage interface definition.

Provides the ObjectStore interface that all object backends must implement.
Backends are verified with sakuin.testing.conformance.ObjectStoreContract.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from sakuin.storage.models import StatInfo


class ObjectStore(ABC):
    """Abstract base class for object storage backends.

    Objects are opaque byte sequences keyed by a string id. Implementations
    must satisfy:
    - get/update/delete of an absent id raise ObjectNotFoundError(id)
    - stat of an absent id returns StatInfo(exists=False, size=0)
    - put always succeeds and replaces any existing object

    Implementations:
    - InMemoryObjectStore: process memory (dev/test)
    - FilesystemObjectStore: local filesystem
    """

    store_kind = "object_store"

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for observability (e.g. "memory")."""
        ...

    @abstractmethod
    async def stat(self, object_id: str) -> StatInfo:
        """Probe an object without retrieving it.

        Returns:
            StatInfo with the object size in bytes. Never raises because the
            object is absent.

        Raises:
            StorageBackendError: If the backend cannot complete the probe.
        """
        ...

    @abstractmethod
    async def get(self, object_id: str) -> bytes:
        """Retrieve an object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            StorageBackendError: If the backend cannot complete the read.
        """
        ...

    @abstractmethod
    async def put(self, object_id: str, data: bytes) -> None:
        """Store an object, unconditionally replacing any existing one.

        Raises:
            StorageBackendError: If the backend cannot complete the write.
        """
        ...

    @abstractmethod
    async def update(self, object_id: str, data: bytes) -> None:
        """Replace the content of an existing object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            StorageBackendError: If the backend cannot complete the write.
        """
        ...

    @abstractmethod
    async def delete(self, object_id: str) -> None:
        """Delete an object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            StorageBackendError: If the backend cannot complete the deletion.
        """
        ...
