"""Indexing orchestrator.

IndexService pairs an object and a metadata document under one allocated
identifier, spreading every multi-store operation over both stores
concurrently (see sakuin.concurrency.gather_first_error).

Consistency across the two stores:

- create compensates. If either write fails, the halves already written
  under the fresh id are deleted before the first error is re-raised.
  A failed compensation is attached to that error as a note.
- update does not compensate. The previous content is not kept, so when
  one branch fails the other branch's write may already be visible
  (at-least-partial-write). The first error is raised.
- delete removes both halves; a missing half is tolerated.

Cancelling the calling task aborts in-flight store calls. A cancelled or
timed-out create still compensates before the cancellation propagates.
Stores that run blocking I/O in worker threads must not return from a
cancelled call before the thread finishes, or a late write could land after
the compensating delete (see FilesystemObjectStore). With operation_timeout
set, an operation that overruns raises TimeoutError.

The service does not log; errors are returned to the caller.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass

from sakuin.concurrency import gather_first_error
from sakuin.identifiers import IdentifierAllocator, RandomSource
from sakuin.storage.document_store import DocumentStore
from sakuin.storage.errors import DocumentNotFoundError, ObjectNotFoundError
from sakuin.storage.models import Document
from sakuin.storage.object_store import ObjectStore


@dataclass(frozen=True)
class IndexResponse:
    """Result of indexing a new entry."""

    id: str


@dataclass(frozen=True)
class GetResponse:
    """Both halves of an index entry."""

    id: str
    object: bytes
    metadata: Document


class IndexService:
    """Create, read, update and delete index entries across two stores.

    Args:
        object_store: Store for the object half.
        document_store: Store for the metadata half.
        rand: Randomness source for identifier allocation.
        operation_timeout: Seconds each operation may take; None for no limit.
    """

    def __init__(
        self,
        object_store: ObjectStore,
        document_store: DocumentStore,
        rand: RandomSource = os.urandom,
        *,
        operation_timeout: float | None = None,
    ) -> None:
        self._objects = object_store
        self._documents = document_store
        self._allocator = IdentifierAllocator(object_store, rand)
        self._operation_timeout = operation_timeout

    @property
    def object_store(self) -> ObjectStore:
        return self._objects

    @property
    def document_store(self) -> DocumentStore:
        return self._documents

    @property
    def operation_timeout(self) -> float | None:
        return self._operation_timeout

    def _deadline(self) -> asyncio.Timeout:
        return asyncio.timeout(self._operation_timeout)

    async def create(self, content: bytes, metadata: Document | None = None) -> IndexResponse:
        """Index an object and, optionally, its metadata under a new id.

        Raises:
            AllocationError: If no identifier could be generated.
            MergeTypeConflictError, StorageBackendError: From the stores.
            TimeoutError: If operation_timeout elapsed.
        """
        entry_id: str | None = None
        try:
            async with self._deadline():
                entry_id = await self._allocator.allocate()

                branches = [self._objects.put(entry_id, content)]
                if metadata is not None:
                    branches.append(self._documents.upsert(entry_id, metadata))
                await gather_first_error(*branches)
        except (Exception, asyncio.CancelledError) as exc:
            if entry_id is not None:
                # Shielded so a repeated cancel cannot abandon the cleanup.
                await asyncio.shield(
                    self._compensate_create(entry_id, metadata is not None, exc)
                )
            raise

        return IndexResponse(id=entry_id)

    async def _compensate_create(
        self, entry_id: str, with_metadata: bool, exc: BaseException
    ) -> None:
        undo = [self._discard_object(entry_id)]
        if with_metadata:
            undo.append(self._discard_document(entry_id))

        results = await asyncio.gather(*undo, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                exc.add_note(f"compensation for {entry_id} failed: {result!r}")

    async def read(self, entry_id: str) -> GetResponse:
        """Fetch both halves of an entry concurrently.

        Both halves must exist.

        Raises:
            ObjectNotFoundError, DocumentNotFoundError: If a half is missing.
        """
        async with self._deadline():
            content, metadata = await gather_first_error(
                self._objects.get(entry_id),
                self._documents.get(entry_id),
            )
        return GetResponse(id=entry_id, object=content, metadata=metadata)

    async def update(
        self,
        entry_id: str,
        content: bytes | None = None,
        metadata: Document | None = None,
    ) -> None:
        """Update the supplied halves of an existing entry concurrently.

        The object must already exist (enforced by the object store); the
        metadata document must already exist (checked here). Supplying
        neither is a no-op.

        Raises:
            ObjectNotFoundError, DocumentNotFoundError: If a targeted half is missing.
            MergeTypeConflictError: If the metadata changes a field's shape.
        """
        branches = []
        if content is not None:
            branches.append(self._objects.update(entry_id, content))
        if metadata is not None:
            branches.append(self._update_metadata(entry_id, metadata))
        if not branches:
            return

        async with self._deadline():
            await gather_first_error(*branches)

    async def _update_metadata(self, entry_id: str, metadata: Document) -> None:
        info = await self._documents.stat(entry_id)
        if not info.exists:
            raise DocumentNotFoundError(entry_id)
        await self._documents.upsert(entry_id, metadata)

    async def delete(self, entry_id: str) -> None:
        """Delete both halves of an entry concurrently.

        A missing half is tolerated, so entries created without metadata
        can be deleted.

        Raises:
            ObjectNotFoundError: If neither half existed.
        """
        async with self._deadline():
            object_deleted, document_deleted = await gather_first_error(
                self._discard_object(entry_id),
                self._discard_document(entry_id),
            )
        if not (object_deleted or document_deleted):
            raise ObjectNotFoundError(entry_id)

    async def _discard_object(self, entry_id: str) -> bool:
        try:
            await self._objects.delete(entry_id)
        except ObjectNotFoundError:
            return False
        return True

    async def _discard_document(self, entry_id: str) -> bool:
        try:
            await self._documents.delete(entry_id)
        except DocumentNotFoundError:
            return False
        return True

    async def get_object(self, entry_id: str) -> bytes:
        """Fetch only the object half."""
        async with self._deadline():
            return await self._objects.get(entry_id)

    async def get_metadata(self, entry_id: str) -> Document:
        """Fetch only the metadata half."""
        async with self._deadline():
            return await self._documents.get(entry_id)

    async def update_object(self, entry_id: str, content: bytes) -> None:
        """Replace the object half of an existing entry."""
        await self.update(entry_id, content=content)

    async def update_metadata(self, entry_id: str, metadata: Document) -> None:
        """Merge metadata into the existing metadata half."""
        await self.update(entry_id, metadata=metadata)
