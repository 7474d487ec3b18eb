"""Collision-checked identifier allocation.

Identifiers are 128-bit random values rendered as canonical UUID strings
(version 4 and variant bits set). A candidate is handed out only once the
object store reports it absent; collisions are retried without a ceiling,
since the chance of one at this width is negligible.

The probe is not a reservation. Two concurrent allocations can both see the
same candidate as absent before either writes it. With 122 random bits per
candidate this is accepted rather than prevented; a backend with a
create-if-absent primitive would be needed to close the gap.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable

from sakuin.errors import AllocationError
from sakuin.storage.object_store import ObjectStore

RandomSource = Callable[[int], bytes]
"""Returns up to n random bytes, e.g. os.urandom or io.BytesIO(...).read."""

IDENTIFIER_BYTES = 16


def render_identifier(raw: bytes) -> str:
    """Render 16 raw bytes as a canonical version 4 UUID string."""
    return str(uuid.UUID(bytes=raw[:IDENTIFIER_BYTES], version=4))


class IdentifierAllocator:
    """Allocates identifiers that are absent from an object store."""

    def __init__(self, object_store: ObjectStore, rand: RandomSource = os.urandom) -> None:
        self._object_store = object_store
        self._rand = rand

    def _next_candidate(self) -> str:
        try:
            raw = self._rand(IDENTIFIER_BYTES)
        except Exception as e:
            raise AllocationError(f"randomness source failed: {e}") from e

        if len(raw) < IDENTIFIER_BYTES:
            raise AllocationError(
                f"randomness source exhausted: wanted {IDENTIFIER_BYTES} bytes, got {len(raw)}"
            )
        return render_identifier(raw)

    async def allocate(self) -> str:
        """Return the first candidate the object store reports absent.

        Raises:
            AllocationError: If the randomness source fails or runs dry.
            StorageBackendError: If the existence probe fails.
        """
        while True:
            candidate = self._next_candidate()
            info = await self._object_store.stat(candidate)
            if not info.exists:
                return candidate
