"""Sakuin storage error types.

Not-found errors carry the identifier that was looked up so callers can tell
which half of an index entry is missing.
"""

from __future__ import annotations

from sakuin.errors import SakuinError


class StorageError(SakuinError):
    """Base exception for store operations."""


class ObjectNotFoundError(StorageError):
    """Raised when no object exists under the given id."""

    def __init__(self, id: str, message: str = "Object not found") -> None:
        super().__init__(message, id=id)


class DocumentNotFoundError(StorageError):
    """Raised when no document exists under the given id."""

    def __init__(self, id: str, message: str = "Document not found") -> None:
        super().__init__(message, id=id)


class InvalidIdentifierError(StorageError):
    """Raised when an id cannot be mapped safely onto a backend.

    The filesystem backends raise this for ids containing path separators,
    traversal sequences or other unsafe characters.
    """

    def __init__(self, id: str, message: str = "Invalid identifier") -> None:
        super().__init__(message, id=id)


class StorageBackendError(StorageError):
    """Raised when the backend itself fails (I/O error, corrupt data).

    Attributes:
        cause: The original exception, if any.
    """

    def __init__(
        self,
        message: str = "Storage backend error",
        *,
        id: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, id=id)
        self.cause = cause
