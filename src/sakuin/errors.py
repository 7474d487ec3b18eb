"""Sakuin error types.

Every error raised by sakuin derives from SakuinError so the transport layer
can map the whole family with one handler. Storage-specific errors live in
sakuin.storage.errors.
"""

from __future__ import annotations


class SakuinError(Exception):
    """Base exception for sakuin.

    Attributes:
        message: Human-readable error message.
        id: Identifier of the index entry involved (if applicable).
    """

    def __init__(self, message: str, *, id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.id = id

    def __str__(self) -> str:
        if self.id:
            return f"{self.message} id={self.id}"
        return self.message


class ConfigError(SakuinError):
    """Raised when the runtime configuration is invalid."""


class InvalidContentTypeError(SakuinError):
    """Raised when a request body is not a multipart form.

    Attributes:
        content_type: The rejected media type, without parameters.
    """

    def __init__(self, content_type: str) -> None:
        super().__init__(f"invalid content type: {content_type}")
        self.content_type = content_type


class MissingBoundaryError(SakuinError):
    """Raised when a multipart content type has no boundary parameter."""

    def __init__(self, message: str = "missing boundary") -> None:
        super().__init__(message)


class MalformedBodyError(SakuinError):
    """Raised when a multipart body cannot be parsed or is truncated."""

    def __init__(self, message: str = "malformed multipart body") -> None:
        super().__init__(message)


class InvalidMetadataError(SakuinError):
    """Raised when metadata is not a single JSON value (or not a JSON object)."""

    def __init__(self, message: str = "metadata must be a single JSON value") -> None:
        super().__init__(message)


class MissingObjectPartError(SakuinError):
    """Raised when an index request carries no object part."""

    def __init__(self, message: str = "must provide object part in form data") -> None:
        super().__init__(message)


class AllocationError(SakuinError):
    """Raised when the randomness source fails or runs dry.

    The underlying source error, if any, is chained as ``__cause__``.
    """

    def __init__(self, message: str = "failed to allocate identifier") -> None:
        super().__init__(message)


class MergeTypeConflictError(SakuinError):
    """Raised when a field changes shape between a document and a nested document.

    Attributes:
        path: Dotted key path of the conflicting field.
    """

    def __init__(self, path: str, *, destination_type: str, source_type: str) -> None:
        super().__init__(
            f"conflicting types for field {path!r}: {destination_type} and {source_type}"
        )
        self.path = path
        self.destination_type = destination_type
        self.source_type = source_type
