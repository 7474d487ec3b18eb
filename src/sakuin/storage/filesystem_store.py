"""Sakuin Filesystem storage backends.

Provides local filesystem storage with:
- One file per id, objects and documents in separate directories
- Atomic writes (temp file + replace)
- Identifier validation against path traversal
- Blocking I/O pushed to a worker thread

Directory layout:
    {base_dir}/objects/{id}.data
    {base_dir}/documents/{id}.json

Environment Variables:
    SAKUIN_STORE_BASE_DIR: Base directory for storage
        (default: tempfile.gettempdir() / sakuin_store)
"""

from __future__ import annotations

import asyncio
import base64
import copy
import json
import logging
import os
import re
import tempfile
import threading
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from sakuin.merge import merge_documents
from sakuin.storage.document_store import DocumentStore
from sakuin.storage.errors import (
    DocumentNotFoundError,
    InvalidIdentifierError,
    ObjectNotFoundError,
    StorageBackendError,
)
from sakuin.storage.models import MISSING, Document, StatInfo
from sakuin.storage.object_store import ObjectStore
from sakuin.storage.tracing import traced_storage_operation

logger = logging.getLogger(__name__)

T = TypeVar("T")

SAKUIN_STORE_BASE_DIR_ENV = "SAKUIN_STORE_BASE_DIR"

_SAFE_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_\-.]{0,199}$")

_OBJECT_SUFFIX = ".data"
_DOCUMENT_SUFFIX = ".json"
_BYTES_TAG = "$bytes"


def default_base_dir() -> Path:
    """Resolve the base directory from the environment or the OS temp dir."""
    base_dir = os.environ.get(SAKUIN_STORE_BASE_DIR_ENV)
    if base_dir:
        return Path(base_dir)
    return Path(tempfile.gettempdir()) / "sakuin_store"


def _validate_id(entry_id: str) -> None:
    """Reject ids that are empty, contain separators or start with a dot."""
    if not _SAFE_ID_PATTERN.match(entry_id) or ".." in entry_id:
        raise InvalidIdentifierError(
            entry_id, "Invalid identifier: unsafe characters or path traversal"
        )


def _escape_key(key: Any) -> Any:
    if isinstance(key, str) and key.startswith("$"):
        return f"${key}"
    return key


def _encode_value(value: Any) -> Any:
    """Prepare a document value for JSON.

    bytes become ``{"$bytes": "<base64>"}``. Keys starting with "$" get one
    more "$" so a stored single-key ``"$bytes"`` object is always a tag.
    """
    if isinstance(value, bytes | bytearray):
        return {_BYTES_TAG: base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, dict):
        return {_escape_key(key): _encode_value(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_encode_value(item) for item in value]
    return value


def _decode_object(obj: dict[str, Any]) -> Any:
    """json.loads object hook: restore tagged bytes and escaped keys.

    Raises:
        ValueError: If a bytes tag does not hold base64 text.
    """
    if len(obj) == 1 and _BYTES_TAG in obj:
        encoded = obj[_BYTES_TAG]
        if not isinstance(encoded, str):
            raise ValueError(f"{_BYTES_TAG} tag must hold a string")
        return base64.b64decode(encoded, validate=True)
    return {(key[1:] if key.startswith("$") else key): item for key, item in obj.items()}


class _FilesystemBackend:
    """Shared path handling and atomic file I/O."""

    _subdir = ""
    _suffix = ""

    def __init__(self, base_dir: str | Path | None = None) -> None:
        """Initialize filesystem storage.

        Args:
            base_dir: Base directory for storage. If None, uses
                SAKUIN_STORE_BASE_DIR env var or OS temp directory.
        """
        root = Path(base_dir) if base_dir is not None else default_base_dir()
        self._dir = (root / self._subdir).resolve()
        # Serializes read-modify-write sequences within this instance.
        self._lock = threading.Lock()
        logger.debug("%s initialized with dir=%s", type(self).__name__, self._dir)

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "filesystem"

    @property
    def directory(self) -> Path:
        """Return the directory holding this store's files."""
        return self._dir

    async def _run_blocking(self, func: Callable[..., T], *args: Any) -> T:
        """Run func in a worker thread; on cancellation, wait for it to finish first.

        The thread cannot be interrupted, so returning early would let its
        write land after whatever cleanup the caller does next.
        """
        task = asyncio.ensure_future(asyncio.to_thread(func, *args))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            await asyncio.wait([task])
            if not task.cancelled() and task.exception() is not None:
                logger.warning(
                    "%s failed after cancellation: %r", func.__name__, task.exception()
                )
            raise

    def _path_for(self, entry_id: str) -> Path:
        _validate_id(entry_id)
        path = self._dir / f"{entry_id}{self._suffix}"
        try:
            path.resolve().relative_to(self._dir)
        except ValueError as e:
            raise InvalidIdentifierError(
                entry_id, "Path resolves outside storage directory"
            ) from e
        return path

    def _write_atomic(self, path: Path, data: bytes, entry_id: str) -> None:
        tmp_file = path.with_name(f"{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp_file.write_bytes(data)
            tmp_file.replace(path)
        except OSError as e:
            tmp_file.unlink(missing_ok=True)
            raise StorageBackendError(
                message=f"Failed to write file: {e}", id=entry_id, cause=e
            ) from e

    def _read(self, path: Path, entry_id: str) -> bytes | None:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to read file: {e}", id=entry_id, cause=e
            ) from e

    def _unlink(self, path: Path, entry_id: str) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to delete file: {e}", id=entry_id, cause=e
            ) from e
        return True


class FilesystemObjectStore(_FilesystemBackend, ObjectStore):
    """Filesystem-based ObjectStore: one ``.data`` file per object."""

    _subdir = "objects"
    _suffix = _OBJECT_SUFFIX

    def _stat_sync(self, object_id: str) -> StatInfo:
        path = self._path_for(object_id)
        try:
            return StatInfo(exists=True, size=path.stat().st_size)
        except FileNotFoundError:
            return MISSING
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to stat file: {e}", id=object_id, cause=e
            ) from e

    def _get_sync(self, object_id: str) -> bytes:
        data = self._read(self._path_for(object_id), object_id)
        if data is None:
            raise ObjectNotFoundError(object_id)
        return data

    def _put_sync(self, object_id: str, data: bytes) -> None:
        self._write_atomic(self._path_for(object_id), data, object_id)
        logger.debug("Stored object: id=%s size=%d", object_id, len(data))

    def _update_sync(self, object_id: str, data: bytes) -> None:
        path = self._path_for(object_id)
        with self._lock:
            if not path.exists():
                raise ObjectNotFoundError(object_id)
            self._write_atomic(path, data, object_id)
        logger.debug("Updated object: id=%s size=%d", object_id, len(data))

    def _delete_sync(self, object_id: str) -> None:
        with self._lock:
            if not self._unlink(self._path_for(object_id), object_id):
                raise ObjectNotFoundError(object_id)
        logger.debug("Deleted object: id=%s", object_id)

    @traced_storage_operation("stat")
    async def stat(self, object_id: str) -> StatInfo:
        return await self._run_blocking(self._stat_sync, object_id)

    @traced_storage_operation("get")
    async def get(self, object_id: str) -> bytes:
        return await self._run_blocking(self._get_sync, object_id)

    @traced_storage_operation("put")
    async def put(self, object_id: str, data: bytes) -> None:
        await self._run_blocking(self._put_sync, object_id, data)

    @traced_storage_operation("update")
    async def update(self, object_id: str, data: bytes) -> None:
        await self._run_blocking(self._update_sync, object_id, data)

    @traced_storage_operation("delete")
    async def delete(self, object_id: str) -> None:
        await self._run_blocking(self._delete_sync, object_id)


class FilesystemDocumentStore(_FilesystemBackend, DocumentStore):
    """Filesystem-based DocumentStore: one JSON file per document.

    bytes values are stored as ``{"$bytes": "<base64>"}`` and decoded back to
    bytes on read. Keys starting with "$" are written with one extra leading
    "$" and unescaped on read.
    """

    _subdir = "documents"
    _suffix = _DOCUMENT_SUFFIX

    def _load(self, path: Path, document_id: str) -> Document | None:
        raw = self._read(path, document_id)
        if raw is None:
            return None
        try:
            document = json.loads(raw.decode("utf-8"), object_hook=_decode_object)
        except ValueError as e:
            raise StorageBackendError(
                message=f"Corrupt document file: {e}", id=document_id, cause=e
            ) from e
        if not isinstance(document, dict):
            raise StorageBackendError(message="Corrupt document file: not an object", id=document_id)
        return document

    def _dump(self, document: Document, document_id: str) -> bytes:
        try:
            return json.dumps(_encode_value(document), sort_keys=True).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise StorageBackendError(
                message=f"Document is not serializable: {e}", id=document_id, cause=e
            ) from e

    def _stat_sync(self, document_id: str) -> StatInfo:
        document = self._load(self._path_for(document_id), document_id)
        if document is None:
            return MISSING
        return StatInfo(exists=True, size=len(document))

    def _get_sync(self, document_id: str) -> Document:
        document = self._load(self._path_for(document_id), document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    def _upsert_sync(self, document_id: str, document: Document) -> None:
        path = self._path_for(document_id)
        incoming = copy.deepcopy(document)
        with self._lock:
            existing = self._load(path, document_id)
            if existing is not None:
                incoming = merge_documents(incoming, existing)
            self._write_atomic(path, self._dump(incoming, document_id), document_id)
        logger.debug("Upserted document: id=%s merged=%s", document_id, existing is not None)

    def _delete_sync(self, document_id: str) -> None:
        with self._lock:
            if not self._unlink(self._path_for(document_id), document_id):
                raise DocumentNotFoundError(document_id)
        logger.debug("Deleted document: id=%s", document_id)

    @traced_storage_operation("stat")
    async def stat(self, document_id: str) -> StatInfo:
        return await self._run_blocking(self._stat_sync, document_id)

    @traced_storage_operation("get")
    async def get(self, document_id: str) -> Document:
        return await self._run_blocking(self._get_sync, document_id)

    @traced_storage_operation("upsert")
    async def upsert(self, document_id: str, document: Document) -> None:
        await self._run_blocking(self._upsert_sync, document_id, document)

    @traced_storage_operation("delete")
    async def delete(self, document_id: str) -> None:
        await self._run_blocking(self._delete_sync, document_id)
