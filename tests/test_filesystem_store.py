"""Tests for the filesystem store backends beyond the shared contract."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from sakuin.storage.errors import InvalidIdentifierError, StorageBackendError
from sakuin.storage.filesystem_store import (
    SAKUIN_STORE_BASE_DIR_ENV,
    FilesystemDocumentStore,
    FilesystemObjectStore,
    default_base_dir,
)

ENTRY_ID = "0f8fad5b-d9cb-469f-a165-70867728950e"


class TestIdentifierValidation:
    """Ids must map onto a single file inside the store directory."""

    @pytest.mark.parametrize(
        "bad_id",
        ["", "../escape", "a/b", "a\\b", ".hidden", "a..b", "x" * 201],
        ids=["empty", "traversal", "slash", "backslash", "dotfile", "double-dot", "too-long"],
    )
    def test_unsafe_ids_rejected(self, tmp_path: Path, bad_id: str) -> None:
        store = FilesystemObjectStore(tmp_path)
        with pytest.raises(InvalidIdentifierError) as exc_info:
            asyncio.run(store.put(bad_id, b"data"))
        assert exc_info.value.id == bad_id

    def test_unsafe_id_rejected_for_documents(self, tmp_path: Path) -> None:
        store = FilesystemDocumentStore(tmp_path)
        with pytest.raises(InvalidIdentifierError):
            asyncio.run(store.get("../../etc/passwd"))

    def test_uuid_ids_accepted(self, tmp_path: Path) -> None:
        store = FilesystemObjectStore(tmp_path)
        asyncio.run(store.put(ENTRY_ID, b"data"))
        assert asyncio.run(store.get(ENTRY_ID)) == b"data"


class TestLayout:
    """Objects and documents live in separate subdirectories."""

    def test_object_written_under_objects_dir(self, tmp_path: Path) -> None:
        store = FilesystemObjectStore(tmp_path)
        asyncio.run(store.put(ENTRY_ID, b"payload"))

        path = tmp_path / "objects" / f"{ENTRY_ID}.data"
        assert path.read_bytes() == b"payload"
        assert store.directory == (tmp_path / "objects").resolve()

    def test_document_written_as_sorted_json(self, tmp_path: Path) -> None:
        store = FilesystemDocumentStore(tmp_path)
        asyncio.run(store.upsert(ENTRY_ID, {"b": 1, "a": b"\x01"}))

        raw = (tmp_path / "documents" / f"{ENTRY_ID}.json").read_text(encoding="utf-8")
        assert json.loads(raw) == {"a": {"$bytes": "AQ=="}, "b": 1}
        assert raw.index('"a"') < raw.index('"b"')

    def test_dollar_keys_escaped_on_disk(self, tmp_path: Path) -> None:
        store = FilesystemDocumentStore(tmp_path)
        asyncio.run(store.upsert(ENTRY_ID, {"x": {"$bytes": "aGk="}}))

        raw = (tmp_path / "documents" / f"{ENTRY_ID}.json").read_text(encoding="utf-8")
        assert json.loads(raw) == {"x": {"$$bytes": "aGk="}}
        assert asyncio.run(store.get(ENTRY_ID)) == {"x": {"$bytes": "aGk="}}

    def test_no_temp_files_left_behind(self, tmp_path: Path) -> None:
        store = FilesystemObjectStore(tmp_path)
        asyncio.run(store.put(ENTRY_ID, b"one"))
        asyncio.run(store.put(ENTRY_ID, b"two"))

        assert [p.name for p in (tmp_path / "objects").iterdir()] == [f"{ENTRY_ID}.data"]

    def test_data_survives_new_instance(self, tmp_path: Path) -> None:
        asyncio.run(FilesystemObjectStore(tmp_path).put(ENTRY_ID, b"kept"))
        asyncio.run(FilesystemDocumentStore(tmp_path).upsert(ENTRY_ID, {"k": "v"}))

        assert asyncio.run(FilesystemObjectStore(tmp_path).get(ENTRY_ID)) == b"kept"
        assert asyncio.run(FilesystemDocumentStore(tmp_path).get(ENTRY_ID)) == {"k": "v"}

    def test_backend_name(self, tmp_path: Path) -> None:
        assert FilesystemObjectStore(tmp_path).backend_name == "filesystem"
        assert FilesystemDocumentStore(tmp_path).backend_name == "filesystem"


class TestCorruption:
    """Unreadable document files surface as backend errors."""

    def test_invalid_json_raises_backend_error(self, tmp_path: Path) -> None:
        store = FilesystemDocumentStore(tmp_path)
        store.directory.mkdir(parents=True)
        (store.directory / f"{ENTRY_ID}.json").write_bytes(b"{not json")

        with pytest.raises(StorageBackendError) as exc_info:
            asyncio.run(store.get(ENTRY_ID))
        assert exc_info.value.id == ENTRY_ID

    def test_malformed_bytes_tag_raises_backend_error(self, tmp_path: Path) -> None:
        store = FilesystemDocumentStore(tmp_path)
        store.directory.mkdir(parents=True)
        (store.directory / f"{ENTRY_ID}.json").write_bytes(b'{"a": {"$bytes": "not base64!"}}')

        with pytest.raises(StorageBackendError):
            asyncio.run(store.get(ENTRY_ID))

    def test_non_object_json_raises_backend_error(self, tmp_path: Path) -> None:
        store = FilesystemDocumentStore(tmp_path)
        store.directory.mkdir(parents=True)
        (store.directory / f"{ENTRY_ID}.json").write_bytes(b"[1, 2]")

        with pytest.raises(StorageBackendError):
            asyncio.run(store.get(ENTRY_ID))

    def test_unserializable_value_raises_backend_error(self, tmp_path: Path) -> None:
        store = FilesystemDocumentStore(tmp_path)
        with pytest.raises(StorageBackendError):
            asyncio.run(store.upsert(ENTRY_ID, {"when": object()}))
        assert asyncio.run(store.stat(ENTRY_ID)).exists is False


class TestBaseDir:
    """Base directory resolution."""

    def test_env_var_sets_base_dir(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(SAKUIN_STORE_BASE_DIR_ENV, str(tmp_path))
        assert default_base_dir() == tmp_path

        store = FilesystemObjectStore()
        assert store.directory == (tmp_path / "objects").resolve()

    def test_default_is_under_temp_dir(self) -> None:
        assert default_base_dir().name == "sakuin_store"
