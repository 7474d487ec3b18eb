"""Single-pass extraction of the ``metadata`` and ``object`` form parts.

The decoder is fed the request body chunk by chunk and never buffers the
whole body: only the bytes of the two recognised parts are kept. Parts with
any other name are skipped. Either part may be missing; that half is then
returned as None and the caller decides whether that is acceptable.

Parsing of the multipart framing is delegated to python-multipart, the
streaming parser used by Starlette/FastAPI forms.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from typing import BinaryIO

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from sakuin.errors import (
    InvalidContentTypeError,
    InvalidMetadataError,
    MalformedBodyError,
    MissingBoundaryError,
)

METADATA_FIELD = "metadata"
OBJECT_FIELD = "object"
FORM_DATA_MEDIA_TYPE = "multipart/form-data"
CHUNK_SIZE = 64 * 1024

_RECOGNISED_FIELDS = frozenset({METADATA_FIELD, OBJECT_FIELD})


@dataclass(frozen=True)
class MultipartParts:
    """The two halves extracted from a multipart body.

    Attributes:
        metadata: Raw bytes of the single JSON value in the metadata part,
            or None if the part was absent.
        object: Raw bytes of the object part, or None if the part was absent.
    """

    metadata: bytes | None
    object: bytes | None


def parse_boundary(content_type: str) -> str:
    """Validate a multipart content type and return its boundary.

    Raises:
        InvalidContentTypeError: If the media type is not multipart/form-data.
        MissingBoundaryError: If the boundary parameter is absent or empty.
    """
    media_type, params = parse_options_header(content_type or "")
    media_type_str = media_type.decode("latin-1").strip().lower()
    if media_type_str != FORM_DATA_MEDIA_TYPE:
        raise InvalidContentTypeError(media_type_str)

    boundary = params.get(b"boundary")
    if not boundary:
        raise MissingBoundaryError()
    return boundary.decode("latin-1")


def decode_json_value(raw: bytes) -> bytes:
    """Return the bytes of the first JSON value in raw.

    Raises:
        InvalidMetadataError: If raw does not start with a JSON value.
    """
    try:
        text = raw.decode("utf-8").lstrip()
        _, end = json.JSONDecoder().raw_decode(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidMetadataError(f"metadata part is not valid JSON: {e}") from e
    return text[:end].encode("utf-8")


class MultipartDecoder:
    """Incremental decoder for one multipart/form-data body.

    Usage:
        decoder = MultipartDecoder(content_type)
        for chunk in body:
            decoder.feed(chunk)
        parts = decoder.finish()

    A repeated field overwrites the earlier occurrence. Any preamble before
    the first delimiter line is discarded.
    """

    def __init__(self, content_type: str) -> None:
        boundary = parse_boundary(content_type)
        # The first delimiter starts the body or follows a CRLF.
        self._first_delimiter = b"\r\n--" + boundary.encode("latin-1")
        self._preamble: bytearray | None = bytearray(b"\r\n")
        self._parser = MultipartParser(
            boundary,
            callbacks={
                "on_part_begin": self._on_part_begin,
                "on_part_data": self._on_part_data,
                "on_part_end": self._on_part_end,
                "on_header_field": self._on_header_field,
                "on_header_value": self._on_header_value,
                "on_header_end": self._on_header_end,
                "on_headers_finished": self._on_headers_finished,
                "on_end": self._on_end,
            },
        )
        self._metadata: bytes | None = None
        self._object: bytes | None = None
        self._headers: dict[str, bytes] = {}
        self._header_field = bytearray()
        self._header_value = bytearray()
        self._field_name: str | None = None
        self._buffer = bytearray()
        self._complete = False

    def _on_part_begin(self) -> None:
        self._headers = {}
        self._field_name = None
        self._buffer = bytearray()

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def _on_header_end(self) -> None:
        name = bytes(self._header_field).decode("latin-1").strip().lower()
        self._headers[name] = bytes(self._header_value)
        self._header_field = bytearray()
        self._header_value = bytearray()

    def _on_headers_finished(self) -> None:
        disposition = self._headers.get("content-disposition")
        if disposition is None:
            return
        _, options = parse_options_header(disposition)
        name = options.get(b"name")
        if name is not None:
            self._field_name = name.decode("utf-8", errors="replace")

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        if self._field_name in _RECOGNISED_FIELDS:
            self._buffer += data[start:end]

    def _on_part_end(self) -> None:
        if self._field_name == METADATA_FIELD:
            self._metadata = decode_json_value(bytes(self._buffer))
        elif self._field_name == OBJECT_FIELD:
            self._object = bytes(self._buffer)
        self._buffer = bytearray()

    def _on_end(self) -> None:
        self._complete = True

    def _skip_preamble(self, chunk: bytes) -> bytes:
        """Return the bytes from the first delimiter on, or b"" while still in the preamble."""
        preamble = self._preamble
        if preamble is None:
            return chunk
        preamble += chunk
        start = preamble.find(self._first_delimiter)
        if start == -1:
            # Keep just enough tail to match a delimiter split across chunks.
            del preamble[: -(len(self._first_delimiter) - 1)]
            return b""
        remainder = bytes(preamble[start + 2 :])
        self._preamble = None
        return remainder

    def feed(self, chunk: bytes) -> None:
        """Parse the next chunk of the body.

        Raises:
            MalformedBodyError: If the chunk breaks the multipart framing.
            InvalidMetadataError: If a completed metadata part is not JSON.
        """
        chunk = self._skip_preamble(chunk)
        if not chunk:
            return
        try:
            self._parser.write(chunk)
        except MultipartParseError as e:
            raise MalformedBodyError(f"malformed multipart body: {e}") from e

    def finish(self) -> MultipartParts:
        """Signal the end of the body and return the extracted parts.

        Raises:
            MalformedBodyError: If the body ended before the closing boundary.
        """
        self._parser.finalize()
        if not self._complete:
            raise MalformedBodyError("multipart body ended before the closing boundary")
        return MultipartParts(metadata=self._metadata, object=self._object)


def _iter_chunks(stream: BinaryIO | Iterable[bytes] | bytes) -> Iterable[bytes]:
    if isinstance(stream, bytes | bytearray):
        yield bytes(stream)
        return
    read = getattr(stream, "read", None)
    if read is None:
        yield from stream  # type: ignore[misc]
        return
    while True:
        chunk = read(CHUNK_SIZE)
        if not chunk:
            return
        yield chunk


def read_parts(stream: BinaryIO | Iterable[bytes] | bytes, content_type: str) -> MultipartParts:
    """Decode a multipart/form-data body into its metadata and object parts.

    Args:
        stream: Binary file object, iterable of byte chunks, or bytes.
        content_type: The declared Content-Type header value.

    Returns:
        MultipartParts; a half is None when its part is absent.

    Raises:
        InvalidContentTypeError: If content_type is not multipart/form-data.
        MissingBoundaryError: If content_type has no boundary.
        MalformedBodyError: If the body is not valid multipart framing.
        InvalidMetadataError: If the metadata part is not a JSON value.

    Errors raised while reading the stream propagate unchanged.
    """
    decoder = MultipartDecoder(content_type)
    for chunk in _iter_chunks(stream):
        decoder.feed(chunk)
    return decoder.finish()
