"""Tests for streaming multipart extraction of the metadata and object parts."""

from __future__ import annotations

import io
from collections.abc import Iterator

import pytest

from sakuin.errors import (
    InvalidContentTypeError,
    InvalidMetadataError,
    MalformedBodyError,
    MissingBoundaryError,
)
from sakuin.multipart import (
    MultipartDecoder,
    decode_json_value,
    parse_boundary,
    read_parts,
)
from tests.helpers import BOUNDARY, MULTIPART_CONTENT_TYPE, build_multipart


class TestParseBoundary:
    """Content-Type validation."""

    def test_returns_boundary(self) -> None:
        assert parse_boundary(MULTIPART_CONTENT_TYPE) == BOUNDARY

    def test_media_type_is_case_insensitive(self) -> None:
        assert parse_boundary("Multipart/Form-Data; boundary=abc") == "abc"

    def test_quoted_boundary(self) -> None:
        assert parse_boundary('multipart/form-data; boundary="a b"') == "a b"

    @pytest.mark.parametrize(
        "content_type",
        ["application/json", "text/plain; boundary=x", "multipart/mixed; boundary=x", ""],
    )
    def test_other_media_types_rejected(self, content_type: str) -> None:
        with pytest.raises(InvalidContentTypeError) as exc_info:
            parse_boundary(content_type)
        assert exc_info.value.content_type == content_type.split(";")[0]

    def test_missing_boundary_rejected(self) -> None:
        with pytest.raises(MissingBoundaryError):
            parse_boundary("multipart/form-data")


class TestDecodeJsonValue:
    """The metadata part holds a single JSON value."""

    def test_returns_first_value(self) -> None:
        assert decode_json_value(b'{"a": 1} trailing') == b'{"a": 1}'

    def test_leading_whitespace_skipped(self) -> None:
        assert decode_json_value(b'  \n[1, 2]') == b"[1, 2]"

    @pytest.mark.parametrize("raw", [b"", b"{", b"not json", b"\xff\xfe"])
    def test_invalid_json_rejected(self, raw: bytes) -> None:
        with pytest.raises(InvalidMetadataError):
            decode_json_value(raw)


class TestReadParts:
    """Extraction of both halves from a complete body."""

    def test_metadata_then_object(self) -> None:
        body = build_multipart(("metadata", b'{"k": "v"}'), ("object", b"payload"))
        parts = read_parts(body, MULTIPART_CONTENT_TYPE)
        assert parts.metadata == b'{"k": "v"}'
        assert parts.object == b"payload"

    def test_object_then_metadata(self) -> None:
        body = build_multipart(("object", b"payload"), ("metadata", b"{}"))
        parts = read_parts(body, MULTIPART_CONTENT_TYPE)
        assert parts.metadata == b"{}"
        assert parts.object == b"payload"

    def test_object_only(self) -> None:
        parts = read_parts(build_multipart(("object", b"x")), MULTIPART_CONTENT_TYPE)
        assert parts.metadata is None
        assert parts.object == b"x"

    def test_metadata_only(self) -> None:
        parts = read_parts(build_multipart(("metadata", b"[]")), MULTIPART_CONTENT_TYPE)
        assert parts.metadata == b"[]"
        assert parts.object is None

    def test_unknown_parts_ignored(self) -> None:
        body = build_multipart(("extra", b"ignored"), ("object", b"kept"))
        parts = read_parts(body, MULTIPART_CONTENT_TYPE)
        assert parts.object == b"kept"
        assert parts.metadata is None

    def test_repeated_part_last_wins(self) -> None:
        body = build_multipart(("object", b"first"), ("object", b"second"))
        assert read_parts(body, MULTIPART_CONTENT_TYPE).object == b"second"

    def test_binary_object_preserved(self) -> None:
        payload = bytes(range(256)) + b"\r\n--not-the-boundary\r\n"
        body = build_multipart(("object", payload))
        assert read_parts(body, MULTIPART_CONTENT_TYPE).object == payload

    def test_metadata_trailing_bytes_dropped(self) -> None:
        body = build_multipart(("metadata", b'{"a": 1}\n\n'), ("object", b"x"))
        assert read_parts(body, MULTIPART_CONTENT_TYPE).metadata == b'{"a": 1}'

    def test_file_like_stream(self) -> None:
        body = build_multipart(("object", b"streamed"))
        assert read_parts(io.BytesIO(body), MULTIPART_CONTENT_TYPE).object == b"streamed"

    def test_byte_at_a_time_chunks(self) -> None:
        body = build_multipart(("metadata", b'{"a": [1, 2]}'), ("object", b"chunked"))
        chunks = [body[i : i + 1] for i in range(len(body))]
        parts = read_parts(chunks, MULTIPART_CONTENT_TYPE)
        assert parts.metadata == b'{"a": [1, 2]}'
        assert parts.object == b"chunked"

    def test_preamble_before_first_part_ignored(self) -> None:
        body = b"This is a preamble.\r\n" + build_multipart(
            ("metadata", b'{"a": 1}'), ("object", b"after preamble")
        )
        parts = read_parts(body, MULTIPART_CONTENT_TYPE)
        assert parts.metadata == b'{"a": 1}'
        assert parts.object == b"after preamble"

    def test_preamble_fed_byte_at_a_time(self) -> None:
        body = b"ignore me\r\n--not-the-boundary\r\n" + build_multipart(("object", b"kept"))
        chunks = [body[i : i + 1] for i in range(len(body))]
        assert read_parts(chunks, MULTIPART_CONTENT_TYPE).object == b"kept"


class TestReadPartsErrors:
    """Failures while decoding."""

    def test_invalid_content_type(self) -> None:
        with pytest.raises(InvalidContentTypeError):
            read_parts(b"", "application/json")

    def test_missing_boundary(self) -> None:
        with pytest.raises(MissingBoundaryError):
            read_parts(b"", "multipart/form-data")

    def test_invalid_metadata_json(self) -> None:
        body = build_multipart(("metadata", b"{broken"), ("object", b"x"))
        with pytest.raises(InvalidMetadataError):
            read_parts(body, MULTIPART_CONTENT_TYPE)

    def test_truncated_body(self) -> None:
        body = build_multipart(("object", b"payload"))
        truncated = body[: body.index(b"payload") + 3]
        with pytest.raises(MalformedBodyError):
            read_parts(truncated, MULTIPART_CONTENT_TYPE)

    def test_empty_body(self) -> None:
        with pytest.raises(MalformedBodyError):
            read_parts(b"", MULTIPART_CONTENT_TYPE)

    def test_preamble_without_delimiter(self) -> None:
        with pytest.raises(MalformedBodyError):
            read_parts(b"only a preamble, no parts\r\n", MULTIPART_CONTENT_TYPE)

    def test_wrong_boundary(self) -> None:
        body = build_multipart(("object", b"x"), boundary="other-boundary")
        with pytest.raises(MalformedBodyError):
            read_parts(body, MULTIPART_CONTENT_TYPE)

    def test_stream_error_propagates_unchanged(self) -> None:
        body = build_multipart(("object", b"payload"))

        def failing_stream() -> Iterator[bytes]:
            yield body[:10]
            raise ConnectionResetError("client went away")

        with pytest.raises(ConnectionResetError, match="client went away"):
            read_parts(failing_stream(), MULTIPART_CONTENT_TYPE)


class TestMultipartDecoder:
    """Incremental use of the decoder."""

    def test_feed_then_finish(self) -> None:
        body = build_multipart(("metadata", b'"text"'), ("object", b"obj"))
        decoder = MultipartDecoder(MULTIPART_CONTENT_TYPE)
        midpoint = len(body) // 2
        decoder.feed(body[:midpoint])
        decoder.feed(body[midpoint:])

        parts = decoder.finish()

        assert parts.metadata == b'"text"'
        assert parts.object == b"obj"

    def test_constructor_validates_content_type(self) -> None:
        with pytest.raises(InvalidContentTypeError):
            MultipartDecoder("text/plain")
