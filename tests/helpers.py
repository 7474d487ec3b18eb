"""Shared helpers for sakuin tests."""

from __future__ import annotations

import io

from sakuin.identifiers import RandomSource

BOUNDARY = "sakuin-test-boundary"
MULTIPART_CONTENT_TYPE = f"multipart/form-data; boundary={BOUNDARY}"


def scripted_rand(*chunks: bytes) -> RandomSource:
    """Return a random source that hands out the given chunks in order."""
    return io.BytesIO(b"".join(chunks)).read


def build_multipart(*parts: tuple[str, bytes], boundary: str = BOUNDARY) -> bytes:
    """Build a multipart/form-data body from (field name, payload) pairs."""
    body = bytearray()
    for name, payload in parts:
        body += f"--{boundary}\r\n".encode()
        body += f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode()
        body += payload
        body += b"\r\n"
    body += f"--{boundary}--\r\n".encode()
    return bytes(body)
