"""Recursive document merge used by every metadata write.

Rules, applied per key of the source document:

1. Key absent in the destination: a deep copy of the source value is added.
2. Both values are nested documents: merge recursively.
3. Neither value is a nested document: the destination value is kept.
4. Exactly one value is a nested document: MergeTypeConflictError.

The merge is additive (no key is ever removed) and idempotent. Conflicts
are detected over the whole tree before anything is written, so a failed
merge leaves the destination untouched.
"""

from __future__ import annotations

import copy
from typing import Any

from sakuin.errors import MergeTypeConflictError

Document = dict[str, Any]
"""Structured metadata: string keys mapping to scalars, blobs or nested documents."""


def _describe(value: Any) -> str:
    if isinstance(value, dict):
        return "document"
    return type(value).__name__


def _join(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


def find_conflict(dst: Document, src: Document, prefix: str = "") -> MergeTypeConflictError | None:
    """Return the first type conflict between dst and src, or None."""
    for key, src_value in src.items():
        if key not in dst:
            continue

        dst_value = dst[key]
        src_is_doc = isinstance(src_value, dict)
        dst_is_doc = isinstance(dst_value, dict)
        path = _join(prefix, key)

        if src_is_doc != dst_is_doc:
            return MergeTypeConflictError(
                path,
                destination_type=_describe(dst_value),
                source_type=_describe(src_value),
            )
        if src_is_doc:
            conflict = find_conflict(dst_value, src_value, path)
            if conflict is not None:
                return conflict

    return None


def _merge_into(dst: Document, src: Document) -> None:
    for key, src_value in src.items():
        if key not in dst:
            dst[key] = copy.deepcopy(src_value)
        elif isinstance(src_value, dict):
            _merge_into(dst[key], src_value)


def merge_documents(dst: Document, src: Document) -> Document:
    """Merge src into dst in place and return dst.

    Raises:
        MergeTypeConflictError: If a key holds a nested document on one side
            and a plain value on the other. dst is not modified.
    """
    conflict = find_conflict(dst, src)
    if conflict is not None:
        raise conflict

    _merge_into(dst, src)
    return dst
