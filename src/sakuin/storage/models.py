"""Sakuin storage data models."""

from __future__ import annotations

from dataclasses import dataclass

from sakuin.merge import Document

__all__ = ["MISSING", "Document", "StatInfo"]


@dataclass(frozen=True)
class StatInfo:
    """Lightweight existence probe result.

    Attributes:
        exists: Whether the target exists.
        size: Byte length for objects, number of top-level fields for
            documents. Always 0 when the target does not exist.
    """

    exists: bool
    size: int = 0

    def to_dict(self) -> dict[str, bool | int]:
        """Convert to dictionary for JSON serialization."""
        return {"exists": self.exists, "size": self.size}


MISSING = StatInfo(exists=False, size=0)
