"""Sakuin testing utilities: reusable store conformance suites."""

from sakuin.testing.conformance import DocumentStoreContract, ObjectStoreContract

__all__ = ["DocumentStoreContract", "ObjectStoreContract"]
