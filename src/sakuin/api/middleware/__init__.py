"""Sakuin API middleware."""
