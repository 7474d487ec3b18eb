"""Sakuin HTTP API."""
