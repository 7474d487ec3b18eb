"""Sakuin API routers."""
