"""Sakuin - index binary objects together with their JSON metadata."""

__version__ = "0.1.0"
