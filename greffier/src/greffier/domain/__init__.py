"""Greffier domain layer."""
