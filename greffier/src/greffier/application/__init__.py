"""Greffier application layer."""
