"""
Shared utilities for Greffier components.
"""
