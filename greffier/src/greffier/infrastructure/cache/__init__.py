"""
Cache infrastructure.
"""

from greffier.infrastructure.cache.bounded_cache import (
    BoundedCache,
    CacheEntry,
    make_serializable,
)

__all__ = [
    "BoundedCache",
    "CacheEntry",
    "make_serializable",
]
