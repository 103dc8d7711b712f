"""Greffier configuration."""

from greffier.config.settings import (
    CacheConfig,
    FetchConfig,
    GreffierConfig,
    RateLimitConfig,
    ResolverConfig,
    SyncConfig,
    get_settings,
    load_config,
    reset_settings,
)

__all__ = [
    "GreffierConfig",
    "CacheConfig",
    "RateLimitConfig",
    "FetchConfig",
    "SyncConfig",
    "ResolverConfig",
    "get_settings",
    "load_config",
    "reset_settings",
]
