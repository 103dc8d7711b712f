"""Dependency injection."""

from greffier.di.container import (
    DIContainer,
    get_container,
    initialize_container,
    shutdown_container,
)

__all__ = [
    "DIContainer",
    "get_container",
    "initialize_container",
    "shutdown_container",
]
