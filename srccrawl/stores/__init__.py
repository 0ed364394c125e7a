"""Result stores and backend selection."""

from __future__ import annotations

from ..config import StoreConfig
from .base import QueryableStore, ResultStore, StoreError
from .memory import MemoryStore
from .sql import SQLStore


def open_store(config: StoreConfig) -> QueryableStore:
    """Open the backend named by ``config.backend``; unreachable stores raise StoreError."""
    if config.backend == "memory":
        return MemoryStore()
    if config.backend == "sql":
        store = SQLStore(config.url)
        store.ping()
        return store
    raise StoreError(f"Unknown store backend: {config.backend}")


__all__ = [
    "MemoryStore",
    "QueryableStore",
    "ResultStore",
    "SQLStore",
    "StoreError",
    "open_store",
]
