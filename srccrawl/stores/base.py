"""Persistence interfaces for result records.

Backends satisfy these protocols structurally; the crawler only needs
``insert``, the report service also reads.
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from ..models import ResultRecord


class StoreError(RuntimeError):
    """Raised when a store cannot be reached or a record cannot be written."""


class ResultStore(Protocol):
    def insert(self, record: ResultRecord) -> None: ...


class QueryableStore(ResultStore, Protocol):
    def get(self, identifier: str) -> Optional[ResultRecord]: ...
    def by_url(self, url: str) -> List[ResultRecord]: ...
    def list(self) -> List[ResultRecord]: ...
    def close(self) -> None: ...


__all__ = ["QueryableStore", "ResultStore", "StoreError"]
