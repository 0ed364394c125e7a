"""In-memory result store with a structured text dump."""

from __future__ import annotations

import json
import threading
from typing import Dict, List, Optional

from ..models import ResultRecord


class MemoryStore:
    """Keeps the latest record per identifier in a dict."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: Dict[str, ResultRecord] = {}

    def insert(self, record: ResultRecord) -> None:
        with self._lock:
            self._records[record.identifier] = record

    def get(self, identifier: str) -> Optional[ResultRecord]:
        with self._lock:
            return self._records.get(identifier)

    def by_url(self, url: str) -> List[ResultRecord]:
        with self._lock:
            records = [r for r in self._records.values() if r.repository.url == url]
        return sorted(records, key=lambda record: record.identifier)

    def list(self) -> List[ResultRecord]:
        with self._lock:
            records = list(self._records.values())
        return sorted(records, key=lambda record: record.identifier)

    def dump(self) -> str:
        """Return every record as indented JSON keyed by identifier."""
        with self._lock:
            payload = {key: record.to_dict() for key, record in self._records.items()}
        return json.dumps(payload, indent="\t", sort_keys=True)

    def close(self) -> None:
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, identifier: object) -> bool:
        with self._lock:
            return identifier in self._records


__all__ = ["MemoryStore"]
