"""Fetch stage: pulls identifiers from the frontier and downloads them."""

from __future__ import annotations

import queue
import threading
from pathlib import Path
from typing import List

from ..frontier import Frontier
from ..logging import get_logger
from ..models import FetchResult
from ..toolchain import Step

POLL_INTERVAL = 0.2


class FetchStage:
    """Runs ``workers`` threads that fetch whatever the frontier hands out."""

    def __init__(
        self,
        frontier: Frontier,
        fetch: Step,
        workdir: Path,
        results: "queue.Queue[object]",
        *,
        workers: int = 1,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.frontier = frontier
        self._fetch = fetch
        self.workdir = Path(workdir)
        self._results = results
        self._workers = workers
        self._poll_interval = poll_interval
        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []
        self.logger = get_logger("fetch")

    def start(self) -> None:
        for index in range(self._workers):
            thread = threading.Thread(
                target=self._run, name=f"fetch-{index}", daemon=True
            )
            thread.start()
            self._threads.append(thread)

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = None) -> None:
        for thread in self._threads:
            thread.join(timeout)

    def fetch_one(self, identifier: str) -> FetchResult:
        self.logger.info("%s fetching", identifier)
        try:
            outcome = self._fetch(identifier, self.workdir)
        except Exception as exc:
            return FetchResult(identifier=identifier, error=str(exc) or exc.__class__.__name__)
        if outcome.succeeded:
            return FetchResult(identifier=identifier)
        return FetchResult(identifier=identifier, error=outcome.log.strip() or "fetch failed")

    def _run(self) -> None:
        while not self._stop.is_set():
            identifier = self.frontier.pop(timeout=self._poll_interval)
            if identifier is None:
                if self.frontier.closed:
                    return
                continue
            self._results.put(self.fetch_one(identifier))


__all__ = ["FetchStage"]
