"""Crawl orchestration: routes identifiers between the stages and the store."""

from __future__ import annotations

import queue
import threading
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import AbstractSet, Iterable, Optional

from .builder import Builder
from .frontier import Frontier
from .logging import get_logger
from .models import FetchResult, ResultRecord
from .stages import BuildStage, FetchStage
from .stores.base import ResultStore
from .toolchain import Toolchain
from .vcs import RepositoryDetector

POLL_INTERVAL = 0.2
_JOIN_TIMEOUT = 1.0


@dataclass
class CrawlStats:
    """Counters describing what a crawl has done so far."""

    fetched: int = 0
    fetch_failed: int = 0
    persisted: int = 0
    persist_failed: int = 0
    dropped: int = 0


class Crawler:
    """Hub of the crawl.

    Fetch results and build records from the worker threads arrive on one
    inbox queue and are handled in arrival order on the thread that calls
    :meth:`run`. A record is persisted before its imports are pushed into the
    frontier; when persisting fails the identifier is reset and queued again
    without expanding its imports.
    """

    def __init__(
        self,
        toolchain: Toolchain,
        store: ResultStore,
        workdir: Path,
        *,
        frontier: Frontier | None = None,
        builder: Builder | None = None,
        detector: RepositoryDetector | None = None,
        builders: int = 8,
        fetchers: int = 1,
        expand: bool = True,
        known: AbstractSet[str] = frozenset(),
        max_persist_retries: Optional[int] = None,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        self.workdir = Path(workdir)
        self.store = store
        self.frontier = frontier if frontier is not None else Frontier()
        self.builder = builder or Builder(toolchain, self.workdir, detector)
        self.expand = expand
        self.known = frozenset(known)
        self.max_persist_retries = max_persist_retries
        self.stats = CrawlStats()
        self.logger = get_logger("orchestrator")

        self._poll_interval = poll_interval
        self._inbox: "queue.Queue[object]" = queue.Queue()
        self._stop = threading.Event()
        self._persist_failures: Counter[str] = Counter()
        self.fetch_stage = FetchStage(
            self.frontier,
            toolchain.fetch,
            self.workdir,
            self._inbox,
            workers=fetchers,
            poll_interval=poll_interval,
        )
        self.build_stage = BuildStage(self.builder, self._inbox, workers=builders)

    def seed(self, identifiers: Iterable[str]) -> int:
        """Push seed identifiers; returns how many were new."""
        added = 0
        for identifier in identifiers:
            if self.frontier.push(identifier):
                added += 1
        self.logger.info("Seeded %d identifier(s)", added)
        return added

    def run(self, *, drain: bool = False) -> CrawlStats:
        """Service events until :meth:`stop` is called.

        With ``drain`` the loop also returns once nothing is pending or in
        flight, which is how a bounded crawl finishes.
        """
        self.fetch_stage.start()
        self.build_stage.start()
        try:
            while not self._stop.is_set():
                if drain and self.frontier.idle:
                    self.logger.info("Frontier drained; stopping crawl")
                    break
                try:
                    event = self._inbox.get(timeout=self._poll_interval)
                except queue.Empty:
                    continue
                self.handle(event)
        finally:
            self._shutdown()
        return self.stats

    def stop(self) -> None:
        self._stop.set()

    def handle(self, event: object) -> None:
        if isinstance(event, FetchResult):
            self.handle_fetch_result(event)
        elif isinstance(event, ResultRecord):
            self.handle_record(event)
        else:
            raise TypeError(f"Unexpected crawl event: {event!r}")

    def handle_fetch_result(self, result: FetchResult) -> None:
        if not result.ok:
            self.stats.fetch_failed += 1
            self.logger.warning("%s fetch failed: %s", result.identifier, result.error)
            self.frontier.retire(result.identifier)
            return
        self.stats.fetched += 1
        self.logger.debug("%s fetched; dispatching build", result.identifier)
        self.build_stage.submit(result.identifier)

    def handle_record(self, record: ResultRecord) -> None:
        identifier = record.identifier
        try:
            self.store.insert(record)
        except Exception as exc:
            self._requeue(identifier, exc)
            return

        self.stats.persisted += 1
        self._persist_failures.pop(identifier, None)
        self.frontier.retire(identifier)
        self.logger.info("%s stored", identifier)
        if not self.expand:
            return
        added = [
            name
            for name in record.build_info.imports
            if name not in self.known and self.frontier.push(name)
        ]
        if added:
            self.logger.debug("%s expanded %d import(s)", identifier, len(added))

    def _requeue(self, identifier: str, exc: Exception) -> None:
        self.stats.persist_failed += 1
        self._persist_failures[identifier] += 1
        failures = self._persist_failures[identifier]
        if self.max_persist_retries is not None and failures > self.max_persist_retries:
            self.stats.dropped += 1
            self._persist_failures.pop(identifier, None)
            self.frontier.retire(identifier)
            self.logger.error(
                "%s dropped after %d failed store attempt(s): %s", identifier, failures, exc
            )
            return
        self.logger.warning("%s could not be stored (%s); re-queueing", identifier, exc)
        self.frontier.reset(identifier)
        self.frontier.push(identifier)

    def _shutdown(self) -> None:
        self.frontier.close()
        self.fetch_stage.stop()
        self.build_stage.stop()
        # Workers blocked in an external command are daemons; don't wait on them.
        self.fetch_stage.join(_JOIN_TIMEOUT)
        self.build_stage.join(_JOIN_TIMEOUT)


__all__ = ["CrawlStats", "Crawler"]
