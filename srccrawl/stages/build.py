"""Build stage: a pool of workers running the verification pipeline."""

from __future__ import annotations

import queue
import threading
from typing import List, Optional

from ..builder import Builder
from ..logging import get_logger
from ..models import ResultRecord, StepOutcome

_SHUTDOWN = object()


class BuildStage:
    """Fixed-size worker pool; each worker builds one identifier at a time."""

    def __init__(
        self,
        builder: Builder,
        results: "queue.Queue[object]",
        *,
        workers: int = 8,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.builder = builder
        self._results = results
        self._requests: "queue.Queue[object]" = queue.Queue()
        self._workers = workers
        self._threads: List[threading.Thread] = []
        self.logger = get_logger("build")

    def start(self) -> None:
        for index in range(self._workers):
            thread = threading.Thread(
                target=self._run, name=f"builder-{index}", daemon=True
            )
            thread.start()
            self._threads.append(thread)

    def submit(self, identifier: str) -> None:
        self._requests.put(identifier)

    def stop(self) -> None:
        for _ in self._threads:
            self._requests.put(_SHUTDOWN)

    def join(self, timeout: Optional[float] = None) -> None:
        for thread in self._threads:
            thread.join(timeout)

    def _run(self) -> None:
        while True:
            item = self._requests.get()
            if item is _SHUTDOWN:
                return
            identifier = str(item)
            try:
                record = self.builder.build(identifier)
            except Exception as exc:
                # The builder guards every step; this only triggers on a bug.
                self.logger.exception("%s build worker crashed", identifier)
                record = ResultRecord(
                    identifier=identifier,
                    fetched=True,
                    metadata=StepOutcome(succeeded=False, log=str(exc)),
                )
            self._results.put(record)


__all__ = ["BuildStage"]
