"""In-process stand-ins for the external toolchain, VCS and stores."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence

from srccrawl.models import (
    BuildInfo,
    CheckOutcome,
    RepositoryInfo,
    ResultRecord,
    Revision,
    StepOutcome,
)
from srccrawl.stores import MemoryStore, StoreError
from srccrawl.toolchain import Toolchain


class FakeEcosystem:
    """A package graph whose steps succeed unless told otherwise."""

    def __init__(
        self,
        graph: Mapping[str, Sequence[str]],
        *,
        fetch_failures: Iterable[str] = (),
        metadata_failures: Iterable[str] = (),
        compile_failures: Iterable[str] = (),
        test_failures: Iterable[str] = (),
    ) -> None:
        self.graph = {name: list(imports) for name, imports in graph.items()}
        self.fetch_failures = set(fetch_failures)
        self.metadata_failures = set(metadata_failures)
        self.compile_failures = set(compile_failures)
        self.test_failures = set(test_failures)
        self.calls: List[tuple[str, str]] = []
        self._lock = threading.Lock()

    def toolchain(self) -> Toolchain:
        return Toolchain(
            fetch=self.fetch,
            metadata=self.metadata,
            compile=self.compile,
            format_check=self.format_check,
            test=self.test,
            lint={"vet": self.vet, "errcheck": self.errcheck},
        )

    def steps_for(self, identifier: str) -> List[str]:
        with self._lock:
            return [step for step, name in self.calls if name == identifier]

    def count(self, step: str, identifier: str) -> int:
        with self._lock:
            return sum(1 for call in self.calls if call == (step, identifier))

    def _record(self, step: str, identifier: str) -> None:
        with self._lock:
            self.calls.append((step, identifier))

    def fetch(self, identifier: str, workdir: Path) -> StepOutcome:
        self._record("fetch", identifier)
        if identifier in self.fetch_failures or identifier not in self.graph:
            return StepOutcome(succeeded=False, log=f"cannot download {identifier}")
        return StepOutcome(succeeded=True, log="")

    def metadata(self, identifier: str, workdir: Path) -> tuple[StepOutcome, BuildInfo]:
        self._record("metadata", identifier)
        if identifier in self.metadata_failures:
            return StepOutcome(succeeded=False, log="no buildable files"), BuildInfo()
        info = BuildInfo(imports=self.graph.get(identifier, []), source_files=["main.go"])
        return StepOutcome(succeeded=True, log=""), info

    def compile(self, identifier: str, workdir: Path) -> StepOutcome:
        self._record("compile", identifier)
        if identifier in self.compile_failures:
            return StepOutcome(succeeded=False, log="syntax error")
        return StepOutcome(succeeded=True, log="")

    def format_check(self, identifier: str, workdir: Path) -> CheckOutcome:
        self._record("format", identifier)
        return CheckOutcome(defects=0, log="", succeeded=True)

    def test(self, identifier: str, workdir: Path) -> StepOutcome:
        self._record("test", identifier)
        if identifier in self.test_failures:
            return StepOutcome(succeeded=False, log="FAIL")
        return StepOutcome(succeeded=True, log="ok")

    def vet(self, identifier: str, workdir: Path) -> CheckOutcome:
        self._record("vet", identifier)
        return CheckOutcome(defects=1, log="main.go:1: unreachable code\n", succeeded=True)

    def errcheck(self, identifier: str, workdir: Path) -> CheckOutcome:
        self._record("errcheck", identifier)
        return CheckOutcome(defects=0, log="", succeeded=True)


class FakeDetector:
    """Reports a git checkout for every identifier."""

    def __init__(self) -> None:
        self.detected: List[str] = []

    def detect(self, identifier: str) -> RepositoryInfo:
        self.detected.append(identifier)
        return RepositoryInfo(
            vcs_type="git",
            revision=Revision(id="abc1234", author="Dev <dev@example.com>"),
            root=identifier,
            url=f"https://{identifier}.git",
        )


class FlakyStore(MemoryStore):
    """Memory store whose first ``failures[identifier]`` inserts raise."""

    def __init__(self, failures: Dict[str, int]) -> None:
        super().__init__()
        self.remaining = dict(failures)
        self.attempts: List[str] = []

    def insert(self, record: ResultRecord) -> None:
        self.attempts.append(record.identifier)
        if self.remaining.get(record.identifier, 0) > 0:
            self.remaining[record.identifier] -= 1
            raise StoreError(f"database unavailable for {record.identifier}")
        super().insert(record)


__all__ = ["FakeDetector", "FakeEcosystem", "FlakyStore"]
