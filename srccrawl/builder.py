"""Per-identifier verification pipeline run by build workers."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional, TypeVar

from .logging import get_logger
from .models import BuildInfo, CheckOutcome, RepositoryInfo, ResultRecord, StepOutcome
from .toolchain import Toolchain
from .vcs import RepositoryDetector

_T = TypeVar("_T")


class Builder:
    """Runs the fixed step sequence for one identifier and returns its record.

    Step order: metadata, compile, format check, test, lint checks, then VCS
    metadata. A metadata failure skips everything up to VCS extraction, a
    compile failure skips format, test and lint. Step exceptions are recorded
    on the result and never propagate.
    """

    def __init__(
        self,
        toolchain: Toolchain,
        workdir: Path,
        detector: Optional[RepositoryDetector] = None,
    ) -> None:
        self.toolchain = toolchain
        self.workdir = Path(workdir)
        self.detector = detector or RepositoryDetector(self.workdir / "src")
        self.logger = get_logger("builder")

    def build(self, identifier: str, *, fetched: bool = True) -> ResultRecord:
        record = ResultRecord(identifier=identifier, fetched=fetched)

        self.logger.info("%s extracting metadata", identifier)
        record.metadata, record.build_info = self._guard(
            lambda: self.toolchain.metadata(identifier, self.workdir),
            lambda exc: (StepOutcome(succeeded=False, log=str(exc)), BuildInfo()),
            identifier,
            "metadata",
        )
        if not record.metadata.succeeded:
            self.logger.warning("%s metadata extraction failed", identifier)
            record.repository = self._repository(identifier)
            return record

        self.logger.info("%s building", identifier)
        record.build = self._step(identifier, "build", self.toolchain.compile)
        if not record.build.succeeded:
            self.logger.info("%s build failed", identifier)
            record.repository = self._repository(identifier)
            return record
        self.logger.info("%s build succeeded", identifier)

        self.logger.info("%s checking format", identifier)
        record.format = self._check(identifier, "format", self.toolchain.format_check)

        self.logger.info("%s testing", identifier)
        record.test = self._step(identifier, "test", self.toolchain.test)
        self.logger.info(
            "%s testing %s", identifier, "succeeded" if record.test.succeeded else "failed"
        )

        for name, check in self.toolchain.lint.items():
            self.logger.info("%s running %s", identifier, name)
            record.lint[name] = self._check(identifier, name, check)

        record.repository = self._repository(identifier)
        return record

    def _step(
        self, identifier: str, name: str, step: Callable[[str, Path], StepOutcome]
    ) -> StepOutcome:
        return self._guard(
            lambda: step(identifier, self.workdir),
            lambda exc: StepOutcome(succeeded=False, log=str(exc)),
            identifier,
            name,
        )

    def _check(
        self, identifier: str, name: str, check: Callable[[str, Path], CheckOutcome]
    ) -> CheckOutcome:
        outcome = self._guard(
            lambda: check(identifier, self.workdir),
            lambda exc: CheckOutcome(defects=0, log=str(exc), succeeded=False),
            identifier,
            name,
        )
        if outcome.succeeded:
            self.logger.debug("%s %s reported %d defect(s)", identifier, name, outcome.defects)
        else:
            self.logger.info("%s %s failed to run", identifier, name)
        return outcome

    def _repository(self, identifier: str) -> RepositoryInfo:
        return self._guard(
            lambda: self.detector.detect(identifier),
            lambda exc: RepositoryInfo(),
            identifier,
            "vcs",
        )

    def _guard(
        self,
        call: Callable[[], _T],
        fallback: Callable[[Exception], _T],
        identifier: str,
        name: str,
    ) -> _T:
        try:
            return call()
        except Exception as exc:
            self.logger.warning("%s %s step raised: %s", identifier, name, exc)
            return fallback(exc)


__all__ = ["Builder"]
