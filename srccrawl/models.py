"""Core data models shared across srccrawl components."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any, Dict, List, Mapping, Optional


@dataclass
class Revision:
    """A single revision reported by a version-control client."""

    id: str = ""
    author: str = ""
    date: Optional[datetime] = None


@dataclass
class RepositoryInfo:
    """Version-control metadata for the checkout that holds a package."""

    vcs_type: str = ""
    revision: Revision = field(default_factory=Revision)
    root: str = ""
    url: str = ""


@dataclass
class BuildInfo:
    """Import metadata extracted from a fetched package."""

    imports: List[str] = field(default_factory=list)
    uses_foreign_code: bool = False
    source_files: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.imports = sorted(set(self.imports))


@dataclass
class StepOutcome:
    """Pass/fail result and captured output of a pipeline step."""

    succeeded: bool = False
    log: str = ""


@dataclass
class CheckOutcome:
    """Result of a checker that reports a defect count instead of pass/fail.

    ``succeeded`` tells whether the checker itself ran; the findings are in
    ``defects``.
    """

    defects: int = 0
    log: str = ""
    succeeded: bool = False


@dataclass
class FetchResult:
    """Outcome of downloading or refreshing the sources for an identifier."""

    identifier: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ResultRecord:
    """Everything learned about one package during a pipeline run."""

    identifier: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    fetched: bool = False
    repository: RepositoryInfo = field(default_factory=RepositoryInfo)
    build_info: BuildInfo = field(default_factory=BuildInfo)
    metadata: StepOutcome = field(default_factory=StepOutcome)
    build: StepOutcome = field(default_factory=StepOutcome)
    format: CheckOutcome = field(default_factory=CheckOutcome)
    test: StepOutcome = field(default_factory=StepOutcome)
    lint: Dict[str, CheckOutcome] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON-compatible document form of the record."""
        data = asdict(self)
        data["timestamp"] = _format_datetime(self.timestamp)
        data["repository"]["revision"]["date"] = _format_datetime(
            self.repository.revision.date
        )
        return data

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ResultRecord":
        repository = _as_dict(payload.get("repository"))
        revision = _as_dict(repository.get("revision"))
        build_info = _as_dict(payload.get("build_info"))
        lint = _as_dict(payload.get("lint"))
        return cls(
            identifier=str(payload.get("identifier", "")),
            timestamp=_parse_datetime(payload.get("timestamp")) or datetime.now(UTC),
            fetched=bool(payload.get("fetched", False)),
            repository=RepositoryInfo(
                vcs_type=str(repository.get("vcs_type", "")),
                revision=Revision(
                    id=str(revision.get("id", "")),
                    author=str(revision.get("author", "")),
                    date=_parse_datetime(revision.get("date")),
                ),
                root=str(repository.get("root", "")),
                url=str(repository.get("url", "")),
            ),
            build_info=BuildInfo(
                imports=[str(item) for item in build_info.get("imports", [])],
                uses_foreign_code=bool(build_info.get("uses_foreign_code", False)),
                source_files=[str(item) for item in build_info.get("source_files", [])],
            ),
            metadata=_step_from_dict(payload.get("metadata")),
            build=_step_from_dict(payload.get("build")),
            format=_check_from_dict(payload.get("format")),
            test=_step_from_dict(payload.get("test")),
            lint={str(name): _check_from_dict(raw) for name, raw in lint.items()},
        )


def _as_dict(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def _step_from_dict(value: Any) -> StepOutcome:
    data = _as_dict(value)
    return StepOutcome(
        succeeded=bool(data.get("succeeded", False)),
        log=str(data.get("log", "")),
    )


def _check_from_dict(value: Any) -> CheckOutcome:
    data = _as_dict(value)
    try:
        defects = int(data.get("defects", 0))
    except (TypeError, ValueError):
        defects = 0
    return CheckOutcome(
        defects=defects,
        log=str(data.get("log", "")),
        succeeded=bool(data.get("succeeded", False)),
    )


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def _parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


__all__ = [
    "BuildInfo",
    "CheckOutcome",
    "FetchResult",
    "RepositoryInfo",
    "ResultRecord",
    "Revision",
    "StepOutcome",
]
