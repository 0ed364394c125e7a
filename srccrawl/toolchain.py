"""Pluggable pipeline steps and the Go toolchain profile."""

from __future__ import annotations

import json
import os
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from .logging import get_logger
from .models import BuildInfo, CheckOutcome, StepOutcome

_LOGGER = get_logger("toolchain")

# Imported by cgo packages; not a fetchable package.
CGO_PSEUDO_IMPORT = "C"

# `go get` in GOPATH mode was removed in Go 1.22.
LAST_GOPATH_GET_RELEASE = (1, 21)

_GO_VERSION = re.compile(r"\bgo(\d+)\.(\d+)")

Step = Callable[[str, Path], StepOutcome]
CheckStep = Callable[[str, Path], CheckOutcome]
MetadataStep = Callable[[str, Path], Tuple[StepOutcome, BuildInfo]]


@dataclass(frozen=True)
class CommandResult:
    """Exit status and combined stdout/stderr of an external command."""

    returncode: int
    output: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


CommandRunner = Callable[..., CommandResult]


def run_command(
    args: Iterable[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> CommandResult:
    """Run ``args`` and capture its combined output without raising."""
    argv = list(args)
    try:
        completed = subprocess.run(
            argv,
            cwd=str(cwd) if cwd is not None else None,
            env=dict(env) if env is not None else None,
            check=False,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
        )
    except FileNotFoundError as exc:
        return CommandResult(returncode=127, output=f"{argv[0]}: {exc}")
    except OSError as exc:
        return CommandResult(returncode=126, output=f"{argv[0]}: {exc}")
    return CommandResult(returncode=completed.returncode, output=completed.stdout or "")


@dataclass
class Toolchain:
    """The set of step functions a build worker runs for each identifier."""

    fetch: Step
    metadata: MetadataStep
    compile: Step
    format_check: CheckStep
    test: Step
    lint: Dict[str, CheckStep] = field(default_factory=dict)


class ToolchainError(RuntimeError):
    """Raised when the installed toolchain cannot run a crawl."""


class GoToolchain:
    """Runs the go command family against a GOPATH-style source tree."""

    def __init__(
        self,
        runner: CommandRunner | None = None,
        *,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._runner = runner or run_command
        self._environ = dict(environ) if environ is not None else dict(os.environ)

    def env(self, workdir: Path) -> Dict[str, str]:
        env = {
            key: value
            for key, value in self._environ.items()
            if key not in {"GOPATH", "GO111MODULE"}
        }
        env["GOPATH"] = str(workdir)
        env["GO111MODULE"] = "off"
        return env

    @staticmethod
    def package_dir(identifier: str, workdir: Path) -> Path:
        return workdir / "src" / Path(*identifier.split("/"))

    def fetch(self, identifier: str, workdir: Path) -> StepOutcome:
        result = self._go(workdir, "get", "-d", "-u", identifier)
        return StepOutcome(succeeded=result.ok, log=result.output)

    def metadata(self, identifier: str, workdir: Path) -> Tuple[StepOutcome, BuildInfo]:
        result = self._go(workdir, "list", "-e", "-json", identifier)
        if not result.ok:
            return StepOutcome(succeeded=False, log=result.output), BuildInfo()
        try:
            payload = json.loads(result.output)
        except json.JSONDecodeError as exc:
            return StepOutcome(succeeded=False, log=f"{exc}\n{result.output}"), BuildInfo()
        if not isinstance(payload, dict):
            return StepOutcome(succeeded=False, log=result.output), BuildInfo()
        error = payload.get("Error")
        if isinstance(error, dict) and error.get("Err"):
            return StepOutcome(succeeded=False, log=str(error["Err"])), BuildInfo()
        info = BuildInfo(
            imports=[
                name for name in _str_list(payload.get("Imports")) if name != CGO_PSEUDO_IMPORT
            ],
            uses_foreign_code=bool(_str_list(payload.get("CgoFiles"))),
            source_files=_str_list(payload.get("GoFiles")),
        )
        return StepOutcome(succeeded=True, log=""), info

    def compile(self, identifier: str, workdir: Path) -> StepOutcome:
        result = self._go(workdir, "build", identifier)
        return StepOutcome(succeeded=result.ok, log=result.output)

    def format_check(self, identifier: str, workdir: Path) -> CheckOutcome:
        # gofmt recurses into directories; subpackages belong to other identifiers.
        directory = self.package_dir(identifier, workdir)
        files = sorted(str(path) for path in directory.glob("*.go") if path.is_file())
        if not files:
            return CheckOutcome(defects=0, log="", succeeded=True)
        result = self._runner(["gofmt", "-l", *files], cwd=workdir, env=self.env(workdir))
        if not result.ok:
            return CheckOutcome(defects=0, log=result.output, succeeded=False)
        return CheckOutcome(defects=_count_lines(result.output), log=result.output, succeeded=True)

    def test(self, identifier: str, workdir: Path) -> StepOutcome:
        result = self._go(workdir, "test", identifier)
        return StepOutcome(succeeded=result.ok, log=result.output)

    def vet(self, identifier: str, workdir: Path) -> CheckOutcome:
        result = self._go(workdir, "vet", identifier)
        # go vet exits non-zero when it reports findings.
        return CheckOutcome(
            defects=_count_lines(result.output),
            log=result.output,
            succeeded=result.returncode in (0, 1),
        )

    def errcheck(self, identifier: str, workdir: Path) -> CheckOutcome:
        result = self._runner(["errcheck", identifier], cwd=workdir, env=self.env(workdir))
        # errcheck exits with status 1 when it found unchecked errors.
        if result.returncode not in (0, 1):
            return CheckOutcome(defects=0, log=result.output, succeeded=False)
        return CheckOutcome(defects=_count_lines(result.output), log=result.output, succeeded=True)

    def goroot(self) -> Optional[Path]:
        result = self._runner(["go", "env", "GOROOT"], cwd=None, env=self._environ)
        value = result.output.strip()
        if not result.ok or not value:
            return None
        return Path(value)

    def check(self) -> None:
        """Fail fast when ``go`` is missing or too new to fetch into a GOPATH."""
        result = self._runner(["go", "version"], cwd=None, env=self._environ)
        if not result.ok:
            raise ToolchainError(f"go is not available: {result.output.strip()}")
        match = _GO_VERSION.search(result.output)
        if match is None:
            _LOGGER.warning("Could not determine the go release from %r", result.output.strip())
            return
        release = (int(match.group(1)), int(match.group(2)))
        if release > LAST_GOPATH_GET_RELEASE:
            supported = ".".join(str(part) for part in LAST_GOPATH_GET_RELEASE)
            raise ToolchainError(
                f"go{release[0]}.{release[1]} cannot fetch packages in GOPATH mode; "
                f"use go{supported} or older"
            )

    def toolchain(self, lint: Sequence[str] = ("vet", "errcheck")) -> Toolchain:
        checks: Dict[str, CheckStep] = {"vet": self.vet, "errcheck": self.errcheck}
        unknown = [name for name in lint if name not in checks]
        if unknown:
            raise ValueError(f"Unknown lint checks requested: {', '.join(unknown)}")
        return Toolchain(
            fetch=self.fetch,
            metadata=self.metadata,
            compile=self.compile,
            format_check=self.format_check,
            test=self.test,
            lint={name: checks[name] for name in lint},
        )

    def _go(self, workdir: Path, *args: str) -> CommandResult:
        return self._runner(["go", *args], cwd=workdir, env=self.env(workdir))


def standard_packages(goroot: Path | None) -> frozenset[str]:
    """Return the import paths of the standard library below ``goroot``.

    Computed once at startup and handed to the crawler as its known set.
    """
    if goroot is None:
        return frozenset()
    src = goroot / "src"
    if not src.is_dir():
        _LOGGER.warning("GOROOT source tree not found at %s", src)
        return frozenset()
    packages = set()
    for dirpath, dirnames, _ in os.walk(src):
        dirnames[:] = [name for name in dirnames if name not in {"testdata", "vendor"}]
        path = Path(dirpath)
        if path == src:
            continue
        packages.add(path.relative_to(src).as_posix())
    return frozenset(packages)


def _str_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if isinstance(item, str)]


def _count_lines(text: str) -> int:
    return sum(1 for line in text.splitlines() if line.strip())


__all__ = [
    "CGO_PSEUDO_IMPORT",
    "CommandResult",
    "GoToolchain",
    "Toolchain",
    "ToolchainError",
    "run_command",
    "standard_packages",
]
