"""Version-control metadata extraction for fetched packages."""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Sequence

from .models import RepositoryInfo, Revision
from .toolchain import run_command

ISO8601_DATE = "%Y-%m-%d %H:%M:%S %z"
BZR_DATE = "%a %Y-%m-%d %H:%M:%S %z"

VCSRunner = Callable[..., str]


def parse_revision(text: str) -> Revision:
    """Parse ``id``, ``date`` and ``author`` from three lines of client output."""
    parts = text.split("\n")
    if len(parts) != 3:
        return Revision()
    return Revision(
        id=parts[0],
        date=_parse_date(parts[1], ISO8601_DATE),
        author=parts[2],
    )


def parse_bzr_revision(text: str) -> Revision:
    """Parse the long log format of ``bzr log``."""
    revision = Revision()
    for line in text.split("\n"):
        parts = line.split(" ", 1)
        if len(parts) != 2:
            continue
        key, value = parts
        if key == "revno:":
            revision.id = value
        elif key == "committer:":
            revision.author = value
        elif key == "timestamp:":
            revision.date = _parse_date(value, BZR_DATE)
    return revision


def _parse_date(value: str, fmt: str) -> Optional[datetime]:
    try:
        return datetime.strptime(value.strip(), fmt)
    except ValueError:
        return None


def _default_runner(args: Iterable[str], *, cwd: Path) -> str:
    result = run_command(args, cwd=cwd)
    if not result.ok:
        return ""
    return result.output.strip()


class VCS:
    """Adapter around one version-control client.

    Every query returns empty values when the client fails or is missing.
    """

    name = ""

    def __init__(self, runner: VCSRunner | None = None) -> None:
        self._runner = runner or _default_runner

    def revision(self, path: Path) -> Revision:
        raise NotImplementedError

    def root(self, path: Path) -> str:
        raise NotImplementedError

    def url(self, path: Path) -> str:
        raise NotImplementedError

    def _run(self, path: Path, *args: str) -> str:
        if not Path(path).is_dir():
            return ""
        return self._runner([self.name, *args], cwd=Path(path))


class Git(VCS):
    name = "git"

    def revision(self, path: Path) -> Revision:
        return parse_revision(self._run(path, "log", "--pretty=format:%h%n%ai%n%an <%ae>", "-1"))

    def root(self, path: Path) -> str:
        return self._run(path, "rev-parse", "--show-toplevel")

    def url(self, path: Path) -> str:
        return self._run(path, "config", "--get", "remote.origin.url")


class Hg(VCS):
    name = "hg"

    def revision(self, path: Path) -> Revision:
        return parse_revision(
            self._run(path, "log", "-r", ".", "--template", "{node|short}\n{date|isodatesec}\n{author}")
        )

    def root(self, path: Path) -> str:
        return self._run(path, "root")

    def url(self, path: Path) -> str:
        return self._run(path, "paths", "default")


class Bzr(VCS):
    name = "bzr"

    def revision(self, path: Path) -> Revision:
        # bzr has no custom log template, so the long format is parsed instead.
        return parse_bzr_revision(self._run(path, "log", "--limit=1", "--log-format=long"))

    def root(self, path: Path) -> str:
        return self._run(path, "root")

    def url(self, path: Path) -> str:
        return ""


def default_backends(runner: VCSRunner | None = None) -> list[VCS]:
    return [Git(runner), Hg(runner), Bzr(runner)]


# Hosting prefixes whose packages live in a known set of VCS types.
_PREFIX_BACKENDS: Dict[str, Sequence[str]] = {
    "github.com/": ("git",),
    "bitbucket.org/": ("git", "hg"),
    "launchpad.net/": ("bzr",),
    "code.google.com/": ("hg", "git"),
    "gopkg.in/": ("git",),
}


class RepositoryDetector:
    """Finds the VCS checkout holding an identifier's sources."""

    def __init__(
        self,
        src_root: Path,
        backends: Sequence[VCS] | None = None,
    ) -> None:
        self.src_root = Path(src_root)
        self.backends = list(backends) if backends is not None else default_backends()

    def candidates(self, identifier: str) -> list[VCS]:
        """Return the backends to try, preselected by import-path prefix."""
        for prefix, names in _PREFIX_BACKENDS.items():
            if identifier.startswith(prefix):
                selected = [
                    backend
                    for name in names
                    for backend in self.backends
                    if backend.name == name
                ]
                if selected:
                    return selected
        return list(self.backends)

    def detect(self, identifier: str) -> RepositoryInfo:
        path = self.src_root / Path(*identifier.split("/"))
        return self.detect_path(path, self.candidates(identifier))

    def detect_path(self, path: Path, backends: Sequence[VCS] | None = None) -> RepositoryInfo:
        info = RepositoryInfo()
        for backend in backends if backends is not None else self.backends:
            revision = backend.revision(path)
            if not revision.id:
                continue
            info.vcs_type = backend.name
            info.revision = revision
            info.root = backend.root(path)
            info.url = backend.url(path)
            break
        info.root = self._relative_root(info.root)
        return info

    def _relative_root(self, root: str) -> str:
        if not root:
            return root
        try:
            return os.path.relpath(root, self.src_root).replace(os.sep, "/")
        except ValueError:
            return root


__all__ = [
    "Bzr",
    "Git",
    "Hg",
    "RepositoryDetector",
    "VCS",
    "default_backends",
    "parse_bzr_revision",
    "parse_revision",
]
