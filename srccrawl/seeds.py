"""Seed list acquisition: line files and package-index queries."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, List, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

GODOC_INDEX_URL = "https://api.godoc.org/packages"
DEFAULT_TIMEOUT = 60.0

_INDEX_ALIASES = {"godoc": GODOC_INDEX_URL}


class SeedError(RuntimeError):
    """Raised when a seed source cannot be read."""


def read_lines(path: Path) -> List[str]:
    """Return one identifier per non-blank, non-comment line, in file order."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise SeedError(f"failed to open packages file {path}: {exc}") from exc
    identifiers: List[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        identifiers.append(stripped)
    return identifiers


def index_packages(
    url: str = GODOC_INDEX_URL,
    *,
    opener: Optional[Callable[..., Any]] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> List[str]:
    """Fetch ``{"results": [{"path": ...}]}`` from a package index."""
    open_url = opener or urlopen
    request = Request(url, headers={"Accept": "application/json"})
    try:
        with open_url(request, timeout=timeout) as response:
            body = response.read().decode("utf-8")
    except HTTPError as exc:
        raise SeedError(f"package index returned HTTP {exc.code} for {url}") from exc
    except URLError as exc:
        raise SeedError(f"failed to reach package index {url}: {exc.reason}") from exc

    try:
        payload = json.loads(body)
    except json.JSONDecodeError as exc:
        raise SeedError(f"package index returned invalid JSON: {exc}") from exc
    if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
        raise SeedError("package index response lacks a results list")

    identifiers: List[str] = []
    for entry in payload["results"]:
        if isinstance(entry, dict) and isinstance(entry.get("path"), str) and entry["path"]:
            identifiers.append(entry["path"])
    return identifiers


def is_index_source(source: str) -> bool:
    return source in _INDEX_ALIASES or source.startswith(("http://", "https://"))


def load_seeds(source: str, *, opener: Optional[Callable[..., Any]] = None) -> List[str]:
    """Resolve ``source`` to an ordered list of identifiers."""
    if not source:
        raise SeedError("no seed source given")
    if is_index_source(source):
        return index_packages(_INDEX_ALIASES.get(source, source), opener=opener)
    return read_lines(Path(source).expanduser())


__all__ = [
    "GODOC_INDEX_URL",
    "SeedError",
    "index_packages",
    "is_index_source",
    "load_seeds",
    "read_lines",
]
