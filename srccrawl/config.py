"""Configuration loading for srccrawl (.srccrawl.yml)."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".srccrawl.yml"

DEFAULT_BUILDERS = 8
DEFAULT_FETCHERS = 1
DEFAULT_MAX_PERSIST_RETRIES = 5
DEFAULT_LINT_CHECKS = ("vet", "errcheck")
DEFAULT_SQL_URL = "sqlite:///srccrawl.db"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


def _default_workdir() -> Path:
    return Path(tempfile.gettempdir()) / "srccrawl" / "gopath"


@dataclass
class StoreConfig:
    """Persistence backend selection."""

    backend: str = "memory"
    url: str = DEFAULT_SQL_URL


@dataclass
class CrawlConfig:
    """Represents the settings defined in .srccrawl.yml."""

    workdir: Path = field(default_factory=_default_workdir)
    builders: int = DEFAULT_BUILDERS
    fetchers: int = DEFAULT_FETCHERS
    expand: bool = True
    max_persist_retries: Optional[int] = DEFAULT_MAX_PERSIST_RETRIES
    store: StoreConfig = field(default_factory=StoreConfig)
    goroot: Optional[Path] = None
    lint: List[str] = field(default_factory=lambda: list(DEFAULT_LINT_CHECKS))

    def validate(self) -> "CrawlConfig":
        if self.builders < 1:
            raise ConfigError("builders must be at least 1")
        if self.fetchers < 1:
            raise ConfigError("fetchers must be at least 1")
        if self.max_persist_retries is not None and self.max_persist_retries < 0:
            raise ConfigError("max_persist_retries must not be negative")
        if self.store.backend not in {"memory", "sql"}:
            raise ConfigError(f"Unknown store backend: {self.store.backend}")
        return self


def load_config(config_path: Path | None = None) -> CrawlConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    if config_path is None:
        config_path = Path.cwd()
    config_file = _resolve_config_path(Path(config_path))
    if not config_file.exists():
        config = CrawlConfig()
        if os.environ.get("GOROOT"):
            config.goroot = Path(os.environ["GOROOT"]).expanduser()
        return config

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    config = CrawlConfig()
    root = config_file.parent

    workdir = _as_str(data.get("workdir"))
    if workdir:
        config.workdir = (root / Path(workdir).expanduser()).resolve()

    builders = _as_int(data.get("builders"))
    if builders is not None:
        config.builders = builders
    fetchers = _as_int(data.get("fetchers"))
    if fetchers is not None:
        config.fetchers = fetchers

    expand = _as_bool(data.get("expand"))
    if expand is not None:
        config.expand = expand

    if "max_persist_retries" in data:
        raw_retries = data.get("max_persist_retries")
        retries = None if raw_retries is None else _as_int(raw_retries)
        if raw_retries is not None and retries is None:
            raise ConfigError(
                f"max_persist_retries must be an integer or null, got {raw_retries!r}"
            )
        config.max_persist_retries = retries

    store_data = _as_dict(data.get("store"))
    if store_data:
        backend = _as_str(store_data.get("backend"))
        if backend:
            config.store.backend = backend.lower()
        url = _as_str(store_data.get("url"))
        if url:
            config.store.url = url

    goroot = _as_str(data.get("goroot")) or os.environ.get("GOROOT")
    if goroot:
        config.goroot = Path(goroot).expanduser()

    if "lint" in data:
        config.lint = _as_str_list(data.get("lint"))

    return config.validate()


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = ["ConfigError", "CrawlConfig", "StoreConfig", "load_config"]
