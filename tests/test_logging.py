"""Tests for the crawl logging setup."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from srccrawl.logging import configure_logging, get_logger, log_level


@pytest.fixture(autouse=True)
def _reset_logging():  # type: ignore[no-untyped-def]
    yield
    configure_logging()


def test_loggers_share_the_crawl_hierarchy() -> None:
    assert get_logger().name == "srccrawl"
    assert get_logger("fetch").name == "srccrawl.fetch"


@pytest.mark.parametrize(
    ("verbose", "quiet", "expected"),
    [(False, False, logging.INFO), (True, False, logging.DEBUG), (False, True, logging.WARNING)],
)
def test_log_level(verbose: bool, quiet: bool, expected: int) -> None:
    assert log_level(verbose=verbose, quiet=quiet) == expected


def test_reconfiguring_replaces_handlers() -> None:
    configure_logging()
    logger = configure_logging(verbose=True)

    assert len(logger.handlers) == 1
    assert logger.level == logging.DEBUG
    assert logger.propagate is False


def test_log_file_keeps_debug_output_when_console_is_quiet(tmp_path: Path) -> None:
    log_file = tmp_path / "nested" / "crawl.log"
    logger = configure_logging(quiet=True, log_file=log_file)

    get_logger("builder").debug("example.com/pkg running vet")

    console = logger.handlers[0]
    assert console.level == logging.WARNING
    text = log_file.read_text(encoding="utf-8")
    assert "example.com/pkg running vet" in text
    assert "srccrawl.builder" in text
