"""Tests for the SQLAlchemy-backed result store."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from srccrawl.config import StoreConfig
from srccrawl.models import (
    CheckOutcome,
    RepositoryInfo,
    ResultRecord,
    Revision,
    StepOutcome,
)
from srccrawl.stores import MemoryStore, SQLStore, StoreError, open_store


def _record(identifier: str, *, url: str = "https://example.com/repo.git") -> ResultRecord:
    return ResultRecord(
        identifier=identifier,
        fetched=True,
        repository=RepositoryInfo(
            vcs_type="git",
            revision=Revision(
                id="abc1234",
                author="Dev <dev@example.com>",
                date=datetime(2020, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
            ),
            root="example.com/repo",
            url=url,
        ),
        build=StepOutcome(succeeded=True, log=""),
        lint={"vet": CheckOutcome(defects=2, log="a\nb\n", succeeded=True)},
    )


@pytest.fixture
def store(tmp_path: Path):  # type: ignore[no-untyped-def]
    sql_store = SQLStore(f"sqlite:///{tmp_path / 'results.db'}")
    yield sql_store
    sql_store.close()


def test_insert_and_get_round_trip(store: SQLStore) -> None:
    store.insert(_record("example.com/repo/a"))

    loaded = store.get("example.com/repo/a")

    assert loaded is not None
    assert loaded.repository.revision.id == "abc1234"
    assert loaded.repository.revision.date == datetime(2020, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert loaded.lint["vet"].defects == 2
    assert store.get("missing") is None


def test_insert_upserts_by_identifier(store: SQLStore) -> None:
    store.insert(_record("example.com/repo/a"))
    replacement = _record("example.com/repo/a", url="https://mirror.example.com/repo.git")
    replacement.build = StepOutcome(succeeded=False, log="broken")
    store.insert(replacement)

    records = store.list()

    assert len(records) == 1
    assert records[0].build.log == "broken"
    assert store.by_url("https://example.com/repo.git") == []


def test_by_url_groups_packages_of_a_repository(store: SQLStore) -> None:
    store.insert(_record("example.com/repo/b"))
    store.insert(_record("example.com/repo/a"))
    store.insert(_record("other.org/x", url="https://other.org/x"))

    found = store.by_url("https://example.com/repo.git")

    assert [record.identifier for record in found] == ["example.com/repo/a", "example.com/repo/b"]


def test_records_survive_reopening(tmp_path: Path) -> None:
    url = f"sqlite:///{tmp_path / 'results.db'}"
    first = SQLStore(url)
    first.insert(_record("example.com/repo/a"))
    first.close()

    second = SQLStore(url)
    try:
        assert [record.identifier for record in second.list()] == ["example.com/repo/a"]
    finally:
        second.close()


def test_open_store_selects_backend(tmp_path: Path) -> None:
    assert isinstance(open_store(StoreConfig()), MemoryStore)
    sql_store = open_store(StoreConfig(backend="sql", url=f"sqlite:///{tmp_path / 'r.db'}"))
    try:
        assert isinstance(sql_store, SQLStore)
    finally:
        sql_store.close()


def test_unreachable_database_raises_store_error(tmp_path: Path) -> None:
    url = f"sqlite:///{tmp_path / 'missing' / 'nested' / 'r.db'}"
    with pytest.raises(StoreError):
        open_store(StoreConfig(backend="sql", url=url))


def test_unknown_backend_is_rejected() -> None:
    with pytest.raises(StoreError):
        open_store(StoreConfig(backend="cassandra"))
