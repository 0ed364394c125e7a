"""Durable result store backed by SQLAlchemy."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import String, Text, create_engine, event, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from ..models import ResultRecord
from .base import StoreError


class Base(DeclarativeBase):
    pass


class PackageRow(Base):
    """One result document per identifier."""

    __tablename__ = "packages"

    identifier: Mapped[str] = mapped_column(String(500), primary_key=True)
    url: Mapped[str] = mapped_column(String(1000), default="", index=True)
    timestamp: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))
    document: Mapped[str] = mapped_column(Text, default="{}")

    def to_record(self) -> ResultRecord:
        return ResultRecord.from_dict(json.loads(self.document))


def create_store_engine(url: str, *, echo: bool = False) -> Engine:
    """Create an engine; SQLite databases get WAL journaling and thread sharing."""
    kwargs: Dict[str, Any] = {"echo": echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in {"sqlite://", "sqlite:///:memory:"}:
            kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)

    if url.startswith("sqlite"):

        @event.listens_for(engine, "connect")
        def _set_wal_mode(dbapi_conn: Any, _connection_record: object) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    return engine


class SQLStore:
    """Upserts records into the ``packages`` table."""

    def __init__(self, url: str, *, echo: bool = False) -> None:
        self.url = url
        try:
            self._engine = create_store_engine(url, echo=echo)
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to connect to database: {exc}") from exc
        self._sessions = sessionmaker(self._engine, expire_on_commit=False)

    def ping(self) -> None:
        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise StoreError(f"database ping failed: {exc}") from exc

    def insert(self, record: ResultRecord) -> None:
        row = PackageRow(
            identifier=record.identifier,
            url=record.repository.url,
            timestamp=record.timestamp,
            document=json.dumps(record.to_dict(), sort_keys=True),
        )
        try:
            with self._sessions.begin() as session:
                session.merge(row)
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to store {record.identifier}: {exc}") from exc

    def get(self, identifier: str) -> Optional[ResultRecord]:
        with self._sessions() as session:
            row = session.get(PackageRow, identifier)
            return row.to_record() if row is not None else None

    def by_url(self, url: str) -> List[ResultRecord]:
        with self._sessions() as session:
            rows = session.scalars(
                select(PackageRow).where(PackageRow.url == url).order_by(PackageRow.identifier)
            )
            return [row.to_record() for row in rows]

    def list(self) -> List[ResultRecord]:
        with self._sessions() as session:
            rows = session.scalars(select(PackageRow).order_by(PackageRow.identifier))
            return [row.to_record() for row in rows]

    def close(self) -> None:
        self._engine.dispose()


__all__ = ["PackageRow", "SQLStore", "create_store_engine"]
