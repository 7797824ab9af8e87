"""Durable mapping between Notion pages and WordPress posts.

One row per source page in the ``sync_mappings`` table, with unique
indexes on ``source_id`` and ``target_id`` and an index on ``status``.
``target_id`` stays ``NULL`` until the first successful sync; the row
itself is created by the first sync attempt because it doubles as the
per-page lock (``status = 'syncing'``).

All timestamps are stored as naive UTC and returned as aware UTC
datetimes.
"""

from __future__ import annotations

import contextlib
import threading
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    func,
    or_,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from notionpress.errors import NotionpressConflictError
from notionpress.models import SyncMapping, SyncStatus
from notionpress.observability import get_logger
from notionpress.utils.ids import normalize_page_id

log = get_logger("notionpress.store")

Base = declarative_base()


class SyncMappingRow(Base):
    """ORM row of the ``sync_mappings`` table."""

    __tablename__ = "sync_mappings"

    id = Column(Integer, primary_key=True)
    source_id = Column(String(64), nullable=False, unique=True, index=True)
    target_id = Column(String(64), nullable=True, unique=True, index=True)
    source_title = Column(String(500), nullable=False, default="")
    source_modified_at = Column(DateTime, nullable=True)
    target_modified_at = Column(DateTime, nullable=True)
    status = Column(String(20), nullable=False, default=SyncStatus.NEVER_SYNCED.value, index=True)
    last_attempt_at = Column(DateTime, nullable=True)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<SyncMappingRow(source_id={self.source_id}, "
            f"target_id={self.target_id}, status={self.status})>"
        )


def _to_db(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _to_model(row: SyncMappingRow) -> SyncMapping:
    return SyncMapping(
        source_id=row.source_id,
        target_id=row.target_id,
        source_title=row.source_title or "",
        source_modified_at=_from_db(row.source_modified_at),
        target_modified_at=_from_db(row.target_modified_at),
        status=SyncStatus(row.status),
        last_attempt_at=_from_db(row.last_attempt_at),
        last_error=row.last_error,
        created_at=_from_db(row.created_at),
        updated_at=_from_db(row.updated_at),
    )


def create_store_engine(database_url: str) -> Engine:
    """Create an engine for *database_url*.

    In-memory SQLite databases share one connection across threads so
    every session sees the same data.
    """
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url, pool_pre_ping=True)


class SyncMappingStore:
    """Repository for :class:`SyncMapping` rows.

    Parameters
    ----------
    engine:
        SQLAlchemy engine.  The table is created if missing.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)
        Base.metadata.create_all(engine)
        # SQLite serialises writers anyway; doing it here avoids
        # "database is locked" errors between worker threads.
        self._serial: contextlib.AbstractContextManager = (
            threading.RLock() if engine.dialect.name == "sqlite" else contextlib.nullcontext()
        )

    @classmethod
    def from_url(cls, database_url: str) -> SyncMappingStore:
        return cls(create_store_engine(database_url))

    @contextlib.contextmanager
    def _session(self) -> Iterator[Session]:
        with self._serial, self._sessions() as session, session.begin():
            yield session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find(self, source_id: str) -> SyncMapping | None:
        """Return the mapping of *source_id*, or ``None``."""
        with self._session() as session:
            row = session.scalar(
                select(SyncMappingRow).where(
                    SyncMappingRow.source_id == normalize_page_id(source_id)
                )
            )
            return _to_model(row) if row is not None else None

    def find_by_target(self, target_id: str) -> SyncMapping | None:
        """Return the mapping whose post is *target_id*, or ``None``."""
        with self._session() as session:
            row = session.scalar(
                select(SyncMappingRow).where(SyncMappingRow.target_id == str(target_id))
            )
            return _to_model(row) if row is not None else None

    def list(
        self,
        status: SyncStatus | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> list[SyncMapping]:
        """Return one page of mappings, most recently updated first.

        Parameters
        ----------
        status:
            Only return rows in this state.
        page:
            1-based page number.
        page_size:
            Rows per page.
        """
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")

        query = select(SyncMappingRow)
        if status is not None:
            query = query.where(SyncMappingRow.status == SyncStatus(status).value)
        query = (
            query.order_by(SyncMappingRow.updated_at.desc(), SyncMappingRow.source_id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        with self._session() as session:
            return [_to_model(row) for row in session.scalars(query)]

    def count_by_status(self) -> dict[SyncStatus, int]:
        """Number of rows per status; absent statuses count zero."""
        counts = {status: 0 for status in SyncStatus}
        with self._session() as session:
            for status, count in session.execute(
                select(SyncMappingRow.status, func.count()).group_by(SyncMappingRow.status)
            ):
                counts[SyncStatus(status)] = count
        return counts

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, mapping: SyncMapping) -> SyncMapping:
        """Insert or update the row keyed by ``mapping.source_id``.

        Every field except ``created_at`` is overwritten with the value on
        *mapping*.

        Raises
        ------
        NotionpressConflictError
            If ``target_id`` already belongs to another source page.
        """
        source_id = normalize_page_id(mapping.source_id)
        now = _now()
        try:
            with self._session() as session:
                row = session.scalar(
                    select(SyncMappingRow).where(SyncMappingRow.source_id == source_id)
                )
                if row is None:
                    row = SyncMappingRow(source_id=source_id, created_at=_to_db(mapping.created_at) or now)
                    session.add(row)
                row.target_id = str(mapping.target_id) if mapping.target_id is not None else None
                row.source_title = mapping.source_title or ""
                row.source_modified_at = _to_db(mapping.source_modified_at)
                row.target_modified_at = _to_db(mapping.target_modified_at)
                row.status = SyncStatus(mapping.status).value
                row.last_attempt_at = _to_db(mapping.last_attempt_at)
                row.last_error = mapping.last_error
                row.updated_at = now
                session.flush()
                return _to_model(row)
        except IntegrityError as exc:
            raise NotionpressConflictError(
                message=f"Post {mapping.target_id} is already mapped to another page",
                context={"source_id": source_id, "target_id": mapping.target_id},
                cause=exc,
            ) from exc

    def try_acquire(
        self,
        source_id: str,
        title: str = "",
        stale_after: float = 900.0,
    ) -> tuple[bool, SyncMapping]:
        """Atomically move *source_id* to ``syncing``.

        Succeeds when the row is absent (it is inserted), not ``syncing``,
        or ``syncing`` for longer than *stale_after* seconds (an abandoned
        attempt).  The check and the write are a single conditional
        ``UPDATE`` (or a unique-guarded ``INSERT``), so two processes can
        never both acquire the same page.

        Returns
        -------
        tuple
            ``(acquired, mapping)`` where *mapping* is the row after the
            call.
        """
        source_id = normalize_page_id(source_id)
        now = _now()
        cutoff = now - timedelta(seconds=stale_after)

        values: dict = {
            "status": SyncStatus.SYNCING.value,
            "last_attempt_at": now,
            "updated_at": now,
        }
        if title:
            values["source_title"] = title

        with self._session() as session:
            result = session.execute(
                update(SyncMappingRow)
                .where(SyncMappingRow.source_id == source_id)
                .where(
                    or_(
                        SyncMappingRow.status != SyncStatus.SYNCING.value,
                        SyncMappingRow.last_attempt_at.is_(None),
                        SyncMappingRow.last_attempt_at < cutoff,
                    )
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            acquired = result.rowcount == 1
            row = session.scalar(
                select(SyncMappingRow).where(SyncMappingRow.source_id == source_id)
            )
            if row is not None:
                return acquired, _to_model(row)

        values.setdefault("source_title", "")
        try:
            with self._session() as session:
                row = SyncMappingRow(source_id=source_id, created_at=now, **values)
                session.add(row)
                session.flush()
                return True, _to_model(row)
        except IntegrityError:
            # Another process inserted the row between our two transactions.
            existing = self.find(source_id)
            if existing is None:
                raise
            return False, existing

    def mark_needs_update(self, source_id: str) -> bool:
        """Move a ``synced`` row to ``needs_update``.

        Rows in any other state are left alone.  Returns whether the row
        changed.
        """
        with self._session() as session:
            result = session.execute(
                update(SyncMappingRow)
                .where(SyncMappingRow.source_id == normalize_page_id(source_id))
                .where(SyncMappingRow.status == SyncStatus.SYNCED.value)
                .values(status=SyncStatus.NEEDS_UPDATE.value, updated_at=_now())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    def delete(self, source_id: str) -> bool:
        """Remove the mapping of *source_id*.  Returns whether a row existed."""
        with self._session() as session:
            result = session.execute(
                delete(SyncMappingRow).where(
                    SyncMappingRow.source_id == normalize_page_id(source_id)
                )
            )
            removed = result.rowcount > 0
        if removed:
            log.info(
                "Mapping removed",
                extra={"extra_fields": {"op": "unmap", "source_id": normalize_page_id(source_id)}},
            )
        return removed

    def close(self) -> None:
        """Dispose of the engine's connection pool."""
        self._engine.dispose()
