"""Durable storage for TaxJar queue entries.

All access goes through an injected ``session_factory`` (for example
``storage.db.get_session``). Write failures are logged and reported as
``None``/``False``; the caller decides whether to retry the whole pass.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from core.logs import get_sync_logger
from datetime_utils import utc_now
from models.queue_entry import (
    ACTIVE_STATUSES,
    QueueEntry,
    QueueEntryChanges,
    RecordStatus,
    SyncBatch,
    enum_value,
)


logger = get_sync_logger("queue")

# created_datetime is immutable once the row exists
_OPTIONAL_UPDATE_FIELDS = ("record_id", "batch_id", "retry_count", "processed_datetime")


class QueueStore:
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Single entries
    def create(self, entry: QueueEntry) -> Optional[int]:
        if entry.record_id is None:
            logger.warning("Refusing to queue %s entry without record_id", entry.record_type)
            return None
        row = QueueEntry(
            record_id=entry.record_id,
            record_type=enum_value(entry.record_type),
            status=enum_value(entry.status or RecordStatus.NEW),
            batch_id=entry.batch_id or 0,
            created_datetime=entry.created_datetime or utc_now(),
            processed_datetime=entry.processed_datetime,
            retry_count=entry.retry_count or 0,
        )
        with self._session_factory() as session:
            try:
                session.add(row)
                session.commit()
                session.refresh(row)
            except IntegrityError as exc:
                session.rollback()
                logger.info("Queue insert for record %s rejected: %s", entry.record_id, exc.orig)
                return None
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("Queue insert for record %s failed: %s", entry.record_id, exc)
                return None
        entry.queue_id = row.queue_id
        return row.queue_id

    def read(self, queue_id: int) -> Optional[QueueEntry]:
        if not queue_id:
            return None
        with self._session_factory() as session:
            return session.get(QueueEntry, queue_id)

    def save(self, changes: QueueEntryChanges) -> Optional[int]:
        """Insert when ``changes.queue_id`` is unset, otherwise update in place."""
        if changes.queue_id is None:
            return self.create(
                QueueEntry(
                    record_id=changes.record_id,
                    record_type=enum_value(changes.record_type),
                    status=enum_value(changes.status),
                    batch_id=changes.batch_id or 0,
                    retry_count=changes.retry_count or 0,
                    created_datetime=changes.created_datetime or utc_now(),
                    processed_datetime=changes.processed_datetime,
                )
            )

        values: Dict[str, Any] = {
            "status": enum_value(changes.status),
            "record_type": enum_value(changes.record_type),
        }
        for name in _OPTIONAL_UPDATE_FIELDS:
            value = getattr(changes, name)
            if value is not None:
                values[name] = value

        stmt = (
            update(QueueEntry)
            .where(QueueEntry.queue_id == changes.queue_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with self._session_factory() as session:
            try:
                result = session.execute(stmt)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("Queue update for entry %s failed: %s", changes.queue_id, exc)
                return None
        if not result.rowcount:
            logger.warning("Queue entry %s vanished before update", changes.queue_id)
            return None
        return changes.queue_id

    def delete(self, queue_id: int) -> bool:
        if not queue_id:
            return False
        with self._session_factory() as session:
            try:
                row = session.get(QueueEntry, queue_id)
                if row is None:
                    return True
                session.delete(row)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("Queue delete for entry %s failed: %s", queue_id, exc)
                return False
        return True

    def find_active(self, record_id: int) -> Optional[QueueEntry]:
        """Most recent ``new``/``awaiting`` entry for ``record_id``."""
        if record_id is None:
            return None
        with self._session_factory() as session:
            stmt = (
                select(QueueEntry)
                .where(QueueEntry.record_id == record_id)
                .where(QueueEntry.status.in_(ACTIVE_STATUSES))
                .order_by(QueueEntry.queue_id.desc())
                .limit(1)
            )
            return session.exec(stmt).first()

    def enqueue(self, record_id: int, record_type: str) -> Optional[int]:
        """Queue ``record_id`` unless it already has an active entry.

        The unique index on active entries settles races between producers:
        the loser's insert is rejected and it gets the winner's id back.
        """
        existing = self.find_active(record_id)
        if existing is not None:
            return existing.queue_id
        queue_id = self.create(
            QueueEntry(
                record_id=record_id,
                record_type=enum_value(record_type),
                status=RecordStatus.NEW.value,
                batch_id=0,
                retry_count=0,
                created_datetime=utc_now(),
            )
        )
        if queue_id is not None:
            return queue_id
        existing = self.find_active(record_id)
        return existing.queue_id if existing is not None else None

    # ------------------------------------------------------------------
    # Batches
    def create_batch(self) -> Optional[int]:
        batch = SyncBatch(created_datetime=utc_now())
        with self._session_factory() as session:
            try:
                session.add(batch)
                session.commit()
                session.refresh(batch)
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("Batch allocation failed: %s", exc)
                return None
        return batch.batch_id

    def claim_batch(self, batch_id: int, limit: int) -> int:
        """Atomically assign up to ``limit`` unbatched new entries to ``batch_id``."""
        if not batch_id:
            raise ValueError("batch_id must be non-zero")
        if limit <= 0:
            return 0
        candidates = (
            select(QueueEntry.queue_id)
            .where(QueueEntry.batch_id == 0)
            .where(QueueEntry.status == RecordStatus.NEW.value)
            .order_by(QueueEntry.queue_id.asc())
            .limit(limit)
        )
        stmt = (
            update(QueueEntry)
            .where(QueueEntry.queue_id.in_(candidates))
            .where(QueueEntry.batch_id == 0)
            .values(batch_id=batch_id, status=RecordStatus.AWAITING.value)
            .execution_options(synchronize_session=False)
        )
        with self._session_factory() as session:
            try:
                claimed = session.execute(stmt).rowcount or 0
                session.execute(
                    update(SyncBatch)
                    .where(SyncBatch.batch_id == batch_id)
                    .values(record_count=claimed)
                )
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("Claiming batch %s failed: %s", batch_id, exc)
                return 0
        return claimed

    def list_batch(self, batch_id: int) -> List[QueueEntry]:
        with self._session_factory() as session:
            stmt = (
                select(QueueEntry)
                .where(QueueEntry.batch_id == batch_id)
                .order_by(QueueEntry.queue_id.asc())
            )
            return list(session.exec(stmt))

    def count_by_status(self) -> Dict[str, int]:
        with self._session_factory() as session:
            stmt = select(QueueEntry.status, func.count()).group_by(QueueEntry.status)
            counts = {status.value: 0 for status in RecordStatus}
            for status, total in session.exec(stmt):
                counts[status] = int(total)
            return counts


__all__ = ["QueueStore"]
