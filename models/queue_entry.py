"""SQLModel tables for the TaxJar record queue."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel

from core.settings import QUEUE
from datetime_utils import utc_now


class RecordStatus(str, Enum):
    NEW = "new"
    AWAITING = "awaiting"
    COMPLETED = "completed"
    FAILED = "failed"


class RecordType(str, Enum):
    ORDER = "order"
    REFUND = "refund"


def enum_value(value: Any) -> Any:
    """Enum members as their stored value; anything else unchanged."""
    return value.value if isinstance(value, Enum) else value


ACTIVE_STATUSES = (RecordStatus.NEW.value, RecordStatus.AWAITING.value)

_ACTIVE_WHERE = text("status IN ('new', 'awaiting')")


class QueueEntry(SQLModel, table=True):
    """One queued sync request for a host business object."""

    __tablename__ = QUEUE.table_name
    __table_args__ = (
        Index("ix_taxjar_queue_record_status", "record_id", "status"),
        Index("ix_taxjar_queue_batch_status", "batch_id", "status"),
        # at most one new/awaiting entry per record
        Index(
            "ux_taxjar_queue_active_record",
            "record_id",
            unique=True,
            sqlite_where=_ACTIVE_WHERE,
            postgresql_where=_ACTIVE_WHERE,
        ),
    )

    queue_id: Optional[int] = Field(default=None, primary_key=True)
    record_id: int
    record_type: str
    status: str = Field(default=RecordStatus.NEW.value)
    batch_id: int = Field(default=0)
    created_datetime: datetime = Field(default_factory=utc_now)
    processed_datetime: Optional[datetime] = None
    retry_count: int = Field(default=0)


class SyncBatch(SQLModel, table=True):
    """Allocates unique batch ids for claiming queue entries."""

    __tablename__ = QUEUE.batch_table_name

    batch_id: Optional[int] = Field(default=None, primary_key=True)
    created_datetime: datetime = Field(default_factory=utc_now)
    record_count: int = Field(default=0)


@dataclass
class QueueEntryChanges:
    """Partial update for a queue row.

    ``status`` and ``record_type`` are always written. Every other field left
    as ``None`` keeps its stored value; ``0`` is a value and is written.
    """

    status: str
    record_type: str
    queue_id: Optional[int] = None
    record_id: Optional[int] = None
    batch_id: Optional[int] = None
    retry_count: Optional[int] = None
    processed_datetime: Optional[datetime] = None
    created_datetime: Optional[datetime] = None


__all__ = [
    "ACTIVE_STATUSES",
    "QueueEntry",
    "QueueEntryChanges",
    "RecordStatus",
    "RecordType",
    "SyncBatch",
    "enum_value",
]
