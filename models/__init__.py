"""ORM models exposed by the TaxJar record sync."""
from .queue_entry import (
    ACTIVE_STATUSES,
    QueueEntry,
    QueueEntryChanges,
    RecordStatus,
    RecordType,
    SyncBatch,
    enum_value,
)

__all__ = [
    "ACTIVE_STATUSES",
    "QueueEntry",
    "QueueEntryChanges",
    "RecordStatus",
    "RecordType",
    "SyncBatch",
    "enum_value",
]
