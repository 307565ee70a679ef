"""One pass of the queue worker: claim a batch and push its records to TaxJar."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.logs import get_sync_logger
from core.settings import QUEUE
from models.queue_entry import RecordStatus, enum_value
from services.queue_store import QueueStore
from services.record_factory import RecordFactory


@dataclass
class BatchResult:
    batch_id: Optional[int] = None
    synced: int = 0
    failed: int = 0
    purged: int = 0
    skipped: int = 0

    @property
    def processed(self) -> int:
        return self.synced + self.failed


class TransactionSync:
    def __init__(
        self,
        store: QueueStore,
        factory: RecordFactory,
        batch_size: int = QUEUE.batch_size,
    ) -> None:
        self.store = store
        self.factory = factory
        self.batch_size = batch_size
        self.logger = get_sync_logger()

    def queue_record(self, record_type: str, record_id: int) -> Optional[int]:
        if not self.factory.supports(record_type):
            raise ValueError(f"Unsupported record type: {record_type}")
        queue_id = self.store.enqueue(record_id, enum_value(record_type))
        if queue_id is None:
            self.logger.error("Could not queue %s %s", record_type, record_id)
        else:
            self.logger.debug("Queued %s %s as entry %s", record_type, record_id, queue_id)
        return queue_id

    def start_batch(self) -> Optional[int]:
        batch_id = self.store.create_batch()
        if batch_id is None:
            return None
        claimed = self.store.claim_batch(batch_id, self.batch_size)
        if not claimed:
            return None
        self.logger.info("Batch %s claimed %s entries", batch_id, claimed)
        return batch_id

    def process_batch(self, batch_id: int) -> BatchResult:
        result = BatchResult(batch_id=batch_id)
        for row in self.store.list_batch(batch_id):
            record = self.factory.create_from_row(row)
            if record is None:
                result.purged += 1
                continue
            if record.status != RecordStatus.AWAITING.value:
                result.skipped += 1
                continue
            if record.sync():
                result.synced += 1
            else:
                result.failed += 1
        self.logger.info(
            "Batch %s done: %s synced, %s failed, %s purged, %s skipped",
            batch_id,
            result.synced,
            result.failed,
            result.purged,
            result.skipped,
        )
        return result

    def run_once(self) -> BatchResult:
        batch_id = self.start_batch()
        if batch_id is None:
            return BatchResult()
        return self.process_batch(batch_id)

    def status(self) -> dict:
        counts = self.store.count_by_status()
        return {
            "queue": counts,
            "pending": counts[RecordStatus.NEW.value] + counts[RecordStatus.AWAITING.value],
            "batchSize": self.batch_size,
        }


__all__ = ["BatchResult", "TransactionSync"]
