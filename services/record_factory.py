"""Rebuilds typed records from queue rows and purges rows that cannot be synced."""

from __future__ import annotations

from typing import Dict, Optional, Type

from core.logs import get_sync_logger
from models.queue_entry import QueueEntry, RecordType, enum_value
from services.object_store import ObjectStore
from services.order_record import OrderRecord
from services.queue_store import QueueStore
from services.refund_record import RefundRecord
from services.retry_policy import RetryPolicy
from services.taxjar_client import TaxJarClient
from services.taxjar_record import TaxJarRecord


logger = get_sync_logger("factory")

RECORD_VARIANTS: Dict[str, Type[TaxJarRecord]] = {
    RecordType.ORDER.value: OrderRecord,
    RecordType.REFUND.value: RefundRecord,
}


class RecordFactory:
    def __init__(
        self,
        store: QueueStore,
        objects: ObjectStore,
        client: TaxJarClient,
        policy: Optional[RetryPolicy] = None,
    ) -> None:
        self.store = store
        self.objects = objects
        self.client = client
        self.policy = policy or RetryPolicy()

    def supports(self, record_type: str) -> bool:
        return str(enum_value(record_type)) in RECORD_VARIANTS

    def build(
        self,
        record_type: str,
        record_id: Optional[int] = None,
        *,
        set_defaults: bool = False,
    ) -> Optional[TaxJarRecord]:
        variant = RECORD_VARIANTS.get(str(enum_value(record_type)))
        if variant is None:
            return None
        return variant(
            record_id,
            store=self.store,
            objects=self.objects,
            client=self.client,
            policy=self.policy,
            set_defaults=set_defaults,
        )

    def create_from_row(self, row: QueueEntry) -> Optional[TaxJarRecord]:
        """Materialize ``row``, or delete it and return ``None`` if it cannot be synced."""
        record = self.build(row.record_type, row.record_id)
        if record is None:
            logger.info(
                "Removing queue entry %s with unsupported type %r", row.queue_id, row.record_type
            )
            self.store.delete(row.queue_id)
            return None

        record.apply_queue_row(row)
        record.load_object()

        if record.object is None:
            logger.info(
                "Removing queue entry %s: %s %s no longer exists",
                row.queue_id,
                row.record_type,
                row.record_id,
            )
            record.delete()
            return None

        return record

    def find_active(self, record_id: int) -> Optional[TaxJarRecord]:
        row = self.store.find_active(record_id)
        if row is None:
            return None
        record = self.build(row.record_type, row.record_id)
        if record is None:
            return None
        record.apply_queue_row(row)
        return record


__all__ = ["RECORD_VARIANTS", "RecordFactory"]
