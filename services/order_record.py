from __future__ import annotations

from typing import Any, Dict

from models.queue_entry import RecordType
from services.taxjar_record import TaxJarRecord


SYNCABLE_ORDER_STATUSES = ("completed", "refunded")
REMOVED_ORDER_STATUSES = ("cancelled", "trash")


class OrderRecord(TaxJarRecord):
    def get_record_type(self) -> str:
        return RecordType.ORDER.value

    def get_data_from_object(self) -> Dict[str, Any]:
        return self._transaction_payload(self.get_raw_object_data())

    def get_order_status(self) -> str:
        return str(self.get_raw_object_data().get("status") or "")

    def was_removed_after_sync(self) -> bool:
        """An order that was reported and then cancelled must be withdrawn."""
        return self.get_order_status() in REMOVED_ORDER_STATUSES and bool(self.get_last_sync_time())

    def should_sync(self) -> bool:
        if self.object is None:
            return False
        if self.was_removed_after_sync():
            return True
        if self.get_order_status() not in SYNCABLE_ORDER_STATUSES:
            return False
        if not self.is_reportable():
            return False
        if not self.get_last_sync_time():
            return True
        return not self.hash_match()

    def sync(self) -> bool:
        if not self._ensure_object():
            return False
        wanted = self._check_should_sync()
        if wanted is None:
            return False
        if not wanted:
            return self._skip_sync()
        if self.was_removed_after_sync():
            return self._run_sync(self._remove_from_taxjar, keep_metadata=False)
        return self._run_sync(self._upsert_in_taxjar)

    # ------------------------------------------------------------------
    # TaxJar calls
    def create_in_taxjar(self) -> Dict:
        return self.client.create_order(self.get_data())

    def update_in_taxjar(self) -> Dict:
        return self.client.update_order(str(self.record_id), self.get_data())

    def delete_in_taxjar(self) -> Dict:
        return self.client.delete_order(str(self.record_id))

    def get_from_taxjar(self) -> Dict:
        return self.client.show_order(str(self.record_id))


__all__ = ["OrderRecord", "REMOVED_ORDER_STATUSES", "SYNCABLE_ORDER_STATUSES"]
