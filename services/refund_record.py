from __future__ import annotations

from typing import Any, Dict

from models.queue_entry import RecordType
from services.order_record import SYNCABLE_ORDER_STATUSES
from services.taxjar_record import TaxJarRecord


_NEGATED_ITEM_FIELDS = ("unit_price", "discount", "sales_tax")


def _negative(value: float) -> float:
    return -abs(value)


class RefundRecord(TaxJarRecord):
    """Refund against a previously reported order; amounts go out negative."""

    def get_record_type(self) -> str:
        return RecordType.REFUND.value

    def get_data_from_object(self) -> Dict[str, Any]:
        raw = self.get_raw_object_data()
        data = self._transaction_payload(raw)
        if raw.get("parent_id") is not None:
            data["transaction_reference_id"] = str(raw["parent_id"])
        for name in ("amount", "shipping", "sales_tax"):
            if name in data:
                data[name] = _negative(data[name])
        for item in data.get("line_items", []):
            for name in _NEGATED_ITEM_FIELDS:
                if name in item:
                    item[name] = _negative(item[name])
        return data

    def should_sync(self) -> bool:
        if self.object is None:
            return False
        parent_status = str(self.get_raw_object_data().get("parent_status") or "")
        if parent_status not in SYNCABLE_ORDER_STATUSES:
            return False
        if not self.get_data().get("transaction_reference_id"):
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
        return self._run_sync(self._upsert_in_taxjar)

    def create_in_taxjar(self) -> Dict:
        return self.client.create_refund(self.get_data())

    def update_in_taxjar(self) -> Dict:
        return self.client.update_refund(str(self.record_id), self.get_data())

    def delete_in_taxjar(self) -> Dict:
        return self.client.delete_refund(str(self.record_id))

    def get_from_taxjar(self) -> Dict:
        return self.client.show_refund(str(self.record_id))


__all__ = ["RefundRecord"]
