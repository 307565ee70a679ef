"""Base class for business objects synced to TaxJar through the queue."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Callable, Dict, Optional

from core.logs import get_sync_logger
from core.settings import TAXJAR
from datetime_utils import ensure_utc, to_rfc3339_utc, utc_now
from models.queue_entry import QueueEntry, QueueEntryChanges, RecordStatus
from services.hash_detector import fingerprint, hash_matches
from services.object_store import (
    HASH_META_KEY,
    LAST_SYNC_META_KEY,
    ObjectStore,
    SyncableObject,
)
from services.queue_store import QueueStore
from services.retry_policy import LifecycleState, RetryPolicy
from services.taxjar_client import TaxJarApiError, TaxJarClient, TaxJarError


logger = get_sync_logger("record")

ADDRESS_FIELDS = (
    "from_country",
    "from_zip",
    "from_state",
    "from_city",
    "from_street",
    "to_country",
    "to_zip",
    "to_state",
    "to_city",
    "to_street",
)


def _amount(value: Any) -> float:
    return round(float(value or 0), 2)


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


def _line_item(item: Dict[str, Any]) -> Dict[str, Any]:
    return _compact(
        {
            "id": str(item["id"]) if item.get("id") is not None else None,
            "quantity": int(item.get("quantity") or 0),
            "product_identifier": item.get("product_identifier"),
            "description": item.get("description"),
            "product_tax_code": item.get("product_tax_code"),
            "unit_price": _amount(item.get("unit_price")),
            "discount": _amount(item.get("discount")),
            "sales_tax": _amount(item.get("sales_tax")),
        }
    )


class TaxJarRecord(ABC):
    """Queue entry plus the host object it refers to.

    Network I/O only happens inside the ``*_in_taxjar``/``get_from_taxjar``
    hooks; everything else works on in-memory state and the queue store.
    """

    def __init__(
        self,
        record_id: Optional[int] = None,
        *,
        store: QueueStore,
        objects: ObjectStore,
        client: TaxJarClient,
        policy: Optional[RetryPolicy] = None,
        set_defaults: bool = False,
    ) -> None:
        self.store = store
        self.objects = objects
        self.client = client
        self.policy = policy or RetryPolicy()

        self.queue_id: Optional[int] = None
        self.record_id: Optional[int] = record_id
        self.status: Optional[str] = None
        self.batch_id: Optional[int] = None
        self.created_datetime: Optional[datetime] = None
        self.processed_datetime: Optional[datetime] = None
        self.retry_count: Optional[int] = None

        self.object: Optional[SyncableObject] = None
        self.data: Optional[Dict[str, Any]] = None

        if set_defaults:
            self.set_defaults()

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} queue_id={self.queue_id} record_id={self.record_id} "
            f"status={self.status} retry_count={self.retry_count}>"
        )

    def set_defaults(self) -> None:
        self.status = RecordStatus.NEW.value
        self.batch_id = 0
        self.retry_count = 0
        self.created_datetime = utc_now()

    # ------------------------------------------------------------------
    # Variant hooks
    @abstractmethod
    def get_record_type(self) -> str: ...

    @abstractmethod
    def get_data_from_object(self) -> Dict[str, Any]: ...

    @abstractmethod
    def should_sync(self) -> bool: ...

    @abstractmethod
    def sync(self) -> bool: ...

    @abstractmethod
    def create_in_taxjar(self) -> Dict: ...

    @abstractmethod
    def update_in_taxjar(self) -> Dict: ...

    @abstractmethod
    def delete_in_taxjar(self) -> Dict: ...

    @abstractmethod
    def get_from_taxjar(self) -> Dict: ...

    # ------------------------------------------------------------------
    # Host object
    def load_object(self) -> Optional[SyncableObject]:
        """Resolve the host object; ``self.object`` stays ``None`` if it is gone."""
        if self.record_id is None:
            self.object = None
        else:
            self.object = self.objects.load(self.get_record_type(), self.record_id)
        return self.object

    def get_data(self) -> Dict[str, Any]:
        if self.data is None:
            self.data = self.get_data_from_object()
        return self.data

    def get_raw_object_data(self) -> Dict[str, Any]:
        if self.object is None:
            return {}
        return self.object.get_sync_data() or {}

    def get_last_sync_time(self) -> Optional[str]:
        if self.object is None:
            return None
        return self.object.get_meta(LAST_SYNC_META_KEY) or None

    def get_object_hash(self) -> Optional[str]:
        if self.object is None:
            return None
        return self.object.get_meta(HASH_META_KEY) or None

    def hash_match(self) -> bool:
        if self.object is None:
            return False
        return hash_matches(self.get_data(), self.get_object_hash())

    def add_object_sync_metadata(self) -> None:
        if self.object is None:
            return
        self.object.update_meta(LAST_SYNC_META_KEY, to_rfc3339_utc(self.processed_datetime) or "")
        self.object.update_meta(HASH_META_KEY, fingerprint(self.get_data()))
        self.object.save()

    def clear_object_sync_metadata(self) -> None:
        if self.object is None:
            return
        self.object.update_meta(LAST_SYNC_META_KEY, "")
        self.object.update_meta(HASH_META_KEY, "")
        self.object.save()

    def is_reportable(self) -> bool:
        country = (self.get_data().get("to_country") or "").upper()
        return country in TAXJAR.reportable_countries

    # ------------------------------------------------------------------
    # Queue persistence
    def apply_queue_row(self, row: QueueEntry) -> None:
        self.queue_id = row.queue_id
        self.record_id = row.record_id
        self.status = row.status
        self.batch_id = row.batch_id
        self.created_datetime = ensure_utc(row.created_datetime)
        self.processed_datetime = ensure_utc(row.processed_datetime)
        self.retry_count = row.retry_count

    def create(self) -> bool:
        if self.record_id is None:
            return False
        queue_id = self.store.create(
            QueueEntry(
                record_id=self.record_id,
                record_type=self.get_record_type(),
                status=self.status or RecordStatus.NEW.value,
                batch_id=self.batch_id or 0,
                retry_count=self.retry_count or 0,
                created_datetime=self.created_datetime or utc_now(),
            )
        )
        if queue_id is None:
            return False
        self.queue_id = queue_id
        return True

    def read(self) -> bool:
        if not self.queue_id:
            return False
        row = self.store.read(self.queue_id)
        if row is None:
            return False
        self.apply_queue_row(row)
        return True

    def save(self) -> bool:
        if self.queue_id is None:
            return self.create()
        changes = QueueEntryChanges(
            status=self.status or RecordStatus.NEW.value,
            record_type=self.get_record_type(),
            queue_id=self.queue_id,
            record_id=self.record_id,
            batch_id=self.batch_id,
            retry_count=self.retry_count,
            processed_datetime=self.processed_datetime,
        )
        return self.store.save(changes) is not None

    def delete(self) -> bool:
        if not self.queue_id:
            return False
        return self.store.delete(self.queue_id)

    # ------------------------------------------------------------------
    # Lifecycle
    def _lifecycle_state(self) -> LifecycleState:
        return LifecycleState(
            status=self.status or RecordStatus.NEW.value,
            retry_count=self.retry_count or 0,
            batch_id=self.batch_id or 0,
            processed_datetime=self.processed_datetime,
        )

    def _apply_lifecycle(self, state: LifecycleState) -> None:
        self.status = state.status
        self.retry_count = state.retry_count
        self.batch_id = state.batch_id
        self.processed_datetime = state.processed_datetime

    def sync_success(self) -> bool:
        self._apply_lifecycle(self.policy.on_success(self._lifecycle_state()))
        return self.save()

    def sync_failure(self) -> bool:
        self._apply_lifecycle(self.policy.on_failure(self._lifecycle_state()))
        if self.status == RecordStatus.FAILED.value:
            logger.error(
                "%s %s failed permanently after %s attempts",
                self.get_record_type(),
                self.record_id,
                self.retry_count,
            )
        return self.save()

    # ------------------------------------------------------------------
    # Shared sync flows
    def _ensure_object(self) -> bool:
        if self.object is None:
            self.load_object()
        if self.object is None:
            logger.warning("%s %s has no host object to sync", self.get_record_type(), self.record_id)
            self.sync_failure()
            return False
        return True

    def _upsert_in_taxjar(self) -> Dict:
        try:
            return self.create_in_taxjar()
        except TaxJarApiError as exc:
            # 422: the transaction already exists remotely
            if exc.status_code != 422:
                raise
        logger.debug("%s %s exists in TaxJar, updating", self.get_record_type(), self.record_id)
        return self.update_in_taxjar()

    def _remove_from_taxjar(self) -> Dict:
        try:
            self.get_from_taxjar()
        except TaxJarApiError as exc:
            if exc.status_code == 404:
                return {}
            raise
        try:
            return self.delete_in_taxjar()
        except TaxJarApiError as exc:
            if exc.status_code == 404:
                return {}
            raise

    def _check_should_sync(self) -> Optional[bool]:
        """``should_sync()``, or ``None`` after recording a failure if it raised."""
        try:
            return self.should_sync()
        except Exception:
            logger.exception(
                "Could not evaluate %s %s for sync", self.get_record_type(), self.record_id
            )
            self.sync_failure()
            return None

    def _run_sync(self, action: Callable[[], Any], *, keep_metadata: bool = True) -> bool:
        try:
            action()
        except TaxJarError as exc:
            logger.warning(
                "Sync of %s %s failed (attempt %s): %s",
                self.get_record_type(),
                self.record_id,
                (self.retry_count or 0) + 1,
                exc,
            )
            self.sync_failure()
            return False
        except Exception:
            logger.exception(
                "Sync of %s %s crashed (attempt %s)",
                self.get_record_type(),
                self.record_id,
                (self.retry_count or 0) + 1,
            )
            self.sync_failure()
            return False

        if not self.sync_success():
            logger.error(
                "Pushed %s %s but could not mark queue entry %s completed",
                self.get_record_type(),
                self.record_id,
                self.queue_id,
            )
            return False
        if keep_metadata:
            self.add_object_sync_metadata()
        else:
            self.clear_object_sync_metadata()
        logger.info("Synced %s %s (queue %s)", self.get_record_type(), self.record_id, self.queue_id)
        return True

    def _skip_sync(self) -> bool:
        logger.debug("Nothing to push for %s %s", self.get_record_type(), self.record_id)
        return self.sync_success()

    def _transaction_payload(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        transaction_date = raw.get("transaction_date")
        if isinstance(transaction_date, datetime):
            transaction_date = to_rfc3339_utc(transaction_date)
        elif isinstance(transaction_date, date):
            transaction_date = transaction_date.isoformat()
        payload: Dict[str, Any] = {
            "transaction_id": str(self.record_id),
            "transaction_date": transaction_date,
            "provider": TAXJAR.provider,
            "customer_id": str(raw["customer_id"]) if raw.get("customer_id") else None,
            "exemption_type": raw.get("exemption_type"),
            "amount": _amount(raw.get("amount")),
            "shipping": _amount(raw.get("shipping")),
            "sales_tax": _amount(raw.get("sales_tax")),
            "line_items": [_line_item(item) for item in raw.get("line_items") or []],
        }
        for name in ADDRESS_FIELDS:
            payload[name] = raw.get(name)
        return _compact(payload)


__all__ = ["ADDRESS_FIELDS", "TaxJarRecord"]
