from datetime import date

import pytest

from conftest import order_data, refund_data
from models.queue_entry import QueueEntry
from services.hash_detector import fingerprint
from services.object_store import HASH_META_KEY, LAST_SYNC_META_KEY
from services.order_record import OrderRecord
from services.refund_record import RefundRecord
from services.taxjar_client import TaxJarApiError, TaxJarConnectionError


def _queued_order(store, objects, client, record_id=100, data=None, meta=None, **row):
    objects.add("order", record_id, data or order_data(), meta)
    values = dict(record_id=record_id, record_type="order", status="awaiting", batch_id=3)
    values.update(row)
    entry = QueueEntry(**values)
    store.create(entry)
    record = OrderRecord(record_id, store=store, objects=objects, client=client)
    record.queue_id = entry.queue_id
    assert record.read()
    record.load_object()
    return record


def test_set_defaults_and_create(store, objects, client):
    record = OrderRecord(5, store=store, objects=objects, client=client, set_defaults=True)
    assert record.status == "new"
    assert record.batch_id == 0
    assert record.retry_count == 0
    assert record.created_datetime is not None
    assert record.queue_id is None

    assert record.save() is True
    assert record.queue_id
    assert store.read(record.queue_id).record_type == "order"


def test_create_requires_record_id(store, objects, client):
    record = OrderRecord(store=store, objects=objects, client=client, set_defaults=True)
    assert record.create() is False
    assert record.queue_id is None


def test_load_object_missing_is_not_an_error(store, objects, client):
    record = OrderRecord(404, store=store, objects=objects, client=client)
    assert record.load_object() is None
    assert record.object is None
    assert record.hash_match() is False


def test_get_data_is_memoized(store, objects, client):
    record = _queued_order(store, objects, client)
    first = record.get_data()
    record.object.data["amount"] = 99
    assert record.get_data() is first
    assert first["transaction_id"] == "100"
    assert first["provider"] == "api"
    assert first["line_items"][0]["id"] == "1"


def test_three_failures_mark_entry_failed(store, objects, client):
    record = _queued_order(store, objects, client, status="new", batch_id=0, retry_count=0)
    for _ in range(3):
        record.sync_failure()
    row = store.read(record.queue_id)
    assert row.status == "failed"
    assert row.retry_count == 3


def test_single_failure_requeues(store, objects, client):
    record = _queued_order(store, objects, client)
    record.sync_failure()
    row = store.read(record.queue_id)
    assert row.status == "new"
    assert row.retry_count == 1
    assert row.batch_id == 0


@pytest.mark.parametrize("failures", [1, 2, 3, 5])
def test_retry_count_never_exceeds_limit(store, objects, client, failures):
    record = _queued_order(store, objects, client)
    for _ in range(failures):
        record.sync_failure()
    row = store.read(record.queue_id)
    assert row.retry_count == min(failures, 3)
    assert (row.status == "failed") == (row.retry_count == 3)


def test_sync_success_completes_even_after_failure(store, objects, client):
    record = _queued_order(store, objects, client, status="failed", retry_count=3)
    record.sync_success()
    row = store.read(record.queue_id)
    assert row.status == "completed"
    assert row.processed_datetime is not None
    assert row.retry_count == 3


def test_hash_match_follows_object_metadata(store, objects, client):
    record = _queued_order(store, objects, client)
    assert record.hash_match() is False

    record.sync_success()
    record.add_object_sync_metadata()
    assert record.object.meta[HASH_META_KEY] == fingerprint(record.get_data())
    assert record.object.meta[LAST_SYNC_META_KEY].endswith("Z")
    assert record.hash_match() is True

    record.object.data["shipping"] = 4.0
    record.data = None
    assert record.hash_match() is False


def test_order_sync_creates_and_records_metadata(store, objects, client):
    record = _queued_order(store, objects, client)
    assert record.sync() is True
    assert client.names() == ["create_order"]
    assert client.calls[0][1]["to_zip"] == "90002"

    row = store.read(record.queue_id)
    assert row.status == "completed"
    assert record.object.saves == 1
    assert record.hash_match() is True


def test_order_sync_falls_back_to_update(store, objects, client):
    client.errors["create_order"] = TaxJarApiError(422, "already exists")
    record = _queued_order(store, objects, client)
    assert record.sync() is True
    assert client.names() == ["create_order", "update_order"]
    assert client.calls[1][1] == "100"


def test_order_sync_failure_is_not_raised(store, objects, client):
    client.errors["create_order"] = TaxJarConnectionError("timeout")
    record = _queued_order(store, objects, client)
    assert record.sync() is False
    row = store.read(record.queue_id)
    assert row.status == "new"
    assert row.retry_count == 1
    assert HASH_META_KEY not in record.object.meta


def test_unchanged_order_is_not_pushed(store, objects, client):
    data = order_data()
    probe = OrderRecord(100, store=store, objects=objects, client=client)
    objects.add("order", 100, data)
    probe.load_object()
    meta = {LAST_SYNC_META_KEY: "2024-01-01T00:00:00Z", HASH_META_KEY: fingerprint(probe.get_data())}
    objects.remove("order", 100)

    record = _queued_order(store, objects, client, data=data, meta=meta)
    assert record.should_sync() is False
    assert record.sync() is True
    assert client.calls == []
    assert store.read(record.queue_id).status == "completed"


@pytest.mark.parametrize(
    "overrides",
    [{"status": "processing"}, {"to_country": "CA"}],
)
def test_order_not_eligible_for_reporting(store, objects, client, overrides):
    record = _queued_order(store, objects, client, data=order_data(**overrides))
    assert record.should_sync() is False


def test_cancelled_order_is_removed_from_taxjar(store, objects, client):
    meta = {LAST_SYNC_META_KEY: "2024-01-01T00:00:00Z", HASH_META_KEY: "abc"}
    record = _queued_order(store, objects, client, data=order_data(status="cancelled"), meta=meta)
    assert record.should_sync() is True
    assert record.sync() is True
    assert client.names() == ["show_order", "delete_order"]
    assert record.object.meta[LAST_SYNC_META_KEY] == ""
    assert record.object.meta[HASH_META_KEY] == ""


def test_cancelled_order_missing_remotely(store, objects, client):
    client.errors["show_order"] = TaxJarApiError(404, "not found")
    meta = {LAST_SYNC_META_KEY: "2024-01-01T00:00:00Z"}
    record = _queued_order(store, objects, client, data=order_data(status="trash"), meta=meta)
    assert record.sync() is True
    assert client.names() == ["show_order"]


def test_cancelled_order_never_synced_is_skipped(store, objects, client):
    record = _queued_order(store, objects, client, data=order_data(status="cancelled"))
    assert record.should_sync() is False
    assert record.sync() is True
    assert client.calls == []


def test_sync_without_object_counts_as_failure(store, objects, client):
    record = _queued_order(store, objects, client)
    objects.remove("order", 100)
    record.object = None
    assert record.sync() is False
    assert store.read(record.queue_id).retry_count == 1


def _queued_refund(store, objects, client, data=None, meta=None):
    objects.add("refund", 200, data or refund_data(), meta)
    entry = QueueEntry(record_id=200, record_type="refund", status="awaiting", batch_id=1)
    store.create(entry)
    record = RefundRecord(200, store=store, objects=objects, client=client)
    record.queue_id = entry.queue_id
    record.read()
    record.load_object()
    return record


def test_refund_payload_is_negative_and_references_order(store, objects, client):
    record = _queued_refund(store, objects, client)
    data = record.get_data()
    assert data["transaction_id"] == "200"
    assert data["transaction_reference_id"] == "100"
    assert data["amount"] == -17.0
    assert data["sales_tax"] == -0.95
    assert data["line_items"][0]["unit_price"] == -15.5


def test_refund_sync_pushes_refund(store, objects, client):
    record = _queued_refund(store, objects, client)
    assert record.sync() is True
    assert client.names() == ["create_refund"]
    assert store.read(record.queue_id).status == "completed"


def test_refund_waits_for_reportable_parent(store, objects, client):
    record = _queued_refund(store, objects, client, data=refund_data(parent_status="processing"))
    assert record.should_sync() is False


def test_date_transaction_date_is_serialized(store, objects, client):
    record = _queued_order(store, objects, client, data=order_data(transaction_date=date(2024, 3, 1)))
    assert record.get_data()["transaction_date"] == "2024-03-01"


def test_unexpected_hook_error_counts_as_failure(store, objects, client):
    client.errors["create_order"] = TypeError("Object of type date is not JSON serializable")
    record = _queued_order(store, objects, client)
    assert record.sync() is False

    row = store.read(record.queue_id)
    assert row.status == "new"
    assert row.retry_count == 1
    assert row.batch_id == 0
    assert HASH_META_KEY not in record.object.meta


def test_unreadable_object_data_counts_as_failure(store, objects, client):
    record = _queued_order(store, objects, client, data=order_data(amount="n/a"))
    assert record.sync() is False
    assert client.calls == []
    assert store.read(record.queue_id).retry_count == 1


def test_push_without_queue_row_is_not_reported_as_success(store, objects, client):
    record = _queued_order(store, objects, client)
    store.delete(record.queue_id)

    assert record.sync() is False
    assert client.names() == ["create_order"]
    assert LAST_SYNC_META_KEY not in record.object.meta
    assert HASH_META_KEY not in record.object.meta


def test_skip_without_queue_row_is_not_reported_as_success(store, objects, client):
    record = _queued_order(store, objects, client, data=order_data(status="processing"))
    store.delete(record.queue_id)
    assert record.sync() is False


def test_lifecycle_updates_report_store_failures(store, objects, client):
    record = _queued_order(store, objects, client)
    store.delete(record.queue_id)
    assert record.sync_failure() is False
    assert record.sync_success() is False
