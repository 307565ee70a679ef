import copy
from typing import Any, Dict, Optional

import pytest
from sqlmodel import Session, SQLModel, create_engine

import models.queue_entry  # noqa: F401
from services.queue_store import QueueStore
from services.record_factory import RecordFactory
from services.retry_policy import RetryPolicy


def order_data(**overrides) -> Dict[str, Any]:
    data = {
        "status": "completed",
        "transaction_date": "2024-03-01T12:00:00Z",
        "customer_id": 7,
        "from_country": "US",
        "from_zip": "94107",
        "from_state": "CA",
        "from_city": "San Francisco",
        "from_street": "600 Montgomery St",
        "to_country": "US",
        "to_zip": "90002",
        "to_state": "CA",
        "to_city": "Los Angeles",
        "to_street": "123 Palm Grove Ln",
        "amount": 17.0,
        "shipping": 1.5,
        "sales_tax": 0.95,
        "line_items": [
            {
                "id": 1,
                "quantity": 1,
                "product_identifier": "12-34243-9",
                "description": "Fuzzy Sweater",
                "unit_price": 15.5,
                "discount": 0,
                "sales_tax": 0.95,
            }
        ],
    }
    data.update(overrides)
    return data


def refund_data(**overrides) -> Dict[str, Any]:
    data = order_data(status="completed", parent_id=100, parent_status="refunded")
    data.update(overrides)
    return data


class FakeObject:
    """In-memory host order/refund."""

    def __init__(self, data: Dict[str, Any], meta: Optional[Dict[str, str]] = None):
        self.data = copy.deepcopy(data)
        self.meta = dict(meta or {})
        self.saves = 0

    def get_sync_data(self) -> Dict[str, Any]:
        return copy.deepcopy(self.data)

    def get_meta(self, key: str) -> Optional[str]:
        return self.meta.get(key)

    def update_meta(self, key: str, value: str) -> None:
        self.meta[key] = value

    def save(self) -> None:
        self.saves += 1


class FakeObjectStore:
    def __init__(self):
        self.objects: Dict[tuple, FakeObject] = {}

    def add(self, record_type: str, record_id: int, data: Dict[str, Any], meta=None) -> FakeObject:
        obj = FakeObject(data, meta)
        self.objects[(record_type, record_id)] = obj
        return obj

    def remove(self, record_type: str, record_id: int) -> None:
        self.objects.pop((record_type, record_id), None)

    def load(self, record_type: str, record_id: int) -> Optional[FakeObject]:
        return self.objects.get((record_type, record_id))


class FakeClient:
    """Stand-in for :class:`TaxJarClient` that records calls."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.errors: Dict[str, Exception] = {}

    def _call(self, name: str, *args):
        self.calls.append((name,) + args)
        error = self.errors.get(name)
        if error is not None:
            raise error
        return {"ok": True}

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def create_order(self, payload):
        return self._call("create_order", payload)

    def update_order(self, transaction_id, payload):
        return self._call("update_order", transaction_id, payload)

    def delete_order(self, transaction_id):
        return self._call("delete_order", transaction_id)

    def show_order(self, transaction_id):
        return self._call("show_order", transaction_id)

    def create_refund(self, payload):
        return self._call("create_refund", payload)

    def update_refund(self, transaction_id, payload):
        return self._call("update_refund", transaction_id, payload)

    def delete_refund(self, transaction_id):
        return self._call("delete_refund", transaction_id)

    def show_refund(self, transaction_id):
        return self._call("show_refund", transaction_id)


@pytest.fixture()
def session_factory():
    engine = create_engine("sqlite:///:memory:")
    SQLModel.metadata.create_all(engine)

    def factory():
        return Session(engine)

    return factory


@pytest.fixture()
def store(session_factory):
    return QueueStore(session_factory)


@pytest.fixture()
def objects():
    return FakeObjectStore()


@pytest.fixture()
def client():
    return FakeClient()


@pytest.fixture()
def factory(store, objects, client):
    return RecordFactory(store, objects, client, RetryPolicy(max_retries=3))
