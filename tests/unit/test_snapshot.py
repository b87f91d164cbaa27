"""Unit tests for snapshot validation"""

import pytest
from datetime import date
from bnpl_tracker.domain.exceptions import SnapshotValidationError
from bnpl_tracker.domain.models import Dataset, OrderStatus, PaymentStatus
from bnpl_tracker.domain.snapshot import Snapshot, validate_snapshot


def _order(order_id: str = "o1") -> dict:
    return {
        "id": order_id,
        "platformId": "afterpay",
        "totalAmount": 20000,
        "firstPaymentDate": "2030-01-01",
        "createdAt": "2029-12-20T10:00:00.000Z",
        "status": "active",
        "tags": [],
    }


def _payment(payment_id: str = "p1", order_id: str = "o1") -> dict:
    return {
        "id": payment_id,
        "orderId": order_id,
        "platformId": "afterpay",
        "amount": 5000,
        "dueDate": "2030-01-01T05:00:00.000Z",
        "installmentNumber": 1,
        "status": "pending",
    }


def _snapshot(**overrides) -> dict:
    data = {
        "version": 2,
        "exportedAt": "2030-01-01T00:00:00Z",
        "orders": [_order()],
        "payments": [_payment()],
        "platforms": [{"id": "afterpay", "name": "Afterpay", "creditLimit": 80000}],
        "subscriptions": [],
        "limitHistory": [],
    }
    data.update(overrides)
    return data


def test_valid_snapshot_parses():
    snapshot = validate_snapshot(_snapshot())

    dataset = snapshot.to_dataset()
    assert dataset.orders[0].status == OrderStatus.ACTIVE
    assert dataset.payments[0].status == PaymentStatus.PENDING
    assert dataset.orders[0].created_at.tzinfo is not None


def test_timestamp_due_dates_are_truncated_to_day():
    snapshot = validate_snapshot(_snapshot())

    assert snapshot.payments[0].due_date == date(2030, 1, 1)


def test_version_1_without_limit_history_accepted():
    data = _snapshot(version=1)
    del data["limitHistory"]

    snapshot = validate_snapshot(data)

    assert snapshot.limit_history == []


def test_version_2_requires_limit_history():
    data = _snapshot()
    del data["limitHistory"]

    with pytest.raises(SnapshotValidationError, match="limitHistory"):
        validate_snapshot(data)


@pytest.mark.parametrize("version", [None, 0, 3, "2", True])
def test_unsupported_version_rejected(version):
    with pytest.raises(SnapshotValidationError, match="version"):
        validate_snapshot(_snapshot(version=version))


@pytest.mark.parametrize("collection", ["orders", "payments", "platforms", "subscriptions"])
def test_missing_collection_rejected(collection):
    data = _snapshot()
    del data[collection]

    with pytest.raises(SnapshotValidationError, match=collection):
        validate_snapshot(data)


def test_non_list_collection_rejected():
    with pytest.raises(SnapshotValidationError, match="orders must be an array"):
        validate_snapshot(_snapshot(orders={"o1": _order()}))


def test_not_an_object_rejected():
    with pytest.raises(SnapshotValidationError):
        validate_snapshot([1, 2, 3])


def test_malformed_entity_carries_field_errors():
    bad_payment = _payment()
    bad_payment["amount"] = "a lot"

    with pytest.raises(SnapshotValidationError) as exc_info:
        validate_snapshot(_snapshot(payments=[bad_payment]))

    assert exc_info.value.errors
    assert exc_info.value.errors[0]["loc"][:2] == ("payments", 0)


def test_orphan_payments_rejected():
    """Test payments pointing at missing orders are counted in the message"""
    payments = [_payment("p1", "o1"), _payment("p2", "ghost"), _payment("p3", "ghost")]

    with pytest.raises(SnapshotValidationError, match="2 payment\\(s\\) referencing non-existent orders"):
        validate_snapshot(_snapshot(payments=payments))


def test_export_format_is_camel_case():
    snapshot = validate_snapshot(_snapshot())

    data = snapshot.to_json()

    assert set(data) == {
        "version",
        "exportedAt",
        "orders",
        "payments",
        "platforms",
        "subscriptions",
        "limitHistory",
    }
    assert data["payments"][0]["dueDate"] == "2030-01-01"
    assert data["orders"][0]["platformId"] == "afterpay"


def test_from_dataset_writes_current_version():
    snapshot = Snapshot.from_dataset(Dataset())

    assert snapshot.version == 2
    assert snapshot.to_json()["limitHistory"] == []
