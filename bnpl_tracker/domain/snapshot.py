"""
Full-dataset snapshot format and its integrity validation.

The snapshot is the file-exchange boundary (export/import) and the payload of
the backup mirror. Keys are camelCase:

    {version, exportedAt, orders, payments, platforms, subscriptions, limitHistory}

Version 1 has no limitHistory; version 2 does.
"""

from dataclasses import asdict
from datetime import date, datetime
from typing import Annotated, Any, ClassVar, List, Mapping, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from bnpl_tracker.domain.exceptions import SnapshotValidationError
from bnpl_tracker.domain.models import (
    Dataset,
    LimitChange,
    Order,
    OrderStatus,
    OrderType,
    Payment,
    PaymentStatus,
    Platform,
    PlatformTier,
    Subscription,
)
from bnpl_tracker.utils.date_utils import utc_now

CURRENT_SNAPSHOT_VERSION = 2
SUPPORTED_SNAPSHOT_VERSIONS = frozenset({1, 2})
REQUIRED_COLLECTIONS = ("orders", "payments", "platforms", "subscriptions")


def _truncate_timestamp(value: Any) -> Any:
    # Older exports wrote due dates as full ISO timestamps
    if isinstance(value, str) and len(value) > 10 and value[10] == "T":
        return value[:10]
    return value


IsoDate = Annotated[date, BeforeValidator(_truncate_timestamp)]


class _Record(BaseModel):
    """Wire form of a domain entity"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    entity_type: ClassVar[type]

    def to_entity(self):
        return self.entity_type(**self.model_dump())

    @classmethod
    def from_entity(cls, entity):
        return cls.model_validate(asdict(entity))


class OrderRecord(_Record):
    entity_type: ClassVar[type] = Order

    id: str
    platform_id: str
    total_amount: int
    first_payment_date: IsoDate
    created_at: datetime
    status: OrderStatus = OrderStatus.ACTIVE
    store_name: Optional[str] = None
    interval_days: Optional[int] = None
    custom_installments: Optional[int] = None
    apr: Optional[float] = None
    tags: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    order_type: Optional[OrderType] = None
    needs_repair: bool = False


class PaymentRecord(_Record):
    entity_type: ClassVar[type] = Payment

    id: str
    order_id: str
    platform_id: str
    amount: int
    due_date: IsoDate
    installment_number: int = Field(..., ge=1)
    status: PaymentStatus = PaymentStatus.PENDING
    paid_date: Optional[IsoDate] = None
    paid_on_time: Optional[bool] = None
    is_manual_override: bool = False


class PlatformRecord(_Record):
    entity_type: ClassVar[type] = Platform

    id: str
    name: str
    credit_limit: int
    color: str = "#000000"
    default_installments: int = 4
    default_interval_days: int = 14
    goal_limit: Optional[int] = None
    tier: Optional[PlatformTier] = None


class SubscriptionRecord(_Record):
    entity_type: ClassVar[type] = Subscription

    platform_id: str
    is_active: bool = True
    monthly_cost: int = 0
    benefits: List[str] = Field(default_factory=list)
    start_date: Optional[IsoDate] = None


class LimitChangeRecord(_Record):
    entity_type: ClassVar[type] = LimitChange

    id: str
    platform_id: str
    previous_limit: int
    new_limit: int
    changed_at: datetime
    streak_at_change: int = 0


class Snapshot(BaseModel):
    """Versioned full-dataset export"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    version: int
    exported_at: datetime
    orders: List[OrderRecord]
    payments: List[PaymentRecord]
    platforms: List[PlatformRecord]
    subscriptions: List[SubscriptionRecord]
    limit_history: List[LimitChangeRecord] = Field(default_factory=list)

    @classmethod
    def from_dataset(cls, dataset: Dataset, exported_at: Optional[datetime] = None) -> "Snapshot":
        return cls(
            version=CURRENT_SNAPSHOT_VERSION,
            exported_at=exported_at or utc_now(),
            orders=[OrderRecord.from_entity(o) for o in dataset.orders],
            payments=[PaymentRecord.from_entity(p) for p in dataset.payments],
            platforms=[PlatformRecord.from_entity(p) for p in dataset.platforms],
            subscriptions=[SubscriptionRecord.from_entity(s) for s in dataset.subscriptions],
            limit_history=[LimitChangeRecord.from_entity(c) for c in dataset.limit_history],
        )

    def to_dataset(self) -> Dataset:
        return Dataset(
            orders=[r.to_entity() for r in self.orders],
            payments=[r.to_entity() for r in self.payments],
            platforms=[r.to_entity() for r in self.platforms],
            subscriptions=[r.to_entity() for r in self.subscriptions],
            limit_history=[r.to_entity() for r in self.limit_history],
        )

    def to_json(self) -> dict:
        """camelCase, JSON-safe representation"""
        return self.model_dump(mode="json", by_alias=True)


def validate_snapshot(data: Any) -> Snapshot:
    """
    Gatekeep a snapshot before it reaches storage.

    Checks, in order:
    1. Version is supported (1 or 2)
    2. Every required collection is present and a list
    3. Every entity is well-formed
    4. Every payment references an order in the same snapshot

    Raises:
        SnapshotValidationError: on the first failed check; nothing is applied
    """
    if not isinstance(data, Mapping):
        raise SnapshotValidationError("Invalid data: snapshot must be an object")

    version = data.get("version")
    if isinstance(version, bool) or version not in SUPPORTED_SNAPSHOT_VERSIONS:
        raise SnapshotValidationError(f"Unsupported data version: {version}")

    required = list(REQUIRED_COLLECTIONS)
    if version >= 2:
        required.append("limitHistory")
    for key in required:
        if not isinstance(data.get(key), list):
            raise SnapshotValidationError(f"Invalid data: {key} must be an array")
    if data.get("limitHistory") is not None and not isinstance(data["limitHistory"], list):
        raise SnapshotValidationError("Invalid data: limitHistory must be an array")

    payload = {key: value for key, value in data.items() if not (key == "limitHistory" and value is None)}
    try:
        snapshot = Snapshot.model_validate(payload)
    except ValidationError as e:
        raise SnapshotValidationError(
            f"Invalid data: {e.error_count()} invalid field(s)",
            errors=e.errors(include_url=False, include_context=False),
        ) from e

    order_ids = {order.id for order in snapshot.orders}
    orphaned = [payment for payment in snapshot.payments if payment.order_id not in order_ids]
    if orphaned:
        raise SnapshotValidationError(
            f"Import contains {len(orphaned)} payment(s) referencing non-existent orders",
            errors=[{"paymentId": p.id, "orderId": p.order_id} for p in orphaned],
        )

    return snapshot
