"""Mapping between domain entities and their storage collections"""

from dataclasses import asdict, dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict

from bnpl_tracker.domain.models import LimitChange, Order, Payment, Platform, Subscription
from bnpl_tracker.infrastructure.database.models import (
    LimitChangeRow,
    OrderRow,
    PaymentRow,
    PlatformRow,
    SubscriptionRow,
)
from bnpl_tracker.utils.date_utils import as_utc


class Collection(str, Enum):
    """Keyed entity collections held by the store"""

    ORDERS = "orders"
    PAYMENTS = "payments"
    PLATFORMS = "platforms"
    SUBSCRIPTIONS = "subscriptions"
    LIMIT_HISTORY = "limitHistory"


@dataclass(frozen=True)
class CollectionMapping:
    """Row type, entity type, primary key and secondary indexes of a collection"""

    collection: Collection
    row_type: type
    entity_type: type
    key: str
    indexes: Dict[str, str]  # index name -> attribute

    @property
    def table_name(self) -> str:
        return self.row_type.__tablename__

    def key_of(self, entity: Any) -> str:
        return getattr(entity, self.key)

    def key_column(self):
        return getattr(self.row_type, self.key)

    def index_column(self, index_name: str):
        try:
            attribute = self.indexes[index_name]
        except KeyError:
            raise ValueError(f"Unknown index '{index_name}' on {self.collection.value}") from None
        return getattr(self.row_type, attribute)

    def to_row(self, entity: Any):
        values = asdict(entity)
        for name, value in values.items():
            if isinstance(value, datetime):
                values[name] = as_utc(value)
        return self.row_type(**values)

    def to_entity(self, row: Any):
        values = {}
        for f in fields(self.entity_type):
            value = getattr(row, f.name)
            if isinstance(value, datetime):
                value = as_utc(value)  # SQLite hands back naive timestamps
            elif isinstance(value, list):
                value = list(value)
            values[f.name] = value
        return self.entity_type(**values)


MAPPINGS: Dict[Collection, CollectionMapping] = {
    Collection.ORDERS: CollectionMapping(
        collection=Collection.ORDERS,
        row_type=OrderRow,
        entity_type=Order,
        key="id",
        indexes={"by-platform": "platform_id", "by-status": "status", "by-createdAt": "created_at"},
    ),
    Collection.PAYMENTS: CollectionMapping(
        collection=Collection.PAYMENTS,
        row_type=PaymentRow,
        entity_type=Payment,
        key="id",
        indexes={
            "by-order": "order_id",
            "by-platform": "platform_id",
            "by-dueDate": "due_date",
            "by-status": "status",
        },
    ),
    Collection.PLATFORMS: CollectionMapping(
        collection=Collection.PLATFORMS,
        row_type=PlatformRow,
        entity_type=Platform,
        key="id",
        indexes={},
    ),
    Collection.SUBSCRIPTIONS: CollectionMapping(
        collection=Collection.SUBSCRIPTIONS,
        row_type=SubscriptionRow,
        entity_type=Subscription,
        key="platform_id",
        indexes={"by-active": "is_active"},
    ),
    Collection.LIMIT_HISTORY: CollectionMapping(
        collection=Collection.LIMIT_HISTORY,
        row_type=LimitChangeRow,
        entity_type=LimitChange,
        key="id",
        indexes={"by-platform": "platform_id", "by-date": "changed_at"},
    ),
}
