"""Pydantic schemas for API request/response validation"""

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from bnpl_tracker.domain.models import OrderStatus, OrderType
from bnpl_tracker.domain.snapshot import IsoDate, OrderRecord, PaymentRecord
from bnpl_tracker.services.orders import NewOrder, OrderUpdate, PaymentOverride


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PaymentOverrideSchema(_Body):
    amount: Optional[int] = Field(None, ge=0, description="Amount in cents")
    due_date: Optional[IsoDate] = None


class CreateOrderRequest(_Body):
    """Request body for POST /v1/orders"""

    platform_id: str = Field(..., min_length=1)
    total_amount: int = Field(..., ge=0, description="Purchase amount in cents")
    first_payment_date: IsoDate
    store_name: Optional[str] = None
    interval_days: Optional[int] = Field(None, ge=0)
    custom_installments: Optional[int] = Field(None, ge=1)
    apr: Optional[float] = Field(None, ge=0, description="Annual rate, 0.15 = 15%")
    tags: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    order_type: OrderType = OrderType.PERSONAL
    payment_overrides: Dict[int, PaymentOverrideSchema] = Field(
        default_factory=dict, description="Keyed by installment number"
    )

    def to_new_order(self) -> NewOrder:
        return NewOrder(
            platform_id=self.platform_id,
            total_amount=self.total_amount,
            first_payment_date=self.first_payment_date,
            store_name=self.store_name,
            interval_days=self.interval_days,
            custom_installments=self.custom_installments,
            apr=self.apr,
            tags=self.tags,
            notes=self.notes,
            order_type=self.order_type,
            payment_overrides={
                number: PaymentOverride(amount=o.amount, due_date=o.due_date)
                for number, o in self.payment_overrides.items()
            },
        )


class UpdateOrderRequest(_Body):
    """Request body for PATCH /v1/orders/{order_id}; omitted fields are unchanged"""

    store_name: Optional[str] = None
    total_amount: Optional[int] = Field(None, ge=0)
    first_payment_date: Optional[IsoDate] = None
    interval_days: Optional[int] = Field(None, ge=0)
    status: Optional[OrderStatus] = None
    apr: Optional[float] = Field(None, ge=0)
    tags: Optional[List[str]] = None
    notes: Optional[str] = None
    order_type: Optional[OrderType] = None

    def to_update(self) -> OrderUpdate:
        return OrderUpdate(**self.model_dump())


class OrderResponse(_Body):
    order: OrderRecord
    payments: List[PaymentRecord]


class AddPaymentRequest(_Body):
    amount: int = Field(..., ge=0)
    due_date: IsoDate


class UpdatePaymentRequest(_Body):
    amount: Optional[int] = Field(None, ge=0)
    due_date: Optional[IsoDate] = None


class MarkPaidRequest(_Body):
    paid_date: Optional[IsoDate] = None


class PlatformLimitRequest(_Body):
    credit_limit: int = Field(..., ge=0)


class PlatformScheduleRequest(_Body):
    default_installments: int = Field(..., ge=1)
    default_interval_days: int = Field(..., ge=0)


class SubscriptionRequest(_Body):
    is_active: bool = True
    monthly_cost: int = Field(0, ge=0)
    benefits: List[str] = Field(default_factory=list)
    start_date: Optional[date] = None


class SweepResponse(_Body):
    marked_overdue: int
    payments: List[PaymentRecord]


class ImportResponse(_Body):
    version: int
    orders: int
    payments: int
    platforms: int
    subscriptions: int
    limit_history: int
