"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional


class OrderStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class OrderType(str, Enum):
    PERSONAL = "personal"
    ARBITRAGE = "arbitrage"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class PlatformTier(str, Enum):
    FLEXIBLE = "flexible"  # Virtual card usable anywhere
    LIMITED = "limited"  # Merchant-specific


@dataclass
class Order:
    """Purchase financed through a BNPL platform"""

    id: str
    platform_id: str
    total_amount: int
    first_payment_date: date
    created_at: datetime
    status: OrderStatus = OrderStatus.ACTIVE
    store_name: Optional[str] = None
    interval_days: Optional[int] = None
    custom_installments: Optional[int] = None
    apr: Optional[float] = None  # e.g. 0.15 = 15%
    tags: List[str] = field(default_factory=list)
    notes: Optional[str] = None
    order_type: Optional[OrderType] = None  # None until migrated to v2
    needs_repair: bool = False


@dataclass
class Payment:
    """One scheduled installment of an order"""

    id: str
    order_id: str
    platform_id: str
    amount: int
    due_date: date
    installment_number: int
    status: PaymentStatus = PaymentStatus.PENDING
    paid_date: Optional[date] = None
    paid_on_time: Optional[bool] = None
    is_manual_override: bool = False


@dataclass
class Platform:
    """BNPL provider with credit and default schedule metadata"""

    id: str
    name: str
    credit_limit: int
    color: str = "#000000"
    default_installments: int = 4
    default_interval_days: int = 14
    goal_limit: Optional[int] = None
    tier: Optional[PlatformTier] = None


@dataclass
class Subscription:
    """Recurring membership cost for a platform"""

    platform_id: str
    is_active: bool = True
    monthly_cost: int = 0
    benefits: List[str] = field(default_factory=list)
    start_date: Optional[date] = None


@dataclass
class LimitChange:
    """Audit entry for a platform credit limit change"""

    id: str
    platform_id: str
    previous_limit: int
    new_limit: int
    changed_at: datetime
    streak_at_change: int = 0


@dataclass
class ScheduledInstallment:
    """Single payment in a generated repayment schedule"""

    installment_number: int
    amount: int
    due_date: date
    is_manual_override: bool = False


@dataclass
class Dataset:
    """Full contents of the store, as handed to callers after a load"""

    orders: List[Order] = field(default_factory=list)
    payments: List[Payment] = field(default_factory=list)
    platforms: List[Platform] = field(default_factory=list)
    subscriptions: List[Subscription] = field(default_factory=list)
    limit_history: List[LimitChange] = field(default_factory=list)
