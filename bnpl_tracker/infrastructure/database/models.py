"""SQLAlchemy ORM models for the five entity collections"""

from sqlalchemy import JSON, BigInteger, Boolean, Column, Date, DateTime, Enum, Float, Integer, Text
from sqlalchemy.orm import declarative_base

from bnpl_tracker.domain.models import OrderStatus, OrderType, PaymentStatus, PlatformTier

Base = declarative_base()


def _enum(enum_cls):
    # Store the enum value ("active"), not the member name ("ACTIVE")
    return Enum(enum_cls, native_enum=False, values_callable=lambda e: [m.value for m in e], length=32)


class StoreMeta(Base):
    """Key/value bookkeeping, including the on-disk schema version"""

    __tablename__ = "store_meta"
    __table_args__ = {"info": {"since_version": 1}}

    key = Column(Text, primary_key=True)
    value = Column(Text, nullable=False)


class OrderRow(Base):
    """Tracked BNPL purchase"""

    __tablename__ = "orders"
    __table_args__ = {"info": {"since_version": 1}}

    id = Column(Text, primary_key=True)
    platform_id = Column(Text, nullable=False, index=True)
    store_name = Column(Text, nullable=True)
    total_amount = Column(BigInteger, nullable=False)
    first_payment_date = Column(Date, nullable=False)
    status = Column(_enum(OrderStatus), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    interval_days = Column(Integer, nullable=True)
    custom_installments = Column(Integer, nullable=True)
    apr = Column(Float, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=True)
    order_type = Column(_enum(OrderType), nullable=True)
    needs_repair = Column(Boolean, nullable=False, default=False)


class PaymentRow(Base):
    """Single installment of an order"""

    __tablename__ = "payments"
    __table_args__ = {"info": {"since_version": 1}}

    id = Column(Text, primary_key=True)
    order_id = Column(Text, nullable=False, index=True)
    platform_id = Column(Text, nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    installment_number = Column(Integer, nullable=False)
    status = Column(_enum(PaymentStatus), nullable=False, index=True)
    paid_date = Column(Date, nullable=True)
    paid_on_time = Column(Boolean, nullable=True)
    is_manual_override = Column(Boolean, nullable=False, default=False)


class PlatformRow(Base):
    """BNPL provider settings"""

    __tablename__ = "platforms"
    __table_args__ = {"info": {"since_version": 1}}

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    credit_limit = Column(BigInteger, nullable=False)
    color = Column(Text, nullable=False)
    default_installments = Column(Integer, nullable=False)
    default_interval_days = Column(Integer, nullable=False)
    goal_limit = Column(BigInteger, nullable=True)
    tier = Column(_enum(PlatformTier), nullable=True)


class SubscriptionRow(Base):
    """Platform membership, keyed by platform"""

    __tablename__ = "subscriptions"
    __table_args__ = {"info": {"since_version": 1}}

    platform_id = Column(Text, primary_key=True)
    is_active = Column(Boolean, nullable=False, index=True)
    monthly_cost = Column(BigInteger, nullable=False)
    benefits = Column(JSON, nullable=False, default=list)
    start_date = Column(Date, nullable=True)


class LimitChangeRow(Base):
    """Append-only credit limit audit log (schema v2)"""

    __tablename__ = "limit_history"
    __table_args__ = {"info": {"since_version": 2}}

    id = Column(Text, primary_key=True)
    platform_id = Column(Text, nullable=False, index=True)
    previous_limit = Column(BigInteger, nullable=False)
    new_limit = Column(BigInteger, nullable=False)
    changed_at = Column(DateTime(timezone=True), nullable=False, index=True)
    streak_at_change = Column(Integer, nullable=False, default=0)
