"""Order and payment operations on top of the local store"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, List, Optional, Tuple

from bnpl_tracker.domain.exceptions import EntityNotFoundError
from bnpl_tracker.domain.installments import (
    InterestStrategy,
    SimpleInterest,
    generate_schedule,
    get_date_delta,
    recalculate_dates,
    redistribute_amounts,
    shift_dates,
)
from bnpl_tracker.domain.models import Order, OrderStatus, OrderType, Payment, PaymentStatus
from bnpl_tracker.infrastructure.database.repositories import Collection
from bnpl_tracker.infrastructure.database.store import LocalStore
from bnpl_tracker.services.sweeper import OverdueSweeper
from bnpl_tracker.utils.date_utils import local_day, utc_now

logger = logging.getLogger(__name__)


@dataclass
class PaymentOverride:
    """User-set amount and/or due date for one installment"""

    amount: Optional[int] = None
    due_date: Optional[date] = None


@dataclass
class NewOrder:
    platform_id: str
    total_amount: int
    first_payment_date: date
    store_name: Optional[str] = None
    interval_days: Optional[int] = None  # platform default when None
    custom_installments: Optional[int] = None  # platform default when None
    apr: Optional[float] = None
    tags: List[str] = field(default_factory=list)
    notes: Optional[str] = None
    order_type: OrderType = OrderType.PERSONAL
    payment_overrides: Dict[int, PaymentOverride] = field(default_factory=dict)  # by installment number


@dataclass
class OrderUpdate:
    """Fields to change on an order; None leaves a field as it is"""

    store_name: Optional[str] = None
    total_amount: Optional[int] = None
    first_payment_date: Optional[date] = None
    interval_days: Optional[int] = None
    status: Optional[OrderStatus] = None
    apr: Optional[float] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None
    order_type: Optional[OrderType] = None


def _by_installment(payments: List[Payment]) -> List[Payment]:
    return sorted(payments, key=lambda p: p.installment_number)


class OrderService:
    def __init__(self, store: LocalStore, sweeper: OverdueSweeper, interest: Optional[InterestStrategy] = None):
        self.store = store
        self.sweeper = sweeper
        self.interest = interest or SimpleInterest()

    async def _get_order(self, order_id: str) -> Order:
        order = await self.store.get(Collection.ORDERS, order_id)
        if order is None:
            raise EntityNotFoundError(Collection.ORDERS.value, order_id)
        return order

    async def _get_payment(self, payment_id: str) -> Payment:
        payment = await self.store.get(Collection.PAYMENTS, payment_id)
        if payment is None:
            raise EntityNotFoundError(Collection.PAYMENTS.value, payment_id)
        return payment

    async def _order_payments(self, order_id: str) -> List[Payment]:
        return _by_installment(await self.store.get_by_index(Collection.PAYMENTS, "by-order", order_id))

    async def _sweep(self, payments: List[Payment]) -> List[Payment]:
        swept = {p.id: p for p in await self.sweeper.run(payments=payments)}
        return [swept.get(p.id, p) for p in payments]

    async def _effective_interval(self, order: Order) -> Optional[int]:
        if order.interval_days is not None:
            return order.interval_days
        platform = await self.store.get(Collection.PLATFORMS, order.platform_id)
        return platform.default_interval_days if platform is not None else None

    async def get_order(self, order_id: str) -> Tuple[Order, List[Payment]]:
        return await self._get_order(order_id), await self._order_payments(order_id)

    async def create_order(self, new_order: NewOrder) -> Tuple[Order, List[Payment]]:
        """
        Build the payment schedule for a new order and store both.

        Installment count and interval fall back to the platform defaults.
        The order's total_amount is the financed total (principal plus any
        APR interest), so it always equals the sum of its payments.
        Overridden installments are pinned; the remaining amounts are
        redistributed so the payments still add up to the financed total.

        Raises:
            EntityNotFoundError: platform does not exist
            UnsatisfiableScheduleError: overrides exceed the financed total
        """
        platform = await self.store.get(Collection.PLATFORMS, new_order.platform_id)
        if platform is None:
            raise EntityNotFoundError(Collection.PLATFORMS.value, new_order.platform_id)

        installments = new_order.custom_installments or platform.default_installments
        interval_days = (
            new_order.interval_days if new_order.interval_days is not None else platform.default_interval_days
        )
        schedule = generate_schedule(
            total_amount=new_order.total_amount,
            first_due_date=new_order.first_payment_date,
            installment_count=installments,
            interval_days=interval_days,
            apr=new_order.apr,
            interest=self.interest,
        )

        # Principal plus interest; stored as the order total
        financed_total = sum(item.amount for item in schedule)

        if new_order.payment_overrides:
            adjusted = []
            for item in schedule:
                override = new_order.payment_overrides.get(item.installment_number)
                if override is None:
                    adjusted.append(item)
                    continue
                adjusted.append(
                    replace(
                        item,
                        amount=override.amount if override.amount is not None else item.amount,
                        due_date=override.due_date or item.due_date,
                        is_manual_override=True,
                    )
                )
            schedule = redistribute_amounts(adjusted, financed_total)

        order = Order(
            id=str(uuid.uuid4()),
            platform_id=new_order.platform_id,
            total_amount=financed_total,
            first_payment_date=new_order.first_payment_date,
            created_at=utc_now(),
            store_name=new_order.store_name,
            interval_days=new_order.interval_days,
            custom_installments=new_order.custom_installments,
            apr=new_order.apr,
            tags=list(new_order.tags),
            notes=new_order.notes,
            order_type=new_order.order_type,
        )
        payments = [
            Payment(
                id=str(uuid.uuid4()),
                order_id=order.id,
                platform_id=order.platform_id,
                amount=item.amount,
                due_date=item.due_date,
                installment_number=item.installment_number,
                is_manual_override=item.is_manual_override,
            )
            for item in schedule
        ]

        await self.store.add_order(order, payments)
        logger.info(
            "Order created",
            extra={"order_id": order.id, "platform_id": order.platform_id, "installments": len(payments)},
        )
        return order, await self._sweep(payments)

    async def update_order(self, order_id: str, update: OrderUpdate) -> Tuple[Order, List[Payment]]:
        """
        Apply an update and adjust the payment schedule to match.

        - New interval: all due dates rebuilt from the (new or current) first date
        - New first date only: all due dates shifted by the same delta
        - New total: the new financed total; unpinned amounts are
          redistributed to it, raising UnsatisfiableScheduleError before
          anything is written

        Only payments whose amount or due date changed are saved.
        """
        order = await self._get_order(order_id)
        original = await self._order_payments(order_id)
        payments = list(original)

        interval_changed = (
            update.interval_days is not None and update.interval_days != await self._effective_interval(order)
        )
        first_date_changed = (
            update.first_payment_date is not None and update.first_payment_date != order.first_payment_date
        )

        if interval_changed:
            payments = recalculate_dates(
                payments,
                update.first_payment_date or order.first_payment_date,
                update.interval_days,
            )
        elif first_date_changed:
            payments = shift_dates(payments, get_date_delta(order.first_payment_date, update.first_payment_date))

        if update.total_amount is not None and update.total_amount != order.total_amount:
            payments = redistribute_amounts(payments, update.total_amount)

        changes = {name: value for name, value in vars(update).items() if value is not None}
        updated_order = replace(order, **changes)
        await self.store.put(Collection.ORDERS, updated_order)

        before = {p.id: p for p in original}
        changed = [
            p for p in payments if p.amount != before[p.id].amount or p.due_date != before[p.id].due_date
        ]
        for payment in changed:
            await self.store.put(Collection.PAYMENTS, payment)

        if interval_changed or first_date_changed:
            payments = await self._sweep(payments)

        logger.info("Order updated", extra={"order_id": order_id, "payments_changed": len(changed)})
        return updated_order, payments

    async def delete_order(self, order_id: str) -> None:
        await self._get_order(order_id)
        await self.store.delete_order(order_id)
        logger.info("Order deleted", extra={"order_id": order_id})

    async def mark_payment_paid(self, payment_id: str, paid_date: Optional[date] = None) -> Payment:
        """Record a payment as paid; the order completes once every payment is paid"""
        payment = await self._get_payment(payment_id)
        paid_date = paid_date or local_day(utc_now())
        paid = replace(
            payment,
            status=PaymentStatus.PAID,
            paid_date=paid_date,
            paid_on_time=payment.due_date >= paid_date,
        )
        await self.store.put(Collection.PAYMENTS, paid)

        siblings = await self._order_payments(payment.order_id)
        if all(p.id == payment_id or p.status == PaymentStatus.PAID for p in siblings):
            order = await self.store.get(Collection.ORDERS, payment.order_id)
            if order is not None and order.status != OrderStatus.COMPLETED:
                await self.store.put(Collection.ORDERS, replace(order, status=OrderStatus.COMPLETED))
                logger.info("Order completed", extra={"order_id": order.id})
        return paid

    async def mark_payment_unpaid(self, payment_id: str) -> Payment:
        payment = await self._get_payment(payment_id)
        unpaid = replace(payment, status=PaymentStatus.PENDING, paid_date=None, paid_on_time=None)
        await self.store.put(Collection.PAYMENTS, unpaid)

        order = await self.store.get(Collection.ORDERS, payment.order_id)
        if order is not None and order.status == OrderStatus.COMPLETED:
            await self.store.put(Collection.ORDERS, replace(order, status=OrderStatus.ACTIVE))

        swept = await self._sweep([unpaid])
        return swept[0]

    async def update_payment(
        self,
        payment_id: str,
        amount: Optional[int] = None,
        due_date: Optional[date] = None,
    ) -> List[Payment]:
        """
        Pin a payment to a user-set amount and/or due date.

        The order's other unpinned payments absorb an amount change so the
        payments keep their current sum. Returns the order's payments.
        """
        payment = await self._get_payment(payment_id)
        original = await self._order_payments(payment.order_id)
        current_total = sum(p.amount for p in original)

        pinned = replace(
            payment,
            amount=amount if amount is not None else payment.amount,
            due_date=due_date or payment.due_date,
            is_manual_override=True,
        )
        payments = [pinned if p.id == payment_id else p for p in original]
        if pinned.amount != payment.amount:
            payments = redistribute_amounts(payments, current_total)

        before = {p.id: p for p in original}
        for p in payments:
            if p != before[p.id]:
                await self.store.put(Collection.PAYMENTS, p)

        if pinned.due_date != payment.due_date:
            payments = await self._sweep(payments)
        return payments

    async def add_payment_to_order(self, order_id: str, amount: int, due_date: date) -> Payment:
        """
        Append a pinned installment; the order total grows by its amount.
        A completed order becomes active again since it now has an unpaid payment.
        """
        order = await self._get_order(order_id)
        existing = await self._order_payments(order_id)
        payment = Payment(
            id=str(uuid.uuid4()),
            order_id=order_id,
            platform_id=order.platform_id,
            amount=amount,
            due_date=due_date,
            installment_number=max((p.installment_number for p in existing), default=0) + 1,
            is_manual_override=True,
        )
        await self.store.put(Collection.PAYMENTS, payment)
        status = OrderStatus.ACTIVE if order.status == OrderStatus.COMPLETED else order.status
        await self.store.put(
            Collection.ORDERS,
            replace(order, total_amount=order.total_amount + amount, status=status),
        )

        swept = await self._sweep([payment])
        return swept[0]

    async def delete_payment(self, payment_id: str) -> None:
        """
        Remove one installment, renumber the rest from 1 and lower the order total.
        An active order whose remaining payments are all paid is completed.
        """
        payment = await self._get_payment(payment_id)
        await self.store.delete(Collection.PAYMENTS, payment_id)

        remaining = [p for p in await self._order_payments(payment.order_id) if p.id != payment_id]
        for number, p in enumerate(remaining, start=1):
            if p.installment_number != number:
                await self.store.put(Collection.PAYMENTS, replace(p, installment_number=number))

        order = await self.store.get(Collection.ORDERS, payment.order_id)
        if order is not None:
            status = order.status
            if (
                status == OrderStatus.ACTIVE
                and remaining
                and all(p.status == PaymentStatus.PAID for p in remaining)
            ):
                status = OrderStatus.COMPLETED
            await self.store.put(
                Collection.ORDERS,
                replace(order, total_amount=max(order.total_amount - payment.amount, 0), status=status),
            )
