"""Installment schedule generation and adjustment for BNPL orders"""

from dataclasses import replace
from datetime import date
from typing import List, Optional, Protocol, Sequence, TypeVar

from bnpl_tracker.domain.exceptions import UnsatisfiableScheduleError
from bnpl_tracker.domain.models import ScheduledInstallment
from bnpl_tracker.utils.date_utils import add_days, days_between

# Anything carrying installment_number, amount, due_date and is_manual_override:
# ScheduledInstallment or Payment
ScheduleItem = TypeVar("ScheduleItem")


class InterestStrategy(Protocol):
    """Computes interest (minor units) charged on top of the principal"""

    def interest(self, principal: int, apr: float, installment_count: int, interval_days: int) -> int:
        ...


class NoInterest:
    def interest(self, principal: int, apr: float, installment_count: int, interval_days: int) -> int:
        return 0


class SimpleInterest:
    """
    Simple interest over the life of the schedule: I = P * r * t

    t runs from the first to the last due date, in years of 365 days.
    """

    def interest(self, principal: int, apr: float, installment_count: int, interval_days: int) -> int:
        if apr <= 0:
            return 0
        duration_years = (installment_count - 1) * interval_days / 365
        return round(principal * apr * duration_years)


class AmortizedInterest:
    """
    Standard amortization with the APR converted to a per-interval rate.

    Payment = P * r(1+r)^n / ((1+r)^n - 1); interest is what the rounded
    payments add up to above the principal.
    """

    def interest(self, principal: int, apr: float, installment_count: int, interval_days: int) -> int:
        if apr <= 0 or interval_days <= 0:
            return 0
        periodic_rate = apr / (365 / interval_days)
        growth = (1 + periodic_rate) ** installment_count
        payment = principal * (periodic_rate * growth) / (growth - 1)
        return round(payment) * installment_count - principal


def _split_evenly(total: int, parts: int) -> List[int]:
    base = total // parts
    remainder = total % parts
    amounts = [base] * parts
    amounts[-1] += remainder
    return amounts


def generate_schedule(
    total_amount: int,
    first_due_date: date,
    installment_count: int,
    interval_days: int,
    apr: Optional[float] = None,
    interest: Optional[InterestStrategy] = None,
) -> List[ScheduledInstallment]:
    """
    Split an order total into equally spaced installments.

    Requirements:
    - installment_number runs 1..installment_count
    - due_date[i] = first_due_date + i * interval_days
    - Last installment absorbs rounding remainder, so the amounts always sum
      to the financed total exactly

    Args:
        total_amount: Principal in minor units
        first_due_date: Due date of installment 1
        installment_count: Number of payments (>= 1)
        interval_days: Days between payments
        apr: Annual rate as a decimal; adds interest when positive
        interest: Strategy used when apr is given (default SimpleInterest)

    Example:
        40003 cents / 4 -> [10000, 10000, 10000, 10003]
    """
    if installment_count < 1:
        raise ValueError("Must have at least 1 installment")
    if total_amount < 0:
        raise ValueError("Amount cannot be negative")
    if interval_days < 0:
        raise ValueError("Interval cannot be negative")

    financed_total = total_amount
    if apr:
        strategy = interest or SimpleInterest()
        financed_total += strategy.interest(total_amount, apr, installment_count, interval_days)

    return [
        ScheduledInstallment(
            installment_number=i + 1,
            amount=amount,
            due_date=add_days(first_due_date, i * interval_days),
        )
        for i, amount in enumerate(_split_evenly(financed_total, installment_count))
    ]


def shift_dates(schedule: Sequence[ScheduleItem], delta_days: int) -> List[ScheduleItem]:
    """Move every due date by delta_days, keeping amounts and spacing"""
    return [replace(item, due_date=add_days(item.due_date, delta_days)) for item in schedule]


def recalculate_dates(
    schedule: Sequence[ScheduleItem],
    new_first_due_date: date,
    new_interval_days: int,
) -> List[ScheduleItem]:
    """
    Rebuild due dates from a new start date and interval.

    A structural schedule change supersedes date pins, so manual overrides
    are ignored here. Amounts and override flags are left as they are.
    """
    return [
        replace(
            item,
            due_date=add_days(new_first_due_date, (item.installment_number - 1) * new_interval_days),
        )
        for item in schedule
    ]


def redistribute_amounts(schedule: Sequence[ScheduleItem], new_total_amount: int) -> List[ScheduleItem]:
    """
    Spread a new total over the installments that are not manually pinned.

    Pinned amounts are kept exactly; the difference between the new total and
    the pinned sum is split evenly over the rest, remainder on the last
    unpinned installment (in installment order).

    Raises:
        UnsatisfiableScheduleError: every installment is pinned and the pinned
            sum differs from the new total, or the pinned sum alone exceeds it
    """
    ordered = sorted(schedule, key=lambda item: item.installment_number)
    pinned_total = sum(item.amount for item in ordered if item.is_manual_override)
    unpinned = [item for item in ordered if not item.is_manual_override]

    if not unpinned:
        if pinned_total != new_total_amount:
            raise UnsatisfiableScheduleError(
                f"All installments are manually set and sum to {pinned_total}, not {new_total_amount}"
            )
        return list(ordered)

    remaining = new_total_amount - pinned_total
    if remaining < 0:
        raise UnsatisfiableScheduleError(
            f"Manually set installments sum to {pinned_total}, more than the new total {new_total_amount}"
        )

    new_amounts = dict(
        zip(
            (item.installment_number for item in unpinned),
            _split_evenly(remaining, len(unpinned)),
        )
    )
    return [
        item if item.is_manual_override else replace(item, amount=new_amounts[item.installment_number])
        for item in ordered
    ]


def get_date_delta(old_date: date, new_date: date) -> int:
    """Day delta used to drive shift_dates"""
    return days_between(old_date, new_date)
