"""Overdue reconciliation for pending payments"""

from dataclasses import replace
from datetime import date, datetime
from typing import Iterable, List, Union

from bnpl_tracker.domain.models import Payment, PaymentStatus
from bnpl_tracker.utils.date_utils import local_day


def is_past_due(due_date: date, now: Union[date, datetime]) -> bool:
    """Due date's calendar day is strictly before today's"""
    return due_date < local_day(now)


def sweep(now: Union[date, datetime], payments: Iterable[Payment]) -> List[Payment]:
    """
    Promote past-due pending payments to overdue.

    Returns only the payments that changed; paid and already-overdue
    payments, and anything due today or later, are left alone. Running the
    sweep again on its own output changes nothing.
    """
    return [
        replace(payment, status=PaymentStatus.OVERDUE)
        for payment in payments
        if payment.status == PaymentStatus.PENDING and is_past_due(payment.due_date, now)
    ]
