"""Credit limit history helpers"""

import uuid
from datetime import datetime
from typing import Iterable, Optional

from bnpl_tracker.domain.models import LimitChange, Payment, PaymentStatus, Platform


def on_time_streak(payments: Iterable[Payment], platform_id: Optional[str] = None) -> int:
    """
    Consecutive on-time payments, counting back from the most recently paid.

    Restricted to one platform when platform_id is given.
    """
    paid = sorted(
        (
            p
            for p in payments
            if p.status == PaymentStatus.PAID
            and p.paid_date is not None
            and (platform_id is None or p.platform_id == platform_id)
        ),
        key=lambda p: p.paid_date,
        reverse=True,
    )

    streak = 0
    for payment in paid:
        if not payment.paid_on_time:
            break
        streak += 1
    return streak


def record_limit_change(platform: Platform, new_limit: int, changed_at: datetime, streak: int) -> LimitChange:
    return LimitChange(
        id=str(uuid.uuid4()),
        platform_id=platform.id,
        previous_limit=platform.credit_limit,
        new_limit=new_limit,
        changed_at=changed_at,
        streak_at_change=streak,
    )
