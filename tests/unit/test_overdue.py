"""Unit tests for overdue reconciliation"""

from datetime import date, datetime
from bnpl_tracker.domain.models import Payment, PaymentStatus
from bnpl_tracker.domain.overdue import is_past_due, sweep


def _payment(payment_id: str, due: date, status: PaymentStatus = PaymentStatus.PENDING) -> Payment:
    return Payment(
        id=payment_id,
        order_id="order-1",
        platform_id="klarna",
        amount=2500,
        due_date=due,
        installment_number=1,
        status=status,
    )


def test_sweep_marks_past_due_pending():
    """Test pending payment due yesterday becomes overdue"""
    payments = [_payment("p1", date(2030, 1, 9))]

    changed = sweep(date(2030, 1, 10), payments)

    assert len(changed) == 1
    assert changed[0].id == "p1"
    assert changed[0].status == PaymentStatus.OVERDUE
    assert payments[0].status == PaymentStatus.PENDING  # Input untouched


def test_sweep_due_today_is_not_overdue():
    changed = sweep(datetime(2030, 1, 10, 23, 59), [_payment("p1", date(2030, 1, 10))])

    assert changed == []


def test_sweep_ignores_paid_and_already_overdue():
    payments = [
        _payment("paid", date(2029, 1, 1), PaymentStatus.PAID),
        _payment("overdue", date(2029, 1, 1), PaymentStatus.OVERDUE),
        _payment("future", date(2031, 1, 1)),
    ]

    assert sweep(date(2030, 1, 10), payments) == []


def test_sweep_returns_only_changed():
    payments = [_payment("late", date(2030, 1, 1)), _payment("upcoming", date(2030, 2, 1))]

    changed = sweep(date(2030, 1, 10), payments)

    assert [p.id for p in changed] == ["late"]


def test_sweep_is_idempotent():
    """Test sweeping the swept output changes nothing"""
    now = date(2030, 1, 10)
    first = sweep(now, [_payment("p1", date(2030, 1, 1))])

    assert sweep(now, first) == []


def test_is_past_due_uses_calendar_day():
    assert is_past_due(date(2030, 1, 9), datetime(2030, 1, 10, 0, 0, 1))
    assert not is_past_due(date(2030, 1, 10), datetime(2030, 1, 10, 0, 0, 1))
