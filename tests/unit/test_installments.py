"""Unit tests for schedule generation and adjustment"""

import pytest
from dataclasses import replace
from datetime import date, timedelta
from bnpl_tracker.domain.exceptions import UnsatisfiableScheduleError
from bnpl_tracker.domain.installments import (
    AmortizedInterest,
    NoInterest,
    SimpleInterest,
    generate_schedule,
    get_date_delta,
    recalculate_dates,
    redistribute_amounts,
    shift_dates,
)
from bnpl_tracker.domain.models import Payment, PaymentStatus


def test_generate_schedule_equal_split():
    """Test schedule with evenly divisible amount"""
    schedule = generate_schedule(40000, date(2030, 1, 1), 4, 14)

    assert len(schedule) == 4
    assert all(item.amount == 10000 for item in schedule)
    assert [item.installment_number for item in schedule] == [1, 2, 3, 4]


def test_generate_schedule_rounding():
    """Test last installment absorbs remainder"""
    schedule = generate_schedule(40003, date(2030, 1, 1), 4, 14)

    assert [item.amount for item in schedule] == [10000, 10000, 10000, 10003]
    assert sum(item.amount for item in schedule) == 40003


def test_generate_schedule_dates():
    """Test due dates spaced by the interval"""
    start = date(2030, 1, 1)
    schedule = generate_schedule(40000, start, 4, 14)

    assert [item.due_date for item in schedule] == [start + timedelta(days=14 * i) for i in range(4)]


def test_generate_schedule_single_installment():
    schedule = generate_schedule(12345, date(2030, 1, 1), 1, 30)

    assert len(schedule) == 1
    assert schedule[0].amount == 12345
    assert schedule[0].due_date == date(2030, 1, 1)


def test_generate_schedule_zero_amount():
    """Test zero total yields zero-amount installments"""
    schedule = generate_schedule(0, date(2030, 1, 1), 4, 14)

    assert len(schedule) == 4
    assert all(item.amount == 0 for item in schedule)


def test_generate_schedule_zero_interval_same_day():
    schedule = generate_schedule(300, date(2030, 1, 1), 3, 0)

    assert {item.due_date for item in schedule} == {date(2030, 1, 1)}


@pytest.mark.parametrize(
    "amount,count,interval",
    [
        (40000, 0, 14),
        (-1, 4, 14),
        (40000, 4, -1),
    ],
)
def test_generate_schedule_rejects_invalid_input(amount, count, interval):
    with pytest.raises(ValueError):
        generate_schedule(amount, date(2030, 1, 1), count, interval)


def test_generate_schedule_simple_interest():
    """Test 12% APR over 4 payments every 14 days: I = P * r * (42 / 365)"""
    schedule = generate_schedule(100000, date(2030, 1, 1), 4, 14, apr=0.12)

    expected_interest = round(100000 * 0.12 * (3 * 14 / 365))
    assert sum(item.amount for item in schedule) == 100000 + expected_interest


def test_generate_schedule_interest_strategy_is_pluggable():
    no_interest = generate_schedule(100000, date(2030, 1, 1), 4, 14, apr=0.12, interest=NoInterest())
    amortized = generate_schedule(100000, date(2030, 1, 1), 4, 14, apr=0.12, interest=AmortizedInterest())

    assert sum(item.amount for item in no_interest) == 100000
    assert sum(item.amount for item in amortized) > 100000


def test_simple_interest_zero_for_single_installment():
    assert SimpleInterest().interest(100000, 0.2, 1, 14) == 0


def test_shift_dates_keeps_amounts_and_spacing():
    schedule = generate_schedule(40003, date(2030, 1, 1), 4, 14)

    shifted = shift_dates(schedule, 10)

    assert [item.amount for item in shifted] == [item.amount for item in schedule]
    assert [item.due_date for item in shifted] == [item.due_date + timedelta(days=10) for item in schedule]


def test_shift_dates_backwards():
    schedule = generate_schedule(400, date(2030, 1, 15), 2, 14)

    shifted = shift_dates(schedule, -15)

    assert shifted[0].due_date == date(2029, 12, 31)


def test_recalculate_dates_from_new_start():
    schedule = generate_schedule(400, date(2030, 1, 1), 4, 14)

    rebuilt = recalculate_dates(schedule, date(2030, 2, 1), 30)

    assert [item.due_date for item in rebuilt] == [
        date(2030, 2, 1),
        date(2030, 3, 3),
        date(2030, 4, 2),
        date(2030, 5, 2),
    ]


def test_recalculate_dates_ignores_date_pins():
    schedule = generate_schedule(400, date(2030, 1, 1), 2, 14)
    schedule[1] = replace(schedule[1], due_date=date(2030, 6, 1), is_manual_override=True)

    rebuilt = recalculate_dates(schedule, date(2030, 1, 1), 7)

    assert rebuilt[1].due_date == date(2030, 1, 8)
    assert rebuilt[1].is_manual_override is True


def test_redistribute_amounts_no_pins():
    schedule = generate_schedule(40000, date(2030, 1, 1), 4, 14)

    result = redistribute_amounts(schedule, 50001)

    assert [item.amount for item in result] == [12500, 12500, 12500, 12501]


def test_redistribute_amounts_respects_pins():
    """Test pinned amount is kept and the rest absorbs the difference"""
    schedule = generate_schedule(40000, date(2030, 1, 1), 4, 14)
    schedule[0] = replace(schedule[0], amount=20000, is_manual_override=True)

    result = redistribute_amounts(schedule, 50000)

    assert result[0].amount == 20000
    assert [item.amount for item in result[1:]] == [10000, 10000, 10000]
    assert sum(item.amount for item in result) == 50000


def test_redistribute_amounts_remainder_on_last_unpinned():
    schedule = generate_schedule(400, date(2030, 1, 1), 4, 14)
    schedule[3] = replace(schedule[3], amount=100, is_manual_override=True)

    result = redistribute_amounts(schedule, 402)

    assert [item.amount for item in result] == [100, 100, 102, 100]


def test_redistribute_amounts_sorts_by_installment_number():
    schedule = generate_schedule(300, date(2030, 1, 1), 3, 14)

    result = redistribute_amounts(list(reversed(schedule)), 301)

    assert [item.installment_number for item in result] == [1, 2, 3]
    assert result[-1].amount == 101


def test_redistribute_amounts_all_pinned_matching_total():
    schedule = [replace(item, is_manual_override=True) for item in generate_schedule(400, date(2030, 1, 1), 4, 14)]

    result = redistribute_amounts(schedule, 400)

    assert [item.amount for item in result] == [100, 100, 100, 100]


def test_redistribute_amounts_all_pinned_mismatch_raises():
    schedule = [replace(item, is_manual_override=True) for item in generate_schedule(400, date(2030, 1, 1), 4, 14)]

    with pytest.raises(UnsatisfiableScheduleError):
        redistribute_amounts(schedule, 500)


def test_redistribute_amounts_pins_exceed_total_raises():
    schedule = generate_schedule(400, date(2030, 1, 1), 4, 14)
    schedule[0] = replace(schedule[0], amount=300, is_manual_override=True)

    with pytest.raises(UnsatisfiableScheduleError):
        redistribute_amounts(schedule, 200)


def test_redistribute_amounts_works_on_payments():
    payments = [
        Payment(
            id=f"p{n}",
            order_id="o",
            platform_id="zip",
            amount=100,
            due_date=date(2030, 1, n),
            installment_number=n,
            status=PaymentStatus.PAID if n == 1 else PaymentStatus.PENDING,
        )
        for n in (1, 2)
    ]

    result = redistribute_amounts(payments, 301)

    assert [p.amount for p in result] == [150, 151]
    assert result[0].status == PaymentStatus.PAID
    assert result[0].id == "p1"


def test_get_date_delta():
    assert get_date_delta(date(2030, 1, 1), date(2030, 1, 11)) == 10
    assert get_date_delta(date(2030, 1, 11), date(2030, 1, 1)) == -10
    assert get_date_delta(date(2030, 3, 1), date(2030, 3, 1)) == 0
