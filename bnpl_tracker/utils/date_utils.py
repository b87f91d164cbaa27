"""Date manipulation utilities"""

from datetime import date, datetime, timedelta, timezone
from typing import Union


def add_days(from_date: date, days: int) -> date:
    """Shift a calendar date by a (possibly negative) number of days"""
    return from_date + timedelta(days=days)


def days_between(start: date, end: date) -> int:
    """Whole calendar days from start to end (negative if end is earlier)"""
    return (end - start).days


def local_day(moment: Union[date, datetime]) -> date:
    """Calendar day of a moment in local time (start-of-day granularity)"""
    if isinstance(moment, datetime):
        if moment.tzinfo is not None:
            moment = moment.astimezone()
        return moment.date()
    return moment


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(moment: datetime) -> datetime:
    """Normalize a timestamp to aware UTC; naive values are taken as UTC"""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)
