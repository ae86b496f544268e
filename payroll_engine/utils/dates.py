import calendar
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterator, Optional, Tuple

SUNDAY = 6

MONTH_ABBREVIATIONS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
                       "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def iter_days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def is_working_day(day: date) -> bool:
    """Every day except Sunday is a working day."""
    return day.weekday() != SUNDAY


def count_working_days(start: date, end: date) -> int:
    return sum(1 for d in iter_days(start, end) if is_working_day(d))


def month_date_range(year: int, month: int) -> Tuple[date, date]:
    """First and last calendar day of a month (month is 1-12)."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def inclusive_days(start: date, end: date) -> int:
    """Number of calendar days between two dates, counting both ends."""
    return abs((end - start).days) + 1


def overlap_days(start: date, end: date, period_start: date, period_end: date) -> int:
    lo = max(start, period_start)
    hi = min(end, period_end)
    if lo > hi:
        return 0
    return (hi - lo).days + 1


def working_hours_between(check_in: Optional[datetime], check_out: Optional[datetime]) -> Decimal:
    if not check_in or not check_out:
        return Decimal("0.00")
    hours = Decimal(str((check_out - check_in).total_seconds())) / Decimal(3600)
    return hours.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def pay_period_label(period_start: date) -> str:
    """e.g. 'Oct 2025'"""
    return f"{MONTH_ABBREVIATIONS[period_start.month - 1]} {period_start.year}"
