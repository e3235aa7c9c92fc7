"""
Date helpers shared by the calendar services.
"""

from datetime import date, timedelta
from typing import Iterable, Iterator, List, Optional, Set, Union


def parse_iso_date(value: Union[str, date, None]) -> Optional[date]:
    """Parse YYYY-MM-DD. Returns None for anything unparsable."""
    if value is None:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield each day from start to end, both inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def days_in_range(start: date, end: date) -> List[date]:
    """Days from start to end (inclusive). Empty when end < start."""
    return list(iter_days(start, end))


def date_span(a: date, b: date) -> List[date]:
    """Inclusive span between two dates, in either order."""
    if b < a:
        a, b = b, a
    return days_in_range(a, b)


def stay_dates(arrival: date, departure: date) -> Set[date]:
    """Nights of a stay: arrival (inclusive) to departure (exclusive)."""
    dates = set()
    current = arrival
    while current < departure:
        dates.add(current)
        current += timedelta(days=1)
    return dates


def is_past(day: date, today: Optional[date] = None) -> bool:
    return day < (today or date.today())


def filter_weekdays(days: Iterable[date], weekdays: Optional[Iterable[int]]) -> List[date]:
    """
    Keep only days whose weekday (Monday=0 .. Sunday=6) is in weekdays.
    None keeps every day.
    """
    if weekdays is None:
        return list(days)
    allowed = set(weekdays)
    return [d for d in days if d.weekday() in allowed]
