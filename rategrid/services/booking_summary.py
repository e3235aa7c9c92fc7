"""
Booking selection summary

Turns a cell selection into stays: consecutive selected nights per unit,
their departure date and their price for the selected rate plan. Used to
preview and validate a local booking made from the grid.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from ..models.keys import CellKey
from ..models.supplier_data import Unit


@dataclass(frozen=True)
class StayRange:
    """Consecutive nights; departure is the day after the last night"""
    start: date
    departure: date
    nights: int

    @property
    def last_night(self) -> date:
        return self.departure - timedelta(days=1)


@dataclass
class BookingSummary:
    unit_id: int
    unit_name: str
    ranges: List[StayRange] = field(default_factory=list)
    price_by_range: Dict[StayRange, float] = field(default_factory=dict)

    @property
    def total_price(self) -> float:
        return sum(self.price_by_range.values())


def find_consecutive_ranges(dates: Iterable[date]) -> List[StayRange]:
    days = sorted(set(dates))
    if not days:
        return []

    ranges = []
    run_start = previous = days[0]
    for day in days[1:]:
        if day != previous + timedelta(days=1):
            ranges.append(StayRange(run_start, previous + timedelta(days=1), (previous - run_start).days + 1))
            run_start = day
        previous = day
    ranges.append(StayRange(run_start, previous + timedelta(days=1), (previous - run_start).days + 1))
    return ranges


def _dates_by_unit(cells: Iterable[CellKey]) -> Dict[int, List[date]]:
    grouped: Dict[int, List[date]] = {}
    for cell in cells:
        grouped.setdefault(cell.unit_id, []).append(cell.date)
    return grouped


def build_booking_summaries(
    selected: Iterable[CellKey],
    units: Iterable[Unit],
    view,
    rate_plan_id: Optional[int]
) -> List[BookingSummary]:
    """
    One summary per unit with selected cells, in unit list order.
    Nights without a price count as 0.
    """
    if rate_plan_id is None:
        return []

    by_unit = _dates_by_unit(selected)
    summaries = []
    for unit in units:
        dates = by_unit.get(unit.unit_id)
        if not dates:
            continue

        summary = BookingSummary(unit_id=unit.unit_id, unit_name=unit.name)
        for stay in find_consecutive_ranges(dates):
            total = 0.0
            day = stay.start
            while day < stay.departure:
                total += view.price(unit.unit_id, day, rate_plan_id) or 0.0
                day += timedelta(days=1)
            summary.ranges.append(stay)
            summary.price_by_range[stay] = total
        summaries.append(summary)

    return summaries


def is_valid_booking_selection(
    selected: Iterable[CellKey],
    view,
    rate_plan_id: Optional[int],
    active_units: Iterable[int] = ()
) -> bool:
    """
    A selection can be booked when, for each unit, its dates form a single
    run at least as long as every minimum stay inside it.
    """
    active = set(active_units)
    cells = [c for c in selected if not active or c.unit_id in active]
    if not cells:
        return False

    for unit_id, dates in _dates_by_unit(cells).items():
        ranges = find_consecutive_ranges(dates)
        if len(ranges) != 1:
            return False

        nights = ranges[0].nights
        for day in dates:
            min_stay = view.min_stay_for(unit_id, day, rate_plan_id)
            if min_stay and min_stay > 0 and nights < min_stay:
                return False

    return True
