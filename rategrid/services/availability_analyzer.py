"""
Date Availability Analyzer

Derives, per unit:
- Availability ranges: maximal runs of consecutive days with stock >= 1
- Non-reservable days: days with exactly one unit in stock that still cannot
  be booked (missing price, or a minimum stay longer than the run)

Pure functions, recomputed whenever stock, rates, min-stay or the visible
window change. Malformed values count as "no data for that day".
"""

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from ..models.supplier_data import SupplierData
from ..utils.dates import days_in_range


@dataclass(frozen=True)
class AvailabilityRange:
    """Consecutive days with stock, end inclusive"""
    start: date
    end: date
    length: int

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    return None


def _as_price(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and math.isfinite(value):
        return float(value)
    return None


def _stock(stock_by_date: Mapping[date, Any], day: date) -> int:
    return _as_int(stock_by_date.get(day)) or 0


def compute_ranges(
    stock_by_date: Mapping[date, Any],
    start: date,
    end: date
) -> List[AvailabilityRange]:
    """
    Scan the window day by day and collect availability ranges.

    The day before the window counts as stock 0, so a run touching the
    window start begins at the window start.
    """
    ranges: List[AvailabilityRange] = []
    all_days = days_in_range(start, end)
    if not all_days:
        return ranges

    range_start: Optional[date] = None

    for day in all_days:
        stock = _stock(stock_by_date, day)

        if stock >= 1:
            if range_start is None:
                range_start = day
        elif range_start is not None:
            range_end = day - timedelta(days=1)
            ranges.append(AvailabilityRange(
                start=range_start,
                end=range_end,
                length=(range_end - range_start).days + 1
            ))
            range_start = None

    if range_start is not None:
        ranges.append(AvailabilityRange(
            start=range_start,
            end=all_days[-1],
            length=(all_days[-1] - range_start).days + 1
        ))

    return ranges


def compute_non_reservable_days(
    stock_by_date: Mapping[date, Any],
    min_stay_by_date: Mapping[date, Any],
    price_by_date: Optional[Mapping[date, Any]],
    start: date,
    end: date,
    rate_plan_selected: bool = True
) -> Set[date]:
    """
    Days with stock == 1 that cannot be booked for the selected rate plan.

    A day is flagged when:
    - no price is defined for it, or
    - a min-stay > 0 is defined and exceeds the length of its range.

    When no rate plan is selected the price rule is skipped.
    """
    non_reservable: Set[date] = set()

    range_by_date: Dict[date, AvailabilityRange] = {}
    for availability_range in compute_ranges(stock_by_date, start, end):
        for day in days_in_range(availability_range.start, availability_range.end):
            range_by_date[day] = availability_range

    for day in days_in_range(start, end):
        if _stock(stock_by_date, day) != 1:
            continue

        if rate_plan_selected and price_by_date is not None:
            if _as_price(price_by_date.get(day)) is None:
                non_reservable.add(day)
                continue

        containing = range_by_date.get(day)
        if containing is None:
            continue

        min_stay = _as_int(min_stay_by_date.get(day))
        if min_stay is None or min_stay <= 0:
            continue

        if min_stay > containing.length:
            non_reservable.add(day)

    return non_reservable


# ==================
# Per-unit helpers over SupplierData
# ==================

def ranges_by_unit(
    data: SupplierData,
    unit_ids: Iterable[int],
    start: date,
    end: date
) -> Dict[int, List[AvailabilityRange]]:
    return {
        unit_id: compute_ranges(data.stock_by_date(unit_id), start, end)
        for unit_id in unit_ids
    }


def non_reservable_by_unit(
    data: SupplierData,
    unit_ids: Iterable[int],
    rate_plan_id: Optional[int],
    start: date,
    end: date,
    view=None
) -> Dict[int, Set[date]]:
    """
    Non-reservable days per unit.

    view (a MergedView) lets staged edits count before they are saved.
    """
    source = view or data
    result: Dict[int, Set[date]] = {}
    for unit_id in unit_ids:
        result[unit_id] = compute_non_reservable_days(
            data.stock_by_date(unit_id),
            source.min_stay_by_date(unit_id, rate_plan_id),
            source.prices_by_date(unit_id, rate_plan_id),
            start,
            end,
            rate_plan_selected=rate_plan_id is not None
        )
    return result


def arrival_allowed_summary(
    data: SupplierData,
    unit_ids: Iterable[int],
    day: date,
    rate_plan_id: Optional[int],
    view=None
) -> bool:
    """
    Column summary of arrival-allowed for one date.

    When every unit has stock 0 the summary is "disallowed" whatever the
    per-plan values say. Otherwise arrival is allowed if any unit with
    stock allows it, absent per-plan values meaning allowed.
    """
    source = view or data
    units = list(unit_ids)
    stocked = [u for u in units if data.stock_on(u, day) > 0]
    if not stocked:
        return False
    return any(source.arrival_allowed_for(u, day, rate_plan_id) for u in stocked)
