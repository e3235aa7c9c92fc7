"""
Supplier Data Model

Normalized in-memory view of one unit group (supplier) as loaded from the
inventory service. All per-day values are keyed by composite tuples:

- stock:            (unit_id, date) -> int
- prices:           (unit_id, date, rate_plan_id) -> float
- min_stay:         (unit_id, date, rate_plan_id) -> Optional[int]
- arrival_allowed:  (unit_id, date, rate_plan_id) -> bool
- promotions:       (unit_id, date) -> bool
"""

import enum
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

CellTuple = Tuple[int, date]
RateTuple = Tuple[int, date, int]


class BookingStatus(str, enum.Enum):
    QUOTE = "Quote"
    CONFIRMED = "Confirmed"
    PAID = "Paid"
    CANCELLED = "Cancelled"
    PAST = "Past"


@dataclass(frozen=True)
class Unit:
    unit_id: int
    name: str


@dataclass(frozen=True)
class RatePlan:
    rate_plan_id: int
    label: Optional[str] = None
    description: Optional[str] = None
    order: Optional[int] = None


@dataclass(frozen=True)
class Booking:
    """A reservation occupying [arrival, departure) on one unit"""
    booking_id: int
    unit_id: int
    arrival: date
    departure: date
    reference: Optional[str] = None
    status: Optional[BookingStatus] = None
    platform: str = "Unknown"
    is_pending_sync: bool = False
    is_obsolete: bool = False

    @property
    def nights(self) -> int:
        return max(0, (self.departure - self.arrival).days)


@dataclass
class SupplierData:
    """Authoritative local copy of a unit group's calendar data"""
    group_id: int
    units: List[Unit] = field(default_factory=list)
    stock: Dict[CellTuple, int] = field(default_factory=dict)
    prices: Dict[RateTuple, float] = field(default_factory=dict)
    min_stay: Dict[RateTuple, Optional[int]] = field(default_factory=dict)
    arrival_allowed: Dict[RateTuple, bool] = field(default_factory=dict)
    promotions: Dict[CellTuple, bool] = field(default_factory=dict)
    rate_plans: List[RatePlan] = field(default_factory=list)
    rate_plan_labels: Dict[int, str] = field(default_factory=dict)
    rate_plan_links: Dict[int, List[int]] = field(default_factory=dict)
    bookings: List[Booking] = field(default_factory=list)

    # ==================
    # Accessors (defaults applied here)
    # ==================

    @property
    def unit_ids(self) -> List[int]:
        return [u.unit_id for u in self.units]

    def stock_on(self, unit_id: int, day: date) -> int:
        return self.stock.get((unit_id, day), 0)

    def price(self, unit_id: int, day: date, rate_plan_id: Optional[int]) -> Optional[float]:
        if rate_plan_id is None:
            return None
        return self.prices.get((unit_id, day, rate_plan_id))

    def min_stay_for(self, unit_id: int, day: date, rate_plan_id: Optional[int]) -> Optional[int]:
        if rate_plan_id is None:
            return None
        return self.min_stay.get((unit_id, day, rate_plan_id))

    def arrival_allowed_for(self, unit_id: int, day: date, rate_plan_id: Optional[int]) -> bool:
        """Absent values mean arrival is allowed."""
        if rate_plan_id is None:
            return True
        return self.arrival_allowed.get((unit_id, day, rate_plan_id), True)

    def linked_rate_plans(self, unit_id: int) -> List[int]:
        return list(self.rate_plan_links.get(unit_id, []))

    def has_rate_plan(self, unit_id: int) -> bool:
        return bool(self.rate_plan_links.get(unit_id))

    def units_with_rate_plans(self) -> set:
        return {unit_id for unit_id, plans in self.rate_plan_links.items() if plans}

    def priced_plans_on(self, unit_id: int, day: date) -> List[int]:
        """Rate plans with a price on this date, in plan list order then id order."""
        plans = {plan for (u, d, plan) in self.prices if u == unit_id and d == day}
        position = {p.rate_plan_id: i for i, p in enumerate(self.rate_plans)}
        return sorted(plans, key=lambda p: (position.get(p, len(position)), p))

    def stock_by_date(self, unit_id: int) -> Dict[date, int]:
        return {d: v for (u, d), v in self.stock.items() if u == unit_id}

    def prices_by_date(self, unit_id: int, rate_plan_id: Optional[int]) -> Dict[date, float]:
        if rate_plan_id is None:
            return {}
        return {
            d: v for (u, d, plan), v in self.prices.items()
            if u == unit_id and plan == rate_plan_id
        }

    def min_stay_by_date(self, unit_id: int, rate_plan_id: Optional[int]) -> Dict[date, Optional[int]]:
        if rate_plan_id is None:
            return {}
        return {
            d: v for (u, d, plan), v in self.min_stay.items()
            if u == unit_id and plan == rate_plan_id
        }

    def rate_plan_ids(self) -> List[int]:
        return [p.rate_plan_id for p in self.rate_plans]

    def unit_name(self, unit_id: int) -> str:
        for unit in self.units:
            if unit.unit_id == unit_id:
                return unit.name
        return str(unit_id)


def _overlay(existing: Dict, fresh: Dict) -> Dict:
    merged = dict(existing)
    merged.update(fresh)
    return merged


def merge_supplier_data(existing: Optional[SupplierData], fresh: SupplierData) -> SupplierData:
    """
    Merge a fresh load into the existing copy.

    Per-day maps are overlaid so dates outside the freshly loaded window
    survive; bookings, units and rate plan metadata are replaced since they
    can change anywhere.
    """
    if existing is None or existing.group_id != fresh.group_id:
        return replace(fresh)

    return SupplierData(
        group_id=fresh.group_id,
        units=list(fresh.units),
        stock=_overlay(existing.stock, fresh.stock),
        prices=_overlay(existing.prices, fresh.prices),
        min_stay=_overlay(existing.min_stay, fresh.min_stay),
        arrival_allowed=_overlay(existing.arrival_allowed, fresh.arrival_allowed),
        promotions=_overlay(existing.promotions, fresh.promotions),
        rate_plans=list(fresh.rate_plans),
        rate_plan_labels=dict(fresh.rate_plan_labels),
        rate_plan_links={k: list(v) for k, v in fresh.rate_plan_links.items()},
        bookings=list(fresh.bookings),
    )


def apply_saved_values(
    data: SupplierData,
    prices: Iterable[Tuple[RateTuple, float]] = (),
    min_stay: Iterable[Tuple[RateTuple, Optional[int]]] = (),
    arrival_allowed: Iterable[Tuple[RateTuple, bool]] = ()
) -> SupplierData:
    """Fold values confirmed by a successful save into the authoritative copy."""
    data.prices.update(dict(prices))
    data.min_stay.update(dict(min_stay))
    data.arrival_allowed.update(dict(arrival_allowed))
    return data
