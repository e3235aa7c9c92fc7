"""
EditBuffer

Staged, not yet persisted edits of one unit group:
- Overrides per (unit, date, rate plan) for price, min-stay and arrival-allowed
- Dirty keys: price edits by RateKey, min-stay and arrival edits by CellKey

Reads go through MergedView, which lets an override win over the loaded
SupplierData field by field. Every write is validated before anything is
mutated; ineligible cells are skipped.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Set

from ..errors import EditValidationError
from ..models.keys import CellKey, RateKey
from ..models.supplier_data import SupplierData
from ..utils.events import EventEmitter, EDITS_CHANGED

logger = logging.getLogger(__name__)

Eligible = Callable[[CellKey], bool]


@dataclass
class EditRecord:
    """Pending override of one rate-plan scoped cell"""
    price: Optional[float] = None
    min_stay: Optional[int] = None
    arrival_allowed: Optional[bool] = None
    price_modified: bool = False
    min_stay_modified: bool = False
    arrival_modified: bool = False


@dataclass(frozen=True)
class DirtyKeys:
    """Keys edited locally and not yet acknowledged by the inventory service"""
    prices: FrozenSet[RateKey] = frozenset()
    min_stay: FrozenSet[CellKey] = frozenset()
    arrival: FrozenSet[CellKey] = frozenset()

    def is_empty(self) -> bool:
        return not (self.prices or self.min_stay or self.arrival)

    def cells(self) -> Set[CellKey]:
        """Every cell with at least one dirty field."""
        return {k.cell for k in self.prices} | set(self.min_stay) | set(self.arrival)

    def unit_ids(self) -> List[int]:
        return sorted({c.unit_id for c in self.cells()})

    def restricted_to_units(self, unit_ids: Iterable[int]) -> "DirtyKeys":
        units = set(unit_ids)
        return DirtyKeys(
            prices=frozenset(k for k in self.prices if k.unit_id in units),
            min_stay=frozenset(k for k in self.min_stay if k.unit_id in units),
            arrival=frozenset(k for k in self.arrival if k.unit_id in units)
        )

    def __or__(self, other: "DirtyKeys") -> "DirtyKeys":
        return DirtyKeys(
            prices=self.prices | other.prices,
            min_stay=self.min_stay | other.min_stay,
            arrival=self.arrival | other.arrival
        )


class MergedView:
    """
    Read-through view: override values win over the loaded data for price,
    min-stay and arrival-allowed. Everything else comes from the data.
    """

    def __init__(self, data: SupplierData, overrides: Dict[RateKey, EditRecord]):
        self.data = data
        self._overrides = overrides

    def _record(self, unit_id: int, day: date, rate_plan_id: Optional[int]) -> Optional[EditRecord]:
        if rate_plan_id is None:
            return None
        return self._overrides.get(RateKey(unit_id, day, rate_plan_id))

    def stock_on(self, unit_id: int, day: date) -> int:
        return self.data.stock_on(unit_id, day)

    def price(self, unit_id: int, day: date, rate_plan_id: Optional[int]) -> Optional[float]:
        record = self._record(unit_id, day, rate_plan_id)
        if record is not None and record.price_modified:
            return record.price
        return self.data.price(unit_id, day, rate_plan_id)

    def min_stay_for(self, unit_id: int, day: date, rate_plan_id: Optional[int]) -> Optional[int]:
        record = self._record(unit_id, day, rate_plan_id)
        if record is not None and record.min_stay_modified:
            return record.min_stay
        return self.data.min_stay_for(unit_id, day, rate_plan_id)

    def arrival_allowed_for(self, unit_id: int, day: date, rate_plan_id: Optional[int]) -> bool:
        record = self._record(unit_id, day, rate_plan_id)
        if record is not None and record.arrival_modified:
            return bool(record.arrival_allowed)
        return self.data.arrival_allowed_for(unit_id, day, rate_plan_id)

    def prices_by_date(self, unit_id: int, rate_plan_id: Optional[int]) -> Dict[date, float]:
        merged = self.data.prices_by_date(unit_id, rate_plan_id)
        for key, record in self._overrides.items():
            if key.unit_id == unit_id and key.rate_plan_id == rate_plan_id and record.price_modified:
                merged[key.date] = record.price
        return merged

    def min_stay_by_date(self, unit_id: int, rate_plan_id: Optional[int]) -> Dict[date, Optional[int]]:
        merged = self.data.min_stay_by_date(unit_id, rate_plan_id)
        for key, record in self._overrides.items():
            if key.unit_id == unit_id and key.rate_plan_id == rate_plan_id and record.min_stay_modified:
                merged[key.date] = record.min_stay
        return merged

    def priced_plans_on(self, unit_id: int, day: date) -> List[int]:
        plans = list(self.data.priced_plans_on(unit_id, day))
        for key, record in self._overrides.items():
            if key.unit_id == unit_id and key.date == day and record.price_modified:
                if key.rate_plan_id not in plans:
                    plans.append(key.rate_plan_id)
        return plans

    def edited_plans_on(self, cell: CellKey, min_stay: bool = True, arrival: bool = True) -> List[int]:
        """Plans carrying a min-stay or arrival-allowed override for the cell."""
        plans = set()
        for key, record in self._overrides.items():
            if key.cell != cell:
                continue
            if (min_stay and record.min_stay_modified) or (arrival and record.arrival_modified):
                plans.add(key.rate_plan_id)
        return sorted(plans)


# ==================
# Validation
# ==================

def validate_price(value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise EditValidationError("Price must be a number", field="price")
    if not math.isfinite(value) or value < 0:
        raise EditValidationError("Price must be a finite number >= 0", field="price")
    return float(value)


def validate_min_stay(value) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise EditValidationError("Minimum stay must be a whole number", field="min_stay")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        raise EditValidationError("Minimum stay must be a whole number", field="min_stay")
    if value < 1:
        raise EditValidationError("Minimum stay must be at least 1", field="min_stay")
    return value


def validate_arrival_allowed(value) -> bool:
    if not isinstance(value, bool):
        raise EditValidationError("Arrival allowed must be true or false", field="arrival_allowed")
    return value


class EditBuffer:
    def __init__(self, events: Optional[EventEmitter] = None):
        self._overrides: Dict[RateKey, EditRecord] = {}
        self._dirty_prices: Set[RateKey] = set()
        self._dirty_min_stay: Set[CellKey] = set()
        self._dirty_arrival: Set[CellKey] = set()
        self._revision = 0
        self._price_revisions: Dict[RateKey, int] = {}
        self._min_stay_revisions: Dict[CellKey, int] = {}
        self._arrival_revisions: Dict[CellKey, int] = {}
        self.events = events or EventEmitter()

    # ==================
    # Reads
    # ==================

    @property
    def overrides(self) -> Dict[RateKey, EditRecord]:
        return dict(self._overrides)

    def view(self, data: SupplierData) -> MergedView:
        return MergedView(data, self._overrides)

    def snapshot(self) -> DirtyKeys:
        return DirtyKeys(
            prices=frozenset(self._dirty_prices),
            min_stay=frozenset(self._dirty_min_stay),
            arrival=frozenset(self._dirty_arrival)
        )

    def has_changes(self) -> bool:
        return bool(self._dirty_prices or self._dirty_min_stay or self._dirty_arrival)

    def record(self, key: RateKey) -> Optional[EditRecord]:
        return self._overrides.get(key)

    @property
    def revision(self) -> int:
        """Counter bumped by every write; pass it to clear_dirty to keep later edits dirty."""
        return self._revision

    # ==================
    # Writes
    # ==================

    def _targets(self, target_cells: Iterable[CellKey], eligible: Optional[Eligible]) -> List[CellKey]:
        cells = sorted(set(target_cells))
        if eligible is None:
            return cells
        skipped = [c for c in cells if not eligible(c)]
        if skipped:
            logger.debug(f"Skipping {len(skipped)} ineligible cells")
        return [c for c in cells if eligible(c)]

    def _record_for(self, key: RateKey) -> EditRecord:
        if key not in self._overrides:
            self._overrides[key] = EditRecord()
        return self._overrides[key]

    def _changed(self, written: List[RateKey]) -> List[RateKey]:
        if written:
            self.events.emit(EDITS_CHANGED, dirty=self.snapshot())
        return written

    def apply_price_edit(
        self,
        value,
        target_cells: Iterable[CellKey],
        rate_plan_id: Optional[int],
        data: SupplierData,
        eligible: Optional[Eligible] = None
    ) -> List[RateKey]:
        """
        Write a price to every target cell for the rate plan.

        A written cell whose effective min-stay is missing or 0 gets an
        explicit min-stay of 1.
        """
        price = validate_price(value)
        if rate_plan_id is None:
            return []

        view = self.view(data)
        written = []
        self._revision += 1
        for cell in self._targets(target_cells, eligible):
            key = cell.with_plan(rate_plan_id)
            record = self._record_for(key)
            record.price = price
            record.price_modified = True
            self._dirty_prices.add(key)
            self._price_revisions[key] = self._revision

            if not view.min_stay_for(cell.unit_id, cell.date, rate_plan_id):
                record.min_stay = 1
                record.min_stay_modified = True
                self._dirty_min_stay.add(cell)
                self._min_stay_revisions[cell] = self._revision

            written.append(key)

        return self._changed(written)

    def apply_min_stay_edit(
        self,
        value,
        target_cells: Iterable[CellKey],
        rate_plan_id: Optional[int],
        data: SupplierData,
        eligible: Optional[Eligible] = None
    ) -> List[RateKey]:
        """Write (or clear, with None) the minimum stay of every target cell."""
        min_stay = validate_min_stay(value)
        if rate_plan_id is None:
            return []

        written = []
        self._revision += 1
        for cell in self._targets(target_cells, eligible):
            key = cell.with_plan(rate_plan_id)
            record = self._record_for(key)
            record.min_stay = min_stay
            record.min_stay_modified = True
            self._dirty_min_stay.add(cell)
            self._min_stay_revisions[cell] = self._revision
            written.append(key)

        return self._changed(written)

    def apply_arrival_allowed_edit(
        self,
        value,
        target_cells: Iterable[CellKey],
        rate_plan_id: Optional[int],
        data: SupplierData,
        eligible: Optional[Eligible] = None
    ) -> List[RateKey]:
        allowed = validate_arrival_allowed(value)
        if rate_plan_id is None:
            return []

        written = []
        self._revision += 1
        for cell in self._targets(target_cells, eligible):
            key = cell.with_plan(rate_plan_id)
            record = self._record_for(key)
            record.arrival_allowed = allowed
            record.arrival_modified = True
            self._dirty_arrival.add(cell)
            self._arrival_revisions[cell] = self._revision
            written.append(key)

        return self._changed(written)

    # ==================
    # Lifecycle
    # ==================

    def clear_dirty(self, keys: DirtyKeys, revision: Optional[int] = None) -> DirtyKeys:
        """
        Forget the dirty flags of keys acknowledged by the service.
        Override values stay so the view keeps showing the saved values.

        With a revision, keys written again after it stay dirty. Returns
        the keys that were cleared.
        """
        if revision is not None:
            keys = DirtyKeys(
                prices=frozenset(k for k in keys.prices if self._price_revisions.get(k, 0) <= revision),
                min_stay=frozenset(k for k in keys.min_stay if self._min_stay_revisions.get(k, 0) <= revision),
                arrival=frozenset(k for k in keys.arrival if self._arrival_revisions.get(k, 0) <= revision)
            )
        self._dirty_prices -= keys.prices
        self._dirty_min_stay -= keys.min_stay
        self._dirty_arrival -= keys.arrival
        self.events.emit(EDITS_CHANGED, dirty=self.snapshot())
        return keys

    def reset(self):
        self._overrides.clear()
        self._dirty_prices.clear()
        self._dirty_min_stay.clear()
        self._dirty_arrival.clear()
        self._price_revisions.clear()
        self._min_stay_revisions.clear()
        self._arrival_revisions.clear()
        self.events.emit(EDITS_CHANGED, dirty=self.snapshot())
