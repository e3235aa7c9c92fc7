"""
Cell eligibility shared by every selection and edit path.

A cell is excluded when:
- its date is in the past
- a booking occupies that (unit, date)
- its unit has no linked rate plan
"""

from datetime import date
from typing import Iterable, Optional

from ..models.keys import CellKey
from ..models.supplier_data import SupplierData
from .occupancy_index import OccupancyIndex


class CellEligibility:
    def __init__(
        self,
        occupancy: OccupancyIndex,
        units_with_rate_plans: Iterable[int],
        today: Optional[date] = None
    ):
        self.occupancy = occupancy
        self.units_with_rate_plans = set(units_with_rate_plans)
        self.today = today or date.today()

    @classmethod
    def from_data(cls, data: SupplierData, today: Optional[date] = None) -> "CellEligibility":
        return cls(OccupancyIndex(data.bookings), data.units_with_rate_plans(), today)

    def is_past(self, day: date) -> bool:
        return day < self.today

    def unit_has_rate_plan(self, unit_id: int) -> bool:
        return unit_id in self.units_with_rate_plans

    def is_eligible(self, cell: CellKey) -> bool:
        if self.is_past(cell.date):
            return False
        if not self.unit_has_rate_plan(cell.unit_id):
            return False
        return not self.occupancy.is_occupied(cell.unit_id, cell.date)

    __call__ = is_eligible
