"""
Derived calendar state

Caches the outputs of the pure computations (occupancy, eligibility,
availability ranges, non-reservable days) and recomputes them when the
session announces a change of data, window, rate plan or staged edits.
Consumers read the cached values.
"""

import logging
from datetime import date
from typing import Callable, Dict, List, Optional, Set

from ..utils.events import (
    DATA_CHANGED,
    EDITS_CHANGED,
    RATE_PLAN_CHANGED,
    WINDOW_CHANGED,
    EventEmitter
)
from .availability_analyzer import AvailabilityRange, non_reservable_by_unit, ranges_by_unit
from .eligibility import CellEligibility
from .occupancy_index import OccupancyIndex

logger = logging.getLogger(__name__)


class DerivedState:
    """
    Observer of a CalendarSession.

    Occupancy and eligibility follow the data; ranges follow data and
    window; non-reservable days also follow the rate plan and staged edits.
    """

    def __init__(self, session, events: EventEmitter):
        self.session = session
        self.occupancy = OccupancyIndex()
        self.eligibility = CellEligibility(self.occupancy, (), session.today)
        self.ranges: Dict[int, List[AvailabilityRange]] = {}
        self.non_reservable: Dict[int, Set[date]] = {}
        self.recompute_count = 0

        self._unsubscribers: List[Callable[[], None]] = [
            events.subscribe(DATA_CHANGED, self._on_data_changed),
            events.subscribe(WINDOW_CHANGED, self._on_window_changed),
            events.subscribe(RATE_PLAN_CHANGED, self._on_plan_or_edits_changed),
            events.subscribe(EDITS_CHANGED, self._on_plan_or_edits_changed),
        ]
        self.recompute()

    def _on_data_changed(self, **_):
        self.recompute()

    def _on_window_changed(self, **_):
        self._recompute_eligibility()
        self._recompute_availability()

    def _on_plan_or_edits_changed(self, **_):
        self._recompute_non_reservable()

    def _recompute_eligibility(self):
        data = self.session.data
        self.eligibility = CellEligibility(self.occupancy, data.units_with_rate_plans(), self.session.today)

    def _recompute_availability(self):
        session = self.session
        unit_ids = session.data.unit_ids
        self.ranges = ranges_by_unit(session.data, unit_ids, session.window_start, session.window_end)
        self._recompute_non_reservable()

    def _recompute_non_reservable(self):
        session = self.session
        self.non_reservable = non_reservable_by_unit(
            session.data,
            session.data.unit_ids,
            session.selected_rate_plan_id,
            session.window_start,
            session.window_end,
            view=session.view
        )
        self.recompute_count += 1

    def recompute(self):
        self.occupancy = OccupancyIndex(self.session.data.bookings)
        self._recompute_eligibility()
        self._recompute_availability()

    def is_non_reservable(self, unit_id: int, day: date) -> bool:
        return day in self.non_reservable.get(unit_id, ())

    def range_containing(self, unit_id: int, day: date) -> Optional[AvailabilityRange]:
        for availability_range in self.ranges.get(unit_id, []):
            if availability_range.contains(day):
                return availability_range
        return None

    def close(self):
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
