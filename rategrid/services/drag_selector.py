"""
Drag Selector

Pointer state machine turning press / move / release sequences into
SelectionStore mutations:

    Idle --press--> ArmedAt --move > threshold--> Dragging
      ^                |                              |
      +----release-----+-------------release----------+

- Release before the threshold is a click: toggle one cell, or a whole
  column when released on a date header.
- Release while dragging selects the date span between origin and
  current date across every eligible unit (union, or replace with the
  modifier held).
- Every release arms a short window during which the synthetic click
  emitted by the pointer system is suppressed.

Hit testing (which date/unit lies under the pointer) belongs to the caller;
targets arrive already resolved as GridTarget values.
"""

import enum
import logging
import math
import time
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, List, Optional

from ..config import settings
from ..models.keys import CellKey
from ..utils.dates import date_span, days_in_range, filter_weekdays
from .eligibility import CellEligibility
from .selection_store import SelectionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GridTarget:
    """A resolved pointer target: a unit cell, or a date header when unit_id is None"""
    date: date
    unit_id: Optional[int] = None

    @property
    def is_header(self) -> bool:
        return self.unit_id is None

    @property
    def cell(self) -> Optional[CellKey]:
        if self.unit_id is None:
            return None
        return CellKey(self.unit_id, self.date)


class DragPhase(str, enum.Enum):
    IDLE = "idle"
    ARMED = "armed"
    DRAGGING = "dragging"


class ReleaseKind(str, enum.Enum):
    CELL_TOGGLE = "cell_toggle"
    COLUMN_TOGGLE = "column_toggle"
    RANGE = "range"
    IGNORED = "ignored"


@dataclass
class DragSession:
    """State carried from press to release"""
    origin: GridTarget
    current_date: date
    origin_x: float
    origin_y: float
    dragging: bool = False

    def distance_to(self, x: float, y: float) -> float:
        return math.hypot(x - self.origin_x, y - self.origin_y)


class DragSelector:
    def __init__(
        self,
        selection: SelectionStore,
        eligibility: Callable[[], CellEligibility],
        unit_ids: Callable[[], Iterable[int]],
        threshold_px: Optional[float] = None,
        suppress_ms: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.selection = selection
        self._eligibility = eligibility
        self._unit_ids = unit_ids
        self.threshold_px = settings.drag_threshold_px if threshold_px is None else threshold_px
        self.suppress_ms = settings.drag_click_suppress_ms if suppress_ms is None else suppress_ms
        self._clock = clock
        self._session: Optional[DragSession] = None
        self._suppress_until = 0.0

    # ==================
    # State
    # ==================

    @property
    def phase(self) -> DragPhase:
        if self._session is None:
            return DragPhase.IDLE
        return DragPhase.DRAGGING if self._session.dragging else DragPhase.ARMED

    @property
    def session(self) -> Optional[DragSession]:
        return self._session

    @property
    def is_listening(self) -> bool:
        """Global move/release listeners are attached only while a session is live."""
        return self._session is not None

    def should_suppress_click(self) -> bool:
        """True for a short while after a release."""
        return self._clock() < self._suppress_until

    def reset(self):
        self._session = None

    # ==================
    # Eligible cells
    # ==================

    def _filtered_units(self) -> List[int]:
        active = self.selection.active_units
        return [u for u in self._unit_ids() if not active or u in active]

    def eligible_cells(self, days: Iterable[date]) -> List[CellKey]:
        """Eligible cells for the given days across the filtered units."""
        eligibility = self._eligibility()
        units = self._filtered_units()
        cells = []
        for day in days:
            if eligibility.is_past(day):
                continue
            for unit_id in units:
                cell = CellKey(unit_id, day)
                if eligibility.is_eligible(cell):
                    cells.append(cell)
        return cells

    def preview_cells(self) -> List[CellKey]:
        """Cells the current drag would select (temporary highlight)."""
        if self._session is None or not self._session.dragging:
            return []
        return self.eligible_cells(date_span(self._session.origin.date, self._session.current_date))

    # ==================
    # Pointer events
    # ==================

    def press(
        self,
        target: GridTarget,
        x: float,
        y: float,
        modifier: bool = False,
        editing: bool = False,
        button: int = 0
    ) -> bool:
        """
        Arm a session. Returns False when the press is ignored.

        Ignored with ctrl/cmd held (that gesture opens the selection editor),
        while a cell editor is open, and on ineligible targets.
        """
        if editing or button != 0 or modifier:
            return False

        eligibility = self._eligibility()
        if eligibility.is_past(target.date):
            return False
        if target.cell is not None and not eligibility.is_eligible(target.cell):
            return False

        self._session = DragSession(
            origin=target,
            current_date=target.date,
            origin_x=x,
            origin_y=y
        )
        return True

    def move(self, x: float, y: float, target: Optional[GridTarget] = None) -> DragPhase:
        session = self._session
        if session is None:
            return DragPhase.IDLE

        if not session.dragging and session.distance_to(x, y) > self.threshold_px:
            session.dragging = True

        if session.dragging and target is not None and target.date != session.current_date:
            session.current_date = target.date

        return self.phase

    def release(
        self,
        x: float,
        y: float,
        target: Optional[GridTarget] = None,
        replace_modifier: bool = False
    ) -> ReleaseKind:
        session = self._session
        if session is None:
            return ReleaseKind.IGNORED

        self._session = None
        self._suppress_until = self._clock() + self.suppress_ms / 1000.0

        if not session.dragging or session.distance_to(x, y) < self.threshold_px:
            return self._click(session, target or session.origin)

        if target is not None:
            session.current_date = target.date

        cells = self.eligible_cells(date_span(session.origin.date, session.current_date))
        if replace_modifier:
            self.selection.set_all(cells)
        else:
            self.selection.add_all(cells)

        logger.debug(
            f"Drag selected {len(cells)} cells "
            f"({session.origin.date} -> {session.current_date}, replace={replace_modifier})"
        )
        return ReleaseKind.RANGE

    def _click(self, session: DragSession, target: GridTarget) -> ReleaseKind:
        day = session.origin.date

        if target.unit_id is not None:
            cell = CellKey(target.unit_id, day)
            if self._eligibility().is_eligible(cell):
                self.selection.toggle(cell)
            return ReleaseKind.CELL_TOGGLE

        self.toggle_column(day)
        return ReleaseKind.COLUMN_TOGGLE

    # ==================
    # Column and keyboard selection
    # ==================

    def toggle_column(self, day: date) -> bool:
        """
        Deselect the column when every eligible cell is selected,
        otherwise select the missing ones. Ineligible cells are untouched.
        """
        cells = self.eligible_cells([day])
        if not cells:
            return False
        if all(c in self.selection for c in cells):
            return self.selection.remove_all(cells)
        return self.selection.add_all(cells)

    def select_visible_range(
        self,
        start: date,
        end: date,
        weekdays: Optional[Iterable[int]] = None
    ) -> int:
        """
        Replace the selection with every eligible cell of the window,
        optionally restricted to weekdays (Monday=0).
        """
        days = filter_weekdays(days_in_range(start, end), weekdays)
        cells = self.eligible_cells(days)
        self.selection.set_all(cells)
        return len(cells)
