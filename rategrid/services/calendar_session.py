"""
Calendar Session

Per unit-group orchestrator. Owns the loaded data, the selection, the edit
buffer, the drag selector, the selected rate plan, the visible window and
the open cell editor, and funnels every input event through them:

- Selection: pointer press/move/release, select-all, weekday selection,
  single cell and column toggles
- Editing: open an editor on a cell, type, commit (to the cell or to the
  whole selection) or cancel
- Window: set, pan, reset to today (the selection is pruned each time)
- Saving: encode the dirty keys, send them in chunks, clear dirty flags
  only for the chunks the service acknowledged
"""

import enum
import logging
import time
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Iterable, List, Optional

from ..config import settings
from ..errors import EditValidationError, InventoryServiceError, OperationCancelled
from ..models.keys import CellKey, RateKey
from ..models.supplier_data import (
    SupplierData,
    apply_saved_values,
    merge_supplier_data
)
from ..schemas.inventory import BulkUpdateRequest
from ..utils.cancellation import CancellationToken
from ..utils.events import (
    DATA_CHANGED,
    RATE_PLAN_CHANGED,
    SAVED,
    WINDOW_CHANGED,
    EventEmitter
)
from ..utils.logging_config import get_logger
from .availability_analyzer import arrival_allowed_summary
from .booking_summary import BookingSummary, build_booking_summaries, is_valid_booking_selection
from .bulk_diff_codec import BulkDiffCodec
from .derived_state import DerivedState
from .drag_selector import DragPhase, DragSelector, GridTarget, ReleaseKind
from .edit_buffer import DirtyKeys, EditBuffer, MergedView
from .selection_store import SelectionStore

logger = get_logger(__name__)


class EditorKind(str, enum.Enum):
    PRICE = "price"
    MIN_STAY = "min_stay"


@dataclass
class EditorState:
    """An open cell editor"""
    kind: EditorKind
    cell: CellKey
    apply_to_selection: bool = False
    text: str = ""


@dataclass
class SaveResult:
    group_id: int
    saved_keys: DirtyKeys = field(default_factory=DirtyKeys)
    failed_units: List[int] = field(default_factory=list)
    error: Optional[str] = None
    requests_sent: int = 0
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_price_text(text: str) -> float:
    """Parse an operator-typed price; a decimal comma is accepted."""
    cleaned = (text or "").strip().replace(",", ".")
    if not cleaned:
        raise EditValidationError("Price is required", field="price")
    try:
        return float(cleaned)
    except ValueError:
        raise EditValidationError(f"Invalid price: {text!r}", field="price")


def parse_min_stay_text(text: str) -> Optional[int]:
    """Parse an operator-typed minimum stay; empty text clears it."""
    cleaned = (text or "").strip()
    if not cleaned:
        return None
    if not cleaned.isdigit():
        raise EditValidationError(f"Invalid minimum stay: {text!r}", field="min_stay")
    return int(cleaned)


class CalendarSession:
    def __init__(
        self,
        group_id: int,
        data: Optional[SupplierData] = None,
        today: Optional[date] = None,
        window_days: Optional[int] = None,
        events: Optional[EventEmitter] = None,
        codec: Optional[BulkDiffCodec] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.group_id = group_id
        self.events = events or EventEmitter()
        self.data = data or SupplierData(group_id=group_id)
        self.selection = SelectionStore(self.events)
        self.edits = EditBuffer(self.events)
        self.codec = codec or BulkDiffCodec()
        self.editor: Optional[EditorState] = None

        self._today = today
        days = window_days or settings.default_window_days
        self.window_start = self.today
        self.window_end = self.today + timedelta(days=days - 1)

        plans = self.data.rate_plan_ids()
        self.selected_rate_plan_id: Optional[int] = plans[0] if plans else None

        self.derived = DerivedState(self, self.events)
        self.drag = DragSelector(
            self.selection,
            lambda: self.derived.eligibility,
            lambda: self.data.unit_ids,
            clock=clock
        )

    # ==================
    # Derived accessors
    # ==================

    @property
    def today(self) -> date:
        return self._today or date.today()

    @property
    def view(self) -> MergedView:
        return self.edits.view(self.data)

    @property
    def eligibility(self):
        return self.derived.eligibility

    def is_eligible(self, cell: CellKey) -> bool:
        return self.derived.eligibility.is_eligible(cell)

    def visible_unit_ids(self) -> List[int]:
        active = self.selection.active_units
        return [u for u in self.data.unit_ids if not active or u in active]

    def arrival_summary(self, day: date) -> bool:
        return arrival_allowed_summary(
            self.data, self.visible_unit_ids(), day, self.selected_rate_plan_id, view=self.view
        )

    # ==================
    # Selection
    # ==================

    def prune_selection(self) -> int:
        start, end = self.window_start, self.window_end
        return self.selection.prune_invalid(
            lambda c: start <= c.date <= end and self.is_eligible(c)
        )

    def select_all_in_range(self) -> int:
        return self.drag.select_visible_range(self.window_start, self.window_end)

    def select_weekdays(self, weekdays: Iterable[int]) -> int:
        return self.drag.select_visible_range(self.window_start, self.window_end, weekdays)

    def toggle_cell(self, cell: CellKey) -> bool:
        if not self.window_start <= cell.date <= self.window_end:
            return False
        if not self.is_eligible(cell):
            return False
        return self.selection.toggle(cell)

    def toggle_column(self, day: date) -> bool:
        return self.drag.toggle_column(day)

    def clear_selection(self) -> bool:
        return self.selection.clear()

    def set_active_units(self, unit_ids: Iterable[int]) -> bool:
        return self.selection.set_active_units(unit_ids)

    def press(self, target: GridTarget, x: float, y: float, modifier: bool = False) -> bool:
        return self.drag.press(target, x, y, modifier=modifier, editing=self.editor is not None)

    def move(self, x: float, y: float, target: Optional[GridTarget] = None) -> DragPhase:
        return self.drag.move(x, y, target)

    def release(
        self,
        x: float,
        y: float,
        target: Optional[GridTarget] = None,
        replace_modifier: bool = False
    ) -> ReleaseKind:
        return self.drag.release(x, y, target, replace_modifier)

    # ==================
    # Editing
    # ==================

    def _target_cells(self, cell: CellKey, apply_to_selection: bool) -> List[CellKey]:
        if not apply_to_selection:
            return [cell]
        cells = set(self.selection.visible_cells())
        cells.add(cell)
        return sorted(cells)

    def _has_price(self, cell: CellKey) -> bool:
        return self.view.price(cell.unit_id, cell.date, self.selected_rate_plan_id) is not None

    def _format(self, value) -> str:
        if value is None:
            return ""
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)

    def begin_price_edit(self, cell: CellKey, apply_to_selection: bool = False) -> bool:
        if self.selected_rate_plan_id is None or not self.is_eligible(cell):
            return False
        current = self.view.price(cell.unit_id, cell.date, self.selected_rate_plan_id)
        self.editor = EditorState(EditorKind.PRICE, cell, apply_to_selection, self._format(current))
        return True

    def begin_min_stay_edit(self, cell: CellKey, apply_to_selection: bool = False) -> bool:
        """Refused on cells without a price for the selected rate plan."""
        if self.selected_rate_plan_id is None or not self.is_eligible(cell):
            return False
        if not self._has_price(cell):
            return False
        current = self.view.min_stay_for(cell.unit_id, cell.date, self.selected_rate_plan_id)
        self.editor = EditorState(EditorKind.MIN_STAY, cell, apply_to_selection, self._format(current))
        return True

    def set_editor_text(self, text: str):
        if self.editor is not None:
            self.editor.text = text

    def cancel_edit(self):
        self.editor = None

    def commit_edit(self) -> List[RateKey]:
        """
        Parse the editor text and apply it. The editor closes either way;
        invalid text raises EditValidationError and nothing is written.
        """
        editor = self.editor
        if editor is None:
            return []
        self.editor = None

        if editor.kind == EditorKind.PRICE:
            return self.apply_price(parse_price_text(editor.text), editor.cell, editor.apply_to_selection)
        return self.apply_min_stay(parse_min_stay_text(editor.text), editor.cell, editor.apply_to_selection)

    def apply_price(self, value, cell: CellKey, apply_to_selection: bool = False) -> List[RateKey]:
        return self.edits.apply_price_edit(
            value,
            self._target_cells(cell, apply_to_selection),
            self.selected_rate_plan_id,
            self.data,
            eligible=self.is_eligible
        )

    def apply_min_stay(self, value, cell: CellKey, apply_to_selection: bool = False) -> List[RateKey]:
        """Cells without a price are skipped."""
        targets = [c for c in self._target_cells(cell, apply_to_selection) if self._has_price(c)]
        return self.edits.apply_min_stay_edit(
            value, targets, self.selected_rate_plan_id, self.data, eligible=self.is_eligible
        )

    def set_arrival_allowed(self, cell: CellKey, value: bool, apply_to_selection: bool = False) -> List[RateKey]:
        return self.edits.apply_arrival_allowed_edit(
            value,
            self._target_cells(cell, apply_to_selection),
            self.selected_rate_plan_id,
            self.data,
            eligible=self.is_eligible
        )

    # ==================
    # Window and rate plan
    # ==================

    def set_window(self, start: date, end: date):
        if end < start:
            raise ValueError("Window end must not be before its start")
        self.window_start, self.window_end = start, end
        self.events.emit(WINDOW_CHANGED, start=start, end=end)
        self.prune_selection()

    @property
    def window_days(self) -> int:
        return (self.window_end - self.window_start).days + 1

    def reset_start_to_today(self):
        """Move the window to start today, keeping its length."""
        self.set_window(self.today, self.today + timedelta(days=self.window_days - 1))

    def pan_window(self, days: int):
        delta = timedelta(days=days)
        self.set_window(self.window_start + delta, self.window_end + delta)

    def select_rate_plan(self, rate_plan_id: Optional[int]) -> bool:
        if rate_plan_id is not None and rate_plan_id not in self.data.rate_plan_ids():
            return False
        if rate_plan_id == self.selected_rate_plan_id:
            return False
        self.selected_rate_plan_id = rate_plan_id
        self.editor = None
        self.events.emit(RATE_PLAN_CHANGED, rate_plan_id=rate_plan_id)
        return True

    # ==================
    # Data
    # ==================

    def apply_loaded_data(self, fresh: SupplierData, keep_edits: bool = False):
        """
        Merge a fresh load. Staged edits are dropped unless keep_edits;
        the selected rate plan falls back to the first plan when it vanished.
        """
        self.data = merge_supplier_data(self.data, fresh)
        if not keep_edits:
            self.edits.reset()

        plans = self.data.rate_plan_ids()
        if self.selected_rate_plan_id not in plans:
            self.selected_rate_plan_id = plans[0] if plans else None

        self.events.emit(DATA_CHANGED, group_id=self.group_id)
        removed = self.prune_selection()
        logger.debug(f"Group {self.group_id}: loaded data, pruned {removed} cells")

    # ==================
    # Bookings
    # ==================

    def booking_summaries(self) -> List[BookingSummary]:
        return build_booking_summaries(
            self.selection, self.data.units, self.view, self.selected_rate_plan_id
        )

    def can_book_selection(self) -> bool:
        return is_valid_booking_selection(
            self.selection, self.view, self.selected_rate_plan_id, self.selection.active_units
        )

    async def delete_selected_booking(self, client, booking_id: int, token: Optional[CancellationToken] = None):
        booking = next((b for b in self.data.bookings if b.booking_id == booking_id), None)
        if booking is None:
            raise EditValidationError(f"Unknown booking {booking_id}", field="booking_id")

        await client.delete_local_booking(self.group_id, booking_id, token or CancellationToken())
        self.data.bookings = [b for b in self.data.bookings if b.booking_id != booking_id]
        self.events.emit(DATA_CHANGED, group_id=self.group_id)
        logger.info(f"Group {self.group_id}: deleted local booking {booking_id}")

    # ==================
    # Saving
    # ==================

    def build_bulk_request(self) -> BulkUpdateRequest:
        return self.codec.encode(self.edits.snapshot(), self.view, self.selected_rate_plan_id)

    def _fold_saved(self, request: BulkUpdateRequest):
        prices, min_stay, arrival = [], [], []
        for unit in request.units:
            for record in unit.dates:
                if record.rate_plan_id is None:
                    continue
                key = (unit.unit_id, record.date, record.rate_plan_id)
                if record.price is not None:
                    prices.append((key, record.price))
                min_stay.append((key, record.min_stay))
                if record.arrival_allowed is not None:
                    arrival.append((key, record.arrival_allowed))
        apply_saved_values(self.data, prices, min_stay, arrival)

    async def save(self, client, token: Optional[CancellationToken] = None) -> SaveResult:
        """
        Send the staged edits.

        Chunks are sent in order; a failed chunk keeps its dirty keys and
        the remaining chunks are still attempted. Cancelling the token stops
        before the next chunk and keeps the unsent keys dirty.
        """
        token = token or CancellationToken()
        result = SaveResult(group_id=self.group_id)
        dirty = self.edits.snapshot()
        if dirty.is_empty():
            return result

        start_time = time.monotonic()
        revision = self.edits.revision
        request = self.codec.encode(dirty, self.view, self.selected_rate_plan_id)
        saved = DirtyKeys()

        for chunk in self.codec.split(request, dirty):
            try:
                token.raise_if_cancelled()
                result.requests_sent += 1
                await client.bulk_update(self.group_id, chunk.request, token)
            except OperationCancelled:
                logger.debug(f"Save of group {self.group_id} cancelled before units {chunk.unit_ids}")
                result.cancelled = True
                break
            except InventoryServiceError as e:
                logger.warning(f"Group {self.group_id}: bulk update failed for units {chunk.unit_ids}: {e.message}")
                result.failed_units.extend(chunk.unit_ids)
                if result.error is None:
                    result.error = e.message
                continue

            self._fold_saved(chunk.request)
            saved = saved | self.edits.clear_dirty(chunk.keys, revision)

        result.saved_keys = saved
        if not saved.is_empty():
            logger.bulk_saved(
                self.group_id,
                units=len(saved.unit_ids()),
                dates=len(saved.cells()),
                duration_ms=(time.monotonic() - start_time) * 1000
            )
        self.events.emit(SAVED, result=result)
        return result
