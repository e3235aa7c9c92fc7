"""
Selection Store

Holds the selected (unit, date) cells and the active-unit filter of one
unit group. Knows nothing about input devices.

Invariant: every selected cell's unit is in active_units, or active_units
is empty (no filter).
"""

import logging
from typing import Callable, FrozenSet, Iterable, Optional, Set

from ..models.keys import CellKey
from ..utils.events import EventEmitter, SELECTION_CHANGED

logger = logging.getLogger(__name__)


class SelectionStore:
    def __init__(self, events: Optional[EventEmitter] = None):
        self._cells: Set[CellKey] = set()
        self._active_units: Set[int] = set()
        self.events = events or EventEmitter()

    @property
    def selected_cells(self) -> FrozenSet[CellKey]:
        return frozenset(self._cells)

    @property
    def active_units(self) -> FrozenSet[int]:
        return frozenset(self._active_units)

    def __contains__(self, cell: CellKey) -> bool:
        return cell in self._cells

    def __len__(self) -> int:
        return len(self._cells)

    def __iter__(self):
        return iter(sorted(self._cells))

    def _in_filter(self, cell: CellKey) -> bool:
        return not self._active_units or cell.unit_id in self._active_units

    def _commit(self, new_cells: Set[CellKey]) -> bool:
        if new_cells == self._cells:
            return False
        self._cells = new_cells
        self.events.emit(SELECTION_CHANGED, cells=self.selected_cells)
        return True

    # ==================
    # Mutations
    # ==================

    def toggle(self, cell: CellKey) -> bool:
        """Flip one cell. Cells outside the unit filter are ignored."""
        if not self._in_filter(cell):
            return False
        new_cells = set(self._cells)
        if cell in new_cells:
            new_cells.discard(cell)
        else:
            new_cells.add(cell)
        return self._commit(new_cells)

    def set_all(self, cells: Iterable[CellKey]) -> bool:
        """Replace the selection."""
        return self._commit({c for c in cells if self._in_filter(c)})

    def add_all(self, cells: Iterable[CellKey]) -> bool:
        """Union into the selection."""
        return self._commit(self._cells | {c for c in cells if self._in_filter(c)})

    def remove_all(self, cells: Iterable[CellKey]) -> bool:
        return self._commit(self._cells - set(cells))

    def clear(self) -> bool:
        return self._commit(set())

    def prune_invalid(self, predicate: Callable[[CellKey], bool]) -> int:
        """
        Drop cells failing the predicate or the unit filter.
        Returns the number of cells removed.
        """
        kept = {c for c in self._cells if self._in_filter(c) and predicate(c)}
        removed = len(self._cells) - len(kept)
        if removed:
            logger.debug(f"Pruned {removed} stale cells from selection")
        self._commit(kept)
        return removed

    def set_active_units(self, unit_ids: Iterable[int]) -> bool:
        """Change the unit filter; cells outside the new filter are dropped."""
        self._active_units = set(unit_ids)
        return self._commit({c for c in self._cells if self._in_filter(c)})

    # ==================
    # Queries
    # ==================

    def cells_for_unit(self, unit_id: int) -> Set[CellKey]:
        return {c for c in self._cells if c.unit_id == unit_id}

    def visible_cells(self) -> Set[CellKey]:
        return {c for c in self._cells if self._in_filter(c)}
