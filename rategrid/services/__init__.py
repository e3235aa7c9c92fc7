# Services package
from .availability_analyzer import (
    AvailabilityRange, compute_ranges, compute_non_reservable_days,
    ranges_by_unit, non_reservable_by_unit, arrival_allowed_summary
)
from .occupancy_index import OccupancyIndex, expand
from .eligibility import CellEligibility
from .selection_store import SelectionStore
from .drag_selector import DragSelector, DragPhase, GridTarget, ReleaseKind
from .edit_buffer import EditBuffer, EditRecord, DirtyKeys, MergedView
from .bulk_diff_codec import BulkDiffCodec, BulkChunk
from .booking_summary import (
    StayRange, BookingSummary, find_consecutive_ranges,
    build_booking_summaries, is_valid_booking_selection
)
from .derived_state import DerivedState
from .calendar_session import CalendarSession, SaveResult, EditorKind, EditorState
from .inventory_client import InventoryClient
from .supplier_loader import SupplierLoader, CalendarWorkspace, LoadOutcome, SaveOutcome
from .sync_status_poller import SyncStatusPoller

__all__ = [
    "AvailabilityRange", "compute_ranges", "compute_non_reservable_days",
    "ranges_by_unit", "non_reservable_by_unit", "arrival_allowed_summary",
    "OccupancyIndex", "expand",
    "CellEligibility",
    "SelectionStore",
    "DragSelector", "DragPhase", "GridTarget", "ReleaseKind",
    "EditBuffer", "EditRecord", "DirtyKeys", "MergedView",
    "BulkDiffCodec", "BulkChunk",
    "StayRange", "BookingSummary", "find_consecutive_ranges",
    "build_booking_summaries", "is_valid_booking_selection",
    "DerivedState",
    "CalendarSession", "SaveResult", "EditorKind", "EditorState",
    "InventoryClient",
    "SupplierLoader", "CalendarWorkspace", "LoadOutcome", "SaveOutcome",
    "SyncStatusPoller"
]
