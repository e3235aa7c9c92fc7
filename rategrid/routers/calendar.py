"""
Calendar API Router

Exposes the per-group calendar sessions to the operator front end:
selection, staged edits, the pending bulk diff, saving and availability.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request

from ..errors import EditValidationError, InventoryServiceError
from ..models.keys import CellKey, RateKey
from ..services.bulk_diff_codec import dirty_key_strings
from ..services.calendar_session import CalendarSession
from ..services.edit_buffer import DirtyKeys
from ..services.supplier_loader import CalendarWorkspace
from ..schemas.calendar import (
    ActiveUnitsRequest,
    ArrivalEditRequest,
    AvailabilityResponse,
    DirtyKeysOut,
    EditResponse,
    LoadRequest,
    LoadResponse,
    MinStayEditRequest,
    PriceEditRequest,
    RangeOut,
    RangeSelectRequest,
    RatePlanSelectRequest,
    SaveResponse,
    SelectionResponse,
    ToggleRequest,
    WindowRequest
)
from ..utils.dates import days_in_range
from ..utils.logging_config import group_id_var

router = APIRouter(prefix="/api/calendar", tags=["Calendar"])


def get_workspace(request: Request) -> CalendarWorkspace:
    return request.app.state.workspace


def get_session(group_id: int, workspace: CalendarWorkspace = Depends(get_workspace)) -> CalendarSession:
    group_id_var.set(str(group_id))
    return workspace.session(group_id)


def _dirty_out(dirty: DirtyKeys) -> DirtyKeysOut:
    prices, min_stay, arrival = dirty_key_strings(dirty)
    return DirtyKeysOut(prices=prices, min_stay=min_stay, arrival=arrival)


def _selection_out(session: CalendarSession) -> SelectionResponse:
    cells = [cell.encode() for cell in session.selection]
    return SelectionResponse(
        group_id=session.group_id,
        cells=cells,
        active_units=sorted(session.selection.active_units),
        count=len(cells)
    )


def _edit_out(session: CalendarSession, written: List[RateKey]) -> EditResponse:
    return EditResponse(
        written=[key.encode() for key in written],
        dirty=_dirty_out(session.edits.snapshot())
    )


# ==================
# Loading
# ==================

@router.post("/load", response_model=LoadResponse)
async def load_groups(body: LoadRequest, workspace: CalendarWorkspace = Depends(get_workspace)):
    """Load (or reload) several unit groups at once"""
    outcome = await workspace.load_all(body.group_ids)
    return LoadResponse(
        loaded=outcome.loaded,
        failed=sorted(outcome.failed),
        message=outcome.message
    )


# ==================
# Selection
# ==================

@router.get("/{group_id}/selection", response_model=SelectionResponse)
async def get_selection(session: CalendarSession = Depends(get_session)):
    return _selection_out(session)


@router.post("/{group_id}/selection/toggle", response_model=SelectionResponse)
async def toggle_selection(body: ToggleRequest, session: CalendarSession = Depends(get_session)):
    """Toggle a cell, or a column when no unit is given"""
    if body.unit_id is None:
        session.toggle_column(body.date)
    else:
        session.toggle_cell(CellKey(body.unit_id, body.date))
    return _selection_out(session)


@router.post("/{group_id}/selection/range", response_model=SelectionResponse)
async def select_range(body: RangeSelectRequest, session: CalendarSession = Depends(get_session)):
    """Select every eligible cell of the visible window, optionally by weekday"""
    if body.weekdays is None:
        session.select_all_in_range()
    else:
        session.select_weekdays(body.weekdays)
    return _selection_out(session)


@router.delete("/{group_id}/selection", response_model=SelectionResponse)
async def clear_selection(session: CalendarSession = Depends(get_session)):
    session.clear_selection()
    return _selection_out(session)


@router.put("/{group_id}/active-units", response_model=SelectionResponse)
async def set_active_units(body: ActiveUnitsRequest, session: CalendarSession = Depends(get_session)):
    session.set_active_units(body.unit_ids)
    return _selection_out(session)


# ==================
# Window and rate plan
# ==================

@router.put("/{group_id}/window", response_model=SelectionResponse)
async def set_window(body: WindowRequest, session: CalendarSession = Depends(get_session)):
    if body.end < body.start:
        raise HTTPException(status_code=422, detail="Window end must not be before its start")
    session.set_window(body.start, body.end)
    return _selection_out(session)


@router.put("/{group_id}/rate-plan")
async def select_rate_plan(body: RatePlanSelectRequest, session: CalendarSession = Depends(get_session)):
    if body.rate_plan_id is not None and body.rate_plan_id not in session.data.rate_plan_ids():
        raise HTTPException(status_code=404, detail="Rate plan not found")
    session.select_rate_plan(body.rate_plan_id)
    return {"ratePlanId": session.selected_rate_plan_id}


# ==================
# Edits
# ==================

@router.post("/{group_id}/edits/price", response_model=EditResponse)
async def edit_price(body: PriceEditRequest, session: CalendarSession = Depends(get_session)):
    try:
        written = session.apply_price(
            body.price, CellKey(body.unit_id, body.date), body.apply_to_selection
        )
    except EditValidationError as e:
        raise HTTPException(status_code=422, detail=e.message)
    return _edit_out(session, written)


@router.post("/{group_id}/edits/min-stay", response_model=EditResponse)
async def edit_min_stay(body: MinStayEditRequest, session: CalendarSession = Depends(get_session)):
    try:
        written = session.apply_min_stay(
            body.min_stay, CellKey(body.unit_id, body.date), body.apply_to_selection
        )
    except EditValidationError as e:
        raise HTTPException(status_code=422, detail=e.message)
    return _edit_out(session, written)


@router.post("/{group_id}/edits/arrival", response_model=EditResponse)
async def edit_arrival(body: ArrivalEditRequest, session: CalendarSession = Depends(get_session)):
    try:
        written = session.set_arrival_allowed(
            CellKey(body.unit_id, body.date), body.arrival_allowed, body.apply_to_selection
        )
    except EditValidationError as e:
        raise HTTPException(status_code=422, detail=e.message)
    return _edit_out(session, written)


@router.get("/{group_id}/diff")
async def get_diff(session: CalendarSession = Depends(get_session)):
    """The bulk-update payload a save would send"""
    return {
        "request": session.build_bulk_request().to_wire(),
        "dirty": _dirty_out(session.edits.snapshot()).model_dump(by_alias=True)
    }


@router.post("/{group_id}/save", response_model=SaveResponse)
async def save(session: CalendarSession = Depends(get_session), workspace: CalendarWorkspace = Depends(get_workspace)):
    result = await session.save(workspace.client)
    if result.requests_sent and result.failed_units and result.saved_keys.is_empty():
        raise HTTPException(status_code=502, detail=result.error)
    return SaveResponse(
        ok=result.ok,
        requests_sent=result.requests_sent,
        failed_units=result.failed_units,
        remaining=_dirty_out(session.edits.snapshot()),
        error=result.error
    )


@router.delete("/{group_id}/bookings/{booking_id}")
async def delete_booking(
    booking_id: int,
    session: CalendarSession = Depends(get_session),
    workspace: CalendarWorkspace = Depends(get_workspace)
):
    try:
        await session.delete_selected_booking(workspace.client, booking_id)
    except EditValidationError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except InventoryServiceError as e:
        raise HTTPException(status_code=502, detail=e.message)
    return {"deleted": booking_id}


# ==================
# Availability
# ==================

@router.get("/{group_id}/availability", response_model=AvailabilityResponse)
async def get_availability(session: CalendarSession = Depends(get_session)):
    derived = session.derived
    visible = session.visible_unit_ids()
    return AvailabilityResponse(
        group_id=session.group_id,
        start=session.window_start,
        end=session.window_end,
        rate_plan_id=session.selected_rate_plan_id,
        ranges={
            unit_id: [RangeOut(start=r.start, end=r.end, length=r.length) for r in derived.ranges.get(unit_id, [])]
            for unit_id in visible
        },
        non_reservable={
            unit_id: sorted(derived.non_reservable.get(unit_id, ()))
            for unit_id in visible
        },
        arrival_allowed={
            day: session.arrival_summary(day)
            for day in days_in_range(session.window_start, session.window_end)
        }
    )
