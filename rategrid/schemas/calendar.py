"""
Calendar API Schemas

Request and response models of the calendar router.
"""

from datetime import date
from typing import Dict, List, Optional

from pydantic import Field, field_validator

from .inventory import WireModel


class CellRef(WireModel):
    unit_id: int = Field(..., alias="unitId")
    date: date


class ToggleRequest(WireModel):
    """Toggle one cell, or a whole column when unitId is omitted"""
    date: date
    unit_id: Optional[int] = Field(None, alias="unitId")


class RangeSelectRequest(WireModel):
    weekdays: Optional[List[int]] = Field(None, description="Monday=0 .. Sunday=6; omitted selects every day")

    @field_validator('weekdays')
    @classmethod
    def validate_weekdays(cls, v):
        if v is not None:
            for d in v:
                if d not in range(7):
                    raise ValueError("weekdays values must be 0-6")
        return v


class SelectionResponse(WireModel):
    group_id: int = Field(..., alias="groupId")
    cells: List[str] = Field(default_factory=list)
    active_units: List[int] = Field(default_factory=list, alias="activeUnits")
    count: int = 0


class PriceEditRequest(CellRef):
    price: float
    apply_to_selection: bool = Field(False, alias="applyToSelection")


class MinStayEditRequest(CellRef):
    min_stay: Optional[int] = Field(None, alias="minStay")
    apply_to_selection: bool = Field(False, alias="applyToSelection")


class ArrivalEditRequest(CellRef):
    arrival_allowed: bool = Field(..., alias="arrivalAllowed")
    apply_to_selection: bool = Field(False, alias="applyToSelection")


class DirtyKeysOut(WireModel):
    prices: List[str] = Field(default_factory=list)
    min_stay: List[str] = Field(default_factory=list, alias="minStay")
    arrival: List[str] = Field(default_factory=list)


class EditResponse(WireModel):
    written: List[str] = Field(default_factory=list)
    dirty: DirtyKeysOut


class WindowRequest(WireModel):
    start: date
    end: date


class RatePlanSelectRequest(WireModel):
    rate_plan_id: Optional[int] = Field(None, alias="ratePlanId")


class ActiveUnitsRequest(WireModel):
    unit_ids: List[int] = Field(default_factory=list, alias="unitIds")


class LoadRequest(WireModel):
    group_ids: List[int] = Field(..., min_length=1, alias="groupIds")


class LoadResponse(WireModel):
    loaded: List[int] = Field(default_factory=list)
    failed: List[int] = Field(default_factory=list)
    message: Optional[str] = None


class SaveResponse(WireModel):
    ok: bool
    requests_sent: int = Field(0, alias="requestsSent")
    failed_units: List[int] = Field(default_factory=list, alias="failedUnits")
    remaining: DirtyKeysOut
    error: Optional[str] = None


class RangeOut(WireModel):
    start: date
    end: date
    length: int


class AvailabilityResponse(WireModel):
    group_id: int = Field(..., alias="groupId")
    start: date
    end: date
    rate_plan_id: Optional[int] = Field(None, alias="ratePlanId")
    ranges: Dict[int, List[RangeOut]] = Field(default_factory=dict)
    non_reservable: Dict[int, List[date]] = Field(default_factory=dict, alias="nonReservable")
    arrival_allowed: Dict[date, bool] = Field(default_factory=dict, alias="arrivalAllowed")
