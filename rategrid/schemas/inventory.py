"""
Inventory Service Schemas

Wire models exchanged with the remote inventory service. Field names are
camelCase on the wire and snake_case in Python.
"""

import logging
import math
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.supplier_data import (
    Booking,
    BookingStatus,
    RatePlan,
    SupplierData,
    Unit
)
from ..utils.dates import parse_iso_date

logger = logging.getLogger(__name__)


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ==================
# Bulk update
# ==================

class BulkUpdateDate(WireModel):
    """One edited date of one unit"""
    date: date
    rate_plan_id: Optional[int] = Field(None, alias="ratePlanId")
    price: Optional[float] = Field(None, ge=0)
    min_stay: Optional[int] = Field(None, alias="minStay")
    arrival_allowed: Optional[bool] = Field(None, alias="arrivalAllowed")


class BulkUpdateUnit(WireModel):
    unit_id: int = Field(..., alias="unitId")
    dates: List[BulkUpdateDate] = Field(default_factory=list)


class BulkUpdateRequest(WireModel):
    units: List[BulkUpdateUnit] = Field(default_factory=list)

    def to_wire(self) -> Dict[str, Any]:
        """
        JSON body for the service.

        Only fields explicitly set are sent, so an explicit minStay of None
        (a cleared minimum stay) goes out as null while an unset price is
        omitted.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)

    @property
    def unit_ids(self) -> List[int]:
        return [u.unit_id for u in self.units]

    def is_empty(self) -> bool:
        return not any(u.dates for u in self.units)


# ==================
# Units, stock, sync status, rate plans
# ==================

class UnitOut(WireModel):
    unit_id: int = Field(..., alias="unitId")
    unit_name: str = Field("", alias="unitName")

    def to_domain(self) -> Unit:
        return Unit(unit_id=self.unit_id, name=self.unit_name or str(self.unit_id))


class StockDay(WireModel):
    date: date
    available: int = Field(..., ge=0)


class StockUpdateRequest(WireModel):
    days: List[StockDay] = Field(default_factory=list)


class SyncStatus(WireModel):
    last_change: Optional[str] = Field(None, alias="lastChange")
    pending_count: int = Field(0, alias="pendingCount")
    failed_count: int = Field(0, alias="failedCount")


class RatePlanIn(WireModel):
    label: str = Field(..., min_length=1)
    description: Optional[str] = None
    order: Optional[int] = None


class RatePlanOut(WireModel):
    rate_plan_id: int = Field(..., alias="ratePlanId")
    label: Optional[str] = None
    description: Optional[str] = None
    order: Optional[int] = None

    def to_domain(self) -> RatePlan:
        return RatePlan(
            rate_plan_id=self.rate_plan_id,
            label=self.label,
            description=self.description,
            order=self.order
        )


class LocalBookingIn(WireModel):
    unit_id: int = Field(..., alias="unitId")
    arrival: date
    departure: date
    guest_name: Optional[str] = Field(None, alias="guestName")
    rate_plan_id: Optional[int] = Field(None, alias="ratePlanId")
    total_price: Optional[float] = Field(None, alias="totalPrice", ge=0)


class BookingOut(WireModel):
    booking_id: int = Field(..., alias="bookingId")
    unit_id: int = Field(..., alias="unitId")
    arrival: date
    departure: date
    reference: Optional[str] = None
    status: Optional[str] = None
    platform: Optional[str] = None
    is_pending_sync: bool = Field(False, alias="isPendingSync")
    is_obsolete: bool = Field(False, alias="isObsolete")

    def to_domain(self) -> Booking:
        try:
            status = BookingStatus(self.status) if self.status else None
        except ValueError:
            status = None
        return Booking(
            booking_id=self.booking_id,
            unit_id=self.unit_id,
            arrival=self.arrival,
            departure=self.departure,
            reference=self.reference,
            status=status,
            platform=self.platform or "Unknown",
            is_pending_sync=self.is_pending_sync,
            is_obsolete=self.is_obsolete
        )


# ==================
# Supplier data
# ==================

def _int_key(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _int_value(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _price_value(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def _per_day(raw: Any):
    """Yield (unit_id, date, value) from {unitId: {date: value}}, skipping malformed keys."""
    if not isinstance(raw, dict):
        return
    for unit_key, days in raw.items():
        unit_id = _int_key(unit_key)
        if unit_id is None or not isinstance(days, dict):
            continue
        for day_key, value in days.items():
            day = parse_iso_date(day_key)
            if day is None:
                continue
            yield unit_id, day, value


def _per_plan(raw: Any):
    """Yield (unit_id, date, plan_id, value) from {unitId: {date: {planId: value}}}."""
    for unit_id, day, plans in _per_day(raw):
        if not isinstance(plans, dict):
            continue
        for plan_key, value in plans.items():
            plan_id = _int_key(plan_key)
            if plan_id is None:
                continue
            yield unit_id, day, plan_id, value


class SupplierDataPayload(WireModel):
    """
    Merged per-unit, per-date structures returned by the supplier-data call.

    Values stay loosely typed here; to_domain() treats malformed entries as
    "no data for that day" instead of failing the whole load.
    """
    stock: Dict[str, Any] = Field(default_factory=dict)
    rates: Dict[str, Any] = Field(default_factory=dict)
    promotions: Dict[str, Any] = Field(default_factory=dict)
    rate_plan_labels: Dict[str, Any] = Field(default_factory=dict, alias="ratePlanLabels")
    rate_plans_list: List[Dict[str, Any]] = Field(default_factory=list, alias="ratePlansList")
    min_stay: Dict[str, Any] = Field(default_factory=dict, alias="minStay")
    arrival_allowed: Dict[str, Any] = Field(default_factory=dict, alias="arrivalAllowed")
    bookings: List[Dict[str, Any]] = Field(default_factory=list)
    rate_type_links: Dict[str, Any] = Field(default_factory=dict, alias="rateTypeLinks")

    def to_domain(self, group_id: int, units: List[Unit]) -> SupplierData:
        data = SupplierData(group_id=group_id, units=list(units))

        for unit_id, day, value in _per_day(self.stock):
            stock = _int_value(value)
            if stock is not None:
                data.stock[(unit_id, day)] = stock

        for unit_id, day, plan_id, value in _per_plan(self.rates):
            price = _price_value(value)
            if price is not None:
                data.prices[(unit_id, day, plan_id)] = price

        for unit_id, day, plan_id, value in _per_plan(self.min_stay):
            if value is None:
                data.min_stay[(unit_id, day, plan_id)] = None
                continue
            min_stay = _int_value(value)
            if min_stay is not None:
                data.min_stay[(unit_id, day, plan_id)] = min_stay

        for unit_id, day, plan_id, value in _per_plan(self.arrival_allowed):
            if isinstance(value, bool):
                data.arrival_allowed[(unit_id, day, plan_id)] = value

        for unit_id, day, value in _per_day(self.promotions):
            data.promotions[(unit_id, day)] = bool(value)

        for plan_key, label in self.rate_plan_labels.items():
            plan_id = _int_key(plan_key)
            if plan_id is not None and label is not None:
                data.rate_plan_labels[plan_id] = str(label)

        for raw in self.rate_plans_list:
            try:
                data.rate_plans.append(RatePlanOut.model_validate(raw).to_domain())
            except ValueError:
                logger.warning(f"Skipping malformed rate plan: {raw!r}")

        for unit_key, plans in self.rate_type_links.items():
            unit_id = _int_key(unit_key)
            if unit_id is None or not isinstance(plans, list):
                continue
            data.rate_plan_links[unit_id] = [p for p in (_int_key(v) for v in plans) if p is not None]

        for raw in self.bookings:
            try:
                data.bookings.append(BookingOut.model_validate(raw).to_domain())
            except ValueError:
                logger.warning(f"Skipping malformed booking: {raw!r}")

        return data
