"""
Shared builders for calendar tests.

All tests run against a fixed "today" so past-date rules are deterministic.
"""

import sys
import os
from datetime import date, timedelta

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from rategrid.models import Booking, RatePlan, SupplierData, Unit

TODAY = date(2025, 6, 1)


def d(offset: int) -> date:
    """TODAY + offset days"""
    return TODAY + timedelta(days=offset)


def make_data(
    group_id=1,
    unit_ids=(1, 2, 3),
    plan_ids=(10,),
    days=14,
    stock=1,
    price=100.0,
    linked=None,
    bookings=()
) -> SupplierData:
    """
    A group where every unit has the given stock and price on every day of
    [TODAY, TODAY + days), and every unit is linked to every plan unless
    `linked` says otherwise.
    """
    data = SupplierData(
        group_id=group_id,
        units=[Unit(u, f"Unit {u}") for u in unit_ids],
        rate_plans=[RatePlan(p, f"Plan {p}", order=i) for i, p in enumerate(plan_ids)],
        rate_plan_labels={p: f"Plan {p}" for p in plan_ids},
        bookings=list(bookings)
    )
    links = linked if linked is not None else {u: list(plan_ids) for u in unit_ids}
    data.rate_plan_links = {u: list(p) for u, p in links.items()}

    for u in unit_ids:
        for i in range(days):
            day = d(i)
            if stock is not None:
                data.stock[(u, day)] = stock
            if price is not None:
                for p in plan_ids:
                    data.prices[(u, day, p)] = price
    return data


def booking(booking_id, unit_id, arrival_offset, nights) -> Booking:
    return Booking(
        booking_id=booking_id,
        unit_id=unit_id,
        arrival=d(arrival_offset),
        departure=d(arrival_offset + nights)
    )


@pytest.fixture
def data():
    return make_data()
