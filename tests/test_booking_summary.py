"""
Tests for booking selection summaries

Tests cover:
- Consecutive night ranges and departure dates
- Per-unit price totals
- Booking selection validity (single run, minimum stay)
"""

from rategrid.models import CellKey
from rategrid.services.booking_summary import (
    StayRange,
    build_booking_summaries,
    find_consecutive_ranges,
    is_valid_booking_selection
)
from rategrid.services.edit_buffer import EditBuffer

from conftest import d, make_data

PLAN = 10


def cell(unit_id, offset):
    return CellKey(unit_id, d(offset))


class TestConsecutiveRanges:
    """Tests for find_consecutive_ranges"""

    def test_single_run(self):
        ranges = find_consecutive_ranges([d(2), d(0), d(1)])

        assert ranges == [StayRange(d(0), d(3), 3)]
        assert ranges[0].last_night == d(2)

    def test_gaps_split_runs(self):
        ranges = find_consecutive_ranges([d(0), d(1), d(4), d(6), d(7)])

        assert [(r.start, r.departure, r.nights) for r in ranges] == [
            (d(0), d(2), 2),
            (d(4), d(5), 1),
            (d(6), d(8), 2),
        ]

    def test_empty(self):
        assert find_consecutive_ranges([]) == []


class TestBookingSummaries:
    """Tests for build_booking_summaries"""

    def test_prices_per_range(self):
        data = make_data(unit_ids=(1, 2))
        data.prices[(1, d(1), PLAN)] = 150.0
        view = EditBuffer().view(data)
        selected = [cell(1, 0), cell(1, 1), cell(1, 5), cell(2, 3)]

        summaries = build_booking_summaries(selected, data.units, view, PLAN)

        assert [s.unit_id for s in summaries] == [1, 2]
        first = summaries[0]
        assert first.unit_name == "Unit 1"
        assert first.price_by_range[StayRange(d(0), d(2), 2)] == 250.0
        assert first.price_by_range[StayRange(d(5), d(6), 1)] == 100.0
        assert first.total_price == 350.0
        assert summaries[1].total_price == 100.0

    def test_staged_prices_count(self):
        data = make_data(unit_ids=(1,))
        buffer = EditBuffer()
        buffer.apply_price_edit(10, [cell(1, 0)], PLAN, data)

        summaries = build_booking_summaries([cell(1, 0)], data.units, buffer.view(data), PLAN)

        assert summaries[0].total_price == 10.0

    def test_no_rate_plan(self):
        data = make_data()
        assert build_booking_summaries([cell(1, 0)], data.units, EditBuffer().view(data), None) == []


class TestBookingSelectionValidity:
    """Tests for is_valid_booking_selection"""

    def test_single_run_per_unit_is_valid(self):
        view = EditBuffer().view(make_data())
        assert is_valid_booking_selection([cell(1, 0), cell(1, 1), cell(2, 4)], view, PLAN)

    def test_gap_is_invalid(self):
        view = EditBuffer().view(make_data())
        assert not is_valid_booking_selection([cell(1, 0), cell(1, 2)], view, PLAN)

    def test_min_stay_longer_than_selection(self):
        data = make_data()
        data.min_stay[(1, d(1), PLAN)] = 3
        view = EditBuffer().view(data)

        assert not is_valid_booking_selection([cell(1, 0), cell(1, 1)], view, PLAN)
        assert is_valid_booking_selection([cell(1, 0), cell(1, 1), cell(1, 2)], view, PLAN)

    def test_active_unit_filter(self):
        """Cells of filtered-out units are ignored"""
        view = EditBuffer().view(make_data())
        selected = [cell(1, 0), cell(2, 0), cell(2, 2)]

        assert is_valid_booking_selection(selected, view, PLAN, active_units={1})
        assert not is_valid_booking_selection(selected, view, PLAN)

    def test_empty_selection(self):
        assert not is_valid_booking_selection([], EditBuffer().view(make_data()), PLAN)
