"""
Tests for the Date Availability Analyzer

Tests cover:
- Availability ranges (ordering, boundaries, gaps)
- Non-reservable days (missing price, min-stay longer than the range)
- Malformed values treated as "no data"
- Arrival-allowed column summary (double default)
"""

from datetime import date, timedelta

import pytest

from rategrid.services.availability_analyzer import (
    AvailabilityRange,
    arrival_allowed_summary,
    compute_non_reservable_days,
    compute_ranges,
    non_reservable_by_unit,
    ranges_by_unit
)
from rategrid.services.edit_buffer import EditBuffer
from rategrid.models import CellKey

from conftest import make_data, d


JUNE_1 = date(2025, 6, 1)
JUNE_10 = date(2025, 6, 10)


def day(n: int) -> date:
    return date(2025, 6, n)


def assert_ranges_well_formed(stock, start, end, ranges):
    """Ordered, non-overlapping, stocked inside, stock 0 (or window edge) just outside"""
    for a, b in zip(ranges, ranges[1:]):
        assert a.end < b.start
    for r in ranges:
        current = r.start
        while current <= r.end:
            assert stock.get(current, 0) >= 1
            current += timedelta(days=1)
        before = r.start - timedelta(days=1)
        after = r.end + timedelta(days=1)
        assert before < start or stock.get(before, 0) == 0
        assert after > end or stock.get(after, 0) == 0


class TestComputeRanges:
    """Tests for availability ranges"""

    def test_single_run_closed_by_zero(self):
        """06-01..03 stocked, 06-04 empty gives one range of 3 days"""
        stock = {day(1): 1, day(2): 1, day(3): 1, day(4): 0}

        ranges = compute_ranges(stock, JUNE_1, JUNE_10)

        assert ranges == [AvailabilityRange(day(1), day(3), 3)]

    def test_run_closed_by_window_end(self):
        stock = {day(8): 2, day(9): 1, day(10): 3}

        ranges = compute_ranges(stock, JUNE_1, JUNE_10)

        assert ranges == [AvailabilityRange(day(8), day(10), 3)]

    def test_run_touching_window_start(self):
        """A run already open before the window starts at the window start"""
        stock = {day(1): 1, day(2): 1, day(3): 0}

        ranges = compute_ranges(stock, day(2), JUNE_10)

        assert ranges == [AvailabilityRange(day(2), day(2), 1)]

    def test_multiple_runs(self):
        stock = {day(1): 1, day(2): 0, day(3): 2, day(4): 2, day(6): 1}

        ranges = compute_ranges(stock, JUNE_1, JUNE_10)

        assert [(r.start, r.end, r.length) for r in ranges] == [
            (day(1), day(1), 1),
            (day(3), day(4), 2),
            (day(6), day(6), 1),
        ]
        assert_ranges_well_formed(stock, JUNE_1, JUNE_10, ranges)

    def test_empty_window(self):
        assert compute_ranges({day(1): 1}, JUNE_10, JUNE_1) == []

    def test_no_stock(self):
        assert compute_ranges({}, JUNE_1, JUNE_10) == []

    @pytest.mark.parametrize("pattern", [
        "1111111111",
        "0000000000",
        "1010101010",
        "0110011100",
        "2301000122",
        "0000000001",
    ])
    def test_ranges_are_well_formed(self, pattern):
        """Range invariants hold for a spread of stock patterns"""
        stock = {day(i + 1): int(c) for i, c in enumerate(pattern)}

        ranges = compute_ranges(stock, JUNE_1, JUNE_10)

        assert_ranges_well_formed(stock, JUNE_1, JUNE_10, ranges)
        stocked = {k for k, v in stock.items() if v >= 1}
        covered = {r.start + timedelta(days=i) for r in ranges for i in range(r.length)}
        assert covered == stocked

    def test_malformed_stock_is_no_data(self):
        stock = {day(1): "3", day(2): 1, day(3): None, day(4): 1.5}

        ranges = compute_ranges(stock, JUNE_1, JUNE_10)

        assert ranges == [AvailabilityRange(day(2), day(2), 1)]


class TestNonReservableDays:
    """Tests for non-reservable days"""

    def test_min_stay_within_range_is_reservable(self):
        """min-stay 2 on 06-01 with a 3-day range: reservable"""
        stock = {day(1): 1, day(2): 1, day(3): 1, day(4): 0}
        prices = {day(1): 100, day(2): 100, day(3): 100}
        min_stay = {day(1): 2}

        result = compute_non_reservable_days(stock, min_stay, prices, JUNE_1, JUNE_10)

        assert day(1) not in result

    def test_min_stay_longer_than_range_is_non_reservable(self):
        """min-stay 5 on 06-02 with a 3-day range: non-reservable"""
        stock = {day(1): 1, day(2): 1, day(3): 1, day(4): 0}
        prices = {day(1): 100, day(2): 100, day(3): 100}
        min_stay = {day(1): 2, day(2): 5}

        result = compute_non_reservable_days(stock, min_stay, prices, JUNE_1, JUNE_10)

        assert result == {day(2)}

    def test_missing_price_is_non_reservable(self):
        stock = {day(1): 1, day(2): 1}
        prices = {day(1): 80}

        result = compute_non_reservable_days(stock, {}, prices, JUNE_1, JUNE_10)

        assert result == {day(2)}

    def test_only_single_stock_days_are_flagged(self):
        """Days with stock 2 or 0 are never flagged"""
        stock = {day(1): 2, day(2): 0, day(3): 1}
        min_stay = {day(1): 9, day(3): 9}

        result = compute_non_reservable_days(stock, min_stay, {}, JUNE_1, JUNE_10)

        assert result == {day(3)}

    def test_zero_min_stay_is_ignored(self):
        stock = {day(1): 1}
        result = compute_non_reservable_days(stock, {day(1): 0}, {day(1): 50}, JUNE_1, JUNE_10)
        assert result == set()

    def test_price_rule_skipped_without_rate_plan(self):
        stock = {day(1): 1}
        result = compute_non_reservable_days(
            stock, {}, {}, JUNE_1, JUNE_10, rate_plan_selected=False
        )
        assert result == set()

    def test_malformed_price_counts_as_missing(self):
        stock = {day(1): 1, day(2): 1}
        prices = {day(1): "abc", day(2): float("nan")}

        result = compute_non_reservable_days(stock, {}, prices, JUNE_1, JUNE_10)

        assert result == {day(1), day(2)}

    @pytest.mark.parametrize("stock_value,price,min_stay,range_len,expected", [
        (1, None, None, 3, True),
        (1, 100, None, 3, False),
        (1, 100, 3, 3, False),
        (1, 100, 4, 3, True),
        (2, None, 9, 3, False),
        (1, 100, -1, 3, False),
    ])
    def test_flag_iff_rule(self, stock_value, price, min_stay, range_len, expected):
        """Flagged iff stock == 1 and (no price, or min-stay > 0 and > range length)"""
        stock = {day(i): 1 for i in range(1, range_len + 1)}
        stock[day(2)] = stock_value
        prices = {k: 100 for k in stock}
        if price is None:
            del prices[day(2)]
        min_stays = {} if min_stay is None else {day(2): min_stay}

        result = compute_non_reservable_days(stock, min_stays, prices, JUNE_1, JUNE_10)

        assert (day(2) in result) is expected


class TestPerUnitHelpers:
    """Tests for the SupplierData based helpers"""

    def test_ranges_by_unit(self):
        data = make_data(unit_ids=(1, 2), days=3)
        data.stock[(2, d(1))] = 0

        result = ranges_by_unit(data, [1, 2], d(0), d(4))

        assert result[1] == [AvailabilityRange(d(0), d(2), 3)]
        assert [r.length for r in result[2]] == [1, 1]

    def test_non_reservable_reads_staged_edits(self):
        """A staged min-stay edit counts before it is saved"""
        data = make_data(unit_ids=(1,), days=3)
        buffer = EditBuffer()
        buffer.apply_min_stay_edit(7, [CellKey(1, d(1))], 10, data)

        before = non_reservable_by_unit(data, [1], 10, d(0), d(5))
        after = non_reservable_by_unit(data, [1], 10, d(0), d(5), view=buffer.view(data))

        assert before[1] == set()
        assert after[1] == {d(1)}


class TestArrivalAllowedSummary:
    """Tests for the column summary of arrival-allowed"""

    def test_all_units_without_stock_is_disallowed(self):
        """Absent per-plan values default to allowed, but no stock anywhere wins"""
        data = make_data(unit_ids=(1, 2), stock=0)

        assert arrival_allowed_summary(data, [1, 2], d(0), 10) is False

    def test_absent_value_defaults_to_allowed(self):
        data = make_data(unit_ids=(1, 2))

        assert arrival_allowed_summary(data, [1, 2], d(0), 10) is True

    def test_any_stocked_unit_allowing_is_enough(self):
        data = make_data(unit_ids=(1, 2))
        data.arrival_allowed[(1, d(0), 10)] = False

        assert arrival_allowed_summary(data, [1, 2], d(0), 10) is True

    def test_every_stocked_unit_disallowing(self):
        data = make_data(unit_ids=(1, 2))
        data.stock[(2, d(0))] = 0
        data.arrival_allowed[(1, d(0), 10)] = False

        assert arrival_allowed_summary(data, [1, 2], d(0), 10) is False
