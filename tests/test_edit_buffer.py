"""
Tests for EditBuffer

Tests cover:
- Single cell vs whole-selection writes
- Forced min-stay of 1 after a price write
- Validation before mutation
- Skipping ineligible cells
- Merged view (override wins)
- Clearing dirty keys
"""

import math

import pytest

from rategrid.errors import EditValidationError
from rategrid.models import CellKey, RateKey
from rategrid.services.eligibility import CellEligibility
from rategrid.services.edit_buffer import DirtyKeys, EditBuffer
from rategrid.utils.events import EventEmitter, EDITS_CHANGED

from conftest import TODAY, booking, d, make_data

PLAN = 10


def cell(unit_id, offset):
    return CellKey(unit_id, d(offset))


class TestPriceEdits:
    """Tests for apply_price_edit"""

    def test_single_cell_among_selection(self):
        """Editing one cell of a 5-cell selection without the modifier only dirties that cell"""
        data = make_data()
        selection = [cell(1, 0), cell(1, 1), cell(1, 2), cell(2, 0), cell(2, 1)]
        buffer = EditBuffer()

        buffer.apply_price_edit(150, [selection[1]], PLAN, data)

        dirty = buffer.snapshot()
        assert dirty.prices == frozenset({RateKey(1, d(1), PLAN)})
        assert dirty.cells() == {cell(1, 1)}

    def test_apply_to_selection(self):
        data = make_data()
        selection = [cell(1, 0), cell(1, 1), cell(2, 0)]
        buffer = EditBuffer()

        written = buffer.apply_price_edit(90.5, selection, PLAN, data)

        assert sorted(written) == sorted(c.with_plan(PLAN) for c in selection)
        view = buffer.view(data)
        assert all(view.price(c.unit_id, c.date, PLAN) == 90.5 for c in selection)

    def test_price_forces_min_stay_one(self):
        """A priced day must carry an explicit minimum stay"""
        data = make_data()
        data.min_stay[(1, d(1), PLAN)] = 0
        data.min_stay[(1, d(2), PLAN)] = 3
        buffer = EditBuffer()

        buffer.apply_price_edit(120, [cell(1, 0), cell(1, 1), cell(1, 2)], PLAN, data)

        view = buffer.view(data)
        assert view.min_stay_for(1, d(0), PLAN) == 1
        assert view.min_stay_for(1, d(1), PLAN) == 1
        assert view.min_stay_for(1, d(2), PLAN) == 3
        assert buffer.snapshot().min_stay == frozenset({cell(1, 0), cell(1, 1)})

    @pytest.mark.parametrize("value", [-1, math.inf, math.nan, "12", None, True])
    def test_invalid_price_mutates_nothing(self, value):
        data = make_data()
        buffer = EditBuffer()

        with pytest.raises(EditValidationError):
            buffer.apply_price_edit(value, [cell(1, 0)], PLAN, data)

        assert buffer.snapshot().is_empty()
        assert buffer.overrides == {}

    def test_no_rate_plan_is_noop(self):
        buffer = EditBuffer()

        assert buffer.apply_price_edit(100, [cell(1, 0)], None, make_data()) == []
        assert not buffer.has_changes()

    def test_ineligible_cells_skipped(self):
        """Booked and past cells are never written"""
        data = make_data(bookings=[booking(1, 1, 1, 1)])
        eligibility = CellEligibility.from_data(data, today=TODAY)
        buffer = EditBuffer()

        written = buffer.apply_price_edit(
            100, [cell(1, -1), cell(1, 0), cell(1, 1)], PLAN, data, eligible=eligibility
        )

        assert written == [RateKey(1, d(0), PLAN)]

    def test_zero_price_allowed(self):
        buffer = EditBuffer()
        buffer.apply_price_edit(0, [cell(1, 0)], PLAN, make_data())
        assert buffer.view(make_data()).price(1, d(0), PLAN) == 0.0


class TestMinStayAndArrivalEdits:
    """Tests for min-stay and arrival edits"""

    def test_min_stay_edit(self):
        data = make_data()
        buffer = EditBuffer()

        buffer.apply_min_stay_edit(4, [cell(2, 3)], PLAN, data)

        assert buffer.view(data).min_stay_for(2, d(3), PLAN) == 4
        assert buffer.snapshot() == DirtyKeys(min_stay=frozenset({cell(2, 3)}))

    def test_min_stay_clear(self):
        data = make_data()
        data.min_stay[(2, d(3), PLAN)] = 5
        buffer = EditBuffer()

        buffer.apply_min_stay_edit(None, [cell(2, 3)], PLAN, data)

        assert buffer.view(data).min_stay_for(2, d(3), PLAN) is None

    @pytest.mark.parametrize("value", [0, -3, 2.5, "3", True])
    def test_invalid_min_stay(self, value):
        buffer = EditBuffer()
        with pytest.raises(EditValidationError):
            buffer.apply_min_stay_edit(value, [cell(1, 0)], PLAN, make_data())
        assert not buffer.has_changes()

    def test_arrival_edit_independent_of_price(self):
        data = make_data()
        buffer = EditBuffer()

        buffer.apply_arrival_allowed_edit(False, [cell(1, 0), cell(2, 0)], PLAN, data)

        view = buffer.view(data)
        assert view.arrival_allowed_for(1, d(0), PLAN) is False
        assert view.price(1, d(0), PLAN) == 100.0
        assert buffer.snapshot().prices == frozenset()
        assert buffer.snapshot().arrival == frozenset({cell(1, 0), cell(2, 0)})

    def test_arrival_requires_bool(self):
        with pytest.raises(EditValidationError):
            EditBuffer().apply_arrival_allowed_edit("no", [cell(1, 0)], PLAN, make_data())


class TestMergedView:
    """Override wins over data, everything else reads through"""

    def test_read_through(self):
        data = make_data()
        data.min_stay[(1, d(0), PLAN)] = 2
        view = EditBuffer().view(data)

        assert view.price(1, d(0), PLAN) == 100.0
        assert view.min_stay_for(1, d(0), PLAN) == 2
        assert view.arrival_allowed_for(1, d(0), PLAN) is True
        assert view.stock_on(1, d(0)) == 1

    def test_override_per_field(self):
        """A min-stay override leaves the loaded price visible"""
        data = make_data()
        buffer = EditBuffer()
        buffer.apply_min_stay_edit(3, [cell(1, 0)], PLAN, data)

        view = buffer.view(data)
        assert view.price(1, d(0), PLAN) == 100.0
        assert view.min_stay_by_date(1, PLAN)[d(0)] == 3

    def test_priced_plans_include_overrides(self):
        data = make_data(plan_ids=(10, 20), price=None)
        buffer = EditBuffer()
        buffer.apply_price_edit(50, [cell(1, 0)], 20, data)

        assert buffer.view(data).priced_plans_on(1, d(0)) == [20]


class TestLifecycle:
    """Tests for clear_dirty and reset"""

    def test_clear_dirty_keeps_values(self):
        data = make_data()
        buffer = EditBuffer()
        buffer.apply_price_edit(70, [cell(1, 0), cell(2, 0)], PLAN, data)

        buffer.clear_dirty(buffer.snapshot().restricted_to_units([1]))

        dirty = buffer.snapshot()
        assert dirty.prices == frozenset({RateKey(2, d(0), PLAN)})
        assert dirty.min_stay == frozenset({cell(2, 0)})
        assert buffer.view(data).price(1, d(0), PLAN) == 70.0

    def test_clear_dirty_keeps_later_writes(self):
        """Keys written after the given revision stay dirty"""
        data = make_data()
        buffer = EditBuffer()
        buffer.apply_price_edit(70, [cell(1, 0), cell(2, 0)], PLAN, data)
        sent = buffer.snapshot()
        revision = buffer.revision
        buffer.apply_price_edit(80, [cell(2, 0)], PLAN, data)

        cleared = buffer.clear_dirty(sent, revision)

        assert cleared.prices == frozenset({RateKey(1, d(0), PLAN)})
        assert cleared.min_stay == frozenset({cell(1, 0), cell(2, 0)})
        assert buffer.snapshot().prices == frozenset({RateKey(2, d(0), PLAN)})
        assert buffer.snapshot().min_stay == frozenset()

    def test_reset(self):
        data = make_data()
        buffer = EditBuffer()
        buffer.apply_price_edit(70, [cell(1, 0)], PLAN, data)

        buffer.reset()

        assert not buffer.has_changes()
        assert buffer.view(data).price(1, d(0), PLAN) == 100.0

    def test_snapshot_is_immutable_copy(self):
        data = make_data()
        buffer = EditBuffer()
        buffer.apply_price_edit(70, [cell(1, 0)], PLAN, data)
        snapshot = buffer.snapshot()

        buffer.apply_price_edit(80, [cell(2, 0)], PLAN, data)

        assert snapshot.prices == frozenset({RateKey(1, d(0), PLAN)})

    def test_edits_changed_emitted(self):
        events = EventEmitter()
        seen = []
        events.subscribe(EDITS_CHANGED, lambda dirty: seen.append(dirty))
        buffer = EditBuffer(events)

        buffer.apply_arrival_allowed_edit(True, [cell(1, 0)], PLAN, make_data())

        assert len(seen) == 1
        assert seen[0].arrival == frozenset({cell(1, 0)})
