"""
BulkDiffCodec

Turns the dirty keys of an EditBuffer into the bulk-update payload of the
inventory service, and back:

- Records are grouped by unit (ascending) then date (ascending)
- Every record carries the current minStay and arrivalAllowed, dirty or not,
  because the service replaces the whole record of a date
- ratePlanId + price come from the price edit; min-stay/arrival-only dates
  fall back to the selected rate plan, else the first plan priced that day
- Large payloads are split by unit count into several requests
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from ..config import settings
from ..models.keys import (
    CellKey,
    RateKey,
    decode_cell_key,
    decode_key,
    decode_rate_key,
    encode_key
)
from ..schemas.inventory import BulkUpdateDate, BulkUpdateRequest, BulkUpdateUnit
from .edit_buffer import DirtyKeys, MergedView

logger = logging.getLogger(__name__)

__all__ = ["BulkDiffCodec", "BulkChunk", "encode_key", "decode_key"]


@dataclass
class BulkChunk:
    """One request of a split save and the dirty keys it acknowledges"""
    request: BulkUpdateRequest
    keys: DirtyKeys

    @property
    def unit_ids(self) -> List[int]:
        return self.request.unit_ids


class BulkDiffCodec:
    def __init__(self, max_units_per_request: Optional[int] = None):
        self.max_units_per_request = max_units_per_request or settings.bulk_max_units_per_request

    # ==================
    # Encode
    # ==================

    def _fallback_plan(
        self,
        view: MergedView,
        cell: CellKey,
        selected_rate_plan_id: Optional[int]
    ) -> Optional[int]:
        if selected_rate_plan_id is not None:
            return selected_rate_plan_id
        plans = view.priced_plans_on(cell.unit_id, cell.date)
        return plans[0] if plans else None

    def _record(
        self,
        view: MergedView,
        cell: CellKey,
        rate_plan_id: Optional[int],
        include_price: bool
    ) -> BulkUpdateDate:
        fields = {
            "date": cell.date,
            "min_stay": view.min_stay_for(cell.unit_id, cell.date, rate_plan_id),
            "arrival_allowed": view.arrival_allowed_for(cell.unit_id, cell.date, rate_plan_id),
        }
        if rate_plan_id is not None:
            fields["rate_plan_id"] = rate_plan_id
            price = view.price(cell.unit_id, cell.date, rate_plan_id)
            if include_price or price is not None:
                fields["price"] = price
        return BulkUpdateDate(**fields)

    def encode(
        self,
        dirty: DirtyKeys,
        view: MergedView,
        selected_rate_plan_id: Optional[int]
    ) -> BulkUpdateRequest:
        """
        Build the bulk-update payload for every cell with a dirty field.

        A cell gets one record per plan it was edited under. Cells with no
        plan-scoped edit fall back to the selected or first priced plan.
        """
        price_plans: Dict[CellKey, Set[int]] = {}
        for key in dirty.prices:
            price_plans.setdefault(key.cell, set()).add(key.rate_plan_id)

        by_unit: Dict[int, List[BulkUpdateDate]] = {}
        for cell in sorted(dirty.cells()):
            records = by_unit.setdefault(cell.unit_id, [])
            priced = price_plans.get(cell, set())
            plans = priced | set(view.edited_plans_on(
                cell, min_stay=cell in dirty.min_stay, arrival=cell in dirty.arrival
            ))
            if plans:
                for plan_id in sorted(plans):
                    records.append(self._record(view, cell, plan_id, include_price=plan_id in priced))
            else:
                plan_id = self._fallback_plan(view, cell, selected_rate_plan_id)
                records.append(self._record(view, cell, plan_id, include_price=False))

        return BulkUpdateRequest(units=[
            BulkUpdateUnit(unit_id=unit_id, dates=by_unit[unit_id])
            for unit_id in sorted(by_unit)
        ])

    # ==================
    # Decode
    # ==================

    def decode(self, request: BulkUpdateRequest) -> DirtyKeys:
        """
        Keys covered by a request: every price-bearing record yields a
        RateKey, every record yields a CellKey for min-stay and arrival.
        """
        prices: Set[RateKey] = set()
        cells: Set[CellKey] = set()
        for unit in request.units:
            for record in unit.dates:
                cell = CellKey(unit.unit_id, record.date)
                cells.add(cell)
                if record.rate_plan_id is not None and "price" in record.model_fields_set:
                    prices.add(cell.with_plan(record.rate_plan_id))
        return DirtyKeys(
            prices=frozenset(prices),
            min_stay=frozenset(cells),
            arrival=frozenset(cells)
        )

    def covered_keys(self, request: BulkUpdateRequest, dirty: DirtyKeys) -> DirtyKeys:
        """Subset of dirty keys whose unit appears in the request."""
        return dirty.restricted_to_units(request.unit_ids)

    # ==================
    # Split
    # ==================

    def split(
        self,
        request: BulkUpdateRequest,
        dirty: Optional[DirtyKeys] = None,
        max_units: Optional[int] = None
    ) -> List[BulkChunk]:
        """
        Split a request into chunks of at most max_units units.

        Each chunk carries the dirty keys it covers so that they can be
        cleared once that chunk is acknowledged.
        """
        limit = max_units or self.max_units_per_request
        if dirty is None:
            dirty = self.decode(request)

        units = [u for u in request.units if u.dates]
        chunks: List[BulkChunk] = []
        for i in range(0, len(units), limit):
            chunk_request = BulkUpdateRequest(units=units[i:i + limit])
            chunks.append(BulkChunk(
                request=chunk_request,
                keys=self.covered_keys(chunk_request, dirty)
            ))

        if len(chunks) > 1:
            logger.info(f"Split bulk update of {len(units)} units into {len(chunks)} requests")
        return chunks


def dirty_key_strings(dirty: DirtyKeys) -> Tuple[List[str], List[str], List[str]]:
    """String forms of the dirty keys, sorted (prices, min-stay, arrival)."""
    return (
        sorted(encode_key(k) for k in dirty.prices),
        sorted(encode_key(k) for k in dirty.min_stay),
        sorted(encode_key(k) for k in dirty.arrival),
    )


def parse_dirty_key_strings(
    prices: List[str],
    min_stay: List[str],
    arrival: List[str]
) -> DirtyKeys:
    """Inverse of dirty_key_strings; raises InvalidKeyError on malformed keys."""
    return DirtyKeys(
        prices=frozenset(decode_rate_key(k) for k in prices),
        min_stay=frozenset(decode_cell_key(k) for k in min_stay),
        arrival=frozenset(decode_cell_key(k) for k in arrival)
    )

