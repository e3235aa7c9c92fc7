"""
Composite Keys

Addressable grid cells and rate-plan scoped cells.

String forms (dirty keys exchanged with the save layer):
- CellKey: "unitId-YYYY-MM-DD"
- RateKey: "unitId-YYYY-MM-DD-ratePlanId"
"""

from dataclasses import dataclass
from datetime import date
from typing import Union

from ..errors import InvalidKeyError


@dataclass(frozen=True, order=True)
class CellKey:
    """One (unit, date) cell of the grid"""
    unit_id: int
    date: date

    def encode(self) -> str:
        return f"{self.unit_id}-{self.date.isoformat()}"

    def with_plan(self, rate_plan_id: int) -> "RateKey":
        return RateKey(self.unit_id, self.date, rate_plan_id)


@dataclass(frozen=True, order=True)
class RateKey:
    """A cell scoped to one rate plan"""
    unit_id: int
    date: date
    rate_plan_id: int

    @property
    def cell(self) -> CellKey:
        return CellKey(self.unit_id, self.date)

    def encode(self) -> str:
        return f"{self.unit_id}-{self.date.isoformat()}-{self.rate_plan_id}"


def encode_key(key: Union[CellKey, RateKey]) -> str:
    return key.encode()


def _parse_int(text: str, what: str, raw: str) -> int:
    if not text.isdigit():
        raise InvalidKeyError(f"Invalid {what} in key: {raw!r}")
    return int(text)


def decode_key(text: str) -> Union[CellKey, RateKey]:
    """
    Parse a dirty key back into a CellKey or RateKey.

    The date occupies exactly three dash-separated parts, so four parts
    decode to a CellKey and five parts to a RateKey.
    """
    if not isinstance(text, str):
        raise InvalidKeyError(f"Key must be a string: {text!r}")

    parts = text.split("-")
    if len(parts) not in (4, 5):
        raise InvalidKeyError(f"Malformed key: {text!r}")

    unit_id = _parse_int(parts[0], "unit id", text)
    try:
        day = date.fromisoformat("-".join(parts[1:4]))
    except ValueError:
        raise InvalidKeyError(f"Invalid date in key: {text!r}")

    if len(parts) == 4:
        return CellKey(unit_id, day)

    rate_plan_id = _parse_int(parts[4], "rate plan id", text)
    return RateKey(unit_id, day, rate_plan_id)


def decode_cell_key(text: str) -> CellKey:
    key = decode_key(text)
    if not isinstance(key, CellKey):
        raise InvalidKeyError(f"Expected a cell key: {text!r}")
    return key


def decode_rate_key(text: str) -> RateKey:
    key = decode_key(text)
    if not isinstance(key, RateKey):
        raise InvalidKeyError(f"Expected a rate key: {text!r}")
    return key
