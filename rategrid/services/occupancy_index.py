"""
Booking Occupancy Index

Expands each booking's [arrival, departure) interval into the set of
occupied dates per unit. Read-only input to selection eligibility.
"""

from datetime import date
from typing import Dict, Iterable, Optional, Set

from ..models.supplier_data import Booking
from ..utils.dates import stay_dates


def expand(bookings: Iterable[Booking]) -> Dict[int, Set[date]]:
    """
    Occupied dates per unit.

    Bookings whose departure is not after arrival contribute nothing.
    """
    occupied: Dict[int, Set[date]] = {}
    for booking in bookings:
        if booking.arrival is None or booking.departure is None:
            continue
        dates = stay_dates(booking.arrival, booking.departure)
        if not dates:
            continue
        occupied.setdefault(booking.unit_id, set()).update(dates)
    return occupied


class OccupancyIndex:
    """Occupied-date lookup rebuilt whenever the booking list changes"""

    def __init__(self, bookings: Iterable[Booking] = ()):
        self._bookings = list(bookings)
        self._occupied = expand(self._bookings)

    @property
    def occupied(self) -> Dict[int, Set[date]]:
        return self._occupied

    def is_occupied(self, unit_id: int, day: date) -> bool:
        return day in self._occupied.get(unit_id, ())

    def dates_for(self, unit_id: int) -> Set[date]:
        return set(self._occupied.get(unit_id, ()))

    def booking_at(self, unit_id: int, day: date) -> Optional[Booking]:
        """Booking covering this night, if any."""
        for booking in self._bookings:
            if booking.unit_id == unit_id and booking.arrival <= day < booking.departure:
                return booking
        return None
