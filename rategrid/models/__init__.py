# Models package
from .keys import CellKey, RateKey, encode_key, decode_key, decode_cell_key, decode_rate_key
from .supplier_data import (
    SupplierData,
    Unit,
    RatePlan,
    Booking,
    BookingStatus,
    merge_supplier_data,
    apply_saved_values
)

__all__ = [
    "CellKey", "RateKey", "encode_key", "decode_key", "decode_cell_key", "decode_rate_key",
    "SupplierData", "Unit", "RatePlan", "Booking", "BookingStatus",
    "merge_supplier_data", "apply_saved_values"
]
