"""
Error taxonomy

- Validation failures are rejected locally before any request is made.
- Transport failures (connection refused, timeout) and logical API failures are
  raised by the inventory client.
- Cancellation of a superseded request is never surfaced to the operator.
"""

from typing import Optional


class RateGridError(Exception):
    """Base class for all engine errors"""


class EditValidationError(RateGridError):
    """Invalid edit value or edit on an ineligible cell"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class InvalidKeyError(RateGridError, ValueError):
    """Dirty key text that does not decode to a cell or rate key"""


class OperationCancelled(RateGridError):
    """Raised when a cancellation token was triggered"""


class InventoryServiceError(RateGridError):
    """Base class for remote inventory service failures"""

    def __init__(self, message: str, status_code: int = 0, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code


class InventoryTransportError(InventoryServiceError):
    """Network failure: the service could not be reached"""


class InventoryApiError(InventoryServiceError):
    """The service answered with a structured failure"""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        error_code: Optional[str] = None,
        retryable: bool = False
    ):
        super().__init__(message, status_code, error_code)
        self.retryable = retryable
