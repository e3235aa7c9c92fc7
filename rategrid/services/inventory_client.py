"""
Inventory Service Client

Async wrapper for the remote inventory/booking service that handles:
- Request/response logging with request_id (X-Request-ID header)
- Structured error mapping (transport vs API failures)
- Exponential backoff for idempotent GET requests
- Cancellation: every call takes a CancellationToken and a response that
  arrives after its token was cancelled is discarded
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from ..config import settings
from ..errors import InventoryApiError, InventoryTransportError
from ..models.supplier_data import RatePlan, SupplierData, Unit
from ..schemas.inventory import (
    BulkUpdateRequest,
    LocalBookingIn,
    RatePlanIn,
    RatePlanOut,
    StockDay,
    StockUpdateRequest,
    SupplierDataPayload,
    SyncStatus,
    UnitOut
)
from ..utils.cancellation import CancellationToken
from ..utils.logging_config import request_id_var

logger = logging.getLogger(__name__)


@dataclass
class InventoryError:
    """Default message for a status code"""
    code: str
    message: str
    retryable: bool = False


# Error mapping for inventory service responses
ERROR_MAP = {
    400: InventoryError("bad_request", "Invalid request"),
    404: InventoryError("not_found", "Resource not found"),
    409: InventoryError("conflict", "Conflicting update"),
    422: InventoryError("validation_error", "Invalid request data"),
    500: InventoryError("server_error", "Inventory service error", True),
    502: InventoryError("bad_gateway", "Inventory gateway error", True),
    503: InventoryError("service_unavailable", "Inventory service unavailable", True),
    504: InventoryError("gateway_timeout", "Inventory gateway timeout", True),
}


def _error_message(data: Any) -> Optional[str]:
    """Service-provided message: error.message, message or detail."""
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    for key in ("message", "detail"):
        if isinstance(data.get(key), str) and data[key]:
            return data[key]
    return None


class InventoryClient:
    """
    Client for inventory service operations.

    Only GET requests are retried; writes are sent once so a timed out
    bulk update is never applied twice.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
        retry_max_delay: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.base_url = (base_url or settings.inventory_base_url).rstrip("/")
        self.timeout = timeout or settings.inventory_timeout_seconds
        self.max_retries = max(1, max_retries if max_retries is not None else settings.inventory_max_retries)
        self.base_delay = settings.inventory_retry_base_delay if retry_base_delay is None else retry_base_delay
        self.max_delay = settings.inventory_retry_max_delay if retry_max_delay is None else retry_max_delay
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport
        )

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self) -> "InventoryClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    # ==================
    # Request plumbing
    # ==================

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "RateGrid/1.0",
            "X-Request-ID": request_id_var.get() or str(uuid.uuid4())
        }

    def _map_error(self, status_code: int, response: httpx.Response, data: Any) -> InventoryApiError:
        known = ERROR_MAP.get(status_code)
        message = _error_message(data)
        if not message:
            if known:
                message = known.message
            else:
                message = f"HTTP {status_code}: {response.reason_phrase or 'Request failed'}"

        if known:
            return InventoryApiError(message, status_code, known.code, known.retryable)
        if status_code >= 500:
            return InventoryApiError(message, status_code, "server_error", True)
        return InventoryApiError(message, status_code, "unknown", False)

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    async def _request(
        self,
        method: str,
        endpoint: str,
        token: CancellationToken,
        payload: Optional[Dict] = None,
        params: Optional[Dict] = None
    ) -> Any:
        """
        Send one request, retrying GETs on transport errors and 5xx.

        Raises InventoryTransportError, InventoryApiError or OperationCancelled.
        """
        attempts = self.max_retries if method == "GET" else 1
        headers = self._get_headers()
        last_error: Optional[Exception] = None

        for attempt in range(attempts):
            token.raise_if_cancelled()
            start_time = time.monotonic()

            try:
                response = await self._client.request(
                    method, endpoint, headers=headers, json=payload, params=params
                )
            except httpx.TransportError as e:
                last_error = InventoryTransportError(f"Cannot reach inventory service: {e}")
                logger.warning(
                    f"[{headers['X-Request-ID']}] {method} {endpoint} failed "
                    f"(attempt {attempt + 1}/{attempts}): {e}"
                )
            else:
                token.raise_if_cancelled()
                duration_ms = int((time.monotonic() - start_time) * 1000)
                data = self._parse_body(response)

                if 200 <= response.status_code < 300:
                    logger.debug(
                        f"[{headers['X-Request-ID']}] {method} {endpoint} -> "
                        f"{response.status_code} ({duration_ms}ms)"
                    )
                    return data

                error = self._map_error(response.status_code, response, data)
                logger.warning(
                    f"[{headers['X-Request-ID']}] {method} {endpoint} -> "
                    f"{response.status_code}: {error.message}"
                )
                if not error.retryable:
                    raise error
                last_error = error

            if attempt + 1 < attempts:
                delay = min(self.base_delay * (2 ** attempt), self.max_delay)
                await self._sleep(delay)

        token.raise_if_cancelled()
        raise last_error

    # ==================
    # Units and supplier data
    # ==================

    async def get_units(self, group_id: int, token: CancellationToken) -> List[Unit]:
        data = await self._request("GET", f"/api/suppliers/{group_id}/units", token)
        units = []
        for raw in data or []:
            try:
                units.append(UnitOut.model_validate(raw).to_domain())
            except ValueError:
                logger.warning(f"Skipping malformed unit in group {group_id}: {raw!r}")
        return units

    async def get_supplier_data(
        self,
        group_id: int,
        start: date,
        end: date,
        token: CancellationToken,
        units: Optional[List[Unit]] = None
    ) -> SupplierData:
        data = await self._request(
            "GET",
            f"/api/suppliers/{group_id}/supplier-data",
            token,
            params={"from": start.isoformat(), "to": end.isoformat()}
        )
        payload = SupplierDataPayload.model_validate(data or {})
        return payload.to_domain(group_id, units or [])

    async def bulk_update(
        self,
        group_id: int,
        request: BulkUpdateRequest,
        token: CancellationToken
    ) -> None:
        await self._request(
            "POST", f"/api/suppliers/{group_id}/bulk-update", token, payload=request.to_wire()
        )

    async def update_stock(
        self,
        group_id: int,
        unit_id: int,
        days: List[StockDay],
        token: CancellationToken
    ) -> None:
        body = StockUpdateRequest(days=days).model_dump(mode="json", by_alias=True)
        await self._request(
            "POST", f"/api/suppliers/{group_id}/units/{unit_id}/stock", token, payload=body
        )

    # ==================
    # Local bookings
    # ==================

    async def create_local_booking(
        self,
        group_id: int,
        booking: LocalBookingIn,
        token: CancellationToken
    ) -> Dict[str, Any]:
        body = booking.model_dump(mode="json", by_alias=True, exclude_none=True)
        data = await self._request("POST", f"/api/suppliers/{group_id}/local-bookings", token, payload=body)
        return data or {}

    async def delete_local_booking(self, group_id: int, booking_id: int, token: CancellationToken) -> None:
        await self._request("DELETE", f"/api/suppliers/{group_id}/local-bookings/{booking_id}", token)

    async def get_sync_status(self, group_id: int, token: CancellationToken) -> SyncStatus:
        data = await self._request("GET", f"/api/suppliers/{group_id}/sync-status", token)
        return SyncStatus.model_validate(data or {})

    # ==================
    # Rate plans
    # ==================

    async def list_rate_plans(self, group_id: int, token: CancellationToken) -> List[RatePlan]:
        data = await self._request("GET", f"/api/suppliers/{group_id}/rate-plans", token)
        return [RatePlanOut.model_validate(raw).to_domain() for raw in data or []]

    async def create_rate_plan(self, group_id: int, plan: RatePlanIn, token: CancellationToken) -> RatePlan:
        data = await self._request(
            "POST", f"/api/suppliers/{group_id}/rate-plans", token,
            payload=plan.model_dump(mode="json", exclude_none=True)
        )
        return RatePlanOut.model_validate(data).to_domain()

    async def update_rate_plan(
        self,
        group_id: int,
        rate_plan_id: int,
        plan: RatePlanIn,
        token: CancellationToken
    ) -> RatePlan:
        data = await self._request(
            "PUT", f"/api/suppliers/{group_id}/rate-plans/{rate_plan_id}", token,
            payload=plan.model_dump(mode="json", exclude_none=True)
        )
        if not data:
            return RatePlan(rate_plan_id, plan.label, plan.description, plan.order)
        return RatePlanOut.model_validate(data).to_domain()

    async def delete_rate_plan(self, group_id: int, rate_plan_id: int, token: CancellationToken) -> None:
        await self._request("DELETE", f"/api/suppliers/{group_id}/rate-plans/{rate_plan_id}", token)

    async def link_rate_plan(
        self,
        group_id: int,
        rate_plan_id: int,
        unit_id: int,
        token: CancellationToken
    ) -> None:
        await self._request(
            "POST", f"/api/suppliers/{group_id}/units/{unit_id}/rate-plans/{rate_plan_id}", token
        )

    async def unlink_rate_plan(
        self,
        group_id: int,
        rate_plan_id: int,
        unit_id: int,
        token: CancellationToken
    ) -> None:
        await self._request(
            "DELETE", f"/api/suppliers/{group_id}/units/{unit_id}/rate-plans/{rate_plan_id}", token
        )
