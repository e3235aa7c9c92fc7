"""
Supplier loading and the multi-group workspace

SupplierLoader fetches one unit group (units, then supplier data) under a
cancellation token; a new load of the same group supersedes the previous
one, whose result is discarded.

CalendarWorkspace keeps one CalendarSession per unit group and turns
per-group load/save outcomes into a single operator message.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional

from ..errors import InventoryServiceError, InventoryTransportError, OperationCancelled
from ..models.supplier_data import SupplierData
from ..utils.cancellation import CancellationScope, CancellationToken
from ..utils.logging_config import get_logger
from .calendar_session import CalendarSession, SaveResult
from .inventory_client import InventoryClient

logger = get_logger(__name__)

UNREACHABLE_MESSAGE = "Cannot reach the inventory service. Check that it is running and try again."


class SupplierLoader:
    def __init__(self, client: InventoryClient):
        self.client = client
        self.scope = CancellationScope()

    async def load(self, group_id: int, start: date, end: date) -> Optional[SupplierData]:
        """
        Load one group. Returns None when a newer load superseded this one.

        Raises InventoryServiceError on failure.
        """
        token = self.scope.issue(group_id)
        try:
            units = await self.client.get_units(group_id, token)
            data = await self.client.get_supplier_data(group_id, start, end, token, units=units)
        except OperationCancelled:
            logger.debug(f"Load of group {group_id} superseded")
            return None

        if not self.scope.is_current(group_id, token):
            return None
        return data

    def cancel_all(self):
        self.scope.cancel_all()


@dataclass
class LoadOutcome:
    loaded: List[int] = field(default_factory=list)
    failed: Dict[int, InventoryServiceError] = field(default_factory=dict)
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass
class SaveOutcome:
    results: Dict[int, SaveResult] = field(default_factory=dict)
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results.values())

    @property
    def failed_groups(self) -> List[int]:
        return [g for g, r in self.results.items() if not r.ok]


def aggregate_load_errors(failed: Dict[int, InventoryServiceError], total: int) -> Optional[str]:
    """
    One message for a multi-group load:
    - every group unreachable: the "cannot reach service" message
    - every group failed otherwise: the first error
    - some groups failed: every error, joined
    """
    if not failed:
        return None

    errors = list(failed.values())
    if len(failed) == total:
        if all(isinstance(e, InventoryTransportError) for e in errors):
            return UNREACHABLE_MESSAGE
        return f"Error while loading data: {errors[0].message}"

    details = "; ".join(f"group {group_id}: {error.message}" for group_id, error in failed.items())
    return f"Some data could not be loaded: {details}"


class CalendarWorkspace:
    def __init__(self, client: InventoryClient, today: Optional[date] = None):
        self.client = client
        self.loader = SupplierLoader(client)
        self.sessions: Dict[int, CalendarSession] = {}
        self._today = today

    def session(self, group_id: int) -> CalendarSession:
        if group_id not in self.sessions:
            self.sessions[group_id] = CalendarSession(group_id, today=self._today)
        return self.sessions[group_id]

    async def _load_one(self, group_id: int, keep_edits: bool = False) -> bool:
        session = self.session(group_id)
        data = await self.loader.load(group_id, session.window_start, session.window_end)
        if data is None:
            return False
        session.apply_loaded_data(data, keep_edits=keep_edits)
        return True

    async def load_all(self, group_ids: Iterable[int]) -> LoadOutcome:
        groups = list(group_ids)
        outcome = LoadOutcome()
        results = await asyncio.gather(
            *(self._load_one(g) for g in groups), return_exceptions=True
        )

        for group_id, result in zip(groups, results):
            if isinstance(result, InventoryServiceError):
                logger.load_failed(group_id, result.message)
                outcome.failed[group_id] = result
            elif isinstance(result, BaseException):
                raise result
            elif result:
                outcome.loaded.append(group_id)

        outcome.message = aggregate_load_errors(outcome.failed, len(groups))
        return outcome

    async def refresh(self, group_id: int, keep_edits: bool = True) -> bool:
        """Reload one group, keeping staged edits by default."""
        try:
            return await self._load_one(group_id, keep_edits=keep_edits)
        except InventoryServiceError as e:
            logger.load_failed(group_id, e.message)
            return False

    async def save_all(self, token: Optional[CancellationToken] = None) -> SaveOutcome:
        outcome = SaveOutcome()
        for group_id, session in self.sessions.items():
            if not session.edits.has_changes():
                continue
            outcome.results[group_id] = await session.save(self.client, token)

        failed = outcome.failed_groups
        if failed:
            details = "; ".join(f"group {g}: {outcome.results[g].error}" for g in failed)
            outcome.message = f"Save failed for {len(failed)} group(s): {details}"
        return outcome
