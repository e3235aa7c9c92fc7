"""
Sync Status Poller

Background task polling the inventory service's sync status per unit
group. The first observed "last change" marker is only remembered; a later
different marker triggers one refresh of that group.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from ..config import settings
from ..errors import InventoryServiceError, OperationCancelled
from ..utils.cancellation import CancellationToken
from .inventory_client import InventoryClient

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[int], Awaitable[object]]


class SyncStatusPoller:
    def __init__(
        self,
        client: InventoryClient,
        group_ids: Iterable[int],
        on_change: RefreshCallback,
        interval_seconds: Optional[float] = None
    ):
        self.client = client
        self.group_ids: List[int] = list(group_ids)
        self.on_change = on_change
        self.interval_seconds = interval_seconds or settings.sync_poll_interval_seconds
        self.last_markers: Dict[int, str] = {}
        self._token = CancellationToken()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def poll_group(self, group_id: int) -> bool:
        """
        Poll one group. Returns True when a refresh was triggered.
        """
        try:
            status = await self.client.get_sync_status(group_id, self._token)
        except (InventoryServiceError, OperationCancelled) as e:
            logger.warning(f"Sync status poll failed for group {group_id}: {e}")
            return False

        marker = status.last_change
        if marker is None:
            return False

        previous = self.last_markers.get(group_id)
        self.last_markers[group_id] = marker
        if previous is None or previous == marker:
            return False

        logger.info(f"Group {group_id} changed remotely ({previous} -> {marker}), refreshing")
        try:
            await self.on_change(group_id)
        except InventoryServiceError as e:
            logger.warning(f"Refresh after sync change failed for group {group_id}: {e}")
        return True

    async def poll_once(self) -> List[int]:
        """Poll every group once; returns the groups that were refreshed."""
        refreshed = []
        for group_id in self.group_ids:
            if await self.poll_group(group_id):
                refreshed.append(group_id)
        return refreshed

    async def _run(self):
        logger.info(
            f"Sync status poller started for groups {self.group_ids} "
            f"(interval: {self.interval_seconds}s)"
        )
        while not self._token.cancelled:
            await self.poll_once()
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> asyncio.Task:
        if not self.running:
            self._token = CancellationToken()
            self._task = asyncio.create_task(self._run())
        return self._task

    async def stop(self):
        self._token.cancel("Poller stopped")
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Sync status poller stopped")
