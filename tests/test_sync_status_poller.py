"""
Tests for SyncStatusPoller

Tests cover:
- First marker remembered without refresh
- A changed marker refreshes once
- Poll and refresh failures are logged, never raised
- Start/stop lifecycle
"""

import asyncio
from unittest.mock import AsyncMock

from rategrid.errors import InventoryApiError, InventoryTransportError
from rategrid.schemas.inventory import SyncStatus
from rategrid.services.sync_status_poller import SyncStatusPoller


class FakeStatusClient:
    def __init__(self, markers):
        self.markers = {g: list(m) for g, m in markers.items()}
        self.calls = []

    async def get_sync_status(self, group_id, token):
        self.calls.append(group_id)
        marker = self.markers[group_id].pop(0)
        if isinstance(marker, Exception):
            raise marker
        return SyncStatus(last_change=marker)


def run(coro):
    return asyncio.run(coro)


class TestPollGroup:
    """Tests for marker comparison"""

    def test_first_marker_not_refreshed(self):
        on_change = AsyncMock()
        poller = SyncStatusPoller(FakeStatusClient({1: ["t1"]}), [1], on_change, interval_seconds=1)

        assert run(poller.poll_group(1)) is False
        assert poller.last_markers == {1: "t1"}
        on_change.assert_not_awaited()

    def test_changed_marker_refreshes_once(self):
        on_change = AsyncMock()
        client = FakeStatusClient({1: ["t1", "t2", "t2"]})
        poller = SyncStatusPoller(client, [1], on_change, interval_seconds=1)

        async def scenario():
            return [await poller.poll_group(1) for _ in range(3)]

        assert run(scenario()) == [False, True, False]
        on_change.assert_awaited_once_with(1)

    def test_missing_marker_ignored(self):
        on_change = AsyncMock()
        poller = SyncStatusPoller(FakeStatusClient({1: [None, None]}), [1], on_change, interval_seconds=1)

        assert run(poller.poll_group(1)) is False
        assert poller.last_markers == {}

    def test_poll_error_is_swallowed(self):
        on_change = AsyncMock()
        client = FakeStatusClient({1: [InventoryTransportError("refused"), "t1"]})
        poller = SyncStatusPoller(client, [1], on_change, interval_seconds=1)

        async def scenario():
            return [await poller.poll_group(1), await poller.poll_group(1)]

        assert run(scenario()) == [False, False]
        assert poller.last_markers == {1: "t1"}

    def test_refresh_error_is_swallowed(self):
        on_change = AsyncMock(side_effect=InventoryApiError("boom", 500))
        poller = SyncStatusPoller(FakeStatusClient({1: ["t1", "t2"]}), [1], on_change, interval_seconds=1)

        async def scenario():
            await poller.poll_group(1)
            return await poller.poll_group(1)

        assert run(scenario()) is True


class TestPollOnce:
    def test_returns_refreshed_groups(self):
        on_change = AsyncMock()
        client = FakeStatusClient({1: ["a", "a"], 2: ["b", "c"]})
        poller = SyncStatusPoller(client, [1, 2], on_change, interval_seconds=1)

        async def scenario():
            await poller.poll_once()
            return await poller.poll_once()

        assert run(scenario()) == [2]
        on_change.assert_awaited_once_with(2)


class TestLifecycle:
    def test_start_and_stop(self):
        client = FakeStatusClient({1: ["t1"] * 10})
        poller = SyncStatusPoller(client, [1], AsyncMock(), interval_seconds=60)

        async def scenario():
            poller.start()
            await asyncio.sleep(0)
            running = poller.running
            await poller.stop()
            return running

        assert run(scenario()) is True
        assert not poller.running
        assert client.calls == [1]
