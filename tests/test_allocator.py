from __future__ import annotations

import pytest

from core.storage.allocator import Allocator
from core.storage.errors import NoBackendAvailable


@pytest.mark.asyncio
async def test_select_backend_picks_least_used_active_backend(drive_store, registry):
    drive_store.add("drive-a", used_bytes=500)
    drive_store.add("drive-b", used_bytes=100)
    drive_store.add("drive-c", used_bytes=10, is_active=False)

    backend = await Allocator(registry=registry).select_backend()

    assert backend.id == "drive-b"


@pytest.mark.asyncio
async def test_select_backend_breaks_ties_by_lowest_id(drive_store, registry):
    drive_store.add("drive-b", used_bytes=100)
    drive_store.add("drive-a", used_bytes=100)

    backend = await Allocator(registry=registry).select_backend()

    assert backend.id == "drive-a"


@pytest.mark.asyncio
async def test_select_backend_raises_when_no_backend_is_active(drive_store, registry):
    drive_store.add("drive-a", is_active=False)

    with pytest.raises(NoBackendAvailable):
        await Allocator(registry=registry).select_backend()


@pytest.mark.asyncio
async def test_select_backend_raises_when_nothing_is_configured(registry):
    with pytest.raises(NoBackendAvailable) as exc_info:
        await Allocator(registry=registry).select_backend()

    assert exc_info.value.message == "No storage capacity configured"


@pytest.mark.asyncio
async def test_select_backend_follows_usage_written_by_the_monitor(drive_store, registry):
    drive_store.add("drive-a", used_bytes=100)
    drive_store.add("drive-b", used_bytes=200)
    allocator = Allocator(registry=registry)

    assert (await allocator.select_backend()).id == "drive-a"

    await registry.update_usage("drive-a", 900, 1000)

    assert (await allocator.select_backend()).id == "drive-b"
