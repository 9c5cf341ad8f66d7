from __future__ import annotations

import asyncio

import pytest

from core.storage.errors import ProvisionError
from core.storage.namespace import NamespaceProvisioner
from fakes import FakeProvider


@pytest.mark.asyncio
async def test_ensure_creates_root_and_owner_folders(drive_store, registry, providers):
    drive_store.add("drive-a")
    backend = await registry.get("drive-a")
    provisioner = NamespaceProvisioner(registry=registry, root_folder="CulturalRegistry")

    handle = await provisioner.ensure(backend, "42")

    provider = providers["drive-a"]
    assert handle.backend_id == "drive-a"
    assert handle.path == ("CulturalRegistry", "user_42")
    root_id = next(fid for fid, (name, _) in provider.folders.items() if name == "CulturalRegistry")
    assert provider.folders[handle.container_id] == ("user_42", root_id)


@pytest.mark.asyncio
async def test_ensure_nests_event_folder_under_owner(drive_store, registry, providers):
    drive_store.add("drive-a")
    backend = await registry.get("drive-a")
    provisioner = NamespaceProvisioner(registry=registry)

    owner_handle = await provisioner.ensure(backend, "42")
    event_handle = await provisioner.ensure(backend, "42", "7")

    provider = providers["drive-a"]
    assert event_handle.path == ("CulturalRegistry", "user_42", "event_7")
    assert provider.folders[event_handle.container_id] == ("event_7", owner_handle.container_id)


@pytest.mark.asyncio
async def test_ensure_is_idempotent(drive_store, registry, providers):
    drive_store.add("drive-a")
    backend = await registry.get("drive-a")
    provisioner = NamespaceProvisioner(registry=registry)

    first = await provisioner.ensure(backend, "42", "7")
    second = await provisioner.ensure(backend, "42", "7")

    assert first == second
    assert providers["drive-a"].calls.count("create_folder") == 3


@pytest.mark.asyncio
async def test_concurrent_ensure_does_not_duplicate_folders(drive_store, registry, providers):
    drive_store.add("drive-a")
    backend = await registry.get("drive-a")
    provisioner = NamespaceProvisioner(registry=registry)

    handles = await asyncio.gather(*(provisioner.ensure(backend, "42") for _ in range(5)))

    assert len({handle.container_id for handle in handles}) == 1
    assert len(providers["drive-a"].folders) == 2


@pytest.mark.asyncio
async def test_ensure_reuses_oldest_of_duplicate_folders(drive_store, registry, providers):
    drive_store.add("drive-a")
    backend = await registry.get("drive-a")
    provider = registry.provider_for(backend)
    root_id = provider.create_folder(name="CulturalRegistry", parent_id=None)
    first_owner = provider.create_folder(name="user_42", parent_id=root_id)
    provider.create_folder(name="user_42", parent_id=root_id)

    handle = await NamespaceProvisioner(registry=registry).ensure(backend, "42")

    assert handle.container_id == first_owner


@pytest.mark.asyncio
async def test_ensure_wraps_provider_failures(drive_store, registry, providers):
    drive_store.add("drive-a")
    backend = await registry.get("drive-a")
    provider = registry.provider_for(backend)

    def _broken_find(*, name, parent_id):
        raise RuntimeError("quota exceeded")

    provider.find_folders = _broken_find

    with pytest.raises(ProvisionError) as exc_info:
        await NamespaceProvisioner(registry=registry).ensure(backend, "42")

    assert exc_info.value.backend_id == "drive-a"
    assert "quota exceeded" in exc_info.value.message


@pytest.mark.asyncio
async def test_concurrent_event_folders_share_one_root_and_owner(drive_store, registry, providers):
    drive_store.add("drive-a")
    backend = await registry.get("drive-a")
    provisioner = NamespaceProvisioner(registry=registry)

    handles = await asyncio.gather(*(provisioner.ensure(backend, "42", event) for event in ("0", "1", "2")))

    names = [name for name, _ in providers["drive-a"].folders.values()]
    assert names.count("CulturalRegistry") == 1
    assert names.count("user_42") == 1
    assert len(names) == 5
    assert len({handle.container_id for handle in handles}) == 3


@pytest.mark.asyncio
async def test_concurrent_owners_share_one_root(drive_store, registry, providers):
    drive_store.add("drive-a")
    backend = await registry.get("drive-a")
    provisioner = NamespaceProvisioner(registry=registry)

    await asyncio.gather(*(provisioner.ensure(backend, owner) for owner in ("1", "2", "3")))

    names = [name for name, _ in providers["drive-a"].folders.values()]
    assert names.count("CulturalRegistry") == 1
    assert sorted(names) == ["CulturalRegistry", "user_1", "user_2", "user_3"]


@pytest.mark.asyncio
async def test_folder_locks_are_released_after_use(drive_store, registry, providers):
    drive_store.add("drive-a")
    backend = await registry.get("drive-a")
    provisioner = NamespaceProvisioner(registry=registry)

    await asyncio.gather(*(provisioner.ensure(backend, str(owner), "7") for owner in range(10)))

    assert provisioner._locks == {}


@pytest.mark.asyncio
@pytest.mark.parametrize("owner_id, event_id", [("../../etc", None), ("42", ".."), ("42", "a/b"), ("", None)])
async def test_ensure_rejects_unsafe_identifiers(drive_store, registry, providers, owner_id, event_id):
    drive_store.add("drive-a")
    providers["drive-a"] = FakeProvider()
    backend = await registry.get("drive-a")

    with pytest.raises(ProvisionError) as exc_info:
        await NamespaceProvisioner(registry=registry).ensure(backend, owner_id, event_id)

    assert exc_info.value.backend_id == "drive-a"
    assert providers["drive-a"].calls == []
