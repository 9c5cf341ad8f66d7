from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Callable, Protocol

from core.storage.errors import BackendNotFound
from core.storage.provider import StorageProvider
from core.storage.types import BackendDefinition, StorageBackend
from schemas.drive_schema import DriveOut

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[StorageBackend], StorageProvider]


class DriveStore(Protocol):
    async def upsert_drive(self, definition: BackendDefinition, *, now: int) -> DriveOut:
        ...

    async def list_drives(self, *, active_only: bool = False) -> list[DriveOut]:
        ...

    async def get_drive(self, drive_id: str) -> DriveOut | None:
        ...

    async def update_drive_usage(
        self, drive_id: str, *, used_bytes: int, total_bytes: int, polled_at: int
    ) -> DriveOut | None:
        ...

    async def set_drive_active(self, drive_id: str, *, is_active: bool, now: int) -> DriveOut | None:
        ...


class BackendRegistry:
    """Configured storage backends and their provider clients.

    Usage figures live in the drive store; every read goes back to it, so
    readers see whatever the capacity monitor last wrote. Provider clients are
    built on first use and cached per backend id.
    """

    def __init__(self, *, store: DriveStore, provider_factory: ProviderFactory) -> None:
        self._store = store
        self._provider_factory = provider_factory
        self._providers: dict[str, StorageProvider] = {}
        self._providers_lock = Lock()

    async def bootstrap(self, definitions: list[BackendDefinition]) -> list[StorageBackend]:
        now = int(time.time())
        backends = []
        for definition in definitions:
            drive = await self._store.upsert_drive(definition, now=now)
            backends.append(drive.to_backend())
        logger.info("Registered %d storage backend(s)", len(backends))
        return backends

    async def list_active(self) -> list[StorageBackend]:
        drives = await self._store.list_drives(active_only=True)
        return [drive.to_backend() for drive in drives if drive.is_active]

    async def list_all(self) -> list[StorageBackend]:
        drives = await self._store.list_drives()
        return [drive.to_backend() for drive in drives]

    async def get(self, backend_id: str) -> StorageBackend:
        drive = await self._store.get_drive(backend_id)
        if drive is None:
            raise BackendNotFound(backend_id)
        return drive.to_backend()

    async def update_usage(self, backend_id: str, used_bytes: int, total_bytes: int) -> StorageBackend:
        drive = await self._store.update_drive_usage(
            backend_id,
            used_bytes=used_bytes,
            total_bytes=total_bytes,
            polled_at=int(time.time()),
        )
        if drive is None:
            raise BackendNotFound(backend_id)
        return drive.to_backend()

    async def set_active(self, backend_id: str, is_active: bool) -> StorageBackend:
        drive = await self._store.set_drive_active(backend_id, is_active=is_active, now=int(time.time()))
        if drive is None:
            raise BackendNotFound(backend_id)
        logger.info("Storage backend %s is_active=%s", backend_id, is_active)
        return drive.to_backend()

    def provider_for(self, backend: StorageBackend) -> StorageProvider:
        with self._providers_lock:
            provider = self._providers.get(backend.id)
            if provider is None:
                provider = self._provider_factory(backend)
                self._providers[backend.id] = provider
            return provider
