from __future__ import annotations

from core.storage.errors import NoBackendAvailable
from core.storage.registry import BackendRegistry
from core.storage.types import StorageBackend


class Allocator:
    def __init__(self, *, registry: BackendRegistry) -> None:
        self._registry = registry

    async def select_backend(self) -> StorageBackend:
        """Least-used active backend; ties go to the lowest id."""
        candidates = [backend for backend in await self._registry.list_active() if backend.is_active]
        if not candidates:
            raise NoBackendAvailable()
        return min(candidates, key=lambda backend: (backend.used_bytes, backend.id))
