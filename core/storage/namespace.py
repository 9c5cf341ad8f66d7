from __future__ import annotations

import asyncio
import logging
import re
from contextlib import asynccontextmanager
from typing import AsyncIterator

from core.storage.errors import ProvisionError
from core.storage.provider import StorageProvider, call_provider
from core.storage.registry import BackendRegistry
from core.storage.types import NamespaceHandle, StorageBackend

logger = logging.getLogger(__name__)

DEFAULT_ROOT_FOLDER = "CulturalRegistry"
OWNER_PREFIX = "user_"
EVENT_PREFIX = "event_"
NAMESPACE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

FolderKey = tuple[str, str | None, str]


def is_valid_namespace_id(value: str | None) -> bool:
    return value is not None and NAMESPACE_ID_PATTERN.fullmatch(value) is not None


def owner_folder_name(owner_id: str) -> str:
    return f"{OWNER_PREFIX}{owner_id}"


def event_folder_name(event_id: str) -> str:
    return f"{EVENT_PREFIX}{event_id}"


class _FolderLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class NamespaceProvisioner:
    """Find-or-create of the ``root / user_<owner> [/ event_<event>]`` tree.

    Each folder lookup is serialized in process on (backend, parent, name), so
    concurrent first uploads share the root and owner folders instead of
    creating sibling duplicates. A lock is dropped as soon as nobody holds or
    waits on it.
    """

    def __init__(
        self,
        *,
        registry: BackendRegistry,
        root_folder: str = DEFAULT_ROOT_FOLDER,
        timeout_seconds: float = 30,
    ) -> None:
        self._registry = registry
        self._root_folder = root_folder
        self._timeout = timeout_seconds
        self._locks: dict[FolderKey, _FolderLock] = {}

    async def ensure(self, backend: StorageBackend, owner_id: str, event_id: str | None = None) -> NamespaceHandle:
        path = [self._root_folder, owner_folder_name(owner_id)]
        if event_id is not None:
            path.append(event_folder_name(event_id))
        if not is_valid_namespace_id(owner_id) or (event_id is not None and not is_valid_namespace_id(event_id)):
            raise ProvisionError(f"Invalid namespace '{'/'.join(path)}'", backend_id=backend.id)

        provider = self._registry.provider_for(backend)
        parent_id: str | None = None
        try:
            for segment in path:
                async with self._folder_lock((backend.id, parent_id, segment)):
                    parent_id = await self._resolve(provider, name=segment, parent_id=parent_id)
        except TimeoutError as err:
            raise ProvisionError(
                f"Timed out provisioning '{'/'.join(path)}' after {self._timeout}s",
                backend_id=backend.id,
            ) from err
        except Exception as err:
            raise ProvisionError(
                f"Could not provision '{'/'.join(path)}': {err}",
                backend_id=backend.id,
            ) from err

        return NamespaceHandle(backend_id=backend.id, container_id=parent_id, path=tuple(path))  # type: ignore[arg-type]

    @asynccontextmanager
    async def _folder_lock(self, key: FolderKey) -> AsyncIterator[None]:
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _FolderLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._locks.pop(key, None)

    async def _resolve(self, provider: StorageProvider, *, name: str, parent_id: str | None) -> str:
        matches = await call_provider(provider.find_folders, name=name, parent_id=parent_id, timeout=self._timeout)
        if matches:
            if len(matches) > 1:
                logger.warning("Found %d folders named %s under %s; using the oldest", len(matches), name, parent_id)
            return matches[0]
        folder_id = await call_provider(provider.create_folder, name=name, parent_id=parent_id, timeout=self._timeout)
        logger.info("Created folder %s under %s", name, parent_id or "<root>")
        return folder_id
