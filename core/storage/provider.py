from __future__ import annotations

import asyncio
from typing import Any, BinaryIO, Callable, Protocol, TypeVar

from core.storage.types import AccessGrant, ProviderObject, ProviderQuota

T = TypeVar("T")


class StorageProvider(Protocol):
    backend_name: str

    def get_quota(self) -> ProviderQuota:
        ...

    def find_folders(self, *, name: str, parent_id: str | None) -> list[str]:
        ...

    def create_folder(self, *, name: str, parent_id: str | None) -> str:
        ...

    def upload_object(
        self,
        *,
        parent_id: str,
        name: str,
        stream: BinaryIO,
        mime_type: str,
    ) -> ProviderObject:
        ...

    def grant_access(self, *, object_id: str, grant: AccessGrant) -> None:
        ...

    def delete_object(self, *, object_id: str) -> None:
        ...

    def object_exists(self, *, object_id: str) -> bool:
        ...


async def call_provider(func: Callable[..., T], *args: Any, timeout: float, **kwargs: Any) -> T:
    # Blocking provider call on a worker thread, bounded by timeout.
    return await asyncio.wait_for(asyncio.to_thread(func, *args, **kwargs), timeout=timeout)
