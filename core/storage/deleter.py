from __future__ import annotations

import logging
import re

from core.storage.errors import DeleteError, ProviderObjectNotFound
from core.storage.provider import call_provider
from core.storage.registry import BackendRegistry
from core.storage.types import StorageBackend

logger = logging.getLogger(__name__)

LINK_OBJECT_ID_PATTERN = re.compile(r"/d/([a-zA-Z0-9_-]+)")


def parse_object_id(link: str) -> str:
    match = LINK_OBJECT_ID_PATTERN.search(link or "")
    if match is None:
        raise DeleteError(f"unparseable link: {link!r}")
    return match.group(1)


class ObjectDeleter:
    def __init__(self, *, registry: BackendRegistry, timeout_seconds: float = 30) -> None:
        self._registry = registry
        self._timeout = timeout_seconds

    async def delete(self, link: str, *, backend_id: str | None = None) -> None:
        """Delete the object addressed by ``link``.

        Without ``backend_id`` every configured backend (active or not) is
        tried in turn. A backend that fails is skipped and the error is raised
        only when no other backend accepted the delete. An object no backend
        knows about counts as deleted.
        """
        object_id = parse_object_id(link)
        if backend_id is not None:
            backend = await self._registry.get(backend_id)
            if not await self._delete_from(backend, object_id):
                logger.info("Object %s was not found on backend %s; treating as deleted", object_id, backend_id)
            return

        last_error: DeleteError | None = None
        for backend in await self._registry.list_all():
            try:
                if await self._delete_from(backend, object_id):
                    return
            except DeleteError as err:
                logger.warning("Backend %s could not delete object %s: %s", backend.id, object_id, err)
                last_error = err
        if last_error is not None:
            raise last_error
        logger.info("Object %s was not found on any backend; treating as deleted", object_id)

    async def _delete_from(self, backend: StorageBackend, object_id: str) -> bool:
        provider = self._registry.provider_for(backend)
        try:
            await call_provider(provider.delete_object, object_id=object_id, timeout=self._timeout)
        except ProviderObjectNotFound:
            return False
        except TimeoutError as err:
            raise DeleteError(f"Deleting object {object_id} timed out", backend_id=backend.id) from err
        except Exception as err:
            raise DeleteError(f"Deleting object {object_id} failed: {err}", backend_id=backend.id) from err
        logger.info("Deleted object %s from backend %s", object_id, backend.id)
        return True
