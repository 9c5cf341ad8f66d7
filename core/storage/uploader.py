from __future__ import annotations

import logging
from typing import BinaryIO

from core.storage.errors import ProviderObjectNotFound, StorageNearlyFull, UploadError
from core.storage.monitor import DEFAULT_ALERT_THRESHOLD
from core.storage.probe import DEFAULT_FALLBACK_TOTAL_BYTES
from core.storage.provider import StorageProvider, call_provider
from core.storage.registry import BackendRegistry
from core.storage.types import (
    AccessGrant,
    GranteeType,
    GrantRole,
    NamespaceHandle,
    StorageBackend,
    StoredObjectRef,
)

logger = logging.getLogger(__name__)


class ObjectUploader:
    """Streams a file into a namespace and opens it up for link access.

    Every stored object gets a writer grant for the operating account and a
    public reader grant, so anyone holding the retrieval link can fetch it.
    """

    def __init__(
        self,
        *,
        registry: BackendRegistry,
        operator_email: str | None,
        threshold: float = DEFAULT_ALERT_THRESHOLD,
        fallback_total_bytes: int = DEFAULT_FALLBACK_TOTAL_BYTES,
        timeout_seconds: float = 30,
    ) -> None:
        self._registry = registry
        self._operator_email = operator_email
        self._threshold = threshold
        self._fallback_total_bytes = fallback_total_bytes
        self._timeout = timeout_seconds

    def _grants(self) -> list[AccessGrant]:
        grants = []
        if self._operator_email:
            grants.append(
                AccessGrant(role=GrantRole.WRITER, grantee_type=GranteeType.USER, email_address=self._operator_email)
            )
        grants.append(AccessGrant(role=GrantRole.READER, grantee_type=GranteeType.ANYONE))
        return grants

    async def upload(
        self,
        backend: StorageBackend,
        namespace: NamespaceHandle,
        *,
        display_name: str,
        stream: BinaryIO,
        mime_type: str,
        declared_size: int,
    ) -> StoredObjectRef:
        ratio = backend.usage_ratio(self._fallback_total_bytes)
        if ratio >= self._threshold:
            raise StorageNearlyFull(backend.id, ratio)

        provider = self._registry.provider_for(backend)
        try:
            created = await call_provider(
                provider.upload_object,
                parent_id=namespace.container_id,
                name=display_name,
                stream=stream,
                mime_type=mime_type,
                timeout=self._timeout,
            )
        except TimeoutError as err:
            raise UploadError(f"Upload of '{display_name}' timed out", backend_id=backend.id) from err
        except Exception as err:
            raise UploadError(f"Upload of '{display_name}' failed: {err}", backend_id=backend.id) from err

        try:
            for grant in self._grants():
                await call_provider(provider.grant_access, object_id=created.object_id, grant=grant, timeout=self._timeout)
        except Exception as err:
            await self._discard(provider, backend, created.object_id)
            raise UploadError(
                f"Could not grant access on '{display_name}': {err}",
                backend_id=backend.id,
            ) from err

        return StoredObjectRef(
            backend_id=backend.id,
            provider_object_id=created.object_id,
            retrieval_link=created.link,
            size_bytes=created.size if created.size is not None else declared_size,
            mime_type=mime_type,
        )

    async def _discard(self, provider: StorageProvider, backend: StorageBackend, object_id: str) -> None:
        try:
            await call_provider(provider.delete_object, object_id=object_id, timeout=self._timeout)
            logger.info("Removed partially configured object %s from backend %s", object_id, backend.id)
        except ProviderObjectNotFound:
            pass
        except Exception:
            logger.exception("Could not remove partially configured object %s from backend %s", object_id, backend.id)
