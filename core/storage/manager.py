from __future__ import annotations

import logging
from typing import TYPE_CHECKING, BinaryIO

from core.storage.allocator import Allocator
from core.storage.deleter import ObjectDeleter
from core.storage.monitor import CapacityMonitor
from core.storage.namespace import NamespaceProvisioner
from core.storage.notifier import AdminSource, Notifier
from core.storage.probe import CapacityProbe
from core.storage.provider import StorageProvider, call_provider
from core.storage.registry import BackendRegistry, DriveStore
from core.storage.types import BackendUsage, ProviderKind, StorageBackend, StoredObjectRef
from core.storage.uploader import ObjectUploader

if TYPE_CHECKING:
    from core.settings import Settings

logger = logging.getLogger(__name__)


def build_provider_factory(settings: "Settings"):
    def factory(backend: StorageBackend) -> StorageProvider:
        if backend.provider == ProviderKind.GOOGLE_DRIVE:
            from core.storage.google_drive_provider import GoogleDriveStorageProvider

            return GoogleDriveStorageProvider(credentials_path=backend.credentials_ref)

        from core.storage.local_provider import LocalStorageProvider

        return LocalStorageProvider(
            root_dir=backend.credentials_ref,
            public_base_url=settings.storage_public_base_url,
        )

    return factory


class StorageManager:
    """Entry points the rest of the application uses for stored files.

    One instance is built at startup and handed to routes and jobs; it owns
    the registry and the components that share it.
    """

    def __init__(
        self,
        *,
        registry: BackendRegistry,
        allocator: Allocator,
        provisioner: NamespaceProvisioner,
        uploader: ObjectUploader,
        deleter: ObjectDeleter,
        monitor: CapacityMonitor,
        timeout_seconds: float = 30,
    ) -> None:
        self.registry = registry
        self.allocator = allocator
        self.provisioner = provisioner
        self.uploader = uploader
        self.deleter = deleter
        self.monitor = monitor
        self._timeout = timeout_seconds

    @classmethod
    def build(
        cls,
        settings: "Settings",
        *,
        store: DriveStore,
        notifier: Notifier,
        admin_source: AdminSource,
        provider_factory=None,
    ) -> "StorageManager":
        timeout = settings.storage_provider_timeout_seconds
        registry = BackendRegistry(
            store=store,
            provider_factory=provider_factory or build_provider_factory(settings),
        )
        probe = CapacityProbe(
            registry=registry,
            fallback_total_bytes=settings.storage_fallback_total_bytes,
            timeout_seconds=timeout,
        )
        return cls(
            registry=registry,
            allocator=Allocator(registry=registry),
            provisioner=NamespaceProvisioner(
                registry=registry,
                root_folder=settings.storage_root_folder,
                timeout_seconds=timeout,
            ),
            uploader=ObjectUploader(
                registry=registry,
                operator_email=settings.storage_operator_email,
                threshold=settings.storage_alert_threshold,
                fallback_total_bytes=settings.storage_fallback_total_bytes,
                timeout_seconds=timeout,
            ),
            deleter=ObjectDeleter(registry=registry, timeout_seconds=timeout),
            monitor=CapacityMonitor(
                registry=registry,
                probe=probe,
                notifier=notifier,
                admin_source=admin_source,
                threshold=settings.storage_alert_threshold,
                alert_cooldown_seconds=settings.storage_alert_cooldown_minutes * 60,
            ),
            timeout_seconds=timeout,
        )

    async def place_and_upload(
        self,
        *,
        owner_id: str,
        event_id: str | None,
        display_name: str,
        stream: BinaryIO,
        mime_type: str,
        size: int,
    ) -> StoredObjectRef:
        backend = await self.allocator.select_backend()
        namespace = await self.provisioner.ensure(backend, owner_id, event_id)
        stored = await self.uploader.upload(
            backend,
            namespace,
            display_name=display_name,
            stream=stream,
            mime_type=mime_type,
            declared_size=size,
        )
        logger.info(
            "Stored %s (%d bytes) as %s on backend %s",
            display_name,
            stored.size_bytes,
            stored.provider_object_id,
            backend.id,
        )
        return stored

    async def remove_stored_object(self, link: str, *, backend_id: str | None = None) -> None:
        await self.deleter.delete(link, backend_id=backend_id)

    async def object_exists(self, backend_id: str, object_id: str) -> bool:
        backend = await self.registry.get(backend_id)
        provider = self.registry.provider_for(backend)
        return await call_provider(provider.object_exists, object_id=object_id, timeout=self._timeout)

    async def usage_report(self) -> list[BackendUsage]:
        return [
            BackendUsage(
                backend_id=backend.id,
                is_active=backend.is_active,
                used_bytes=backend.used_bytes,
                total_bytes=backend.total_bytes,
                last_polled_at=backend.last_polled_at,
            )
            for backend in await self.registry.list_all()
        ]

