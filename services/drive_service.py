from __future__ import annotations

from core.storage.manager import StorageManager
from core.storage.types import StorageBackend
from schemas.drive_schema import DriveSummaryOut, DriveUsageOut


def _summary(backend: StorageBackend, fallback_total_bytes: int) -> DriveSummaryOut:
    return DriveSummaryOut(
        id=backend.id,
        provider=backend.provider,
        is_active=backend.is_active,
        used_bytes=backend.used_bytes,
        total_bytes=backend.total_bytes,
        usage_percentage=round(backend.usage_ratio(fallback_total_bytes) * 100, 2),
        last_polled_at=backend.last_polled_at,
    )


async def list_drives(manager: StorageManager, *, fallback_total_bytes: int) -> list[DriveSummaryOut]:
    return [_summary(backend, fallback_total_bytes) for backend in await manager.registry.list_all()]


async def set_drive_active(
    manager: StorageManager,
    drive_id: str,
    *,
    is_active: bool,
    fallback_total_bytes: int,
) -> DriveSummaryOut:
    backend = await manager.registry.set_active(drive_id, is_active)
    return _summary(backend, fallback_total_bytes)


async def get_usage_report(manager: StorageManager) -> list[DriveUsageOut]:
    return [
        DriveUsageOut(
            backend_id=usage.backend_id,
            is_active=usage.is_active,
            used=usage.used_bytes,
            total=usage.total_bytes,
            usage_percentage=usage.percentage,
            last_polled_at=usage.last_polled_at,
        )
        for usage in await manager.usage_report()
    ]


async def poll_now(manager: StorageManager) -> dict:
    alerts = await manager.monitor.run_once()
    return {
        "alerts": [
            {"backend_id": alert.backend_id, "usage_ratio": alert.usage_ratio, "message": alert.message}
            for alert in alerts
        ]
    }
