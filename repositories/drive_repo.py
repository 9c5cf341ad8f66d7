from __future__ import annotations

from pymongo import ReturnDocument

from core.database import db
from core.storage.types import BackendDefinition
from schemas.drive_schema import DriveOut


async def upsert_drive(definition: BackendDefinition, *, now: int) -> DriveOut:
    row = await db.drives.find_one_and_update(
        {"_id": definition.id},
        {
            "$set": {
                "provider": definition.provider.value,
                "credentials_ref": definition.credentials_ref,
                "updated_at": now,
            },
            "$setOnInsert": {
                "is_active": True,
                "used_bytes": 0,
                "total_bytes": 0,
                "last_polled_at": None,
                "created_at": now,
            },
        },
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return DriveOut(**row)


async def list_drives(*, active_only: bool = False) -> list[DriveOut]:
    query = {"is_active": True} if active_only else {}
    cursor = db.drives.find(query).sort("_id", 1)
    return [DriveOut(**row) async for row in cursor]


async def get_drive(drive_id: str) -> DriveOut | None:
    row = await db.drives.find_one({"_id": drive_id})
    if row is None:
        return None
    return DriveOut(**row)


async def update_drive_usage(drive_id: str, *, used_bytes: int, total_bytes: int, polled_at: int) -> DriveOut | None:
    row = await db.drives.find_one_and_update(
        {"_id": drive_id},
        {
            "$set": {
                "used_bytes": used_bytes,
                "total_bytes": total_bytes,
                "last_polled_at": polled_at,
                "updated_at": polled_at,
            }
        },
        return_document=ReturnDocument.AFTER,
    )
    if row is None:
        return None
    return DriveOut(**row)


async def set_drive_active(drive_id: str, *, is_active: bool, now: int) -> DriveOut | None:
    row = await db.drives.find_one_and_update(
        {"_id": drive_id},
        {"$set": {"is_active": is_active, "updated_at": now}},
        return_document=ReturnDocument.AFTER,
    )
    if row is None:
        return None
    return DriveOut(**row)
