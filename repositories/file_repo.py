from __future__ import annotations

from bson import ObjectId

from core.database import db
from schemas.file_schema import FileCreate, FileOut

_FILE_INDEXES_READY = False


async def _ensure_file_indexes() -> None:
    global _FILE_INDEXES_READY
    if _FILE_INDEXES_READY:
        return
    await db.files.create_index("file_link", name="idx_files_link")
    await db.files.create_index([("entity_type", 1), ("entity_id", 1)], name="idx_files_entity")
    await db.files.create_index([("owner_id", 1), ("uploaded_at", -1)], name="idx_files_owner")
    await db.files.create_index([("event_id", 1), ("uploaded_at", -1)], name="idx_files_event")
    await db.files.create_index("deleted_at", name="idx_files_deleted_at", sparse=True)
    _FILE_INDEXES_READY = True


async def create_file_record(record: FileCreate) -> FileOut:
    await _ensure_file_indexes()
    result = await db.files.insert_one(record.model_dump(mode="json"))
    stored = await db.files.find_one({"_id": result.inserted_id})
    return FileOut(**stored)  # type: ignore[arg-type]


async def get_file_record(file_id: str) -> FileOut | None:
    if not ObjectId.is_valid(file_id):
        return None
    row = await db.files.find_one({"_id": ObjectId(file_id)})
    if row is None:
        return None
    return FileOut(**row)


async def soft_delete_file_record(file_id: str, *, now: int) -> bool:
    if not ObjectId.is_valid(file_id):
        return False
    result = await db.files.update_one(
        {"_id": ObjectId(file_id), "deleted_at": None},
        {"$set": {"deleted_at": now}},
    )
    return bool(result.modified_count)


async def hard_delete_file_record(file_id: str) -> bool:
    if not ObjectId.is_valid(file_id):
        return False
    result = await db.files.delete_one({"_id": ObjectId(file_id)})
    return bool(result.deleted_count)


async def list_files_deleted_before(cutoff: int) -> list[FileOut]:
    cursor = db.files.find({"deleted_at": {"$ne": None, "$lt": cutoff}})
    return [FileOut(**row) async for row in cursor]


async def list_files_for_owner(owner_id: str) -> list[FileOut]:
    await _ensure_file_indexes()
    cursor = db.files.find({"owner_id": owner_id, "deleted_at": None}).sort("uploaded_at", -1)
    return [FileOut(**row) async for row in cursor]


async def list_files_for_event(event_id: str, *, owner_id: str | None = None) -> list[FileOut]:
    await _ensure_file_indexes()
    query: dict = {"event_id": event_id, "deleted_at": None}
    if owner_id is not None:
        query["owner_id"] = owner_id
    cursor = db.files.find(query).sort("uploaded_at", -1)
    return [FileOut(**row) async for row in cursor]


async def list_files_to_verify(*, limit: int = 100) -> list[FileOut]:
    cursor = db.files.find({"deleted_at": None}).sort([("last_verified_at", 1), ("uploaded_at", 1)]).limit(limit)
    return [FileOut(**row) async for row in cursor]


async def mark_file_verified(file_id: str, *, now: int) -> None:
    if not ObjectId.is_valid(file_id):
        return
    await db.files.update_one({"_id": ObjectId(file_id)}, {"$set": {"last_verified_at": now}})
