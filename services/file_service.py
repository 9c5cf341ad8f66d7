from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import BinaryIO

from core.errors import AppException, ErrorCode, resource_not_found
from core.storage.errors import StorageError
from core.storage.manager import StorageManager
from core.storage.namespace import is_valid_namespace_id
from repositories.file_repo import (
    create_file_record,
    get_file_record,
    hard_delete_file_record,
    list_files_deleted_before,
    list_files_for_event,
    list_files_for_owner,
    list_files_to_verify,
    mark_file_verified,
    soft_delete_file_record,
)
from schemas.file_schema import FileCreate, FileEntityType, FileOut, FileType, IntegrityReport, PurgeReport

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60
MEGABYTE = 1024 * 1024

_DOCUMENT_AND_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "application/pdf"})


@dataclass(frozen=True)
class UploadRule:
    category: str
    max_size_bytes: int
    allowed_mime_types: frozenset[str]


PAYMENT_PROOF_RULE = UploadRule("payment_proof", 10 * MEGABYTE, _DOCUMENT_AND_IMAGE_TYPES)
REPORT_RULE = UploadRule("report", 10 * MEGABYTE, _DOCUMENT_AND_IMAGE_TYPES | {"video/mp4"})
USER_RULE = UploadRule("user", 50 * MEGABYTE, _DOCUMENT_AND_IMAGE_TYPES | {"video/mp4"})


def upload_rule_for(entity_type: FileEntityType, file_type: FileType) -> UploadRule:
    if file_type == FileType.PAYMENT_PROOF:
        return PAYMENT_PROOF_RULE
    if entity_type == FileEntityType.EVENT_REPORT:
        return REPORT_RULE
    return USER_RULE


def _invalid_upload(message: str, *, status_code: int = 400, **details) -> AppException:
    return AppException(
        status_code=status_code,
        code=ErrorCode.FILE_UPLOAD_INVALID,
        message=message,
        details=details,
    )


def _epoch() -> int:
    return int(time.time())


def stored_object_name(owner_id: str, file_name: str) -> str:
    return f"{owner_id}_{int(time.time() * 1000)}_{file_name}"


async def upload_file(
    manager: StorageManager,
    *,
    owner_id: str,
    event_id: str | None,
    entity_type: FileEntityType | None,
    file_type: FileType,
    category: str | None,
    file_name: str,
    mime_type: str,
    size: int,
    stream: BinaryIO,
    max_size_bytes: int,
) -> FileOut:
    event_id = event_id or None
    if not is_valid_namespace_id(owner_id):
        raise _invalid_upload("Invalid owner_id", owner_id=owner_id)
    if event_id is not None and not is_valid_namespace_id(event_id):
        raise _invalid_upload("Invalid event_id", event_id=event_id)

    if entity_type is None:
        entity_type = FileEntityType.EVENT if event_id else FileEntityType.USER
    if entity_type != FileEntityType.USER and not event_id:
        raise _invalid_upload("event_id is required for event files", entity_type=entity_type.value)

    rule = upload_rule_for(entity_type, file_type)
    limit = min(rule.max_size_bytes, max_size_bytes)
    if size <= 0:
        raise _invalid_upload("File is empty", max_size_bytes=limit)
    if size > limit:
        raise _invalid_upload("File too large", status_code=413, category=rule.category, max_size_bytes=limit)
    if mime_type not in rule.allowed_mime_types:
        raise _invalid_upload(
            f"File type {mime_type} is not allowed for {rule.category} uploads",
            category=rule.category,
            allowed_mime_types=sorted(rule.allowed_mime_types),
        )

    stored = await manager.place_and_upload(
        owner_id=owner_id,
        event_id=event_id,
        display_name=stored_object_name(owner_id, file_name),
        stream=stream,
        mime_type=mime_type,
        size=size,
    )

    record = FileCreate(
        entity_type=entity_type,
        entity_id=event_id if entity_type != FileEntityType.USER else owner_id,  # type: ignore[arg-type]
        owner_id=owner_id,
        event_id=event_id,
        file_type=file_type,
        category=category,
        file_name=file_name,
        mime_type=stored.mime_type,
        file_size=stored.size_bytes,
        file_id=stored.provider_object_id,
        file_link=stored.retrieval_link,
        backend_id=stored.backend_id,
        uploaded_at=_epoch(),
    )
    try:
        return await create_file_record(record)
    except Exception:
        logger.exception("Could not record upload %s; removing stored object", stored.provider_object_id)
        try:
            await manager.remove_stored_object(stored.retrieval_link, backend_id=stored.backend_id)
        except StorageError as err:
            logger.error("Stored object %s left orphaned: %s", stored.provider_object_id, err.message)
        raise


async def get_file(file_id: str) -> FileOut:
    record = await get_file_record(file_id)
    if record is None or record.is_deleted:
        raise resource_not_found("File", file_id)
    return record


async def list_owner_files(owner_id: str) -> list[FileOut]:
    return await list_files_for_owner(owner_id)


async def list_event_files(event_id: str, *, owner_id: str | None = None) -> list[FileOut]:
    """Live files of an event, optionally narrowed to one owner's uploads."""
    return await list_files_for_event(event_id, owner_id=owner_id)


async def delete_file(file_id: str) -> bool:
    await get_file(file_id)
    deleted = await soft_delete_file_record(file_id, now=_epoch())
    if not deleted:
        raise resource_not_found("File", file_id)
    return True


async def purge_deleted_files(manager: StorageManager, *, older_than_days: int) -> PurgeReport:
    """Remove stored objects for records soft-deleted more than ``older_than_days`` ago."""
    report = PurgeReport()
    cutoff = _epoch() - older_than_days * SECONDS_PER_DAY
    for record in await list_files_deleted_before(cutoff):
        try:
            await manager.remove_stored_object(record.file_link, backend_id=record.backend_id)
        except StorageError as err:
            report.failed += 1
            logger.error("Could not purge file %s: %s", record.id, err.message)
            continue
        await hard_delete_file_record(record.id)
        report.purged += 1

    logger.info("File purge finished: %d purged, %d failed", report.purged, report.failed)
    return report


async def verify_file_integrity(manager: StorageManager, *, limit: int = 100) -> IntegrityReport:
    """Soft-delete records whose stored object no longer exists on its backend."""
    report = IntegrityReport()
    for record in await list_files_to_verify(limit=limit):
        report.checked += 1
        try:
            exists = await manager.object_exists(record.backend_id, record.file_id)
        except Exception as err:
            report.errors += 1
            logger.error("Could not verify file %s on backend %s: %s", record.id, record.backend_id, err)
            continue

        now = _epoch()
        if not exists:
            logger.warning("File %s is missing from backend %s; marking deleted", record.id, record.backend_id)
            await soft_delete_file_record(record.id, now=now)
            report.missing += 1
        await mark_file_verified(record.id, now=now)

    logger.info(
        "File integrity check finished: %d checked, %d missing, %d errors",
        report.checked,
        report.missing,
        report.errors,
    )
    return report
