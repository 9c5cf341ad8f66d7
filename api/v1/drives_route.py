from __future__ import annotations

from fastapi import APIRouter, Depends

from api.deps import get_storage_manager
from core.response_envelope import document_response
from core.settings import get_settings
from core.storage.manager import StorageManager
from schemas.drive_schema import DriveActivationUpdate
from security.auth import verify_admin_token
from services.drive_service import get_usage_report, list_drives, poll_now, set_drive_active

router = APIRouter(prefix="/drives", tags=["Drives"], dependencies=[Depends(verify_admin_token)])


@router.get("")
@document_response(message="Drives fetched")
async def list_drives_route(manager: StorageManager = Depends(get_storage_manager)):
    return await list_drives(manager, fallback_total_bytes=get_settings().storage_fallback_total_bytes)


@router.get("/usage")
@document_response(message="Storage usage fetched")
async def storage_usage_route(manager: StorageManager = Depends(get_storage_manager)):
    return await get_usage_report(manager)


@router.post("/poll")
@document_response(message="Storage capacity poll completed")
async def poll_drives_route(manager: StorageManager = Depends(get_storage_manager)):
    return await poll_now(manager)


@router.patch("/{drive_id}")
@document_response(message="Drive updated")
async def update_drive_route(
    drive_id: str,
    payload: DriveActivationUpdate,
    manager: StorageManager = Depends(get_storage_manager),
):
    return await set_drive_active(
        manager,
        drive_id,
        is_active=payload.is_active,
        fallback_total_bytes=get_settings().storage_fallback_total_bytes,
    )
