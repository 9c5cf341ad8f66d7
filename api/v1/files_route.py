from __future__ import annotations

import re

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import Response

from api.deps import get_storage_manager
from core.errors import auth_permission_denied
from core.response_envelope import document_response
from core.settings import get_settings
from core.storage.local_provider import LocalStorageProvider
from core.storage.manager import StorageManager
from schemas.file_schema import FileEntityType, FileOut, FileType
from security.auth import verify_any_token
from security.principal import AuthPrincipal
from services.file_service import delete_file, get_file, list_event_files, list_owner_files, upload_file

router = APIRouter(prefix="/files", tags=["Files"])

_OBJECT_ID_RE = re.compile(r"^[a-zA-Z0-9_-]+$")


def _ensure_can_access(record: FileOut, principal: AuthPrincipal, permission_key: str) -> None:
    if record.owner_id != principal.user_id and not principal.is_staff:
        raise auth_permission_denied(permission_key)


def _stream_size(upload: UploadFile) -> int:
    upload.file.seek(0, 2)
    size = upload.file.tell()
    upload.file.seek(0)
    return size


@router.post("")
@document_response(message="File uploaded", status_code=201)
async def upload_file_route(
    file: UploadFile = File(...),
    event_id: str | None = Form(None),
    file_type: FileType = Form(FileType.OTHER),
    entity_type: FileEntityType | None = Form(None),
    category: str | None = Form(None),
    owner_id: str | None = Form(None),
    principal: AuthPrincipal = Depends(verify_any_token),
    manager: StorageManager = Depends(get_storage_manager),
):
    target_owner = owner_id or principal.user_id
    if target_owner != principal.user_id and not principal.is_staff:
        raise auth_permission_denied("POST:/v1/files")

    return await upload_file(
        manager,
        owner_id=target_owner,
        event_id=event_id,
        entity_type=entity_type,
        file_type=file_type,
        category=category,
        file_name=file.filename or "upload",
        mime_type=file.content_type or "application/octet-stream",
        size=_stream_size(file),
        stream=file.file,
        max_size_bytes=get_settings().storage_max_upload_bytes,
    )


@router.get("/local/d/{object_id}/view", include_in_schema=False)
async def read_local_file(object_id: str, manager: StorageManager = Depends(get_storage_manager)):
    if not _OBJECT_ID_RE.match(object_id):
        return Response(status_code=400)

    for backend in await manager.registry.list_all():
        provider = manager.registry.provider_for(backend)
        if not isinstance(provider, LocalStorageProvider):
            continue
        try:
            file_name, data = provider.read_bytes(object_id=object_id)
        except FileNotFoundError:
            continue
        return Response(
            content=data,
            media_type="application/octet-stream",
            headers={"Content-Disposition": f'inline; filename="{file_name}"'},
        )
    return Response(status_code=404)


@router.get("/users/{owner_id}")
@document_response(message="Files fetched")
async def list_owner_files_route(owner_id: str, principal: AuthPrincipal = Depends(verify_any_token)):
    if owner_id != principal.user_id and not principal.is_staff:
        raise auth_permission_denied("GET:/v1/files/users/{owner_id}")
    return await list_owner_files(owner_id)


@router.get("/events/{event_id}")
@document_response(message="Files fetched")
async def list_event_files_route(event_id: str, principal: AuthPrincipal = Depends(verify_any_token)):
    if principal.is_staff:
        return await list_event_files(event_id)
    return await list_event_files(event_id, owner_id=principal.user_id)


@router.get("/{file_id}")
@document_response(message="File fetched")
async def get_file_route(file_id: str, principal: AuthPrincipal = Depends(verify_any_token)):
    record = await get_file(file_id)
    _ensure_can_access(record, principal, "GET:/v1/files/{file_id}")
    return record


@router.delete("/{file_id}")
@document_response(message="File deleted")
async def delete_file_route(file_id: str, principal: AuthPrincipal = Depends(verify_any_token)):
    record = await get_file(file_id)
    _ensure_can_access(record, principal, "DELETE:/v1/files/{file_id}")
    await delete_file(file_id)
    return {"deleted": True}
