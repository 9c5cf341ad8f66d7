from __future__ import annotations

from fastapi import Request

from core.storage.manager import StorageManager


def get_storage_manager(request: Request) -> StorageManager:
    return request.app.state.storage_manager
