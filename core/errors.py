from __future__ import annotations

from enum import Enum
from typing import Any

from fastapi import HTTPException, status

from core.storage.errors import (
    BackendNotFound,
    DeleteError,
    NoBackendAvailable,
    ProvisionError,
    StorageError,
    StorageNearlyFull,
    UploadError,
)


class ErrorCode(str, Enum):
    AUTH_INVALID_TOKEN = "AUTH_INVALID_TOKEN"
    AUTH_ROLE_MISMATCH = "AUTH_ROLE_MISMATCH"
    AUTH_PERMISSION_DENIED = "AUTH_PERMISSION_DENIED"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    FILE_UPLOAD_INVALID = "FILE_UPLOAD_INVALID"
    STORAGE_NO_BACKEND = "STORAGE_NO_BACKEND"
    STORAGE_BACKEND_NOT_FOUND = "STORAGE_BACKEND_NOT_FOUND"
    STORAGE_PROVISION_FAILED = "STORAGE_PROVISION_FAILED"
    STORAGE_NEARLY_FULL = "STORAGE_NEARLY_FULL"
    STORAGE_UPLOAD_FAILED = "STORAGE_UPLOAD_FAILED"
    STORAGE_DELETE_FAILED = "STORAGE_DELETE_FAILED"
    STORAGE_PROVIDER_ERROR = "STORAGE_PROVIDER_ERROR"


class AppException(HTTPException):
    def __init__(
        self,
        *,
        status_code: int,
        code: ErrorCode,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        detail = {
            "message": message,
            "code": code.value,
            "details": details,
        }
        super().__init__(status_code=status_code, detail=detail, headers=headers)


def auth_invalid_token(details: Any | None = None) -> AppException:
    return AppException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        code=ErrorCode.AUTH_INVALID_TOKEN,
        message="Invalid token",
        details=details,
    )


def auth_role_mismatch(required_role: str, actual_role: str | None) -> AppException:
    return AppException(
        status_code=status.HTTP_403_FORBIDDEN,
        code=ErrorCode.AUTH_ROLE_MISMATCH,
        message="Token role mismatch",
        details={"required_role": required_role, "actual_role": actual_role},
    )


def auth_permission_denied(permission_key: str) -> AppException:
    return AppException(
        status_code=status.HTTP_403_FORBIDDEN,
        code=ErrorCode.AUTH_PERMISSION_DENIED,
        message="Insufficient permissions",
        details={"permission_key": permission_key},
    )


def resource_not_found(resource: str, resource_id: str | None = None) -> AppException:
    details = {"resource": resource}
    if resource_id:
        details["resource_id"] = resource_id
    return AppException(
        status_code=status.HTTP_404_NOT_FOUND,
        code=ErrorCode.RESOURCE_NOT_FOUND,
        message=f"{resource} not found",
        details=details,
    )


_STORAGE_ERROR_MAP: tuple[tuple[type[StorageError], int, ErrorCode], ...] = (
    (NoBackendAvailable, status.HTTP_503_SERVICE_UNAVAILABLE, ErrorCode.STORAGE_NO_BACKEND),
    (BackendNotFound, status.HTTP_404_NOT_FOUND, ErrorCode.STORAGE_BACKEND_NOT_FOUND),
    (ProvisionError, status.HTTP_502_BAD_GATEWAY, ErrorCode.STORAGE_PROVISION_FAILED),
    (StorageNearlyFull, status.HTTP_507_INSUFFICIENT_STORAGE, ErrorCode.STORAGE_NEARLY_FULL),
    (UploadError, status.HTTP_502_BAD_GATEWAY, ErrorCode.STORAGE_UPLOAD_FAILED),
    (DeleteError, status.HTTP_502_BAD_GATEWAY, ErrorCode.STORAGE_DELETE_FAILED),
)


def storage_exception(exc: StorageError) -> AppException:
    status_code, code = status.HTTP_502_BAD_GATEWAY, ErrorCode.STORAGE_PROVIDER_ERROR
    for error_type, mapped_status, mapped_code in _STORAGE_ERROR_MAP:
        if isinstance(exc, error_type):
            status_code, code = mapped_status, mapped_code
            break
    details = {"backend_id": exc.backend_id} if exc.backend_id else None
    return AppException(status_code=status_code, code=code, message=exc.message, details=details)
