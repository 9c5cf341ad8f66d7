from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from core.storage.types import ProviderKind, StorageBackend


class DriveOut(BaseModel):
    id: str = Field(alias="_id")
    provider: ProviderKind
    credentials_ref: str
    is_active: bool = True
    used_bytes: int = 0
    total_bytes: int = 0
    last_polled_at: int | None = None
    created_at: int
    updated_at: int

    model_config = ConfigDict(populate_by_name=True)

    def to_backend(self) -> StorageBackend:
        return StorageBackend(
            id=self.id,
            provider=self.provider,
            credentials_ref=self.credentials_ref,
            is_active=self.is_active,
            used_bytes=self.used_bytes,
            total_bytes=self.total_bytes,
            last_polled_at=self.last_polled_at,
        )


class DriveActivationUpdate(BaseModel):
    is_active: bool


class DriveSummaryOut(BaseModel):
    id: str
    provider: ProviderKind
    is_active: bool
    used_bytes: int
    total_bytes: int
    usage_percentage: float
    last_polled_at: int | None = None


class DriveUsageOut(BaseModel):
    backend_id: str
    is_active: bool
    used: int
    total: int
    usage_percentage: float
    last_polled_at: int | None = None
