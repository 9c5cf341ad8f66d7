from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ProviderKind(str, Enum):
    GOOGLE_DRIVE = "google_drive"
    LOCAL = "local"


class GrantRole(str, Enum):
    READER = "reader"
    WRITER = "writer"


class GranteeType(str, Enum):
    USER = "user"
    ANYONE = "anyone"


@dataclass(frozen=True)
class StorageBackend:
    id: str
    provider: ProviderKind
    credentials_ref: str
    is_active: bool = True
    used_bytes: int = 0
    total_bytes: int = 0
    last_polled_at: int | None = None

    def usage_ratio(self, fallback_total_bytes: int) -> float:
        total = self.total_bytes or fallback_total_bytes
        if total <= 0:
            return 1.0
        return self.used_bytes / total


@dataclass(frozen=True)
class BackendDefinition:
    id: str
    credentials_ref: str
    provider: ProviderKind


@dataclass(frozen=True)
class ProviderQuota:
    used_bytes: int
    total_bytes: int | None


@dataclass(frozen=True)
class UsageSnapshot:
    backend_id: str
    used_bytes: int
    total_bytes: int

    @property
    def ratio(self) -> float:
        if self.total_bytes <= 0:
            return 1.0
        return self.used_bytes / self.total_bytes


@dataclass(frozen=True)
class NamespaceHandle:
    backend_id: str
    container_id: str
    path: tuple[str, ...]


@dataclass(frozen=True)
class AccessGrant:
    role: GrantRole
    grantee_type: GranteeType
    email_address: str | None = None


@dataclass(frozen=True)
class ProviderObject:
    object_id: str
    link: str
    size: int | None = None


@dataclass(frozen=True)
class StoredObjectRef:
    backend_id: str
    provider_object_id: str
    retrieval_link: str
    size_bytes: int
    mime_type: str


@dataclass(frozen=True)
class CapacityAlert:
    backend_id: str
    usage_ratio: float
    message: str
    created_at: int


@dataclass(frozen=True)
class AdminRecipient:
    id: str
    email: str | None = None


@dataclass(frozen=True)
class BackendUsage:
    backend_id: str
    is_active: bool
    used_bytes: int
    total_bytes: int
    last_polled_at: int | None = None

    @property
    def ratio(self) -> float:
        if self.total_bytes <= 0:
            return 0.0
        return self.used_bytes / self.total_bytes

    @property
    def percentage(self) -> float:
        return round(self.ratio * 100, 2)
