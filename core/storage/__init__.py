from core.storage.errors import (
    BackendNotFound,
    DeleteError,
    NoBackendAvailable,
    ProbeError,
    ProvisionError,
    StorageError,
    StorageNearlyFull,
    UploadError,
)
from core.storage.types import (
    BackendDefinition,
    CapacityAlert,
    NamespaceHandle,
    ProviderKind,
    StorageBackend,
    StoredObjectRef,
    UsageSnapshot,
)

__all__ = [
    "BackendDefinition",
    "BackendNotFound",
    "CapacityAlert",
    "DeleteError",
    "NamespaceHandle",
    "NoBackendAvailable",
    "ProbeError",
    "ProviderKind",
    "ProvisionError",
    "StorageBackend",
    "StorageError",
    "StorageNearlyFull",
    "StoredObjectRef",
    "UploadError",
    "UsageSnapshot",
]
