from __future__ import annotations


class StorageError(Exception):
    """Base class for every failure raised by the storage core."""

    def __init__(self, message: str, *, backend_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.backend_id = backend_id


class NoBackendAvailable(StorageError):
    def __init__(self, message: str = "No storage capacity configured") -> None:
        super().__init__(message)


class BackendNotFound(StorageError):
    def __init__(self, backend_id: str) -> None:
        super().__init__(f"Storage backend '{backend_id}' not found", backend_id=backend_id)


class ProbeError(StorageError):
    pass


class ProvisionError(StorageError):
    pass


class StorageNearlyFull(StorageError):
    def __init__(self, backend_id: str, ratio: float) -> None:
        super().__init__(
            f"Storage backend '{backend_id}' is nearly full ({ratio:.1%} used)",
            backend_id=backend_id,
        )
        self.ratio = ratio


class UploadError(StorageError):
    pass


class DeleteError(StorageError):
    pass


class ProviderObjectNotFound(Exception):
    """Raised by providers when the addressed object or folder does not exist."""

    def __init__(self, object_id: str) -> None:
        super().__init__(f"Object '{object_id}' not found")
        self.object_id = object_id
