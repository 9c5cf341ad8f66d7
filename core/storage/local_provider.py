from __future__ import annotations

import shutil
from pathlib import Path
from typing import BinaryIO
from uuid import uuid4

from core.storage.errors import ProviderObjectNotFound
from core.storage.provider import StorageProvider
from core.storage.types import AccessGrant, ProviderKind, ProviderObject, ProviderQuota


class LocalStorageProvider(StorageProvider):
    """Directory-backed provider for development and tests.

    Folders are directories under ``root_dir`` and their ids are paths relative
    to it. Objects are stored as ``<object_id>_<name>`` inside their folder and
    served back through the files API.
    """

    backend_name = ProviderKind.LOCAL.value

    def __init__(self, root_dir: str, *, public_base_url: str = "", capacity_bytes: int | None = None) -> None:
        self._root = Path(root_dir)
        self._root.mkdir(parents=True, exist_ok=True)
        self._public_base_url = public_base_url.rstrip("/")
        self._capacity_bytes = capacity_bytes

    def _folder_path(self, folder_id: str | None) -> Path:
        if not folder_id:
            return self._root
        if ".." in Path(folder_id).parts:
            raise ValueError(f"Invalid folder id '{folder_id}'")
        return self._root / folder_id

    @staticmethod
    def _child_name(name: str) -> str:
        if not name or name in {".", ".."} or "/" in name or "\\" in name:
            raise ValueError(f"Invalid folder name '{name}'")
        return name

    def _find_object(self, object_id: str) -> Path | None:
        for candidate in self._root.rglob(f"{object_id}_*"):
            if candidate.is_file():
                return candidate
        return None

    def get_quota(self) -> ProviderQuota:
        used = sum(path.stat().st_size for path in self._root.rglob("*") if path.is_file())
        return ProviderQuota(used_bytes=used, total_bytes=self._capacity_bytes)

    def find_folders(self, *, name: str, parent_id: str | None) -> list[str]:
        candidate = self._folder_path(parent_id) / self._child_name(name)
        if candidate.is_dir():
            return [candidate.relative_to(self._root).as_posix()]
        return []

    def create_folder(self, *, name: str, parent_id: str | None) -> str:
        folder = self._folder_path(parent_id) / self._child_name(name)
        folder.mkdir(exist_ok=True)
        return folder.relative_to(self._root).as_posix()

    def upload_object(
        self,
        *,
        parent_id: str,
        name: str,
        stream: BinaryIO,
        mime_type: str,
    ) -> ProviderObject:
        folder = self._folder_path(parent_id)
        if not folder.is_dir():
            raise ProviderObjectNotFound(parent_id)

        object_id = uuid4().hex
        file_path = folder / f"{object_id}_{Path(name).name}"
        with file_path.open("wb") as target:
            shutil.copyfileobj(stream, target)
        return ProviderObject(
            object_id=object_id,
            link=self.download_url(object_id=object_id),
            size=file_path.stat().st_size,
        )

    def grant_access(self, *, object_id: str, grant: AccessGrant) -> None:
        # Local objects are always served through the API.
        if self._find_object(object_id) is None:
            raise ProviderObjectNotFound(object_id)

    def delete_object(self, *, object_id: str) -> None:
        file_path = self._find_object(object_id)
        if file_path is None:
            raise ProviderObjectNotFound(object_id)
        file_path.unlink()

    def object_exists(self, *, object_id: str) -> bool:
        return self._find_object(object_id) is not None

    def download_url(self, *, object_id: str) -> str:
        return f"{self._public_base_url}/v1/files/local/d/{object_id}/view"

    def read_bytes(self, *, object_id: str) -> tuple[str, bytes]:
        file_path = self._find_object(object_id)
        if file_path is None:
            raise FileNotFoundError(object_id)
        return file_path.name.split("_", 1)[1], file_path.read_bytes()
