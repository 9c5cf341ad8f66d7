from __future__ import annotations

from threading import Lock
from typing import Any, BinaryIO

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from core.storage.errors import ProviderObjectNotFound
from core.storage.provider import StorageProvider
from core.storage.types import AccessGrant, GranteeType, ProviderKind, ProviderObject, ProviderQuota

DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive"]
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _as_int(value: object) -> int | None:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


class GoogleDriveStorageProvider(StorageProvider):
    """Drive v3 client bound to one service account.

    The service account's own "My Drive" is the backend; its storage quota is
    what the capacity monitor reads.
    """

    backend_name = ProviderKind.GOOGLE_DRIVE.value

    def __init__(self, *, credentials_path: str) -> None:
        credentials = service_account.Credentials.from_service_account_file(
            credentials_path,
            scopes=DRIVE_SCOPES,
        )
        self._service = build("drive", "v3", credentials=credentials, cache_discovery=False)
        self._lock = Lock()

    def _execute(self, request: Any) -> Any:
        # The underlying http client is not thread-safe.
        with self._lock:
            return request.execute()

    def get_quota(self) -> ProviderQuota:
        response = self._execute(self._service.about().get(fields="storageQuota"))
        quota = response.get("storageQuota", {})
        used = _as_int(quota.get("usage"))
        if used is None:
            used = _as_int(quota.get("usageInDrive")) or 0
        # "limit" is absent for unlimited accounts
        return ProviderQuota(used_bytes=used, total_bytes=_as_int(quota.get("limit")))

    def find_folders(self, *, name: str, parent_id: str | None) -> list[str]:
        parent = parent_id or "root"
        query = (
            f"name = '{_quote(name)}' and mimeType = '{FOLDER_MIME_TYPE}' "
            f"and '{_quote(parent)}' in parents and trashed = false"
        )
        response = self._execute(
            self._service.files().list(q=query, fields="files(id)", orderBy="createdTime", spaces="drive")
        )
        return [item["id"] for item in response.get("files", [])]

    def create_folder(self, *, name: str, parent_id: str | None) -> str:
        body: dict[str, object] = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        if parent_id:
            body["parents"] = [parent_id]
        created = self._execute(self._service.files().create(body=body, fields="id"))
        return created["id"]

    def upload_object(
        self,
        *,
        parent_id: str,
        name: str,
        stream: BinaryIO,
        mime_type: str,
    ) -> ProviderObject:
        media = MediaIoBaseUpload(stream, mimetype=mime_type, resumable=True)
        created = self._execute(
            self._service.files().create(
                body={"name": name, "parents": [parent_id]},
                media_body=media,
                fields="id, webViewLink, size",
            )
        )
        return ProviderObject(
            object_id=created["id"],
            link=created.get("webViewLink") or f"https://drive.google.com/file/d/{created['id']}/view",
            size=_as_int(created.get("size")),
        )

    def grant_access(self, *, object_id: str, grant: AccessGrant) -> None:
        body: dict[str, str] = {"role": grant.role.value, "type": grant.grantee_type.value}
        options: dict[str, object] = {}
        if grant.grantee_type == GranteeType.USER and grant.email_address:
            body["emailAddress"] = grant.email_address
            options["sendNotificationEmail"] = False
        self._execute(self._service.permissions().create(fileId=object_id, body=body, **options))

    def delete_object(self, *, object_id: str) -> None:
        try:
            self._execute(self._service.files().delete(fileId=object_id))
        except HttpError as err:
            if err.resp.status == 404:
                raise ProviderObjectNotFound(object_id) from err
            raise

    def object_exists(self, *, object_id: str) -> bool:
        try:
            self._execute(self._service.files().get(fileId=object_id, fields="id"))
        except HttpError as err:
            if err.resp.status == 404:
                return False
            raise
        return True
