from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from api.deps import get_storage_manager
from main import app
from schemas.file_schema import FileCreate, FileEntityType, FileOut, FileType
from security.auth import verify_any_token
from security.principal import AuthPrincipal
from services import file_service
from fakes import FakeDriveStore, FakeProvider, make_manager


def _principal(user_id: str = "42", role: str = "user") -> AuthPrincipal:
    return AuthPrincipal(user_id=user_id, role=role, jwt_token="jwt-123")


def _record(owner_id: str = "42") -> FileOut:
    return FileOut(
        id="65f0c0ffee0000000000beef",
        entity_type=FileEntityType.USER,
        entity_id=owner_id,
        owner_id=owner_id,
        file_type=FileType.PHOTO,
        file_name="photo.jpg",
        mime_type="image/jpeg",
        file_size=3,
        file_id="obj1",
        file_link="https://drive.example.com/file/d/obj1/view",
        backend_id="drive-a",
        uploaded_at=1_700_000_000,
    )


@pytest.fixture
def storage():
    store = FakeDriveStore()
    store.add("drive-a", total_bytes=10 * 1024 ** 3)
    providers: dict[str, FakeProvider] = {}
    return store, providers, make_manager(store, providers)


@pytest.fixture
def client(storage):
    _, _, manager = storage
    app.dependency_overrides[verify_any_token] = _principal
    app.dependency_overrides[get_storage_manager] = lambda: manager
    yield TestClient(app)
    app.dependency_overrides.clear()


def _stub_create(monkeypatch):
    async def _create(record: FileCreate) -> FileOut:
        return FileOut(id="65f0c0ffee0000000000beef", **record.model_dump())

    monkeypatch.setattr(file_service, "create_file_record", _create)


def test_upload_route_stores_file_and_returns_envelope(client, storage, monkeypatch):
    _stub_create(monkeypatch)
    _, providers, _ = storage

    response = client.post(
        "/v1/files",
        files={"file": ("photo.jpg", b"img", "image/jpeg")},
        data={"file_type": "photo", "category": "profile"},
    )

    assert response.status_code == 201
    payload = response.json()
    assert payload["success"] is True
    assert payload["message"] == "File uploaded"
    assert payload["data"]["owner_id"] == "42"
    assert payload["data"]["backend_id"] == "drive-a"
    assert payload["data"]["file_size"] == 3
    assert payload["data"]["file_id"] in providers["drive-a"].objects


def test_upload_route_rejects_foreign_owner_for_regular_user(client):
    response = client.post(
        "/v1/files",
        files={"file": ("photo.jpg", b"img", "image/jpeg")},
        data={"owner_id": "99"},
    )

    assert response.status_code == 403
    assert response.json()["data"]["code"] == "AUTH_PERMISSION_DENIED"


def test_upload_route_maps_exhausted_backend_to_507(client, storage):
    store, _, _ = storage
    store.add("drive-a", used_bytes=95, total_bytes=100)

    response = client.post("/v1/files", files={"file": ("photo.jpg", b"img", "image/jpeg")})

    assert response.status_code == 507
    payload = response.json()
    assert payload["success"] is False
    assert payload["data"]["code"] == "STORAGE_NEARLY_FULL"
    assert payload["data"]["details"] == {"backend_id": "drive-a"}


def test_upload_route_maps_missing_capacity_to_503(client, storage):
    store, _, _ = storage
    store.add("drive-a", is_active=False)

    response = client.post("/v1/files", files={"file": ("photo.jpg", b"img", "image/jpeg")})

    assert response.status_code == 503
    assert response.json()["data"]["code"] == "STORAGE_NO_BACKEND"


def test_get_file_route_requires_owner_or_staff(client, monkeypatch):
    async def _get(file_id: str):
        return _record(owner_id="99")

    monkeypatch.setattr(file_service, "get_file_record", _get)

    response = client.get("/v1/files/65f0c0ffee0000000000beef")
    assert response.status_code == 403

    app.dependency_overrides[verify_any_token] = lambda: _principal(user_id="7", role="secretary")
    response = client.get("/v1/files/65f0c0ffee0000000000beef")
    assert response.status_code == 200
    assert response.json()["data"]["file_link"] == "https://drive.example.com/file/d/obj1/view"


def test_delete_file_route_soft_deletes(client, monkeypatch):
    deleted: list[str] = []

    async def _get(file_id: str):
        return _record()

    async def _soft_delete(file_id: str, *, now: int) -> bool:
        deleted.append(file_id)
        return True

    monkeypatch.setattr(file_service, "get_file_record", _get)
    monkeypatch.setattr(file_service, "soft_delete_file_record", _soft_delete)

    response = client.delete("/v1/files/65f0c0ffee0000000000beef")

    assert response.status_code == 200
    assert response.json()["data"] == {"deleted": True}
    assert deleted == ["65f0c0ffee0000000000beef"]


def test_files_route_requires_bearer_token(storage):
    _, _, manager = storage
    app.dependency_overrides[get_storage_manager] = lambda: manager
    try:
        response = TestClient(app).get("/v1/files/65f0c0ffee0000000000beef")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code in (401, 403)


def test_upload_route_rejects_path_like_event_id(client, storage):
    _, providers, _ = storage

    response = client.post(
        "/v1/files",
        files={"file": ("photo.jpg", b"img", "image/jpeg")},
        data={"event_id": "../../escaped"},
    )

    assert response.status_code == 400
    assert response.json()["data"]["code"] == "FILE_UPLOAD_INVALID"
    assert providers.get("drive-a") is None or providers["drive-a"].folders == {}


def test_upload_route_rejects_disallowed_mime_type(client):
    response = client.post(
        "/v1/files",
        files={"file": ("proof.mp4", b"vid", "video/mp4")},
        data={"event_id": "7", "file_type": "payment_proof"},
    )

    assert response.status_code == 400
    payload = response.json()
    assert payload["data"]["code"] == "FILE_UPLOAD_INVALID"
    assert payload["data"]["details"]["category"] == "payment_proof"


def test_list_owner_files_route_requires_owner_or_staff(client, monkeypatch):
    requested: list[str] = []

    async def _list(owner_id: str):
        requested.append(owner_id)
        return [_record(owner_id=owner_id)]

    monkeypatch.setattr(file_service, "list_files_for_owner", _list)

    own = client.get("/v1/files/users/42")
    foreign = client.get("/v1/files/users/99")
    app.dependency_overrides[verify_any_token] = lambda: _principal(user_id="7", role="admin")
    staff = client.get("/v1/files/users/99")

    assert own.status_code == 200
    assert own.json()["data"][0]["owner_id"] == "42"
    assert foreign.status_code == 403
    assert foreign.json()["data"]["code"] == "AUTH_PERMISSION_DENIED"
    assert staff.status_code == 200
    assert requested == ["42", "99"]


def test_list_event_files_route_limits_regular_users_to_own_uploads(client, monkeypatch):
    calls: list[tuple[str, str | None]] = []

    async def _list(event_id: str, *, owner_id: str | None = None):
        calls.append((event_id, owner_id))
        return [_record(owner_id=owner_id or "99")]

    monkeypatch.setattr(file_service, "list_files_for_event", _list)

    response = client.get("/v1/files/events/7")
    app.dependency_overrides[verify_any_token] = lambda: _principal(user_id="7", role="secretary")
    staff_response = client.get("/v1/files/events/7")

    assert response.status_code == 200
    assert staff_response.status_code == 200
    assert calls == [("7", "42"), ("7", None)]
    assert staff_response.json()["message"] == "Files fetched"
