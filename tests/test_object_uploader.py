from __future__ import annotations

import io

import pytest

from core.storage.errors import StorageNearlyFull, UploadError
from core.storage.types import GranteeType, GrantRole, NamespaceHandle
from core.storage.uploader import ObjectUploader
from fakes import FakeProvider


def _uploader(registry, **kwargs) -> ObjectUploader:
    kwargs.setdefault("operator_email", "registry@example.org")
    return ObjectUploader(registry=registry, threshold=0.90, fallback_total_bytes=10_000, **kwargs)


def _namespace(backend_id: str = "drive-a") -> NamespaceHandle:
    return NamespaceHandle(backend_id=backend_id, container_id="folder-2", path=("CulturalRegistry", "user_42"))


@pytest.mark.asyncio
async def test_upload_returns_reference_and_grants_access(drive_store, registry, providers):
    drive_store.add("drive-a", used_bytes=100, total_bytes=10_000)
    provider = FakeProvider()
    provider.upload_size = 5
    providers["drive-a"] = provider
    backend = await registry.get("drive-a")

    ref = await _uploader(registry).upload(
        backend,
        _namespace(),
        display_name="42_1700000000000_photo.jpg",
        stream=io.BytesIO(b"hello"),
        mime_type="image/jpeg",
        declared_size=5,
    )

    assert ref.backend_id == "drive-a"
    assert ref.provider_object_id == "obj1"
    assert ref.retrieval_link == "https://drive.example.com/file/d/obj1/view"
    assert ref.size_bytes == 5
    assert ref.mime_type == "image/jpeg"
    grants = [grant for _, grant in provider.grants]
    assert (GrantRole.WRITER, GranteeType.USER, "registry@example.org") in [
        (grant.role, grant.grantee_type, grant.email_address) for grant in grants
    ]
    assert (GrantRole.READER, GranteeType.ANYONE) in [(grant.role, grant.grantee_type) for grant in grants]


@pytest.mark.asyncio
async def test_upload_falls_back_to_declared_size(drive_store, registry, providers):
    drive_store.add("drive-a")
    providers["drive-a"] = FakeProvider()
    backend = await registry.get("drive-a")

    ref = await _uploader(registry).upload(
        backend,
        _namespace(),
        display_name="doc.pdf",
        stream=io.BytesIO(b"pdf"),
        mime_type="application/pdf",
        declared_size=3,
    )

    assert ref.size_bytes == 3


@pytest.mark.asyncio
async def test_upload_is_blocked_on_nearly_full_backend(drive_store, registry, providers):
    drive_store.add("drive-a", used_bytes=9_500, total_bytes=10_000)
    providers["drive-a"] = FakeProvider()
    backend = await registry.get("drive-a")

    with pytest.raises(StorageNearlyFull) as exc_info:
        await _uploader(registry).upload(
            backend,
            _namespace(),
            display_name="doc.pdf",
            stream=io.BytesIO(b"pdf"),
            mime_type="application/pdf",
            declared_size=3,
        )

    assert exc_info.value.backend_id == "drive-a"
    assert exc_info.value.ratio == pytest.approx(0.95)
    assert providers["drive-a"].calls == []


@pytest.mark.asyncio
async def test_never_polled_backend_is_checked_against_fallback_total(drive_store, registry, providers):
    drive_store.add("drive-a", used_bytes=9_000, total_bytes=0)
    providers["drive-a"] = FakeProvider()
    backend = await registry.get("drive-a")

    with pytest.raises(StorageNearlyFull):
        await _uploader(registry).upload(
            backend,
            _namespace(),
            display_name="doc.pdf",
            stream=io.BytesIO(b"pdf"),
            mime_type="application/pdf",
            declared_size=3,
        )


@pytest.mark.asyncio
async def test_failed_grant_removes_the_uploaded_object(drive_store, registry, providers):
    drive_store.add("drive-a")
    provider = FakeProvider()
    provider.grant_error = RuntimeError("sharing disabled by policy")
    providers["drive-a"] = provider
    backend = await registry.get("drive-a")

    with pytest.raises(UploadError) as exc_info:
        await _uploader(registry).upload(
            backend,
            _namespace(),
            display_name="doc.pdf",
            stream=io.BytesIO(b"pdf"),
            mime_type="application/pdf",
            declared_size=3,
        )

    assert "sharing disabled by policy" in exc_info.value.message
    assert "delete_object" in provider.calls
    assert provider.objects == {}


@pytest.mark.asyncio
async def test_upload_failure_is_wrapped(drive_store, registry, providers):
    drive_store.add("drive-a")
    provider = FakeProvider()

    def _broken_upload(**kwargs):
        raise RuntimeError("connection reset")

    provider.upload_object = _broken_upload
    providers["drive-a"] = provider
    backend = await registry.get("drive-a")

    with pytest.raises(UploadError) as exc_info:
        await _uploader(registry).upload(
            backend,
            _namespace(),
            display_name="doc.pdf",
            stream=io.BytesIO(b"pdf"),
            mime_type="application/pdf",
            declared_size=3,
        )

    assert exc_info.value.backend_id == "drive-a"


@pytest.mark.asyncio
async def test_upload_without_operator_email_only_grants_public_read(drive_store, registry, providers):
    drive_store.add("drive-a")
    provider = FakeProvider()
    providers["drive-a"] = provider
    backend = await registry.get("drive-a")

    await _uploader(registry, operator_email=None).upload(
        backend,
        _namespace(),
        display_name="doc.pdf",
        stream=io.BytesIO(b"pdf"),
        mime_type="application/pdf",
        declared_size=3,
    )

    assert [(grant.role, grant.grantee_type) for _, grant in provider.grants] == [
        (GrantRole.READER, GranteeType.ANYONE)
    ]
