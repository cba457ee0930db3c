import logging
import sys
from types import SimpleNamespace

import pytest


@pytest.mark.asyncio
async def test_storage_service_helpers_and_local_provider(tmp_path):
    from campusboard.services import storage_service

    assert storage_service._norm_provider(None) == "local"
    assert storage_service._norm_provider("") == "local"
    assert storage_service._norm_provider("filesystem") == "local"
    assert storage_service._norm_provider("S3") == "s3"

    assert storage_service._join_url("http://a/", "/b/", "c") == "http://a/b/c"
    assert storage_service._join_url("http://a", "", "  ") == "http://a"

    provider = storage_service.LocalStorageProvider(base_dir=str(tmp_path), api_prefix="/api/upload/")
    assert provider.public_url("/forum/a.png") == "/api/upload/forum/a.png"
    assert await provider.signed_url("forum/a.png") == "/api/upload/forum/a.png"

    (tmp_path / "forum").mkdir()
    (tmp_path / "forum" / "a.png").write_bytes(b"img")
    assert provider.get_local_path("forum/a.png") == str(tmp_path / "forum" / "a.png")

    assert await provider.delete_file("forum/a.png") is True
    assert not (tmp_path / "forum" / "a.png").exists()
    assert await provider.delete_file("forum/a.png") is False


@pytest.mark.asyncio
async def test_storage_service_s3_provider_urls_and_delete(monkeypatch):
    from campusboard.services import storage_service

    deleted: list[dict[str, object]] = []
    presigned: list[dict[str, object]] = []
    client_kwargs: list[dict[str, object]] = []

    class _FakeClient:
        def delete_object(self, **kwargs):
            deleted.append(dict(kwargs))

        def generate_presigned_url(self, op, Params, ExpiresIn):
            presigned.append({"op": op, "ExpiresIn": ExpiresIn, **Params})
            return f"https://s3.example.com/{Params['Key']}?sig=1"

    class _FakeBoto3:
        @staticmethod
        def client(_name, **_kwargs):
            client_kwargs.append(dict(_kwargs))
            return _FakeClient()

    monkeypatch.setitem(sys.modules, "boto3", _FakeBoto3)

    provider = storage_service.S3CompatibleStorageProvider(
        bucket="b",
        endpoint_url="",
        region_name=None,
        access_key_id=None,
        secret_access_key=None,
        public_base_url="https://cdn.example.com/",
        prefix="uploads",
        signed_url_expire_seconds=60,
    )

    assert provider.public_url("user/x.png") == "https://cdn.example.com/uploads/user/x.png"

    url = await provider.signed_url("user/x.png")
    assert url == "https://s3.example.com/uploads/user/x.png?sig=1"
    assert presigned == [{"op": "get_object", "ExpiresIn": 60, "Bucket": "b", "Key": "uploads/user/x.png"}]

    assert await provider.delete_file("/forum/y.png") is True
    assert deleted == [{"Bucket": "b", "Key": "uploads/forum/y.png"}]
    assert client_kwargs[0] == {}

    client_kwargs.clear()
    provider2 = storage_service.S3CompatibleStorageProvider(
        bucket="b",
        endpoint_url="https://s3.example.com",
        region_name="ap-southeast-1",
        access_key_id="ak",
        secret_access_key="sk",
        public_base_url="https://cdn.example.com/",
        prefix="uploads",
    )
    await provider2.delete_file("forum/z.png")
    assert client_kwargs[0]["endpoint_url"] == "https://s3.example.com"
    assert client_kwargs[0]["region_name"] == "ap-southeast-1"
    assert client_kwargs[0]["aws_access_key_id"] == "ak"
    assert client_kwargs[0]["aws_secret_access_key"] == "sk"


@pytest.mark.asyncio
async def test_get_storage_provider_selects_s3_and_local(monkeypatch, tmp_path):
    from campusboard.services import storage_service

    storage_service.get_storage_provider.cache_clear()

    monkeypatch.setattr(
        storage_service,
        "get_settings",
        lambda: SimpleNamespace(
            storage_provider="s3",
            storage_s3_bucket="bucket",
            storage_s3_endpoint_url="",
            storage_s3_region="",
            storage_s3_access_key_id="",
            storage_s3_secret_access_key="",
            storage_public_base_url="https://cdn.example.com",
            storage_s3_prefix="uploads",
            storage_signed_url_expire_seconds=600,
        ),
        raising=True,
    )

    p1 = storage_service.get_storage_provider()
    assert getattr(p1, "name", None) == "s3"
    assert p1.signed_url_expire_seconds == 600

    storage_service.get_storage_provider.cache_clear()

    monkeypatch.setattr(
        storage_service,
        "get_settings",
        lambda: SimpleNamespace(
            storage_provider="filesystem",
            storage_local_dir=str(tmp_path),
            storage_public_base_url="/api/upload",
        ),
        raising=True,
    )

    p2 = storage_service.get_storage_provider()
    assert getattr(p2, "name", None) == "local"
    storage_service.get_storage_provider.cache_clear()


@pytest.mark.asyncio
async def test_delete_files_quietly_logs_and_continues(monkeypatch, caplog):
    from campusboard.services import storage_service

    class _FlakyStorage:
        name = "flaky"

        async def delete_file(self, ref):
            if ref == "bad.png":
                raise OSError("disk gone")
            return ref != "missing.png"

    monkeypatch.setattr(storage_service, "get_storage_provider", lambda: _FlakyStorage())

    with caplog.at_level(logging.ERROR, logger="campusboard.services.storage_service"):
        deleted = await storage_service.delete_files_quietly(["a.png", "bad.png", "missing.png", "b.png"])

    assert deleted == 2
    assert "failed to delete bad.png" in caplog.text
