import asyncio
import logging
import os
from functools import lru_cache
from typing import Any, Protocol

from ..config import get_settings

logger = logging.getLogger(__name__)


class StorageProvider(Protocol):
    """File hosting as the core sees it; refs look like "<folder>/<filename>" """
    name: str

    async def signed_url(self, ref: str) -> str: ...

    def public_url(self, ref: str) -> str: ...

    async def delete_file(self, ref: str) -> bool: ...


def _norm_provider(value: str | None) -> str:
    s = str(value or "").strip().lower()
    if not s:
        return "local"
    if s in {"fs", "file", "filesystem"}:
        return "local"
    return s


def _norm_ref(ref: str) -> str:
    return str(ref or "").strip().strip("/")


def _join_url(base: str, *parts: str) -> str:
    b = str(base or "").strip().rstrip("/")
    cleaned = [str(p).strip().strip("/") for p in parts if str(p).strip().strip("/")]
    if not cleaned:
        return b
    return b + "/" + "/".join(cleaned)


class LocalStorageProvider:
    name = "local"

    def __init__(self, *, base_dir: str, api_prefix: str = "/api/upload"):
        self.base_dir = str(base_dir)
        self.api_prefix = str(api_prefix).rstrip("/")

    def get_local_path(self, ref: str) -> str:
        return os.path.join(self.base_dir, *_norm_ref(ref).split("/"))

    def public_url(self, ref: str) -> str:
        return _join_url(self.api_prefix, _norm_ref(ref))

    async def signed_url(self, ref: str) -> str:
        # files are served by the app itself, nothing to sign
        return self.public_url(ref)

    async def delete_file(self, ref: str) -> bool:
        path = self.get_local_path(ref)

        def _remove() -> bool:
            if not os.path.exists(path):
                return False
            os.remove(path)
            return True

        return await asyncio.to_thread(_remove)


class S3CompatibleStorageProvider:
    name = "s3"

    def __init__(
        self,
        *,
        bucket: str,
        endpoint_url: str | None,
        region_name: str | None,
        access_key_id: str | None,
        secret_access_key: str | None,
        public_base_url: str,
        prefix: str,
        signed_url_expire_seconds: int = 3600,
    ):
        self.bucket = str(bucket).strip()
        self.endpoint_url = str(endpoint_url or "").strip() or None
        self.region_name = str(region_name or "").strip() or None
        self.access_key_id = str(access_key_id or "").strip() or None
        self.secret_access_key = str(secret_access_key or "").strip() or None
        self.public_base_url = str(public_base_url).strip()
        self.prefix = str(prefix or "uploads").strip().strip("/") or "uploads"
        self.signed_url_expire_seconds = int(signed_url_expire_seconds)

    def _key_for(self, ref: str) -> str:
        return "/".join(p for p in (self.prefix, _norm_ref(ref)) if p)

    def _make_client(self) -> Any:
        import boto3

        kwargs: dict[str, Any] = {}
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        if self.region_name:
            kwargs["region_name"] = self.region_name
        if self.access_key_id and self.secret_access_key:
            kwargs["aws_access_key_id"] = self.access_key_id
            kwargs["aws_secret_access_key"] = self.secret_access_key
        return boto3.client("s3", **kwargs)

    def public_url(self, ref: str) -> str:
        return _join_url(self.public_base_url, self._key_for(ref))

    async def signed_url(self, ref: str) -> str:
        key = self._key_for(ref)

        def _sign() -> str:
            client = self._make_client()
            return client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=self.signed_url_expire_seconds,
            )

        return await asyncio.to_thread(_sign)

    async def delete_file(self, ref: str) -> bool:
        key = self._key_for(ref)

        def _delete() -> None:
            client = self._make_client()
            client.delete_object(Bucket=self.bucket, Key=key)

        await asyncio.to_thread(_delete)
        return True


@lru_cache()
def get_storage_provider() -> StorageProvider:
    settings = get_settings()
    provider = _norm_provider(getattr(settings, "storage_provider", None))

    if provider == "s3":
        return S3CompatibleStorageProvider(
            bucket=str(getattr(settings, "storage_s3_bucket", "") or "").strip(),
            endpoint_url=getattr(settings, "storage_s3_endpoint_url", None),
            region_name=getattr(settings, "storage_s3_region", None),
            access_key_id=getattr(settings, "storage_s3_access_key_id", None),
            secret_access_key=getattr(settings, "storage_s3_secret_access_key", None),
            public_base_url=str(getattr(settings, "storage_public_base_url", "") or "").strip(),
            prefix=str(getattr(settings, "storage_s3_prefix", "uploads") or "uploads"),
            signed_url_expire_seconds=settings.storage_signed_url_expire_seconds,
        )

    return LocalStorageProvider(
        base_dir=settings.storage_local_dir,
        api_prefix=settings.storage_public_base_url,
    )


async def delete_files_quietly(refs: list[str]) -> int:
    """Best-effort cleanup of content images; failures are logged, never raised"""
    storage = get_storage_provider()
    deleted = 0
    for ref in refs:
        try:
            if await storage.delete_file(ref):
                deleted += 1
        except Exception:
            logger.exception("storage: failed to delete %s", ref)
    return deleted
