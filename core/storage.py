"""S3-compatible object storage for videos, contracts and invoices."""

from __future__ import annotations

import logging
import re

import boto3
from botocore.config import Config

from core.config import settings

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def sanitize_filename(filename: str) -> str:
    """Replace characters that are unsafe in object keys."""
    return _UNSAFE_KEY_CHARS.sub("_", filename)


class ObjectStorage:
    """Thin wrapper around boto3 for uploads and presigned GETs."""

    def __init__(self, client=None) -> None:
        self.public_url = (settings.storage_public_url or "").rstrip("/")
        self.presign_ttl = int(settings.signed_url_ttl_seconds)
        if client is None:
            session = boto3.session.Session()
            client = session.client(
                "s3",
                endpoint_url=settings.storage_endpoint_url,
                region_name=settings.storage_region,
                config=Config(signature_version="s3v4"),
            )
        self.client = client

    def upload_bytes(
        self,
        *,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str | None = None,
    ) -> None:
        kwargs = {"Bucket": bucket, "Key": key, "Body": data}
        if content_type:
            kwargs["ContentType"] = content_type
        self.client.put_object(**kwargs)

    def download_bytes(self, *, bucket: str, key: str) -> bytes:
        obj = self.client.get_object(Bucket=bucket, Key=key)
        body = obj.get("Body")
        return body.read() if body else b""

    def presign_get(self, *, bucket: str, key: str, expires_in: int | None = None) -> str:
        ttl = int(expires_in or self.presign_ttl)
        return self.client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": bucket, "Key": key},
            ExpiresIn=ttl,
        )

    def public_object_url(self, *, bucket: str, key: str) -> str:
        return f"{self.public_url}/{bucket}/{key}"

    def key_from_url(self, *, bucket: str, url: str) -> str:
        """Strip a legacy public URL prefix, leaving the object key."""
        marker = f"/{bucket}/"
        if url.startswith(("http://", "https://")) and marker in url:
            return url.split(marker, 1)[1]
        return url


_storage: ObjectStorage | None = None


def get_storage() -> ObjectStorage:
    """Get or create storage instance."""
    global _storage
    if _storage is None:
        _storage = ObjectStorage()
    return _storage
