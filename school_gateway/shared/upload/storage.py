"""
Object storage backends for validated uploads.

The gateway writes with its own service credentials; callers only ever get
the resulting public URL.
"""

import logging
import re
import time
import uuid
from abc import ABC, abstractmethod
from io import BytesIO
from pathlib import Path
from typing import Optional

from minio import Minio
from minio.error import S3Error

from school_gateway.shared.upload.magic_bytes import extension_for

SAFE_NAME_PATTERN = re.compile(r'[A-Za-z0-9][A-Za-z0-9._-]{0,199}')


class StorageError(Exception):
    """The object store rejected or failed a write."""


def generate_file_name(mime_type: str) -> str:
    """
    Collision-resistant object name: ``<epoch ms>-<random>.<ext>``.
    The extension comes from the validated MIME type, never from the client's filename.
    """
    timestamp = int(time.time() * 1000)
    random_id = uuid.uuid4().hex[:8]
    return f"{timestamp}-{random_id}.{extension_for(mime_type)}"


def is_safe_name(name: str) -> bool:
    """Reject path separators, traversal and hidden files in bucket or object names."""
    if not name or ".." in name or "/" in name or "\\" in name:
        return False
    return SAFE_NAME_PATTERN.fullmatch(name) is not None


class ObjectStore(ABC):
    """Named-bucket object storage with public URL resolution."""

    @abstractmethod
    def upload(self, bucket: str, name: str, data: bytes, content_type: str) -> None:
        """Write a new object. Never overwrites. Raises StorageError on failure."""
        raise NotImplementedError

    @abstractmethod
    def get_public_url(self, bucket: str, name: str) -> str:
        raise NotImplementedError


class LocalObjectStore(ObjectStore):
    """Stores objects under ``root/<bucket>/<name>`` and serves them from ``public_base_url``."""

    def __init__(self, root: Path, public_base_url: str = "/uploads"):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def path_for(self, bucket: str, name: str) -> Optional[Path]:
        if not is_safe_name(bucket) or not is_safe_name(name):
            return None
        return self.root / bucket / name

    def upload(self, bucket: str, name: str, data: bytes, content_type: str) -> None:
        path = self.path_for(bucket, name)
        if path is None:
            raise StorageError(f"Invalid object name: {bucket}/{name}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # 'xb' refuses to replace an existing object
            with open(path, "xb") as f:
                f.write(data)
        except FileExistsError:
            raise StorageError(f"Object already exists: {bucket}/{name}")
        except OSError as e:
            raise StorageError(f"Failed to write {bucket}/{name}: {str(e)}")

    def get_public_url(self, bucket: str, name: str) -> str:
        return f"{self.public_base_url}/{bucket}/{name}"


class MinioObjectStore(ObjectStore):
    """S3-compatible object storage accessed with the gateway's service credentials."""

    def __init__(self, client: Minio, public_base_url: str):
        self.client = client
        self.public_base_url = public_base_url.rstrip("/")

    @classmethod
    def from_settings(cls, settings) -> "MinioObjectStore":
        if not settings.minio_endpoint or not settings.minio_access_key or not settings.minio_secret_key:
            raise ValueError(
                "MINIO_ENDPOINT, MINIO_ACCESS_KEY and MINIO_SECRET_KEY are required "
                "when STORAGE_BACKEND=minio"
            )
        # The local /uploads route only serves LocalObjectStore files
        if not settings.public_base_url.startswith(("http://", "https://")):
            raise ValueError("PUBLIC_BASE_URL must be an absolute http(s) URL when STORAGE_BACKEND=minio")
        client = Minio(
            settings.minio_endpoint,
            access_key=settings.minio_access_key,
            secret_key=settings.minio_secret_key,
            secure=settings.minio_secure,
        )
        return cls(client, settings.public_base_url)

    def upload(self, bucket: str, name: str, data: bytes, content_type: str) -> None:
        try:
            if not self.client.bucket_exists(bucket):
                self.client.make_bucket(bucket)
            # Object names carry a timestamp and random token, so a collision is a failure
            try:
                self.client.stat_object(bucket, name)
                raise StorageError(f"Object already exists: {bucket}/{name}")
            except S3Error as e:
                if e.code not in ("NoSuchKey", "NoSuchObject"):
                    raise
            self.client.put_object(
                bucket,
                name,
                BytesIO(data),
                len(data),
                content_type=content_type,
            )
        except S3Error as e:
            logging.error(f"Object storage rejected {bucket}/{name}: {str(e)}")
            raise StorageError(str(e))

    def get_public_url(self, bucket: str, name: str) -> str:
        return f"{self.public_base_url}/{bucket}/{name}"
