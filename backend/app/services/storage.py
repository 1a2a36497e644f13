"""Blob storage for task images.

A bucket is a directory on disk. Objects are addressed by key and
exposed through a public URL of the form
``{public_base_url}/storage/v1/object/public/{bucket}/{key}``.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Protocol
from urllib.parse import quote, unquote, urlsplit
from uuid import UUID, uuid4

from app.config import settings

logger = logging.getLogger(__name__)

PUBLIC_OBJECT_PREFIX = "/storage/v1/object/public"


class BlobStoreError(Exception):
    """Exception raised when the blob store rejects an operation."""

    pass


class BlobStore(Protocol):
    bucket: str

    async def upload(
        self,
        key: str,
        content: bytes,
        content_type: str | None = None,
        upsert: bool = False,
    ) -> None: ...

    async def get_public_url(self, key: str) -> str: ...

    async def remove(self, keys: list[str]) -> None: ...


# =============================================================================
# Key Helpers
# =============================================================================


def create_image_key(filename: str) -> str:
    """Key for an image uploaded with a new task: ``{uuid4}-{filename}``."""
    basename = PurePosixPath(filename.replace("\\", "/")).name or "image"
    return f"{uuid4()}-{basename}"


def replacement_image_key(task_id: UUID, filename: str, now: datetime | None = None) -> str:
    """Key for an image replacing an existing one: ``{task_id}_{epoch_millis}.{ext}``."""
    now = now or datetime.now(timezone.utc)
    file_ext = filename.rsplit(".", 1)[-1] if "." in filename else "bin"
    return f"{task_id}_{int(now.timestamp() * 1000)}.{file_ext}"


def parse_blob_key(url: str | None, bucket: str) -> str | None:
    """Extract the object key from a public URL.

    Returns None when the URL does not point into ``bucket``.
    """
    if not url:
        return None
    marker = f"{bucket}/"
    if marker not in url:
        return None
    key = unquote(url.split(marker, 1)[1].split("?", 1)[0])
    return key or None


def last_path_segment(url: str | None) -> str | None:
    """The final segment of a URL path, percent-decoded."""
    if not url:
        return None
    segment = unquote(urlsplit(url).path.rsplit("/", 1)[-1])
    return segment or None


# =============================================================================
# Local Filesystem Store
# =============================================================================


class LocalBlobStore:
    """BlobStore keeping one bucket as a directory under ``base_path``."""

    def __init__(self, base_path: Path, bucket: str, public_base_url: str):
        self.bucket = bucket
        self.root = Path(base_path) / bucket
        self.public_base_url = public_base_url.rstrip("/")

    def path_for(self, key: str) -> Path:
        if not key or key.startswith("/") or "\\" in key:
            raise BlobStoreError(f"Invalid object key: {key!r}")
        parts = PurePosixPath(key).parts
        if any(part in ("..", ".") for part in parts):
            raise BlobStoreError(f"Invalid object key: {key!r}")
        return self.root.joinpath(*parts)

    async def upload(
        self,
        key: str,
        content: bytes,
        content_type: str | None = None,
        upsert: bool = False,
    ) -> None:
        path = self.path_for(key)
        if path.exists() and not upsert:
            raise BlobStoreError(f"Object already exists: {key}")

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as e:
            logger.error(f"Failed to write object {key} to bucket {self.bucket}: {e!r}")
            raise BlobStoreError(f"Upload failed for {key}: {e}") from e

        logger.debug(
            f"Stored object {key} in bucket {self.bucket} "
            f"({len(content)} bytes, {content_type or 'unknown type'})"
        )

    async def get_public_url(self, key: str) -> str:
        self.path_for(key)
        return f"{self.public_base_url}{PUBLIC_OBJECT_PREFIX}/{self.bucket}/{quote(key)}"

    async def remove(self, keys: list[str]) -> None:
        for key in keys:
            path = self.path_for(key)
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.error(f"Failed to remove object {key} from bucket {self.bucket}: {e!r}")
                raise BlobStoreError(f"Remove failed for {key}: {e}") from e


def get_blob_store() -> BlobStore:
    return LocalBlobStore(
        base_path=settings.storage_base_path,
        bucket=settings.storage_bucket,
        public_base_url=settings.public_base_url,
    )
