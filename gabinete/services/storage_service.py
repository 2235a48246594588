# gabinete/services/storage_service.py
"""Object storage for uploaded images (ticket photos, event banners, logos)."""
from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Protocol

from ..config import settings
from ..errors import AppError, ValidationError

log = logging.getLogger(__name__)

TICKETS = "tickets"
EVENTS = "events"
AVATARS = "avatars"
BANNERS = "banners"
LOGOS = "logos"

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


class StorageError(AppError):
    """Raised when a storage operation fails."""

    default_code = "STORAGE_ERROR"
    default_status = 502

    def __init__(self, message: str) -> None:
        super().__init__(message, "Could not store the file. Please try again.")


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content_type: str
    data: bytes


class ObjectStorage(Protocol):
    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str: ...

    def get_public_url(self, bucket: str, path: str) -> str: ...

    def remove(self, bucket: str, paths: Iterable[str]) -> None: ...


def read_uploads(files: Iterable) -> list[UploadedFile]:
    """Multipart uploads (anything with filename/content_type/file) -> UploadedFile."""
    out: list[UploadedFile] = []
    for f in files or []:
        out.append(
            UploadedFile(
                filename=f.filename or "file",
                content_type=f.content_type or "application/octet-stream",
                data=f.file.read(),
            )
        )
    return out


def safe_filename(name: str) -> str:
    cleaned = _UNSAFE.sub("-", Path(name or "").name).strip(".-")
    return cleaned or "file"


def storage_path(tenant_id: str, category: str, filename: str) -> str:
    """`{tenant_id}/{category}/{filename}`; keeps tenants' assets apart by convention."""
    return f"{safe_filename(tenant_id)}/{safe_filename(category)}/{safe_filename(filename)}"


def validate_image(f: UploadedFile) -> str:
    """Returns the file extension to use."""
    if f.content_type not in settings.accepted_image_types:
        raise ValidationError(
            f"content type {f.content_type!r} not accepted",
            "Only JPEG, PNG, WEBP or GIF images are accepted.",
        )
    if len(f.data) > settings.upload_max_bytes:
        raise ValidationError(
            f"file {f.filename!r} exceeds {settings.upload_max_bytes} bytes",
            f"Each image must be at most {settings.upload_max_bytes // (1024 * 1024)}MB.",
        )
    return _EXTENSIONS.get(f.content_type) or (Path(f.filename).suffix.lstrip(".") or "bin")


class LocalObjectStorage:
    """Filesystem-backed buckets under `root`, served from `public_base_url`."""

    def __init__(self, root: Optional[str] = None, public_base_url: Optional[str] = None) -> None:
        self.root = Path(root or settings.storage_root)
        self.public_base_url = (public_base_url or settings.storage_public_base_url).rstrip("/")

    def _target(self, bucket: str, path: str) -> Path:
        base = (self.root / safe_filename(bucket)).resolve()
        target = (base / path).resolve()
        if base not in target.parents:
            raise StorageError(f"path {path!r} escapes bucket {bucket!r}")
        return target

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        target = self._target(bucket, path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise StorageError(f"upload failed for {bucket}/{path}: {e}") from e
        log.info("stored object", extra={"context": f"{bucket}/{path}"})
        return path

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.public_base_url}/{bucket}/{path}"

    def remove(self, bucket: str, paths: Iterable[str]) -> None:
        for p in paths:
            target = self._target(bucket, p)
            try:
                target.unlink(missing_ok=True)
            except OSError as e:
                raise StorageError(f"remove failed for {bucket}/{p}: {e}") from e

    def path_from_public_url(self, bucket: str, url: str) -> Optional[str]:
        prefix = f"{self.public_base_url}/{bucket}/"
        if not url or not url.startswith(prefix):
            return None
        return url[len(prefix):] or None


def upload_images(
    storage: ObjectStorage,
    *,
    tenant_id: str,
    user_id: str,
    category: str,
    files: list[UploadedFile],
) -> list[str]:
    """Validate, upload and return public URLs in input order."""
    exts = [validate_image(f) for f in files]

    urls: list[str] = []
    stamp = int(time.time() * 1000)
    for i, (f, ext) in enumerate(zip(files, exts)):
        path = storage_path(tenant_id, category, f"{user_id}-{stamp}-{i}.{ext}")
        storage.upload(settings.storage_bucket, path, f.data, f.content_type)
        urls.append(storage.get_public_url(settings.storage_bucket, path))
    return urls


_default_storage: Optional[LocalObjectStorage] = None


def get_storage() -> ObjectStorage:
    global _default_storage
    if _default_storage is None:
        _default_storage = LocalObjectStorage()
    return _default_storage
