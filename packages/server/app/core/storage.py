"""
File storage for uploaded work images.

Objects live under ``<storage_root>/<bucket>/<path>`` and are served by the
static mount at ``storage_public_url``.
"""

from __future__ import annotations

import asyncio
from pathlib import Path, PurePosixPath
from typing import Optional

import structlog

from app.core.config import get_settings
from app.core.errors import BackendWriteError, ConnectryError

log = structlog.get_logger()
settings = get_settings()


class StorageClient:
    """A single bucket on the local object store."""

    def __init__(
        self,
        bucket: Optional[str] = None,
        root: Optional[str] = None,
        public_url: Optional[str] = None,
    ):
        self.bucket = bucket or settings.storage_bucket
        self.root = Path(root or settings.storage_root)
        self.public_url = (public_url or settings.storage_public_url).rstrip("/")

    def _resolve(self, path: str) -> Path:
        pure = PurePosixPath(path)
        if pure.is_absolute() or ".." in pure.parts or not pure.parts:
            raise ValueError(f"Invalid object path: {path!r}")
        return self.root / self.bucket / Path(*pure.parts)

    async def upload(
        self,
        path: str,
        data: bytes,
        *,
        content_type: Optional[str] = None,
        upsert: bool = False,
    ) -> str:
        """Store ``data`` at ``path``. Returns the object path."""
        target = self._resolve(path)
        if target.exists() and not upsert:
            raise BackendWriteError(
                "A file with this name already exists.",
                table=f"storage:{self.bucket}",
                operation="upload",
            )

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            log.error("storage.upload_failed", bucket=self.bucket, path=path, error=str(exc))
            raise BackendWriteError(
                "Could not upload the image. Please try a different file.",
                table=f"storage:{self.bucket}",
                operation="upload",
            ) from exc

        log.info(
            "storage.uploaded",
            bucket=self.bucket,
            path=path,
            size=len(data),
            content_type=content_type,
        )
        return path

    def get_public_url(self, path: str) -> str:
        self._resolve(path)
        return f"{self.public_url}/{self.bucket}/{path}"


class UploadRejected(ConnectryError):
    status_code = 422
    code = "UPLOAD_REJECTED"
    default_message = "Please choose one image file."


def image_extension(filename: Optional[str], content_type: Optional[str]) -> str:
    """Pick a file extension from the upload's name, falling back to its MIME type."""
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[-1].lower()
        if ext.isalnum() and len(ext) <= 5:
            return ext
    if content_type and content_type.startswith("image/"):
        return content_type.split("/", 1)[1].split("+", 1)[0]
    return "bin"


def get_storage() -> StorageClient:
    """FastAPI dependency for the works bucket."""
    return StorageClient()
