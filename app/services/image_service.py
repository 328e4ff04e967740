"""Image attachment coordinator — object storage side effects of property writes.

Uploads are staged to a local temp file, pushed to storage concurrently and
the temp files are always removed afterwards. A batch is all-or-nothing:
if one upload fails, the images that did make it are deleted again and the
batch raises. Releasing images (property delete) is best-effort: failures
are logged and returned, they never stop the record mutation.

NOTE: the Cloudinary SDK is synchronous, so every storage call goes
through ``asyncio.to_thread()`` to keep the event loop free.
"""
import asyncio
import os
import tempfile
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence

import cloudinary.uploader

from app.config import Settings
from app.core.exceptions import AppException, StorageError, ValidationError
from app.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StoredImage:
    public_id: str
    url: str


class ImageUpload(Protocol):
    """What the coordinator needs from an incoming file (FastAPI's UploadFile)."""
    filename: str | None

    async def read(self) -> bytes: ...


class ImageStorage(ABC):
    """Blocking object storage client."""

    @abstractmethod
    def upload(self, local_path: str) -> StoredImage:
        ...

    @abstractmethod
    def delete(self, public_id: str) -> None:
        ...


class CloudinaryImageStorage(ImageStorage):
    """Cloudinary-backed storage. Credentials travel with each call."""

    def __init__(self, settings: Settings):
        self._configured = settings.cloudinary_configured
        self._folder = settings.cloudinary_folder
        self._credentials = {
            "cloud_name": settings.cloudinary_cloud_name,
            "api_key": settings.cloudinary_api_key,
            "api_secret": settings.cloudinary_api_secret,
        }

    def _require_config(self) -> None:
        if not self._configured:
            raise StorageError("Object storage is not configured")

    def upload(self, local_path: str) -> StoredImage:
        self._require_config()
        try:
            res = cloudinary.uploader.upload(
                local_path,
                resource_type="image",
                folder=self._folder,
                overwrite=False,
                secure=True,
                **self._credentials,
            )
        except Exception as e:
            raise StorageError("Image upload failed", detail=str(e)) from e

        url = str(res.get("secure_url") or "").strip()
        public_id = str(res.get("public_id") or "").strip()
        if not url or not public_id:
            raise StorageError("Image upload returned no reference")
        return StoredImage(public_id=public_id, url=url)

    def delete(self, public_id: str) -> None:
        self._require_config()
        try:
            res = cloudinary.uploader.destroy(
                public_id,
                resource_type="image",
                invalidate=True,
                **self._credentials,
            )
        except Exception as e:
            raise StorageError("Image delete failed", detail=str(e)) from e

        # "not found" means it is already gone
        if res.get("result") not in ("ok", "not found"):
            raise StorageError(f"Image delete failed: {res.get('result')}")


def _remove_staged(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove staged upload %s: %s", path, e)


class ImageCoordinator:
    """Runs upload and delete batches against an ImageStorage."""

    def __init__(self, storage: ImageStorage, settings: Settings):
        self.storage = storage
        self.tmp_dir = settings.upload_tmp_dir or None

    async def _stage(self, upload: ImageUpload) -> str:
        raw = await upload.read()
        if not raw:
            raise ValidationError(f"Image '{upload.filename or 'upload'}' is empty")
        suffix = os.path.splitext(upload.filename or "")[1].lower() or ".img"
        fd, path = tempfile.mkstemp(prefix="upload-", suffix=suffix, dir=self.tmp_dir)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(raw)
        except BaseException:
            _remove_staged(path)
            raise
        return path

    async def _upload_one(self, upload: ImageUpload) -> StoredImage:
        path = await self._stage(upload)
        try:
            return await asyncio.to_thread(self.storage.upload, path)
        finally:
            _remove_staged(path)

    async def upload_all(self, uploads: Sequence[ImageUpload]) -> list[StoredImage]:
        """Upload every file concurrently; results keep the input order."""
        if not uploads:
            return []

        started = time.monotonic()
        results = await asyncio.gather(
            *(self._upload_one(u) for u in uploads),
            return_exceptions=True,
        )
        stored = [r for r in results if isinstance(r, StoredImage)]
        failures = [r for r in results if isinstance(r, BaseException)]
        if not failures:
            logger.info(
                "Uploaded %d image(s)", len(stored),
                extra={"count": len(stored), "duration": round(time.monotonic() - started, 3)},
            )
            return stored

        logger.error(
            "Image batch failed (%d of %d), rolling back %d upload(s)",
            len(failures), len(uploads), len(stored),
            extra={"failed": len(failures)},
        )
        await self.release(stored)

        first = failures[0]
        if isinstance(first, AppException) or not isinstance(first, Exception):
            raise first
        raise StorageError("Image upload failed") from first

    async def release(self, images: Iterable) -> list[str]:
        """Delete each image from storage. Returns public ids that failed."""
        public_ids = [img.public_id for img in images if getattr(img, "public_id", None)]
        if not public_ids:
            return []

        results = await asyncio.gather(
            *(asyncio.to_thread(self.storage.delete, pid) for pid in public_ids),
            return_exceptions=True,
        )
        failed = []
        for public_id, result in zip(public_ids, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Image delete failed for %s: %s", public_id, result,
                    extra={"public_id": public_id},
                )
                failed.append(public_id)
        return failed
