"""Object storage for user media: staging of request uploads and a local-disk store."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from fastapi import Request, UploadFile

from config import settings
from services.errors import ApiError
from services.media_probe import get_video_duration_seconds

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = {".mp4", ".mov", ".m4v", ".webm", ".avi", ".mkv"}

PathLike = Union[str, Path]


@dataclass(frozen=True)
class StoredAsset:
    url: str
    public_id: str
    resource_type: str
    bytes: int
    duration: int = 0


def _sanitize_filename(filename: str) -> str:
    base = os.path.basename(filename or "upload.bin")
    safe = "".join(ch if ch.isalnum() or ch in ("-", "_", ".") else "_" for ch in base)
    return safe or "upload.bin"


async def stage_upload(upload: Optional[UploadFile], temp_dir: Optional[str] = None) -> Optional[Path]:
    """Write an incoming multipart file to the temp directory; None when no file was sent."""
    if upload is None or not upload.filename:
        return None
    root = Path(temp_dir or settings.UPLOAD_TEMP_DIR)
    root.mkdir(parents=True, exist_ok=True)
    destination = root / f"{uuid.uuid4().hex}_{_sanitize_filename(upload.filename)}"

    total_size = 0
    try:
        with destination.open("wb") as out:
            while True:
                chunk = await upload.read(1024 * 1024)
                if not chunk:
                    break
                total_size += len(chunk)
                if total_size > settings.MAX_UPLOAD_BYTES:
                    out.close()
                    destination.unlink(missing_ok=True)
                    raise ApiError(
                        413,
                        f"File too large. Max upload size is {settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB.",
                    )
                out.write(chunk)
    finally:
        await upload.close()
    return destination


def discard_staged(*paths: Optional[Path]) -> None:
    """Best-effort removal of staged files the store did not consume."""
    for path in paths:
        if path is None:
            continue
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove staged upload %s: %s", path, exc)


class ObjectStore:
    """Interface for media storage backends."""

    async def upload(self, local_path: Optional[PathLike]) -> Optional[StoredAsset]:
        """Persist a staged file and return its asset, or None on failure.

        The staged file is removed whether or not the upload succeeds.
        """
        raise NotImplementedError

    async def delete(self, url: Optional[str]) -> bool:
        raise NotImplementedError


class LocalObjectStore(ObjectStore):
    """Stores assets under ``root`` and serves them from ``base_url``."""

    def __init__(self, root: PathLike, base_url: str):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def _copy(self, source: Path, destination: Path) -> int:
        self.root.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, destination)
        return destination.stat().st_size

    async def upload(self, local_path: Optional[PathLike]) -> Optional[StoredAsset]:
        if not local_path:
            return None
        source = Path(local_path)
        try:
            public_id = uuid.uuid4().hex
            suffix = source.suffix.lower()
            destination = self.root / f"{public_id}{suffix}"
            size = await asyncio.to_thread(self._copy, source, destination)
            is_video = suffix in VIDEO_EXTENSIONS
            duration = await asyncio.to_thread(get_video_duration_seconds, str(destination)) if is_video else 0
            return StoredAsset(
                url=f"{self.base_url}/{destination.name}",
                public_id=public_id,
                resource_type="video" if is_video else "image",
                bytes=size,
                duration=duration,
            )
        except OSError as exc:
            logger.error("asset_upload_failed path=%s error=%s", source, exc)
            return None
        finally:
            discard_staged(source)

    async def delete(self, url: Optional[str]) -> bool:
        if not url or not url.startswith(f"{self.base_url}/"):
            return False
        name = Path(url[len(self.base_url) + 1:]).name
        target = self.root / name
        try:
            existed = target.exists()
            await asyncio.to_thread(target.unlink, True)
        except OSError as exc:
            logger.warning("asset_delete_failed url=%s error=%s", url, exc)
            return False
        return existed


def get_object_store(request: Request) -> ObjectStore:
    """FastAPI dependency returning the application's object store."""
    return request.app.state.object_store
