"""Local media storage for uploads and transform outputs.

Identifiers coming from clients are never trusted structurally: they are
reduced to their basename and joined to a fixed base directory.
"""

import logging
import time
import uuid
from pathlib import Path

from fastapi import UploadFile

from vidremix.config import Settings, get_settings
from vidremix.exceptions import InvalidRequestError, MediaNotFoundError, UnsupportedMediaError
from vidremix.utils.media_info import MediaInfo, probe_media

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE = 1024 * 1024
DEFAULT_EXTENSION = ".mp4"


def sanitize_name(name: str) -> str:
    """Reduce a client-supplied identifier to a safe basename."""
    base = Path(str(name).replace("\\", "/")).name
    if base in ("", ".", ".."):
        raise InvalidRequestError(f"Invalid file identifier: {name!r}")
    return base


class MediaStorage:
    """Upload and output directories keyed by random ids."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.upload_dir = Path(self.settings.upload_dir)
        self.output_dir = Path(self.settings.output_dir)

    def ensure_dirs(self) -> None:
        for directory in (self.upload_dir, self.output_dir, self.settings.bgm_dir):
            Path(directory).mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    def resolve_upload(self, file_id: str) -> Path:
        """Path of an uploaded source; raises MediaNotFoundError if absent."""
        path = self.upload_dir / sanitize_name(file_id)
        if not path.is_file():
            raise MediaNotFoundError(file_id)
        return path

    async def save_upload(self, upload: UploadFile) -> tuple[str, MediaInfo]:
        """Persist an upload under a fresh id and verify it is a usable video.

        Returns:
            Tuple of (file id, probed media info)

        Raises:
            UnsupportedMediaError: File is unreadable, has no video stream or
                is too small to transform. The file is removed.
        """
        ext = Path(upload.filename or "").suffix or DEFAULT_EXTENSION
        file_id = f"{uuid.uuid4()}{ext}"
        path = self.upload_dir / file_id
        self.upload_dir.mkdir(parents=True, exist_ok=True)

        max_bytes = self.settings.max_upload_size_mb * 1024 * 1024
        written = 0
        with path.open("wb") as f:
            while True:
                chunk = await upload.read(UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    break
                f.write(chunk)

        if written > max_bytes:
            path.unlink(missing_ok=True)
            raise InvalidRequestError(
                f"File exceeds the {self.settings.max_upload_size_mb}MB upload limit"
            )

        try:
            info = await probe_media(str(path))
        except RuntimeError as e:
            path.unlink(missing_ok=True)
            raise UnsupportedMediaError(details=str(e)) from e

        if not info.has_video:
            path.unlink(missing_ok=True)
            raise UnsupportedMediaError("No video stream found")

        min_dim = self.settings.min_video_dimension
        if (info.width or 0) < min_dim or (info.height or 0) < min_dim:
            path.unlink(missing_ok=True)
            raise UnsupportedMediaError(
                f"Video is {info.width}x{info.height}; at least {min_dim}x{min_dim} is required"
            )

        logger.info(f"[UPLOAD] Stored {upload.filename!r} as {file_id} ({written} bytes)")
        return file_id, info

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    def new_output_path(self, suffix: str, stem: str | None = None) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        return self.output_dir / f"{stem or uuid.uuid4()}{suffix}"

    def resolve_output(self, name: str) -> Path:
        path = self.output_dir / sanitize_name(name)
        if not path.is_file():
            raise MediaNotFoundError(name)
        return path

    @staticmethod
    def download_url(path: Path) -> str:
        return f"/api/download/{Path(path).name}"

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def cleanup_expired(self, ttl_s: int | None = None, now: float | None = None) -> int:
        """Delete uploads and outputs older than the retention window.

        Returns:
            Number of files removed
        """
        ttl = self.settings.retention_ttl_s if ttl_s is None else ttl_s
        now = time.time() if now is None else now
        removed = 0
        for base in (self.upload_dir, self.output_dir):
            if not base.is_dir():
                continue
            for path in base.iterdir():
                try:
                    if path.is_file() and now - path.stat().st_mtime > ttl:
                        path.unlink()
                        removed += 1
                except OSError as e:
                    logger.warning(f"[CLEANUP] Could not remove {path}: {e}")
        if removed:
            logger.info(f"[CLEANUP] Removed {removed} expired files")
        return removed
