"""Upload and download endpoints."""

import logging

from fastapi import APIRouter, File, UploadFile
from fastapi.responses import FileResponse

from vidremix.api.deps import Storage

router = APIRouter()
logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".mkv": "video/x-matroska",
    ".webm": "video/webm",
    ".avi": "video/x-msvideo",
    ".zip": "application/zip",
}


@router.post("/upload")
async def upload_video(storage: Storage, video: UploadFile = File(...)) -> dict:
    """Store an uploaded video under a fresh id.

    The file is probed before it is accepted; unreadable files and files
    without a video stream are removed and rejected with 400.
    """
    file_id, info = await storage.save_upload(video)
    return {
        "fileId": file_id,
        "originalName": video.filename,
        "duration": info.duration_s,
    }


@router.get("/download/{file_name}")
async def download_file(file_name: str, storage: Storage) -> FileResponse:
    path = storage.resolve_output(file_name)
    media_type = MEDIA_TYPES.get(path.suffix.lower(), "application/octet-stream")
    return FileResponse(path=str(path), media_type=media_type, filename=path.name)
