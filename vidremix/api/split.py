"""Split API endpoint: cut a source into clips and return one ZIP."""

import logging

from fastapi import APIRouter

from vidremix.api.deps import Splitter, Storage
from vidremix.schemas.options import DownloadResponse, SplitRequest
from vidremix.services.split_archiver import validate_ranges

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/split", response_model=DownloadResponse)
async def split_video(
    split_request: SplitRequest,
    storage: Storage,
    splitter: Splitter,
) -> DownloadResponse:
    """Extract every segment (sequentially, stream copy) into one archive.

    Any failing segment fails the whole request; no partial archive is
    returned.
    """
    ranges = validate_ranges([(s.start, s.end) for s in split_request.segments])
    source = storage.resolve_upload(split_request.file_id)
    archive_path = await splitter.split(source, ranges)
    return DownloadResponse(download_url=storage.download_url(archive_path))
