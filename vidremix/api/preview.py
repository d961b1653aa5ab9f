"""Preview API endpoint: streams a short transformed excerpt as fragmented MP4.

All TransformOptions keys are passed as flat query parameters next to
``fileId``, ``start`` and ``duration`` so the browser can point a <video>
element straight at the URL.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from vidremix.api.deps import Transforms
from vidremix.schemas.options import PreviewParams, TransformOptions

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/preview")
async def preview(request: Request, transforms: Transforms) -> StreamingResponse:
    """Stream a preview of the transform.

    Errors before the first byte return a JSON error; an ffmpeg failure after
    streaming started ends the response early.
    """
    query = dict(request.query_params)
    try:
        params = PreviewParams.model_validate(query)
        options = TransformOptions.model_validate(query)
    except ValidationError as e:
        raise RequestValidationError(e.errors())

    body = await transforms.open_preview(
        params.file_id,
        options,
        start_s=params.start,
        duration_s=params.duration,
    )
    return StreamingResponse(
        body,
        media_type="video/mp4",
        headers={"Cache-Control": "no-cache"},
    )
