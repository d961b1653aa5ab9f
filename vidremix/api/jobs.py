"""Export jobs and their progress channels.

- POST /export - queue an export, returns the job id immediately
- GET /jobs/{job_id} - current status snapshot (polling)
- GET /progress/{job_id} - Server-Sent Events stream of status updates
- WS /ws/progress/{job_id} - same updates over a WebSocket

Every progress channel sends the current snapshot first, even when the job
has already finished, and closes after the terminal status. Disconnecting
only drops that observer; the export keeps running.
"""

import asyncio
import contextlib
import json
import logging

from fastapi import APIRouter, BackgroundTasks, WebSocket
from fastapi.responses import StreamingResponse
from starlette.websockets import WebSocketDisconnect

from vidremix.api.deps import Jobs, Transforms
from vidremix.schemas.options import ExportRequest, ExportResponse
from vidremix.services.job_store import JobStatus

router = APIRouter()
logger = logging.getLogger(__name__)


def format_sse(status: JobStatus) -> str:
    return f"data: {json.dumps(status.to_dict())}\n\n"


@router.post("/export", response_model=ExportResponse)
async def start_export(
    export_request: ExportRequest,
    jobs: Jobs,
    transforms: Transforms,
    background_tasks: BackgroundTasks,
) -> ExportResponse:
    job_id, source = transforms.submit_export(jobs, export_request.file_id)
    background_tasks.add_task(
        transforms.run_export, jobs, job_id, source, export_request.options
    )
    return ExportResponse(job_id=job_id)


@router.get("/jobs/{job_id}")
async def get_job(job_id: str, jobs: Jobs) -> dict:
    return jobs.get(job_id).to_dict()


@router.get("/progress/{job_id}")
async def stream_progress(job_id: str, jobs: Jobs) -> StreamingResponse:
    async def event_stream():
        async for status in jobs.subscribe(job_id):
            yield format_sse(status)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    """Consume (and ignore) client messages until the socket closes."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/ws/progress/{job_id}")
async def websocket_progress(websocket: WebSocket, job_id: str) -> None:
    """Push status updates until the job ends or the client goes away.

    The subscription is raced against the client's receive side so an idle
    disconnect drops the observer immediately instead of at the next update.
    """
    jobs = websocket.app.state.services.jobs
    await websocket.accept()

    subscription = jobs.subscribe(job_id)
    disconnect = asyncio.create_task(_wait_for_disconnect(websocket))
    client_gone = False
    try:
        while True:
            next_status = asyncio.ensure_future(subscription.__anext__())
            done, _ = await asyncio.wait(
                {next_status, disconnect}, return_when=asyncio.FIRST_COMPLETED
            )
            if disconnect in done:
                client_gone = True
                next_status.cancel()
                with contextlib.suppress(asyncio.CancelledError, StopAsyncIteration):
                    await next_status
                break
            try:
                status = next_status.result()
            except StopAsyncIteration:
                break
            await websocket.send_json(status.to_dict())
    except WebSocketDisconnect:
        client_gone = True
    finally:
        disconnect.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await disconnect
        await subscription.aclose()

    if client_gone:
        logger.debug(f"Progress websocket for job {job_id} disconnected")
        return
    await websocket.close()
