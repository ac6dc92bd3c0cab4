"""Transcoding API router.

Errors raised by the service are rendered by the application's
``TranscodeError`` handler as ``{"error": message}``.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, Query, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse

from videohub.core.config import settings
from videohub.core.metrics import PROGRESS_SUBSCRIBERS_ACTIVE
from videohub.modules.transcoding.publisher import ProgressPublisher, get_progress_publisher
from videohub.modules.transcoding.schemas import (
    ErrorResponse,
    ProgressSnapshot,
    TranscodeAccepted,
    TranscodeResult,
)
from videohub.modules.transcoding.service import TranscodeService, get_transcode_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["transcoding"])
ws_router = APIRouter(tags=["transcoding"])

WEBSOCKET_PATH = "/ws/transcode/{video_id}"


@router.post(
    "/videos/transcode/{video_id}",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=TranscodeAccepted,
    responses={
        200: {"model": TranscodeResult, "description": "Job finished (wait=true)"},
        404: {"model": ErrorResponse, "description": "Source video not found"},
        409: {"model": ErrorResponse, "description": "Job already running for this video"},
        500: {"model": ErrorResponse, "description": "Encoder unavailable or transcoding failed"},
    },
    summary="Transcode a video",
)
async def transcode_video(
    video_id: str,
    format: str = Form("mp4", description="mp4, hls or dash"),
    resolution: str = Form("720", description="Output height in pixels"),
    bitrate: str = Form("1000k", description="Target video bitrate"),
    wait: Optional[bool] = Query(None, description="Block until the job finishes"),
    service: TranscodeService = Depends(get_transcode_service),
) -> JSONResponse:
    """Start transcoding an uploaded video.

    By default the job runs in the background and the response points at
    the progress endpoints. With ``wait=true`` the request blocks until the
    encoder exits.

    Args:
        video_id: Stored name of the uploaded source
        format: Requested output variant, unknown values mean mp4
        resolution: Requested height, unknown values mean 720
        bitrate: Requested bitrate, unknown values mean 1000k
        wait: Override of the configured blocking default
        service: Transcode service instance

    Returns:
        JSONResponse: 202 with progress URLs, or 200 once finished
    """
    job = service.create_job(video_id, format, resolution, bitrate)
    should_wait = settings.TRANSCODE_WAIT_DEFAULT if wait is None else wait

    output = service.output_location(job)
    result = await service.transcode(job, wait=should_wait)

    if should_wait:
        body = TranscodeResult(
            video_id=job.id,
            format=job.format,
            resolution=job.resolution,
            url=result.url,
        )
        return JSONResponse(status_code=status.HTTP_200_OK, content=body.model_dump(mode="json", by_alias=True))

    body = TranscodeAccepted(
        video_id=job.id,
        format=job.format,
        resolution=job.resolution,
        url=output.url,
        progress_url=f"{settings.API_PREFIX}/transcode/progress/{job.id}",
        websocket_url=WEBSOCKET_PATH.format(video_id=job.id),
    )
    return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=body.model_dump(mode="json", by_alias=True))


@router.get(
    "/transcode/progress/{video_id}",
    response_model=ProgressSnapshot,
    response_model_by_alias=True,
    summary="Get transcoding progress",
)
async def get_transcode_progress(
    video_id: str,
    publisher: ProgressPublisher = Depends(get_progress_publisher),
) -> ProgressSnapshot:
    """Current progress: 0-100 while running, 100 complete, -1 failed.

    Unknown video IDs read as 0.
    """
    return publisher.snapshot(video_id)


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@ws_router.websocket(WEBSOCKET_PATH)
async def transcode_progress_ws(
    websocket: WebSocket,
    video_id: str,
    publisher: ProgressPublisher = Depends(get_progress_publisher),
) -> None:
    """Push progress frames until the job finishes, then close.

    A subscriber that goes away only ends its own loop.
    """
    await websocket.accept()
    PROGRESS_SUBSCRIBERS_ACTIVE.inc()
    disconnected = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        async for snapshot in publisher.stream(video_id):
            if disconnected.done():
                logger.info(f"Progress subscriber for {video_id} disconnected")
                return
            await websocket.send_json(snapshot.model_dump(by_alias=True))
        # The client may have left during the final hold.
        if not disconnected.done():
            await websocket.close()
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.info(f"Error writing progress for {video_id} to websocket: {e!r}")
    finally:
        disconnected.cancel()
        PROGRESS_SUBSCRIBERS_ACTIVE.dec()
