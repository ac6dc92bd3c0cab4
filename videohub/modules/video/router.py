"""Video API router.

Upload, list, inspect and delete stored sources. Errors are rendered by
the application's ``VideoServiceError`` handler.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Response, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from videohub.modules.transcoding.registry import ProgressRegistry, get_progress_registry
from videohub.modules.transcoding.schemas import ErrorResponse
from videohub.modules.video.schemas import UploadResponse, VideoDetail, VideoSummary
from videohub.modules.video.service import InvalidUploadError, VideoService, get_video_service

router = APIRouter(prefix="/videos", tags=["videos"])


@router.post(
    "",
    response_model=UploadResponse,
    responses={400: {"model": ErrorResponse}},
)
async def upload_video(
    video: Optional[UploadFile] = File(None),
    service: VideoService = Depends(get_video_service),
) -> UploadResponse:
    """Upload a video file.

    Unsupported or missing extensions get ``.mp4`` appended.
    """
    if video is None:
        raise InvalidUploadError("No video file provided")
    stored = await run_in_threadpool(service.save_upload, video.filename, video.file)
    return UploadResponse(
        id=stored.id,
        name=stored.name,
        url=service.storage.upload_url(stored.id),
        size=stored.size,
    )


@router.get("", response_model=list[VideoSummary], response_model_by_alias=True)
async def list_videos(
    service: VideoService = Depends(get_video_service),
) -> list[VideoSummary]:
    """List stored videos with the renditions available for each."""
    videos = await run_in_threadpool(service.list_videos)
    return [VideoSummary.from_video(v, service.storage.upload_url(v.id)) for v in videos]


@router.get(
    "/{video_id}",
    response_model=VideoDetail,
    response_model_by_alias=True,
    responses={404: {"model": ErrorResponse}},
)
async def get_video(
    video_id: str,
    service: VideoService = Depends(get_video_service),
) -> VideoDetail:
    """Get one video including every MP4 rendition URL."""
    video = service.get_video(video_id)
    return VideoDetail.from_video(video, service.storage.upload_url(video.id))


@router.delete(
    "/{video_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_video(
    video_id: str,
    service: VideoService = Depends(get_video_service),
    registry: ProgressRegistry = Depends(get_progress_registry),
) -> Response:
    """Delete a video, its renditions and its transcode progress."""
    await run_in_threadpool(service.delete_video, video_id)
    registry.delete(video_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
