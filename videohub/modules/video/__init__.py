"""Video catalog module: uploads and their renditions on local storage."""

from videohub.modules.video.router import router
from videohub.modules.video.service import (
    InvalidUploadError,
    VideoNotFoundError,
    VideoService,
    VideoServiceError,
    get_video_service,
)

__all__ = [
    "router",
    "VideoService",
    "VideoServiceError",
    "VideoNotFoundError",
    "InvalidUploadError",
    "get_video_service",
]
