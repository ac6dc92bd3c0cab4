"""Pydantic schemas for the transcoding API.

Field names are snake_case in Python and camelCase on the wire.
"""

from pydantic import BaseModel, Field

from videohub.modules.transcoding.models import OutputFormat, Resolution


class TranscodeResult(BaseModel):
    """Response of a transcode request that ran to completion."""
    success: bool = True
    video_id: str = Field(..., alias="videoId")
    format: OutputFormat
    resolution: Resolution
    url: str = Field(..., description="Public URL of the rendition")

    class Config:
        populate_by_name = True


class TranscodeAccepted(TranscodeResult):
    """Response of a transcode request scheduled in the background.

    ``url`` is where the rendition will be served once the job completes.
    """
    status: str = "accepted"
    progress_url: str = Field(..., alias="progressUrl")
    websocket_url: str = Field(..., alias="websocketUrl")


class ProgressSnapshot(BaseModel):
    """Progress of one job: 0-100 while running, 100 complete, -1 failed."""
    video_id: str = Field(..., alias="videoId")
    progress: int

    class Config:
        populate_by_name = True


class ErrorResponse(BaseModel):
    error: str
