"""Pydantic schemas for the video API."""

from pydantic import BaseModel, Field

from videohub.modules.video.service import StoredVideo


class UploadResponse(BaseModel):
    """Schema for a stored upload."""
    id: str
    name: str
    url: str
    size: int


class VideoSummary(BaseModel):
    """Schema for one entry of the video list."""
    id: str
    name: str
    url: str
    has_hls: bool = Field(..., alias="hasHLS")
    has_dash: bool = Field(..., alias="hasDASH")
    has_mp4: bool = Field(..., alias="hasMP4")
    hls_url: str = Field("", alias="hlsUrl")
    dash_url: str = Field("", alias="dashUrl")

    class Config:
        populate_by_name = True

    @classmethod
    def from_video(cls, video: StoredVideo, url: str) -> "VideoSummary":
        return cls(
            id=video.id,
            name=video.name,
            url=url,
            has_hls=video.renditions.has_hls,
            has_dash=video.renditions.has_dash,
            has_mp4=video.renditions.has_mp4,
            hls_url=video.renditions.hls_url,
            dash_url=video.renditions.dash_url,
        )


class VideoDetail(VideoSummary):
    """Schema for a single video with its MP4 renditions."""
    mp4_versions: list[str] = Field(default_factory=list, alias="mp4Versions")

    @classmethod
    def from_video(cls, video: StoredVideo, url: str) -> "VideoDetail":
        summary = VideoSummary.from_video(video, url)
        return cls(**summary.model_dump(), mp4_versions=video.renditions.mp4_versions)
