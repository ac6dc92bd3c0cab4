"""Video service for business logic.

Manages uploaded sources on local storage and reports which renditions
exist for each of them. The filesystem is the catalog: a video's ID is its
stored file name.
"""

import glob
import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Optional

from videohub.core.config import settings
from videohub.core.storage import MediaStorage, get_media_storage
from videohub.modules.transcoding.ffmpeg import VARIANT_TEMPLATES
from videohub.modules.transcoding.models import OutputFormat

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE = 1024 * 1024


class VideoServiceError(Exception):
    """Base exception for video service errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class VideoNotFoundError(VideoServiceError):
    """Raised when video is not found."""

    status_code = 404


class InvalidUploadError(VideoServiceError):
    """Raised when upload validation fails."""

    status_code = 400


def normalize_upload_name(filename: Optional[str]) -> str:
    """Stored name for an uploaded file.

    Directory parts are dropped. Names without a supported extension get the
    default extension appended (``clip.avi`` -> ``clip.avi.mp4``).

    Raises:
        InvalidUploadError: If no usable name remains
    """
    name = os.path.basename((filename or "").replace("\\", "/")).strip()
    if not MediaStorage.is_safe_id(name):
        raise InvalidUploadError("No video file provided")

    ext = os.path.splitext(name)[1].lower()
    if ext not in settings.ALLOWED_VIDEO_EXTENSIONS:
        logger.info(f"Using default extension for file: {name}")
        name = name + settings.DEFAULT_VIDEO_EXTENSION
    return name


@dataclass
class VideoRenditions:
    """Renditions found on disk for one source."""
    hls_url: str = ""
    dash_url: str = ""
    mp4_versions: list[str] = field(default_factory=list)

    @property
    def has_hls(self) -> bool:
        return bool(self.hls_url)

    @property
    def has_dash(self) -> bool:
        return bool(self.dash_url)

    @property
    def has_mp4(self) -> bool:
        return bool(self.mp4_versions)


@dataclass
class StoredVideo:
    id: str
    size: int
    renditions: VideoRenditions

    @property
    def name(self) -> str:
        return self.id


class VideoService:
    """Service for video management operations."""

    def __init__(self, storage: MediaStorage, max_upload_size: int):
        """Initialize service.

        Args:
            storage: Storage layout for sources and renditions
            max_upload_size: Largest accepted upload in bytes
        """
        self.storage = storage
        self.max_upload_size = max_upload_size

    def save_upload(self, filename: Optional[str], source: BinaryIO) -> StoredVideo:
        """Store an uploaded file under its normalized name.

        The file is copied in chunks and discarded as soon as it grows past
        the size limit.

        Raises:
            InvalidUploadError: Missing name or file too large
        """
        name = normalize_upload_name(filename)
        self.storage.ensure_directories()
        target = self.storage.uploads_dir / name
        logger.info(f"Saving video to: {target}")

        written = 0
        with open(target, "wb") as out:
            while True:
                chunk = source.read(UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > self.max_upload_size:
                    break
                out.write(chunk)

        if written > self.max_upload_size:
            target.unlink(missing_ok=True)
            logger.warning(f"Rejected upload {name}: larger than {self.max_upload_size} bytes")
            raise InvalidUploadError(
                f"File too large (max {self.max_upload_size} bytes)"
            )

        logger.info(f"Video uploaded successfully: {name} ({written} bytes)")
        return StoredVideo(id=name, size=written, renditions=VideoRenditions())

    def list_videos(self) -> list[StoredVideo]:
        """Every stored source with an allowed extension, sorted by ID."""
        if not self.storage.uploads_dir.is_dir():
            return []

        videos = []
        for entry in sorted(self.storage.uploads_dir.iterdir()):
            if not entry.is_file():
                continue
            if entry.suffix.lower() not in settings.ALLOWED_VIDEO_EXTENSIONS:
                continue
            videos.append(StoredVideo(
                id=entry.name,
                size=entry.stat().st_size,
                renditions=self.find_renditions(entry.name),
            ))
        logger.debug(f"Returning {len(videos)} videos")
        return videos

    def get_video(self, video_id: str) -> StoredVideo:
        """Look up one stored source.

        Raises:
            VideoNotFoundError: If no such upload exists
        """
        path = self._require_source(video_id)
        return StoredVideo(
            id=video_id,
            size=path.stat().st_size,
            renditions=self.find_renditions(video_id),
        )

    def delete_video(self, video_id: str) -> None:
        """Remove an upload and, best effort, all of its renditions.

        Raises:
            VideoNotFoundError: If no such upload exists
        """
        path = self._require_source(video_id)
        path.unlink()

        output_dir = self.storage.output_dir(video_id)
        if output_dir.is_dir():
            shutil.rmtree(output_dir, ignore_errors=True)
        for mp4 in self._mp4_files(video_id):
            try:
                mp4.unlink()
            except OSError as e:
                logger.warning(f"Failed to delete rendition {mp4}: {e}")

        logger.info(f"Deleted video {video_id}")

    def find_renditions(self, video_id: str) -> VideoRenditions:
        base_name = self.storage.base_name(video_id)
        output_dir = self.storage.output_dir(video_id)

        def manifest_url(fmt: OutputFormat) -> str:
            manifest = VARIANT_TEMPLATES[fmt].manifest_name
            if (output_dir / manifest).is_file():
                return self.storage.public_url(f"{base_name}/{manifest}")
            return ""

        return VideoRenditions(
            hls_url=manifest_url(OutputFormat.HLS),
            dash_url=manifest_url(OutputFormat.DASH),
            mp4_versions=[self.storage.public_url(p.name) for p in self._mp4_files(video_id)],
        )

    def _mp4_files(self, video_id: str) -> list[Path]:
        pattern = f"{glob.escape(self.storage.base_name(video_id))}_*p.mp4"
        return sorted(self.storage.transcoded_dir.glob(pattern))

    def _require_source(self, video_id: str) -> Path:
        path = self.storage.source_path(video_id)
        if path is None or not path.is_file():
            raise VideoNotFoundError("Video not found")
        return path


def get_video_service() -> VideoService:
    """Dependency for getting video service."""
    return VideoService(get_media_storage(), settings.MAX_UPLOAD_SIZE_BYTES)
