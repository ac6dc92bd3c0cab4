"""Local media storage layout.

Uploaded sources live flat under the uploads directory, keyed by their stored
file name (the video ID). Renditions live under the transcoded directory:
single files next to each other, segmented outputs in a directory named after
the source's base name.
"""

import os
from pathlib import Path
from typing import Optional, Union

from videohub.core.config import settings

UPLOADS_URL_PREFIX = "/videos"
TRANSCODED_URL_PREFIX = "/transcoded"


class MediaStorage:
    """Resolves video IDs to filesystem paths and public URLs."""

    def __init__(
        self,
        uploads_dir: Union[str, Path],
        transcoded_dir: Union[str, Path],
    ):
        self.uploads_dir = Path(uploads_dir)
        self.transcoded_dir = Path(transcoded_dir)

    def ensure_directories(self) -> None:
        """Create the storage roots. Existing directories are not an error."""
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        self.transcoded_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def is_safe_id(video_id: str) -> bool:
        """Check that a video ID names a single entry inside a storage root."""
        if not video_id or video_id in (".", ".."):
            return False
        if "/" in video_id or "\\" in video_id or "\x00" in video_id:
            return False
        return os.path.basename(video_id) == video_id

    def source_path(self, video_id: str) -> Optional[Path]:
        """Path of an uploaded source, or None when the ID cannot name one."""
        if not self.is_safe_id(video_id):
            return None
        return self.uploads_dir / video_id

    @staticmethod
    def base_name(video_id: str) -> str:
        """Video ID without its extension (``clip.mp4`` -> ``clip``)."""
        return os.path.splitext(video_id)[0]

    def output_dir(self, video_id: str) -> Path:
        """Directory holding the segmented renditions of a source."""
        return self.transcoded_dir / self.base_name(video_id)

    def output_file(self, name: str) -> Path:
        return self.transcoded_dir / name

    @staticmethod
    def public_url(relative: str) -> str:
        """URL under which the static server delivers a transcoded file."""
        return f"{TRANSCODED_URL_PREFIX}/{relative.lstrip('/')}"

    @staticmethod
    def upload_url(video_id: str) -> str:
        return f"{UPLOADS_URL_PREFIX}/{video_id}"


def get_media_storage() -> MediaStorage:
    """Storage rooted at the configured upload and transcode directories."""
    return MediaStorage(settings.UPLOADS_DIR, settings.TRANSCODED_DIR)
