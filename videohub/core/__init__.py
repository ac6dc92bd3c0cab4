"""Core module for configuration, storage layout, and observability."""

from videohub.core.config import settings
from videohub.core.storage import MediaStorage, get_media_storage

__all__ = [
    "settings",
    "MediaStorage",
    "get_media_storage",
]
