"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
Every key has a working default so the service starts without a .env file.
"""

from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "VideoHub Transcoding API"
    VERSION: str = "0.1.0"
    API_PREFIX: str = "/api"
    DEBUG: bool = False

    # CORS (Next.js frontend by default)
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # Media storage
    UPLOADS_DIR: str = "./uploads/videos"
    TRANSCODED_DIR: str = "./uploads/transcoded"
    MAX_UPLOAD_SIZE_BYTES: int = 2000 * 1024 * 1024  # 2GB
    ALLOWED_VIDEO_EXTENSIONS: list[str] = [".mp4", ".webm", ".mov"]
    DEFAULT_VIDEO_EXTENSION: str = ".mp4"

    # Encoder
    FFMPEG_PATH: str = "ffmpeg"
    FFMPEG_PROBE_TIMEOUT_SECONDS: float = 30.0
    FFMPEG_READ_CHUNK_SIZE: int = 1024

    # Progress reporting
    PROGRESS_PUSH_INTERVAL_SECONDS: float = 0.5
    PROGRESS_FINAL_HOLD_SECONDS: float = 1.0
    # 0 keeps terminal entries forever
    PROGRESS_ENTRY_TTL_SECONDS: float = 3600.0
    PROGRESS_REAPER_INTERVAL_SECONDS: float = 60.0

    # Whether POST /transcode blocks when the client does not pass ?wait=
    TRANSCODE_WAIT_DEFAULT: bool = False

    # Logging
    LOG_LEVEL: Optional[str] = None
    LOG_JSON_FORMAT: bool = True

    # Tracing
    TRACING_ENABLED: bool = True
    TRACING_CONSOLE_EXPORT: bool = False
    OTLP_ENDPOINT: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @property
    def log_level(self) -> str:
        """Effective log level."""
        if self.LOG_LEVEL:
            return self.LOG_LEVEL
        return "DEBUG" if self.DEBUG else "INFO"

    @property
    def environment(self) -> str:
        return "development" if self.DEBUG else "production"


settings = Settings()
