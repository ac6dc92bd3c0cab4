"""Transcoding module.

Runs the external encoder for uploaded videos, tracks each job's progress in
a shared registry, and publishes it to pollers and WebSocket subscribers.
"""

from videohub.modules.transcoding.exceptions import (
    DurationProbeError,
    EncoderUnavailableError,
    PipeCreationError,
    ProcessExecutionError,
    ProcessStartError,
    SourceNotFoundError,
    TranscodeConflictError,
    TranscodeError,
)
from videohub.modules.transcoding.models import (
    Bitrate,
    JobState,
    OutputFormat,
    Resolution,
    TranscodeJob,
)
from videohub.modules.transcoding.publisher import ProgressPublisher, get_progress_publisher
from videohub.modules.transcoding.registry import ProgressRegistry, get_progress_registry
from videohub.modules.transcoding.router import router, ws_router
from videohub.modules.transcoding.runner import TranscodeRunner
from videohub.modules.transcoding.service import TranscodeService, get_transcode_service

__all__ = [
    # Errors
    "TranscodeError",
    "EncoderUnavailableError",
    "SourceNotFoundError",
    "PipeCreationError",
    "ProcessStartError",
    "ProcessExecutionError",
    "DurationProbeError",
    "TranscodeConflictError",
    # Models
    "OutputFormat",
    "Resolution",
    "Bitrate",
    "JobState",
    "TranscodeJob",
    # Components
    "ProgressRegistry",
    "get_progress_registry",
    "ProgressPublisher",
    "get_progress_publisher",
    "TranscodeRunner",
    "TranscodeService",
    "get_transcode_service",
    # Routers
    "router",
    "ws_router",
]
