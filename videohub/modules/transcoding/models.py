"""Domain models for transcode jobs.

A job is identified by the stored name of its source upload. Its progress
lives in the progress registry as a single integer: 0..100 while running,
100 once complete, -1 once failed.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


PROGRESS_UNKNOWN = 0
PROGRESS_COMPLETE = 100
PROGRESS_FAILED = -1


def is_terminal(percent: int) -> bool:
    """Whether a progress value means the job will not change any more."""
    return percent >= PROGRESS_COMPLETE or percent == PROGRESS_FAILED


class OutputFormat(str, Enum):
    """Rendition variants the encoder can produce."""
    MP4 = "mp4"    # single progressive file
    HLS = "hls"    # segmented playlist
    DASH = "dash"  # segmented manifest


class Resolution(str, Enum):
    """Supported output heights in pixels."""
    RES_240P = "240"
    RES_360P = "360"
    RES_480P = "480"
    RES_720P = "720"
    RES_1080P = "1080"
    RES_1440P = "1440"
    RES_2160P = "2160"


class Bitrate(str, Enum):
    """Supported target video bitrates, in encoder notation."""
    BR_500K = "500k"
    BR_1000K = "1000k"
    BR_2000K = "2000k"
    BR_4000K = "4000k"
    BR_8000K = "8000k"
    BR_16000K = "16000k"


DEFAULT_FORMAT = OutputFormat.MP4
DEFAULT_RESOLUTION = Resolution.RES_720P
DEFAULT_BITRATE = Bitrate.BR_1000K


def coerce_format(value: Optional[str]) -> OutputFormat:
    """Parse a requested format, falling back to MP4 for anything unknown."""
    try:
        return OutputFormat((value or "").strip().lower())
    except ValueError:
        return DEFAULT_FORMAT


def coerce_resolution(value: Optional[str]) -> Resolution:
    """Parse a requested height, falling back to 720 for anything unknown."""
    try:
        return Resolution((value or "").strip())
    except ValueError:
        return DEFAULT_RESOLUTION


def coerce_bitrate(value: Optional[str]) -> Bitrate:
    """Parse a requested bitrate, falling back to 1000k for anything unknown."""
    try:
        return Bitrate((value or "").strip())
    except ValueError:
        return DEFAULT_BITRATE


class JobState(str, Enum):
    """Lifecycle of a single runner invocation."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class OutputLocation:
    """Where a rendition was written and where clients can fetch it."""
    path: Path
    url: str
    directory: Optional[Path] = None  # set for segmented renditions


@dataclass
class TranscodeJob:
    """One accepted transcode request."""

    id: str
    source_path: Path
    format: OutputFormat = DEFAULT_FORMAT
    resolution: Resolution = DEFAULT_RESOLUTION
    bitrate: Bitrate = DEFAULT_BITRATE

    # Filled in by the runner
    source_duration: float = 0.0
    duration_known: bool = False
    state: JobState = JobState.PENDING
    error: Optional[str] = None
    output: Optional[OutputLocation] = None

    created_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    def mark_running(self) -> None:
        self.state = JobState.RUNNING
        self.started_at = time.time()

    def mark_complete(self, output: OutputLocation) -> None:
        self.state = JobState.COMPLETE
        self.output = output
        self.finished_at = time.time()

    def mark_failed(self, error: str) -> None:
        self.state = JobState.FAILED
        self.error = error
        self.finished_at = time.time()

    def get_elapsed_time(self) -> float:
        """Seconds the encoder has been running (or ran)."""
        if self.started_at is None:
            return 0.0
        end_time = self.finished_at or time.time()
        return end_time - self.started_at
