"""Transcode service.

Accepts transcode requests, runs the synchronous pre-checks, and schedules
accepted jobs as background tasks on the running event loop. At most one job
per video ID runs at a time.
"""

import asyncio
import logging
from typing import Dict, Optional

from videohub.core.config import settings
from videohub.core.logging import log_info, log_warning
from videohub.core.storage import MediaStorage, get_media_storage
from videohub.modules.transcoding.exceptions import SourceNotFoundError, TranscodeConflictError
from videohub.modules.transcoding.models import (
    PROGRESS_UNKNOWN,
    OutputLocation,
    TranscodeJob,
    coerce_bitrate,
    coerce_format,
    coerce_resolution,
)
from videohub.modules.transcoding.registry import get_progress_registry
from videohub.modules.transcoding.runner import TranscodeRunner

logger = logging.getLogger(__name__)


class TranscodeService:
    """Schedules transcode jobs and tracks the ones still running."""

    def __init__(self, runner: TranscodeRunner, storage: MediaStorage):
        self.runner = runner
        self.storage = storage
        self._active: Dict[str, asyncio.Task] = {}

    def create_job(
        self,
        video_id: str,
        format: Optional[str] = None,
        resolution: Optional[str] = None,
        bitrate: Optional[str] = None,
    ) -> TranscodeJob:
        """Build a job from raw request values.

        Unknown option values fall back to their defaults.

        Raises:
            SourceNotFoundError: If the ID cannot name an upload
        """
        source_path = self.storage.source_path(video_id)
        if source_path is None:
            raise SourceNotFoundError("Source video not found")

        return TranscodeJob(
            id=video_id,
            source_path=source_path,
            format=coerce_format(format),
            resolution=coerce_resolution(resolution),
            bitrate=coerce_bitrate(bitrate),
        )

    def output_location(self, job: TranscodeJob) -> OutputLocation:
        """Where the rendition of a job will be served from."""
        return self.runner.builder.output_location(job)

    def is_running(self, video_id: str) -> bool:
        task = self._active.get(video_id)
        return task is not None and not task.done()

    async def submit(self, job: TranscodeJob) -> asyncio.Task:
        """Validate a job and schedule it.

        Returns:
            The task running the job; its result is the output location

        Raises:
            TranscodeConflictError: If a job for the same video is running
            EncoderUnavailableError: If the encoder cannot be executed
            SourceNotFoundError: If the source does not exist
        """
        self._ensure_not_running(job.id)
        await self.runner.check_preconditions(job)
        # The checks above yield to the loop; another request may have won.
        self._ensure_not_running(job.id)

        # Accepted jobs read as running at once, not as a previous run's outcome.
        self.runner.registry.set(job.id, PROGRESS_UNKNOWN)
        task = asyncio.create_task(self.runner.execute(job), name=f"transcode:{job.id}")
        self._active[job.id] = task
        task.add_done_callback(lambda t: self._on_job_done(job, t))

        log_info(
            logger,
            f"Accepted transcode job for {job.id}",
            output_format=job.format.value,
            resolution=job.resolution.value,
            bitrate=job.bitrate.value,
        )
        return task

    async def transcode(self, job: TranscodeJob, wait: bool = False) -> Optional[OutputLocation]:
        """Submit a job and optionally wait for it.

        Args:
            job: Job to run
            wait: Block until the job finishes

        Returns:
            Output location when waiting, None otherwise

        Raises:
            TranscodeError: Pre-check failures, or the job's failure when waiting
        """
        task = await self.submit(job)
        if not wait:
            return None
        # A dropped client must not cancel the encode.
        return await asyncio.shield(task)

    async def shutdown(self) -> None:
        """Cancel running jobs and wait for their encoders to be killed."""
        tasks = [task for task in self._active.values() if not task.done()]
        if not tasks:
            return
        logger.info(f"Cancelling {len(tasks)} running transcode job(s)")
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _ensure_not_running(self, video_id: str) -> None:
        if self.is_running(video_id):
            raise TranscodeConflictError(f"Transcoding already in progress for {video_id}")

    def _on_job_done(self, job: TranscodeJob, task: asyncio.Task) -> None:
        if self._active.get(job.id) is task:
            del self._active[job.id]
        if task.cancelled():
            logger.warning(f"Transcode job for {job.id} was cancelled")
            return
        error = task.exception()
        if error is not None:
            log_warning(
                logger,
                f"Transcode job for {job.id} failed: {error}",
                error_code=getattr(error, "code", None),
            )


_service: Optional[TranscodeService] = None


def get_transcode_service() -> TranscodeService:
    """Process-wide service wired from settings."""
    global _service
    if _service is None:
        storage = get_media_storage()
        runner = TranscodeRunner(
            get_progress_registry(),
            storage,
            ffmpeg_path=settings.FFMPEG_PATH,
            probe_timeout=settings.FFMPEG_PROBE_TIMEOUT_SECONDS,
            chunk_size=settings.FFMPEG_READ_CHUNK_SIZE,
        )
        _service = TranscodeService(runner, storage)
    return _service


async def shutdown_transcode_service() -> None:
    """Shut down the process-wide service if it was ever created."""
    if _service is not None:
        await _service.shutdown()
