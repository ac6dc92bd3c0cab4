"""Transcode runner.

Runs one job through ``Pending -> Running -> {Complete, Failed}``:

1. check the encoder can be executed and the source exists,
2. probe the source duration (failure only disables percentages),
3. start the encoder and drain stdout (progress) and stderr (diagnostics)
   in two tasks while waiting for it to exit,
4. write the terminal progress value once both drainers have finished.

Partial output of a failed job is left where the encoder wrote it.
"""

import asyncio
import codecs
import errno
import logging
import time
from typing import Tuple

from videohub.core.logging import log_error, reset_job_id, set_job_id
from videohub.core.metrics import (
    TRANSCODE_JOBS_ACTIVE,
    TRANSCODE_JOBS_TOTAL,
    TRANSCODE_JOB_DURATION_SECONDS,
)
from videohub.core.storage import MediaStorage
from videohub.core.tracing import record_exception, transcode_span
from videohub.modules.transcoding.exceptions import (
    PipeCreationError,
    ProcessExecutionError,
    ProcessStartError,
    SourceNotFoundError,
    TranscodeError,
)
from videohub.modules.transcoding.ffmpeg import FFmpegCommandBuilder, check_encoder_available
from videohub.modules.transcoding.models import (
    PROGRESS_COMPLETE,
    PROGRESS_FAILED,
    PROGRESS_UNKNOWN,
    OutputLocation,
    TranscodeJob,
)
from videohub.modules.transcoding.probe import DurationProbe
from videohub.modules.transcoding.progress import extract_percent
from videohub.modules.transcoding.registry import ProgressRegistry

logger = logging.getLogger(__name__)

# Highest value written while the encoder is still running; 100 is reserved
# for the terminal write after a clean exit.
MAX_INTERMEDIATE_PERCENT = PROGRESS_COMPLETE - 1

_PIPE_ERRNOS = (errno.EMFILE, errno.ENFILE)


class TranscodeRunner:
    """Runs transcode jobs against the external encoder."""

    def __init__(
        self,
        registry: ProgressRegistry,
        storage: MediaStorage,
        ffmpeg_path: str = "ffmpeg",
        probe_timeout: float = 30.0,
        chunk_size: int = 1024,
    ):
        """Initialize the runner.

        Args:
            registry: Registry receiving progress updates
            storage: Storage layout for sources and outputs
            ffmpeg_path: Path to ffmpeg binary
            probe_timeout: Seconds allowed for the duration probe
            chunk_size: Bytes read from each encoder stream at a time
        """
        self.registry = registry
        self.storage = storage
        self.ffmpeg_path = ffmpeg_path
        self.chunk_size = chunk_size
        self.builder = FFmpegCommandBuilder(storage, ffmpeg_path)
        self.probe = DurationProbe(ffmpeg_path, timeout=probe_timeout)

    async def run(self, job: TranscodeJob) -> OutputLocation:
        """Run a job to completion.

        Raises:
            EncoderUnavailableError: The encoder cannot be executed (registry untouched)
            SourceNotFoundError: The source is missing (registry untouched)
            TranscodeError: The encode failed (registry entry set to -1)
        """
        await self.check_preconditions(job)
        return await self.execute(job)

    async def check_preconditions(self, job: TranscodeJob) -> None:
        """Steps that can reject a job before it touches the registry."""
        await check_encoder_available(self.ffmpeg_path)
        if not job.source_path.is_file():
            logger.warning(f"Source video not found: {job.source_path}")
            raise SourceNotFoundError("Source video not found")

    async def execute(self, job: TranscodeJob) -> OutputLocation:
        """Probe, encode and record the outcome of an already validated job."""
        token = set_job_id(job.id)
        try:
            with transcode_span(
                job.id,
                format=job.format.value,
                resolution=job.resolution.value,
                bitrate=job.bitrate.value,
            ):
                return await self._execute(job)
        finally:
            reset_job_id(token)

    async def _execute(self, job: TranscodeJob) -> OutputLocation:
        started = time.perf_counter()
        TRANSCODE_JOBS_ACTIVE.inc()
        try:
            job.source_duration, job.duration_known = await self.probe.probe_duration(job.source_path)
            if not job.duration_known:
                logger.warning(f"Duration unknown for {job.id}, progress will stay at 0 until completion")

            self.registry.set(job.id, PROGRESS_UNKNOWN)

            output = self.builder.output_location(job)
            self._prepare_output(output)

            command = self.builder.build_command(job, output)
            logger.info(f"Running FFmpeg command: {self.builder.get_command_line_string(command)}")

            job.mark_running()
            returncode, diagnostics = await self._run_encoder(job, command)

            if returncode != 0:
                log_error(
                    logger,
                    f"FFmpeg transcoding failed for {job.id} with exit status {returncode}; "
                    f"FFmpeg stderr: {diagnostics}",
                    returncode=returncode,
                    output_format=job.format.value,
                )
                raise ProcessExecutionError(
                    f"Transcoding failed: exit status {returncode}",
                    returncode=returncode,
                    diagnostics=diagnostics,
                )

            logger.debug(f"FFmpeg stderr: {diagnostics}")
        except asyncio.CancelledError:
            self._fail(job, "Transcoding cancelled")
            raise
        except TranscodeError as e:
            record_exception(e)
            self._fail(job, e.message)
            raise
        finally:
            TRANSCODE_JOBS_ACTIVE.dec()
            TRANSCODE_JOB_DURATION_SECONDS.labels(format=job.format.value).observe(
                time.perf_counter() - started
            )

        self.registry.set(job.id, PROGRESS_COMPLETE)
        job.mark_complete(output)
        TRANSCODE_JOBS_TOTAL.labels(format=job.format.value, status="completed").inc()
        logger.info(f"Transcoding of {job.id} completed in {job.get_elapsed_time():.1f}s: {output.url}")
        return output

    def _prepare_output(self, output: OutputLocation) -> None:
        target = output.directory or output.path.parent
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise TranscodeError(f"Failed to create transcoded directory: {e}") from e

    def _fail(self, job: TranscodeJob, error: str) -> None:
        self.registry.set(job.id, PROGRESS_FAILED)
        job.mark_failed(error)
        TRANSCODE_JOBS_TOTAL.labels(format=job.format.value, status="failed").inc()

    async def _run_encoder(self, job: TranscodeJob, command: list[str]) -> Tuple[int, str]:
        """Start the encoder, drain both streams, and wait for it to exit.

        Returns:
            (exit status, diagnostic output)
        """
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            if e.errno in _PIPE_ERRNOS:
                logger.error(f"Failed to create pipe: {e}")
                raise PipeCreationError(f"Failed to create pipe: {e}") from e
            logger.error(f"Failed to start FFmpeg: {e}")
            raise ProcessStartError(f"Failed to start FFmpeg: {e}") from e

        logger.info(f"Started FFmpeg process with PID {process.pid}")

        diagnostics: list[str] = []
        drainers = [
            asyncio.create_task(self._drain_progress(job, process.stdout)),
            asyncio.create_task(self._drain_diagnostics(process.stderr, diagnostics)),
        ]
        try:
            returncode = await process.wait()
            # Both pipes hit EOF once the encoder is gone; wait for the
            # drainers so no intermediate write can land after the terminal one.
            await asyncio.gather(*drainers)
        except BaseException:
            for task in drainers:
                task.cancel()
            await self._kill(process)
            raise

        return returncode, "".join(diagnostics)

    async def _drain_progress(self, job: TranscodeJob, stream: asyncio.StreamReader) -> None:
        """Feed progress-stream chunks to the extractor and record advances."""
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        last_percent = PROGRESS_UNKNOWN
        while True:
            chunk = await stream.read(self.chunk_size)
            if not chunk:
                break
            percent = extract_percent(decoder.decode(chunk), job.source_duration)
            # 0 means "no reading"; values past 100 come from a short probe
            if percent <= last_percent or percent > PROGRESS_COMPLETE:
                continue
            percent = min(percent, MAX_INTERMEDIATE_PERCENT)
            if percent > last_percent:
                self.registry.set(job.id, percent)
                last_percent = percent

    @staticmethod
    async def _drain_diagnostics(stream: asyncio.StreamReader, buffer: list[str]) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(4096)
            if not chunk:
                break
            buffer.append(decoder.decode(chunk))
        buffer.append(decoder.decode(b"", final=True))

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            process.kill()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=5)
        except asyncio.TimeoutError:
            logger.warning(f"FFmpeg process {process.pid} did not terminate after kill")

