"""FFmpeg command construction.

One builder serves every output variant: each variant contributes an
argument template, and the shared part (input, scale, bitrate, progress
reporting, output path) is assembled the same way for all of them.
"""

import asyncio
import logging
import shlex
from dataclasses import dataclass
from typing import Optional

from videohub.core.storage import MediaStorage
from videohub.modules.transcoding.exceptions import EncoderUnavailableError
from videohub.modules.transcoding.models import OutputFormat, OutputLocation, TranscodeJob

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VariantTemplate:
    """Variant-specific part of an encoder invocation."""
    codec_args: tuple[str, ...]
    muxer_args: tuple[str, ...]
    manifest_name: Optional[str] = None  # set for segmented variants

    @property
    def segmented(self) -> bool:
        return self.manifest_name is not None


VARIANT_TEMPLATES: dict[OutputFormat, VariantTemplate] = {
    OutputFormat.MP4: VariantTemplate(
        codec_args=("-c:v", "libx264", "-preset", "fast", "-c:a", "aac"),
        # moov atom up front for progressive playback
        muxer_args=("-movflags", "+faststart"),
    ),
    OutputFormat.HLS: VariantTemplate(
        codec_args=("-profile:v", "baseline", "-level", "3.0"),
        muxer_args=(
            "-start_number", "0",
            "-hls_time", "10",
            "-hls_list_size", "0",
            "-f", "hls",
        ),
        manifest_name="playlist.m3u8",
    ),
    OutputFormat.DASH: VariantTemplate(
        codec_args=("-profile:v", "baseline", "-level", "3.0", "-bf", "0"),
        muxer_args=(
            "-f", "dash",
            "-use_timeline", "1",
            "-use_template", "1",
            "-window_size", "5",
            "-adaptation_sets", "id=0,streams=v id=1,streams=a",
        ),
        manifest_name="manifest.mpd",
    ),
}

# Machine-readable progress goes to stdout, diagnostics stay on stderr
PROGRESS_ARGS = ("-progress", "pipe:1")


class FFmpegCommandBuilder:
    """Builds encoder command lines and output locations for jobs."""

    def __init__(self, storage: MediaStorage, ffmpeg_path: str = "ffmpeg"):
        """Initialize the builder.

        Args:
            storage: Storage layout used to place outputs
            ffmpeg_path: Path to ffmpeg binary
        """
        self.storage = storage
        self.ffmpeg_path = ffmpeg_path

    @staticmethod
    def get_template(output_format: OutputFormat) -> VariantTemplate:
        return VARIANT_TEMPLATES[output_format]

    def output_location(self, job: TranscodeJob) -> OutputLocation:
        """Where the rendition for a job is written.

        Single files are named ``<base>_<height>p.mp4``; segmented variants
        write their manifest into a directory named after the source.
        """
        template = self.get_template(job.format)
        base_name = self.storage.base_name(job.id)

        if template.segmented:
            directory = self.storage.output_dir(job.id)
            return OutputLocation(
                path=directory / template.manifest_name,
                url=self.storage.public_url(f"{base_name}/{template.manifest_name}"),
                directory=directory,
            )

        file_name = f"{base_name}_{job.resolution.value}p.mp4"
        return OutputLocation(
            path=self.storage.output_file(file_name),
            url=self.storage.public_url(file_name),
        )

    def build_command(self, job: TranscodeJob, output: OutputLocation) -> list[str]:
        """Build the encoder command for a job.

        Args:
            job: Job to encode
            output: Location returned by ``output_location``

        Returns:
            Command as list of arguments
        """
        template = self.get_template(job.format)
        cmd = [
            self.ffmpeg_path,
            "-y",  # Overwrite output
            "-nostdin",
            "-i", str(job.source_path),
        ]
        cmd.extend(template.codec_args)
        cmd.extend([
            "-vf", f"scale=-2:{job.resolution.value}",
            "-b:v", job.bitrate.value,
        ])
        cmd.extend(template.muxer_args)
        cmd.extend(PROGRESS_ARGS)
        cmd.append(str(output.path))
        return cmd

    @staticmethod
    def get_command_line_string(command: list[str]) -> str:
        """Shell-quoted command line for logging."""
        return shlex.join(command)


async def check_encoder_available(ffmpeg_path: str = "ffmpeg") -> None:
    """Verify the encoder binary can be executed.

    Raises:
        EncoderUnavailableError: If the binary is missing or ``-version`` fails
    """
    try:
        process = await asyncio.create_subprocess_exec(
            ffmpeg_path, "-version",
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as e:
        raise EncoderUnavailableError(
            f"FFmpeg is not installed or not in PATH: {e}"
        ) from e

    returncode = await process.wait()
    if returncode != 0:
        raise EncoderUnavailableError(
            f"FFmpeg is not usable: '{ffmpeg_path} -version' exited with status {returncode}"
        )
