"""Source duration probing.

Runs the encoder against a source with no output, which makes it print the
container summary (including ``Duration: HH:MM:SS.ss``) and exit. The exit
status is ignored: ffmpeg always complains that no output was given.
"""

import asyncio
import logging
from pathlib import Path
from typing import Tuple, Union

from videohub.modules.transcoding.exceptions import DurationProbeError
from videohub.modules.transcoding.progress import parse_duration

logger = logging.getLogger(__name__)


class DurationProbe:
    """Reads a source's total duration through the encoder's diagnostics."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", timeout: float = 30.0):
        """Initialize the probe.

        Args:
            ffmpeg_path: Path to ffmpeg binary
            timeout: Seconds to wait for the probe before giving up
        """
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout

    async def get_duration(self, source_path: Union[str, Path]) -> float:
        """Probe the duration of a source.

        Args:
            source_path: Path to the source media

        Returns:
            Duration in seconds

        Raises:
            DurationProbeError: If the probe cannot run or prints no duration
        """
        try:
            process = await asyncio.create_subprocess_exec(
                self.ffmpeg_path, "-hide_banner", "-i", str(source_path),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise DurationProbeError(f"Could not start duration probe: {e}") from e

        try:
            output, _ = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise DurationProbeError(f"Duration probe timed out after {self.timeout}s")
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
            raise

        duration = parse_duration(output.decode("utf-8", errors="replace"))
        if duration is None:
            raise DurationProbeError("Could not find duration in probe output")
        return duration

    async def probe_duration(self, source_path: Union[str, Path]) -> Tuple[float, bool]:
        """Probe the duration of a source without raising.

        Returns:
            (seconds, found); (0.0, False) when the duration is unknown
        """
        try:
            duration = await self.get_duration(source_path)
        except DurationProbeError as e:
            logger.warning(f"Failed to get video duration for {source_path}: {e}")
            return 0.0, False

        logger.info(f"Probed duration {duration:.2f}s for {source_path}")
        return duration, True
