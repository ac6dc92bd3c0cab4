"""Progress extraction from encoder output.

The encoder reports its position as ``HH:MM:SS.ss`` timestamps inside
otherwise unstructured text. These helpers find them and turn them into
seconds and percentages. Nothing here does I/O.
"""

import math
import re
from typing import Optional

# Matches both ``time=`` in the human-readable status line and ``out_time=``
# in the machine-readable progress stream.
TIME_PATTERN = re.compile(r"time=(\d+):(\d+):(\d+\.\d+)")
DURATION_PATTERN = re.compile(r"Duration: (\d+):(\d+):(\d+\.\d+)")


def timestamp_to_seconds(hours: str, minutes: str, seconds: str) -> float:
    """Convert the three captured fields of a timestamp to seconds."""
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def _first_timestamp(pattern: re.Pattern, text: str) -> Optional[float]:
    match = pattern.search(text)
    if match is None:
        return None
    return timestamp_to_seconds(*match.groups())


def parse_time_position(chunk: str) -> Optional[float]:
    """Elapsed seconds from the first ``time=`` marker in a chunk, if any."""
    return _first_timestamp(TIME_PATTERN, chunk)


def parse_duration(text: str) -> Optional[float]:
    """Total seconds from the first ``Duration:`` marker in probe output, if any."""
    return _first_timestamp(DURATION_PATTERN, text)


def extract_percent(chunk: str, total_duration: float) -> int:
    """Compute percent complete from one chunk of progress-stream text.

    Returns 0 when the chunk holds no time marker or when the total duration
    is unknown (<= 0). The result is not clamped: a position past the probed
    duration yields more than 100, and callers decide what to keep.

    Args:
        chunk: Text read from the encoder's progress stream
        total_duration: Source duration in seconds

    Returns:
        floor(100 * elapsed / total_duration)
    """
    if total_duration <= 0:
        return 0
    elapsed = parse_time_position(chunk)
    if elapsed is None:
        return 0
    return math.floor(elapsed * 100 / total_duration)
