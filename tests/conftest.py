"""Shared fixtures.

The encoder is replaced by a POSIX shell script that answers the three
invocations the service makes: ``-version``, the duration probe
(``-hide_banner -i <src>``) and an encode (any invocation with
``-progress``). An encode writes its progress lines to stdout, one line of
diagnostics to stderr, creates the output file and exits with a fixed status.
"""

import stat
import sys
import textwrap
from pathlib import Path
from typing import Callable, Optional, Sequence

import pytest

from videohub.core.storage import MediaStorage
from videohub.modules.transcoding.registry import ProgressRegistry

EncoderFactory = Callable[..., str]


class RecordingRegistry(ProgressRegistry):
    """Registry that remembers every value written per job."""

    def __init__(self) -> None:
        super().__init__()
        self.history: dict[str, list[int]] = {}

    def set(self, job_id: str, percent: int) -> None:
        self.history.setdefault(job_id, []).append(int(percent))
        super().set(job_id, percent)


def _write_encoder(
    directory: Path,
    duration: Optional[str] = "00:02:00.00",
    progress: Sequence[str] = ("00:01:00.000000",),
    exit_code: int = 0,
    version_exit_code: int = 0,
    delay: float = 0.2,
    probe_delay: float = 0,
) -> str:
    probe = (
        f'echo "  Duration: {duration}, start: 0.000000, bitrate: 1205 kb/s" >&2'
        if duration is not None
        else 'echo "Input #0: no duration here" >&2'
    )
    progress_lines = "\n".join(
        f'printf "frame=1\\nout_time={position}\\nprogress=continue\\n"\nsleep 0.05 >/dev/null 2>&1'
        for position in progress
    )
    script = textwrap.dedent("""\
        #!/bin/sh
        if [ "$1" = "-version" ]; then
          echo "ffmpeg version 6.0-fake"
          exit {version_exit_code}
        fi
        encode=""
        last=""
        for arg in "$@"; do
          if [ "$arg" = "-progress" ]; then encode=1; fi
          last="$arg"
        done
        if [ -z "$encode" ]; then
          sleep {probe_delay} >/dev/null 2>&1 </dev/null
          {probe}
          echo "At least one output file must be specified" >&2
          exit 1
        fi
        echo "fake encoder diagnostics" >&2
        {progress_lines}
        sleep {delay} >/dev/null 2>&1 </dev/null
        : > "$last"
        printf "progress=end\\n"
        exit {exit_code}
        """).format(
        version_exit_code=version_exit_code,
        probe=probe,
        probe_delay=probe_delay,
        progress_lines=progress_lines,
        delay=delay,
        exit_code=exit_code,
    )
    path = directory / "fake-ffmpeg"
    path.write_text(script)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture
def fake_encoder(tmp_path: Path) -> EncoderFactory:
    """Factory writing a fake encoder script and returning its path."""
    if sys.platform == "win32":
        pytest.skip("fake encoder is a POSIX shell script")

    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()

    def factory(**kwargs) -> str:
        return _write_encoder(bin_dir, **kwargs)

    return factory


@pytest.fixture
def storage(tmp_path: Path) -> MediaStorage:
    media = MediaStorage(tmp_path / "uploads", tmp_path / "transcoded")
    media.ensure_directories()
    return media


@pytest.fixture
def source_video(storage: MediaStorage) -> str:
    """ID of an uploaded source present in storage."""
    video_id = "clip.mp4"
    (storage.uploads_dir / video_id).write_bytes(b"\x00" * 64)
    return video_id


@pytest.fixture
def recording_registry() -> RecordingRegistry:
    return RecordingRegistry()
