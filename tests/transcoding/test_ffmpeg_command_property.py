"""Property-based tests for option coercion and encoder command construction."""

from pathlib import Path

import pytest
from hypothesis import given, settings, strategies as st

from videohub.core.storage import MediaStorage
from videohub.modules.transcoding.ffmpeg import FFmpegCommandBuilder
from videohub.modules.transcoding.models import (
    Bitrate,
    OutputFormat,
    Resolution,
    TranscodeJob,
    coerce_bitrate,
    coerce_format,
    coerce_resolution,
)


format_strategy = st.sampled_from(list(OutputFormat))
resolution_strategy = st.sampled_from(list(Resolution))
bitrate_strategy = st.sampled_from(list(Bitrate))


def make_job(
    storage: MediaStorage,
    video_id: str = "clip.mp4",
    output_format: OutputFormat = OutputFormat.MP4,
    resolution: Resolution = Resolution.RES_720P,
    bitrate: Bitrate = Bitrate.BR_1000K,
) -> TranscodeJob:
    return TranscodeJob(
        id=video_id,
        source_path=storage.uploads_dir / video_id,
        format=output_format,
        resolution=resolution,
        bitrate=bitrate,
    )


@pytest.fixture
def builder(tmp_path: Path) -> FFmpegCommandBuilder:
    return FFmpegCommandBuilder(MediaStorage(tmp_path / "uploads", tmp_path / "transcoded"))


class TestOptionCoercion:
    """Unknown option values fall back to mp4 / 720 / 1000k."""

    @given(output_format=format_strategy)
    @settings(max_examples=100)
    def test_format_is_case_insensitive(self, output_format: OutputFormat) -> None:
        assert coerce_format(output_format.value.upper()) == output_format
        assert coerce_format(f" {output_format.value} ") == output_format

    @given(value=st.text(max_size=20))
    @settings(max_examples=100)
    def test_unknown_values_use_defaults(self, value: str) -> None:
        known_formats = {f.value for f in OutputFormat}
        if value.strip().lower() not in known_formats:
            assert coerce_format(value) == OutputFormat.MP4
        if value.strip() not in {r.value for r in Resolution}:
            assert coerce_resolution(value) == Resolution.RES_720P
        if value.strip() not in {b.value for b in Bitrate}:
            assert coerce_bitrate(value) == Bitrate.BR_1000K

    @given(resolution=resolution_strategy, bitrate=bitrate_strategy)
    @settings(max_examples=100)
    def test_known_values_are_kept(self, resolution: Resolution, bitrate: Bitrate) -> None:
        assert coerce_resolution(resolution.value) == resolution
        assert coerce_bitrate(bitrate.value) == bitrate

    def test_missing_values_use_defaults(self) -> None:
        assert coerce_format(None) == OutputFormat.MP4
        assert coerce_resolution(None) == Resolution.RES_720P
        assert coerce_bitrate(None) == Bitrate.BR_1000K

    def test_resolution_outside_the_set(self) -> None:
        assert coerce_resolution("999") == Resolution.RES_720P


class TestOutputLocation:

    def test_mp4_is_named_after_base_and_height(self, builder: FFmpegCommandBuilder) -> None:
        job = make_job(builder.storage, "holiday.mov", resolution=Resolution.RES_480P)

        output = builder.output_location(job)

        assert output.path == builder.storage.transcoded_dir / "holiday_480p.mp4"
        assert output.url == "/transcoded/holiday_480p.mp4"
        assert output.directory is None

    def test_hls_writes_playlist_into_base_directory(self, builder: FFmpegCommandBuilder) -> None:
        job = make_job(builder.storage, "holiday.mov", output_format=OutputFormat.HLS)

        output = builder.output_location(job)

        assert output.directory == builder.storage.transcoded_dir / "holiday"
        assert output.path == builder.storage.transcoded_dir / "holiday" / "playlist.m3u8"
        assert output.url == "/transcoded/holiday/playlist.m3u8"

    def test_dash_writes_manifest_into_base_directory(self, builder: FFmpegCommandBuilder) -> None:
        job = make_job(builder.storage, "holiday.mov", output_format=OutputFormat.DASH)

        output = builder.output_location(job)

        assert output.path == builder.storage.transcoded_dir / "holiday" / "manifest.mpd"
        assert output.url == "/transcoded/holiday/manifest.mpd"


class TestBuildCommand:
    """Every command scales, sets the bitrate and reports progress on stdout."""

    @given(output_format=format_strategy, resolution=resolution_strategy, bitrate=bitrate_strategy)
    @settings(max_examples=100)
    def test_shared_arguments(
        self,
        tmp_path_factory: pytest.TempPathFactory,
        output_format: OutputFormat,
        resolution: Resolution,
        bitrate: Bitrate,
    ) -> None:
        root = tmp_path_factory.getbasetemp()
        builder = FFmpegCommandBuilder(MediaStorage(root / "u", root / "t"), ffmpeg_path="/opt/ffmpeg")
        job = make_job(builder.storage, output_format=output_format, resolution=resolution, bitrate=bitrate)
        output = builder.output_location(job)

        cmd = builder.build_command(job, output)

        assert cmd[0] == "/opt/ffmpeg"
        assert cmd[cmd.index("-i") + 1] == str(job.source_path)
        assert cmd[cmd.index("-vf") + 1] == f"scale=-2:{resolution.value}"
        assert cmd[cmd.index("-b:v") + 1] == bitrate.value
        assert cmd[cmd.index("-progress") + 1] == "pipe:1"
        assert cmd[-1] == str(output.path)

    def test_mp4_arguments(self, builder: FFmpegCommandBuilder) -> None:
        job = make_job(builder.storage)
        cmd = builder.build_command(job, builder.output_location(job))

        assert cmd[cmd.index("-c:v") + 1] == "libx264"
        assert cmd[cmd.index("-c:a") + 1] == "aac"
        assert cmd[cmd.index("-movflags") + 1] == "+faststart"

    def test_hls_arguments(self, builder: FFmpegCommandBuilder) -> None:
        job = make_job(builder.storage, output_format=OutputFormat.HLS)
        cmd = builder.build_command(job, builder.output_location(job))

        assert cmd[cmd.index("-profile:v") + 1] == "baseline"
        assert cmd[cmd.index("-level") + 1] == "3.0"
        assert cmd[cmd.index("-hls_time") + 1] == "10"
        assert cmd[cmd.index("-hls_list_size") + 1] == "0"
        assert cmd[cmd.index("-start_number") + 1] == "0"
        assert cmd[cmd.index("-f") + 1] == "hls"

    def test_dash_arguments(self, builder: FFmpegCommandBuilder) -> None:
        job = make_job(builder.storage, output_format=OutputFormat.DASH)
        cmd = builder.build_command(job, builder.output_location(job))

        assert cmd[cmd.index("-bf") + 1] == "0"
        assert cmd[cmd.index("-f") + 1] == "dash"
        assert cmd[cmd.index("-use_timeline") + 1] == "1"
        assert cmd[cmd.index("-use_template") + 1] == "1"
        assert cmd[cmd.index("-window_size") + 1] == "5"
        assert cmd[cmd.index("-adaptation_sets") + 1] == "id=0,streams=v id=1,streams=a"

    def test_command_line_string_is_shell_quoted(self, builder: FFmpegCommandBuilder) -> None:
        assert builder.get_command_line_string(["ffmpeg", "-i", "my clip.mp4"]) == "ffmpeg -i 'my clip.mp4'"
