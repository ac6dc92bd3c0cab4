"""Tests for transcode job spans."""

import asyncio

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from videohub.core import tracing
from videohub.modules.transcoding.exceptions import ProcessExecutionError
from videohub.modules.transcoding.models import OutputFormat, TranscodeJob
from videohub.modules.transcoding.runner import TranscodeRunner


@pytest.fixture
def exporter(monkeypatch: pytest.MonkeyPatch) -> InMemorySpanExporter:
    span_exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    monkeypatch.setattr(tracing, "_tracer", provider.get_tracer("videohub-tests"))
    return span_exporter


def finished_span(exporter: InMemorySpanExporter):
    spans = [span for span in exporter.get_finished_spans() if span.name == "transcode.run"]
    assert len(spans) == 1
    return spans[0]


class TestTranscodeSpan:

    def test_completed_block(self, exporter) -> None:
        with tracing.transcode_span("clip.mp4", format="hls", resolution="720"):
            pass

        span = finished_span(exporter)
        assert span.attributes["transcode.job_id"] == "clip.mp4"
        assert span.attributes["transcode.format"] == "hls"
        assert span.attributes["transcode.resolution"] == "720"
        assert span.attributes["transcode.outcome"] == "completed"

    def test_failed_block(self, exporter) -> None:
        with pytest.raises(ValueError):
            with tracing.transcode_span("clip.mp4"):
                raise ValueError("boom")

        assert finished_span(exporter).attributes["transcode.outcome"] == "failed"

    @pytest.mark.asyncio
    async def test_cancelled_block(self, exporter) -> None:
        async def job() -> None:
            with tracing.transcode_span("clip.mp4"):
                await asyncio.sleep(30)

        task = asyncio.create_task(job())
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert finished_span(exporter).attributes["transcode.outcome"] == "cancelled"


class TestRunnerSpans:

    @pytest.mark.asyncio
    async def test_successful_run(self, exporter, fake_encoder, storage, source_video, recording_registry) -> None:
        runner = TranscodeRunner(recording_registry, storage, ffmpeg_path=fake_encoder())
        job = TranscodeJob(id=source_video, source_path=storage.uploads_dir / source_video, format=OutputFormat.DASH)

        await runner.run(job)

        span = finished_span(exporter)
        assert span.attributes["transcode.format"] == "dash"
        assert span.attributes["transcode.bitrate"] == "1000k"
        assert span.attributes["transcode.outcome"] == "completed"

    @pytest.mark.asyncio
    async def test_failed_run(self, exporter, fake_encoder, storage, source_video, recording_registry) -> None:
        runner = TranscodeRunner(recording_registry, storage, ffmpeg_path=fake_encoder(exit_code=2))
        job = TranscodeJob(id=source_video, source_path=storage.uploads_dir / source_video)

        with pytest.raises(ProcessExecutionError):
            await runner.run(job)

        assert finished_span(exporter).attributes["transcode.outcome"] == "failed"
