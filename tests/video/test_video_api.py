"""Tests for the video catalog: upload, list, get and delete."""

import io

import pytest
from fastapi.testclient import TestClient
from hypothesis import given, settings as hypothesis_settings, strategies as st

from videohub.core.config import settings
from videohub.core.storage import MediaStorage
from videohub.main import app
from videohub.modules.transcoding.registry import get_progress_registry
from videohub.modules.video.service import (
    InvalidUploadError,
    VideoNotFoundError,
    VideoService,
    normalize_upload_name,
)


@pytest.fixture
def media_dirs(monkeypatch: pytest.MonkeyPatch, storage: MediaStorage) -> None:
    monkeypatch.setattr(settings, "UPLOADS_DIR", str(storage.uploads_dir))
    monkeypatch.setattr(settings, "TRANSCODED_DIR", str(storage.transcoded_dir))


@pytest.fixture
def client(media_dirs: None) -> TestClient:
    with TestClient(app) as test_client:
        yield test_client


def add_renditions(storage: MediaStorage, base: str) -> None:
    (storage.transcoded_dir / base).mkdir(parents=True, exist_ok=True)
    (storage.transcoded_dir / base / "playlist.m3u8").write_text("#EXTM3U\n")
    (storage.transcoded_dir / f"{base}_480p.mp4").write_bytes(b"x")
    (storage.transcoded_dir / f"{base}_720p.mp4").write_bytes(b"x")


class TestUploadNames:
    """Unsupported extensions get .mp4 appended, supported ones are kept."""

    @given(stem=st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789_-", min_size=1, max_size=20),
           ext=st.sampled_from([".mp4", ".webm", ".mov", ".MP4"]))
    @hypothesis_settings(max_examples=100)
    def test_supported_extension_is_kept(self, stem: str, ext: str) -> None:
        assert normalize_upload_name(stem + ext) == stem + ext

    @pytest.mark.parametrize("name, stored", [
        ("clip.avi", "clip.avi.mp4"),
        ("clip", "clip.mp4"),
        ("../../etc/clip.mov", "clip.mov"),
        ("C:\\videos\\clip.webm", "clip.webm"),
    ])
    def test_normalized_names(self, name: str, stored: str) -> None:
        assert normalize_upload_name(name) == stored

    @pytest.mark.parametrize("name", [None, "", "..", "dir/"])
    def test_unusable_names(self, name) -> None:
        with pytest.raises(InvalidUploadError):
            normalize_upload_name(name)


class TestVideoService:

    def test_upload_over_limit_is_rejected_and_removed(self, storage: MediaStorage) -> None:
        service = VideoService(storage, max_upload_size=10)

        with pytest.raises(InvalidUploadError):
            service.save_upload("big.mp4", io.BytesIO(b"x" * 11))

        assert not (storage.uploads_dir / "big.mp4").exists()

    def test_upload_at_limit_is_kept(self, storage: MediaStorage) -> None:
        service = VideoService(storage, max_upload_size=10)

        stored = service.save_upload("ok.mp4", io.BytesIO(b"x" * 10))

        assert stored.size == 10
        assert (storage.uploads_dir / "ok.mp4").read_bytes() == b"x" * 10

    def test_get_unknown_video(self, storage: MediaStorage) -> None:
        with pytest.raises(VideoNotFoundError):
            VideoService(storage, max_upload_size=10).get_video("nope.mp4")


class TestVideoApi:

    def test_upload(self, client: TestClient, storage: MediaStorage) -> None:
        response = client.post("/api/videos", files={"video": ("holiday.mov", b"data", "video/quicktime")})

        assert response.status_code == 200
        assert response.json() == {"id": "holiday.mov", "name": "holiday.mov", "url": "/videos/holiday.mov", "size": 4}
        assert (storage.uploads_dir / "holiday.mov").read_bytes() == b"data"

    def test_upload_with_unsupported_extension(self, client: TestClient) -> None:
        response = client.post("/api/videos", files={"video": ("holiday.avi", b"data", "video/x-msvideo")})

        assert response.status_code == 200
        assert response.json()["id"] == "holiday.avi.mp4"

    def test_upload_without_file(self, client: TestClient) -> None:
        response = client.post("/api/videos", data={"title": "nothing"})

        assert response.status_code == 400
        assert response.json() == {"error": "No video file provided"}

    def test_upload_too_large(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE_BYTES", 3)

        response = client.post("/api/videos", files={"video": ("clip.mp4", b"data", "video/mp4")})

        assert response.status_code == 400
        assert "too large" in response.json()["error"]

    def test_list_reports_renditions(self, client: TestClient, storage: MediaStorage) -> None:
        (storage.uploads_dir / "a.mp4").write_bytes(b"x")
        (storage.uploads_dir / "b.webm").write_bytes(b"x")
        (storage.uploads_dir / "notes.txt").write_text("ignored")
        add_renditions(storage, "a")

        response = client.get("/api/videos")

        assert response.status_code == 200
        assert response.json() == [
            {
                "id": "a.mp4", "name": "a.mp4", "url": "/videos/a.mp4",
                "hasHLS": True, "hasDASH": False, "hasMP4": True,
                "hlsUrl": "/transcoded/a/playlist.m3u8", "dashUrl": "",
            },
            {
                "id": "b.webm", "name": "b.webm", "url": "/videos/b.webm",
                "hasHLS": False, "hasDASH": False, "hasMP4": False,
                "hlsUrl": "", "dashUrl": "",
            },
        ]

    def test_get_includes_mp4_versions(self, client: TestClient, storage: MediaStorage) -> None:
        (storage.uploads_dir / "a.mp4").write_bytes(b"x")
        add_renditions(storage, "a")

        response = client.get("/api/videos/a.mp4")

        assert response.status_code == 200
        body = response.json()
        assert body["mp4Versions"] == ["/transcoded/a_480p.mp4", "/transcoded/a_720p.mp4"]
        assert body["hasHLS"] is True

    def test_get_missing_video(self, client: TestClient) -> None:
        response = client.get("/api/videos/missing.mp4")

        assert response.status_code == 404
        assert response.json() == {"error": "Video not found"}

    def test_delete_removes_upload_and_renditions(self, client: TestClient, storage: MediaStorage) -> None:
        (storage.uploads_dir / "a.mp4").write_bytes(b"x")
        add_renditions(storage, "a")
        registry = get_progress_registry()
        registry.set("a.mp4", 100)

        response = client.delete("/api/videos/a.mp4")

        assert response.status_code == 204
        assert not (storage.uploads_dir / "a.mp4").exists()
        assert not (storage.transcoded_dir / "a").exists()
        assert list(storage.transcoded_dir.glob("a_*p.mp4")) == []
        assert not registry.contains("a.mp4")

    def test_delete_missing_video(self, client: TestClient) -> None:
        assert client.delete("/api/videos/missing.mp4").status_code == 404

    def test_health(self, client: TestClient) -> None:
        assert client.get("/health").json() == {"status": "healthy"}

    def test_metrics(self, client: TestClient) -> None:
        client.get("/health")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert 'endpoint="/health"' in response.text
        assert "transcode_jobs_active" in response.text
