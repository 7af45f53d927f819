from __future__ import annotations

import os
from pathlib import Path

import pytest
from yt_dlp.utils import DownloadError

import engine.acquirer as acquirer
from engine.errors import AcquisitionError
from engine.quality import AudioProfile, VideoProfile

URL = "https://www.youtube.com/watch?v=abc123xyz00"


def _fake_ydl_factory(*, ext="m4a", payload=b"media-bytes", error=None, partial=False, hook_events=()):
    recorded: dict = {}

    class _FakeYoutubeDL:
        def __init__(self, opts):
            recorded["opts"] = opts
            self.opts = opts

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def extract_info(self, url, download=True):
            recorded["download"] = download
            staging = os.path.dirname(self.opts["outtmpl"])
            for event in hook_events:
                for hook in self.opts.get("progress_hooks") or []:
                    hook(event)
            if partial:
                with open(os.path.join(staging, "abc123xyz00.m4a.part"), "wb") as handle:
                    handle.write(b"partial")
            if error is not None:
                raise error
            path = os.path.join(staging, f"abc123xyz00.{ext}")
            with open(path, "wb") as handle:
                handle.write(payload)
            return {"id": "abc123xyz00", "requested_downloads": [{"filepath": path}]}

    return _FakeYoutubeDL, recorded


def _dir_entries(path: Path) -> list[str]:
    return sorted(os.listdir(path))


def test_audio_opts_select_audio_only_stream_and_raw_container() -> None:
    opts = acquirer.build_ytdlp_opts(AudioProfile(192), "/tmp/%(id)s.%(ext)s")

    assert opts["format"].startswith("bestaudio")
    assert "merge_output_format" not in opts
    extract_pp = next(pp for pp in opts["postprocessors"] if pp["key"] == "FFmpegExtractAudio")
    assert extract_pp["preferredcodec"] == "m4a"
    assert opts["noplaylist"] is True


def test_video_opts_bound_height_and_merge_to_mp4() -> None:
    opts = acquirer.build_ytdlp_opts(VideoProfile(720), "/tmp/%(id)s.%(ext)s")

    assert opts["format"] == (
        "bestvideo[height<=720][ext=mp4]+bestaudio[ext=m4a]/best[height<=720][ext=mp4]"
    )
    assert opts["merge_output_format"] == "mp4"
    assert not any(pp["key"] == "FFmpegExtractAudio" for pp in opts["postprocessors"])
    assert opts["writethumbnail"] is False
    assert opts["writesubtitles"] is False


def test_opts_present_browser_client_headers() -> None:
    opts = acquirer.build_ytdlp_opts(VideoProfile(360), "/tmp/%(id)s.%(ext)s")

    assert opts["http_headers"]["User-Agent"].startswith("Mozilla/5.0")
    assert opts["http_headers"]["Referer"]


def test_opts_keep_allowlisted_overrides_only() -> None:
    opts = acquirer.build_ytdlp_opts(
        AudioProfile(),
        "/tmp/%(id)s.%(ext)s",
        config={"yt_dlp_opts": {"proxy": "socks5://127.0.0.1:9050", "format": "worst"}},
    )

    assert opts["proxy"] == "socks5://127.0.0.1:9050"
    assert opts["format"].startswith("bestaudio")


def test_acquire_audio_moves_raw_file_to_destination(monkeypatch, tmp_path: Path) -> None:
    fake, recorded = _fake_ydl_factory(ext="m4a")
    monkeypatch.setattr(acquirer, "YoutubeDL", fake)
    destination = tmp_path / "temp-job.m4a"

    artifact = acquirer.acquire(URL, AudioProfile(128), destination)

    assert recorded["download"] is True
    assert artifact.path == destination
    assert artifact.ext == "m4a"
    assert destination.read_bytes() == b"media-bytes"
    assert _dir_entries(tmp_path) == ["temp-job.m4a"]


def test_acquire_video_writes_merged_mp4(monkeypatch, tmp_path: Path) -> None:
    fake, _ = _fake_ydl_factory(ext="mp4")
    monkeypatch.setattr(acquirer, "YoutubeDL", fake)
    destination = tmp_path / "Clip-1.mp4"

    artifact = acquirer.acquire(URL, VideoProfile(480), destination)

    assert artifact.size_bytes == len(b"media-bytes")
    assert _dir_entries(tmp_path) == ["Clip-1.mp4"]


def test_acquire_failure_leaves_no_partial_files(monkeypatch, tmp_path: Path) -> None:
    fake, _ = _fake_ydl_factory(error=DownloadError("ERROR: Sign in to confirm your age"), partial=True)
    monkeypatch.setattr(acquirer, "YoutubeDL", fake)

    with pytest.raises(AcquisitionError) as exc_info:
        acquirer.acquire(URL, AudioProfile(128), tmp_path / "temp-job.m4a")

    assert exc_info.value.reason == "age_restricted"
    assert _dir_entries(tmp_path) == []


def test_acquire_video_rejects_non_mp4_output(monkeypatch, tmp_path: Path) -> None:
    fake, _ = _fake_ydl_factory(ext="webm")
    monkeypatch.setattr(acquirer, "YoutubeDL", fake)

    with pytest.raises(AcquisitionError):
        acquirer.acquire(URL, VideoProfile(360), tmp_path / "Clip-1.mp4")

    assert _dir_entries(tmp_path) == []


def test_acquire_audio_rejects_video_only_output(monkeypatch, tmp_path: Path) -> None:
    fake, _ = _fake_ydl_factory(ext="mp4")
    monkeypatch.setattr(acquirer, "YoutubeDL", fake)

    with pytest.raises(AcquisitionError, match="Audio download failed"):
        acquirer.acquire(URL, AudioProfile(128), tmp_path / "temp-job.m4a")

    assert _dir_entries(tmp_path) == []


def test_acquire_reports_download_progress(monkeypatch, tmp_path: Path) -> None:
    events = [
        {"status": "downloading", "downloaded_bytes": 25, "total_bytes": 100},
        {"status": "downloading", "downloaded_bytes": 25, "total_bytes": 100},
        {"status": "downloading", "downloaded_bytes": 50, "total_bytes_estimate": 100},
        {"status": "finished", "downloaded_bytes": 100, "total_bytes": 100},
    ]
    fake, _ = _fake_ydl_factory(hook_events=events)
    monkeypatch.setattr(acquirer, "YoutubeDL", fake)
    seen: list[float] = []

    acquirer.acquire(URL, AudioProfile(128), tmp_path / "temp-job.m4a", progress_callback=seen.append)

    assert seen == [25.0, 50.0]
