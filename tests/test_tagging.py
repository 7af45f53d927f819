from __future__ import annotations

from pathlib import Path

import pytest
from mutagen.id3 import ID3

from metadata.tagging import tag_mp3


def _fake_mp3(path: Path) -> Path:
    path.write_bytes(b"\xff\xfb\x90\x64" + b"\x00" * 2048)
    return path


def test_tag_mp3_writes_id3v23_frames(tmp_path: Path) -> None:
    path = _fake_mp3(tmp_path / "song.mp3")

    tag_mp3(str(path), title="Night Drive", artist="Some Channel", source_url="https://youtu.be/abc")

    tags = ID3(str(path))
    assert tags.version == (2, 3, 0)
    assert tags["TIT2"].text == ["Night Drive"]
    assert tags["TPE1"].text == ["Some Channel"]
    assert tags["TXXX:Source URL"].text == ["https://youtu.be/abc"]


def test_tag_mp3_appends_id3v1_trailer(tmp_path: Path) -> None:
    path = _fake_mp3(tmp_path / "song.mp3")

    tag_mp3(str(path), title="Night Drive")

    data = path.read_bytes()
    assert data[-128:-125] == b"TAG"
    assert b"Night Drive" in data[-128:]


def test_tag_mp3_skips_blank_artist(tmp_path: Path) -> None:
    path = _fake_mp3(tmp_path / "song.mp3")

    tag_mp3(str(path), title="Only Title", artist="   ")

    tags = ID3(str(path))
    assert "TPE1" not in tags
    assert tags["TIT2"].text == ["Only Title"]


def test_tag_mp3_retag_replaces_existing_frames(tmp_path: Path) -> None:
    path = _fake_mp3(tmp_path / "song.mp3")

    tag_mp3(str(path), title="First")
    tag_mp3(str(path), title="Second")

    assert ID3(str(path)).getall("TIT2")[0].text == ["Second"]


def test_tag_mp3_rejects_non_mp3(tmp_path: Path) -> None:
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"\x00" * 16)

    with pytest.raises(ValueError, match="Unsupported file format"):
        tag_mp3(str(path), title="x")
