"""Requested output quality profiles and their parsing rules."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from config.settings import (
    DEFAULT_AUDIO_BITRATE_KBPS,
    DEFAULT_VIDEO_HEIGHT,
    VIDEO_HEIGHT_LADDER,
)

MODE_AUDIO = "audio"
MODE_VIDEO = "video"


@dataclass(frozen=True)
class AudioProfile:
    bitrate_kbps: int = DEFAULT_AUDIO_BITRATE_KBPS

    mode = MODE_AUDIO
    extension = "mp3"
    media_type = "audio/mpeg"

    def describe(self) -> str:
        return f"audio/{self.bitrate_kbps}kbps"


@dataclass(frozen=True)
class VideoProfile:
    max_height: int = DEFAULT_VIDEO_HEIGHT

    mode = MODE_VIDEO
    extension = "mp4"
    media_type = "video/mp4"

    def describe(self) -> str:
        return f"video/{self.max_height}p"


QualityProfile = Union[AudioProfile, VideoProfile]


_BITRATE_HINT_RE = re.compile(r"^\s*(\d+)\s*(?:k|kbps|kb/s)?\s*$", re.IGNORECASE)


def parse_bitrate_hint(value):
    """Parse a whole positive kbps value such as ``192`` or ``"192k"``, else None."""
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    text = str(value).strip()
    if not text:
        return None
    match = _BITRATE_HINT_RE.match(text)
    if not match:
        return None
    parsed = int(match.group(1))
    return parsed if parsed > 0 else None


def parse_audio_profile(quality) -> AudioProfile:
    """Bitrate is passed through as given; no codec ceiling is enforced."""
    bitrate = parse_bitrate_hint(quality)
    return AudioProfile(bitrate_kbps=bitrate or DEFAULT_AUDIO_BITRATE_KBPS)


def parse_video_profile(quality) -> VideoProfile:
    """Map a height hint onto the ladder; anything unrecognized becomes the lowest rung."""
    text = str(quality).strip() if quality is not None else ""
    for height in VIDEO_HEIGHT_LADDER:
        if text == str(height):
            return VideoProfile(max_height=height)
    return VideoProfile(max_height=min(VIDEO_HEIGHT_LADDER))


def parse_profile(mode: str, quality) -> QualityProfile:
    normalized = str(mode or "").strip().lower()
    if normalized == MODE_AUDIO:
        return parse_audio_profile(quality)
    if normalized == MODE_VIDEO:
        return parse_video_profile(quality)
    raise ValueError(f"unsupported conversion mode: {mode!r}")
