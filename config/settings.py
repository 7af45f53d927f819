"""Application settings constants."""

from __future__ import annotations

import os
import shutil


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


APP_NAME = "ytconvert"
APP_VERSION = os.environ.get("YTCONVERT_VERSION", "0.1.0")

HOST = os.environ.get("YTCONVERT_HOST", "0.0.0.0")
PORT = _env_int("YTCONVERT_PORT", 3000)

# Default quality hints when the caller omits ``quality``.
DEFAULT_AUDIO_BITRATE_KBPS = 128
DEFAULT_VIDEO_HEIGHT = 360
VIDEO_HEIGHT_LADDER = (360, 480, 720, 1080)

# Fixed audio output parameters.
AUDIO_CHANNELS = 2
AUDIO_SAMPLE_RATE_HZ = 44100

# Client identification presented to the extraction provider.
HTTP_USER_AGENT = os.environ.get(
    "YTCONVERT_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
)
HTTP_REFERER = os.environ.get("YTCONVERT_REFERER", "https://www.youtube.com/")

# Timeouts (seconds) for external calls.
SOCKET_TIMEOUT_SECONDS = _env_int("YTCONVERT_SOCKET_TIMEOUT", 30)
TRANSCODE_TIMEOUT_SECONDS = _env_int("YTCONVERT_TRANSCODE_TIMEOUT", 1800)
FFPROBE_TIMEOUT_SECONDS = 15

YTDLP_RETRIES = _env_int("YTCONVERT_YTDLP_RETRIES", 3)

FFMPEG_BINARY = os.environ.get("YTCONVERT_FFMPEG", shutil.which("ffmpeg") or "ffmpeg")
FFPROBE_BINARY = os.environ.get("YTCONVERT_FFPROBE", shutil.which("ffprobe") or "ffprobe")

# Toggle for probing transcoded audio against the requested profile.
ENABLE_OUTPUT_VALIDATION = _env_flag("YTCONVERT_VALIDATE_OUTPUT", True)

# Allowed absolute difference between requested and measured bitrate.
AUDIO_BITRATE_TOLERANCE_KBPS = 16

# Optional yt-dlp network overrides.
YTDLP_COOKIEFILE = os.environ.get("YTCONVERT_COOKIEFILE", "").strip() or None
YTDLP_PROXY = os.environ.get("YTCONVERT_PROXY", "").strip() or None
YTDLP_SOURCE_ADDRESS = os.environ.get("YTCONVERT_SOURCE_ADDRESS", "").strip() or None
YTDLP_FORCE_IPV4 = _env_flag("YTCONVERT_FORCE_IPV4", False)


def build_runtime_config() -> dict:
    """Collect the environment-driven yt-dlp overrides into a worker config."""
    overrides = {}
    if YTDLP_COOKIEFILE:
        overrides["cookiefile"] = YTDLP_COOKIEFILE
    if YTDLP_PROXY:
        overrides["proxy"] = YTDLP_PROXY
    if YTDLP_SOURCE_ADDRESS:
        overrides["source_address"] = YTDLP_SOURCE_ADDRESS
    if YTDLP_FORCE_IPV4:
        overrides["forceipv4"] = True
    return {"yt_dlp_opts": overrides}
