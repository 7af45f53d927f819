"""Shared yt-dlp option and diagnostic helpers for the extraction provider."""

import logging
import re
import urllib.parse

from config.settings import (
    HTTP_REFERER,
    HTTP_USER_AGENT,
    SOCKET_TIMEOUT_SECONDS,
    YTDLP_RETRIES,
)

logger = logging.getLogger(__name__)

_YTDLP_TRANSIENT_ERROR_MARKERS: tuple[str, ...] = (
    "timed out",
    "timeout",
    "connection reset",
    "temporary failure",
    "network error",
    "unable to download webpage",
    "couldn't download webpage",
    "http error 5",
    "service unavailable",
    "too many requests",
)

# Deterministic mapping of known yt-dlp unavailability signals to classes.
# NOTE: Transient network failures are explicitly excluded from classification.
_YTDLP_UNAVAILABLE_SIGNAL_MAP: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "removed_or_deleted",
        (
            "video unavailable. this video has been removed by the uploader",
            "has been removed by the uploader",
            "video has been removed",
            "this video is unavailable",
        ),
    ),
    (
        "private_or_members_only",
        (
            "private video",
            "members-only",
            "members only",
            "join this channel",
            "this video is private",
        ),
    ),
    (
        "age_restricted",
        (
            "sign in to confirm your age",
            "age-restricted",
            "age restricted",
            "age restriction",
        ),
    ),
    (
        "region_restricted",
        (
            "not available in your country",
            "video unavailable in your country",
            "geo-restricted",
            "geoblocked",
            "geo blocked",
            "the uploader has not made this video available in your country",
        ),
    ),
    (
        "format_unavailable",
        (
            "requested format is not available",
            "requested format not available",
            "requested format is unavailable",
        ),
    ),
    (
        "drm_protected",
        (
            "this video is drm protected",
            "drm protected",
        ),
    ),
)

# Allowed keys a deployment may override through ``config["yt_dlp_opts"]``.
_YTDLP_OVERRIDE_ALLOWLIST = {
    "cookiefile",
    "forceipv4",
    "forceipv6",
    "geo_verification_proxy",
    "proxy",
    "ratelimit",
    "retries",
    "fragment_retries",
    "socket_timeout",
    "source_address",
    "sleep_interval",
    "max_sleep_interval",
}

_ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;]*m")


def classify_ytdlp_unavailability(message):
    if not message:
        return None
    lower_msg = str(message).lower()
    if any(marker in lower_msg for marker in _YTDLP_TRANSIENT_ERROR_MARKERS):
        return None
    for unavailable_class, markers in _YTDLP_UNAVAILABLE_SIGNAL_MAP:
        if any(marker in lower_msg for marker in markers):
            return unavailable_class
    return None


def clean_ytdlp_message(exc):
    """Strip terminal colour codes and the ``ERROR:`` prefix yt-dlp adds."""
    text = _ANSI_ESCAPE_RE.sub("", str(exc or "")).strip()
    if text.upper().startswith("ERROR:"):
        text = text[len("ERROR:"):].strip()
    return text or exc.__class__.__name__


def client_headers():
    return {
        "User-Agent": HTTP_USER_AGENT,
        "Referer": HTTP_REFERER,
    }


def base_ytdlp_opts(config=None):
    """Options common to metadata probes and downloads."""
    opts = {
        "quiet": True,
        "no_warnings": True,
        "noplaylist": True,
        "nocheckcertificate": True,
        "retries": YTDLP_RETRIES,
        "fragment_retries": YTDLP_RETRIES,
        "socket_timeout": SOCKET_TIMEOUT_SECONDS,
        "http_headers": client_headers(),
    }
    overrides = (config or {}).get("yt_dlp_opts") if isinstance(config, dict) else None
    if isinstance(overrides, dict):
        dropped = [key for key in overrides if key not in _YTDLP_OVERRIDE_ALLOWLIST]
        if dropped:
            logger.warning("Dropping unsupported yt_dlp_opts overrides: %s", sorted(dropped))
        for key, value in overrides.items():
            if key in _YTDLP_OVERRIDE_ALLOWLIST:
                opts[key] = value
    return opts


def redact_ytdlp_opts(opts):
    redacted = {}
    for key, value in (opts or {}).items():
        if key in {"cookiefile", "http_headers", "proxy"}:
            redacted[key] = "<redacted>"
            continue
        if key == "progress_hooks":
            redacted[key] = len(value or [])
            continue
        redacted[key] = value
    return redacted


def extract_video_id(url):
    if not url:
        return None
    if "youtube.com" in url:
        match = re.search(r"v=([a-zA-Z0-9_-]{6,})", url)
        if match:
            return match.group(1)
    if "youtu.be" in url:
        parsed = urllib.parse.urlparse(url)
        if parsed.path:
            return parsed.path.lstrip("/").split("/")[0]
    return None
