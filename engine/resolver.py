"""Metadata resolution through the yt-dlp extraction provider."""

from __future__ import annotations

import logging
from typing import Any

from yt_dlp import YoutubeDL

from engine.errors import ResolutionError
from engine.events import log_event
from engine.provider import (
    base_ytdlp_opts,
    classify_ytdlp_unavailability,
    clean_ytdlp_message,
    extract_video_id,
)
from metadata.types import MediaMetadata

logger = logging.getLogger(__name__)


def _parse_duration(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        seconds = int(float(value))
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None


def _clean_text(value: Any) -> str | None:
    text = str(value or "").strip()
    return text or None


def extract_meta(info: Any, *, fallback_url: str | None = None) -> MediaMetadata:
    """Map a yt-dlp info dict onto ``MediaMetadata``.

    Raises:
        ResolutionError: when the provider returned no usable title.
    """
    if not isinstance(info, dict):
        raise ResolutionError("Failed to get video info", detail="provider returned no metadata", step="resolve")
    title = _clean_text(info.get("title") or info.get("fulltitle"))
    if not title:
        raise ResolutionError(
            "Failed to get video info",
            detail=f"no title for {info.get('webpage_url') or fallback_url}",
            step="resolve",
        )
    return MediaMetadata(
        title=title,
        duration_seconds=_parse_duration(info.get("duration")),
        thumbnail_url=_clean_text(info.get("thumbnail")),
        author=_clean_text(info.get("uploader") or info.get("channel")),
    )


def build_probe_opts(config=None) -> dict:
    opts = base_ytdlp_opts(config)
    opts["skip_download"] = True
    return opts


def resolve_metadata(url: str, *, config=None) -> MediaMetadata:
    """Probe ``url`` for title, duration, thumbnail and author without downloading media."""
    opts = build_probe_opts(config)
    try:
        with YoutubeDL(opts) as ydl:
            info = ydl.extract_info(url, download=False)
    except Exception as exc:
        diagnostic = clean_ytdlp_message(exc)
        reason = classify_ytdlp_unavailability(diagnostic)
        log_event(
            logging.ERROR,
            "metadata_probe_failed",
            url=url,
            candidate_id=extract_video_id(url),
            unavailable_class=reason,
            error=diagnostic,
        )
        raise ResolutionError(
            "Failed to get video info",
            detail=diagnostic,
            reason=reason,
            step="resolve",
        ) from exc

    meta = extract_meta(info, fallback_url=url)
    log_event(
        logging.INFO,
        "metadata_probe_complete",
        url=url,
        title=meta.title,
        duration=meta.duration_seconds,
    )
    return meta


class YtDlpMetadataResolver:
    """Metadata capability backed by yt-dlp."""

    def __init__(self, config=None) -> None:
        self._config = config or {}

    def resolve(self, url: str) -> MediaMetadata:
        return resolve_metadata(url, config=self._config)
