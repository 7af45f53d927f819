"""Source acquisition: select and materialize provider streams on local disk."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from yt_dlp import YoutubeDL

from engine.errors import AcquisitionError
from engine.events import log_event
from engine.provider import (
    base_ytdlp_opts,
    classify_ytdlp_unavailability,
    clean_ytdlp_message,
    extract_video_id,
    redact_ytdlp_opts,
)
from engine.quality import AudioProfile, VideoProfile

logger = logging.getLogger(__name__)

# Raw audio container handed to the transcoder.
RAW_AUDIO_CODEC = "m4a"

# Prefer native m4a audio; fall back to any audio-only stream, then any best format.
_FORMAT_AUDIO = "bestaudio[ext=m4a]/bestaudio/best"

_AUDIO_EXTENSIONS = {".m4a", ".webm", ".opus", ".aac", ".mp3", ".ogg", ".flac"}
_SIDECAR_EXTENSIONS = (
    ".info.json",
    ".description",
    ".json",
    ".jpg",
    ".jpeg",
    ".png",
    ".webp",
    ".vtt",
    ".srt",
    ".ass",
)
_PARTIAL_EXTENSIONS = (".part", ".ytdl", ".temp")


@dataclass(frozen=True)
class RawArtifact:
    path: Path
    ext: str
    size_bytes: int


def video_format_selector(max_height: int) -> str:
    """Best mp4 video under the ceiling plus m4a audio, else one combined mp4 stream."""
    return (
        f"bestvideo[height<={max_height}][ext=mp4]+bestaudio[ext=m4a]/"
        f"best[height<={max_height}][ext=mp4]"
    )


def build_ytdlp_opts(profile, output_template, *, config=None):
    opts = base_ytdlp_opts(config)
    opts.update(
        {
            "outtmpl": output_template,
            "overwrites": True,
            "writethumbnail": False,
            "writesubtitles": False,
            "writeautomaticsub": False,
        }
    )

    if isinstance(profile, AudioProfile):
        opts["format"] = _FORMAT_AUDIO
        opts["postprocessors"] = [
            {
                "key": "FFmpegExtractAudio",
                "preferredcodec": RAW_AUDIO_CODEC,
                "preferredquality": "0",
            }
        ]
    elif isinstance(profile, VideoProfile):
        opts["format"] = video_format_selector(profile.max_height)
        opts["merge_output_format"] = "mp4"
        opts["postprocessors"] = [
            {
                "key": "FFmpegMetadata",
                "add_metadata": True,
                "add_chapters": False,
            }
        ]
    else:
        raise TypeError(f"unsupported profile: {profile!r}")

    audio_mode = isinstance(profile, AudioProfile)
    postprocessors = opts.get("postprocessors") or []
    if audio_mode and ("bestvideo" in str(opts.get("format") or "").lower() or opts.get("merge_output_format")):
        raise RuntimeError("audio_job_built_video_opts")
    if not audio_mode and any(pp.get("key") == "FFmpegExtractAudio" for pp in postprocessors):
        raise RuntimeError("video_job_built_audio_opts")
    return opts


def _select_download_output(staging_dir, info, audio_mode):
    local_path = None
    if isinstance(info, dict):
        for req in info.get("requested_downloads") or []:
            local_path = req.get("filepath") or req.get("filename")
            if local_path:
                break
        if not local_path:
            local_path = info.get("filepath") or info.get("_filename")

    if local_path and os.path.exists(local_path) and os.path.getsize(local_path) > 0:
        if not audio_mode or os.path.splitext(local_path)[1].lower() in _AUDIO_EXTENSIONS:
            return local_path

    candidates = []
    audio_candidates = []
    for entry in os.listdir(staging_dir):
        lower_entry = entry.lower()
        if lower_entry.endswith(_PARTIAL_EXTENSIONS) or lower_entry.endswith(_SIDECAR_EXTENSIONS):
            continue
        candidate = os.path.join(staging_dir, entry)
        if not os.path.isfile(candidate):
            continue
        size = os.path.getsize(candidate)
        if size <= 0:
            continue
        candidates.append((size, candidate))
        if os.path.splitext(candidate)[1].lower() in _AUDIO_EXTENSIONS:
            audio_candidates.append((size, candidate))

    if audio_mode:
        if not audio_candidates:
            raise AcquisitionError(
                "Audio download failed",
                detail="no audio stream resolved",
                step="acquire",
            )
        audio_candidates.sort(reverse=True)
        return audio_candidates[0][1]

    if candidates:
        candidates.sort(reverse=True)
        return candidates[0][1]

    raise AcquisitionError("Video download failed", detail="provider produced no output", step="acquire")


def atomic_move(src, dst):
    try:
        os.replace(src, dst)
    except OSError:
        shutil.copy2(src, dst)
        os.remove(src)


def _remove_quietly(path):
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("Failed to remove partial acquisition output path=%s", path, exc_info=True)


def _build_progress_hook(progress_callback, url):
    last_reported = {"percent": -1}

    def _hook(status):
        if status.get("status") != "downloading":
            return
        downloaded = status.get("downloaded_bytes") or 0
        total = status.get("total_bytes") or status.get("total_bytes_estimate")
        if not total:
            return
        percent = max(0.0, min(100.0, downloaded * 100.0 / float(total)))
        # Report whole-percent steps only
        if int(percent) == last_reported["percent"]:
            return
        last_reported["percent"] = int(percent)
        try:
            progress_callback(percent)
        except Exception:
            logger.exception("acquire_progress_callback_failed url=%s", url)

    return _hook


def acquire(url, profile, destination, *, config=None, progress_callback=None):
    """Download the stream(s) matching ``profile`` and place them at ``destination``.

    Audio profiles produce a raw m4a container for the transcoder. Video
    profiles produce the merged mp4 deliverable directly. On failure nothing
    is left at ``destination`` and the private staging directory is removed.

    Raises:
        AcquisitionError: for any provider, network, selection or merge failure.
    """
    destination = Path(destination)
    audio_mode = isinstance(profile, AudioProfile)
    destination.parent.mkdir(parents=True, exist_ok=True)
    staging_dir = tempfile.mkdtemp(prefix=".staging-", dir=str(destination.parent))
    output_template = os.path.join(staging_dir, "%(id)s.%(ext)s")
    opts = build_ytdlp_opts(profile, output_template, config=config)
    if callable(progress_callback):
        opts["progress_hooks"] = [_build_progress_hook(progress_callback, url)]

    log_event(
        logging.INFO,
        "acquire_started",
        url=url,
        profile=profile.describe(),
        destination=str(destination),
        opts=redact_ytdlp_opts(opts),
    )

    try:
        try:
            with YoutubeDL(opts) as ydl:
                info = ydl.extract_info(url, download=True)
        except Exception as exc:
            diagnostic = clean_ytdlp_message(exc)
            reason = classify_ytdlp_unavailability(diagnostic)
            log_event(
                logging.ERROR,
                "acquire_failed",
                url=url,
                candidate_id=extract_video_id(url),
                profile=profile.describe(),
                unavailable_class=reason,
                error=diagnostic,
            )
            raise AcquisitionError(
                "Audio download failed" if audio_mode else "Video download failed",
                detail=diagnostic,
                reason=reason,
                step="acquire",
            ) from exc

        local_file = _select_download_output(staging_dir, info, audio_mode)
        ext = os.path.splitext(local_file)[1].lstrip(".").lower()
        if not audio_mode and ext != profile.extension:
            raise AcquisitionError(
                "Video download failed",
                detail=f"provider produced .{ext or '?'} instead of .{profile.extension}",
                step="acquire",
            )
        atomic_move(local_file, str(destination))
    except AcquisitionError:
        _remove_quietly(destination)
        raise
    except Exception as exc:
        _remove_quietly(destination)
        logger.exception("acquire_finalize_failed url=%s destination=%s", url, destination)
        raise AcquisitionError(
            "Audio download failed" if audio_mode else "Video download failed",
            detail=str(exc),
            step="acquire",
        ) from exc
    finally:
        shutil.rmtree(staging_dir, ignore_errors=True)

    artifact = RawArtifact(path=destination, ext=ext, size_bytes=destination.stat().st_size)
    log_event(
        logging.INFO,
        "acquire_complete",
        url=url,
        profile=profile.describe(),
        path=str(artifact.path),
        size_bytes=artifact.size_bytes,
    )
    return artifact


class YtDlpSourceAcquirer:
    """Acquisition capability backed by yt-dlp."""

    def __init__(self, config=None) -> None:
        self._config = config or {}

    def acquire(self, url, profile, destination, *, progress_callback=None):
        return acquire(
            url,
            profile,
            destination,
            config=self._config,
            progress_callback=progress_callback,
        )
