"""Audio transcoding through ffmpeg with progress reporting."""

from __future__ import annotations

import logging
import os
import subprocess
import threading
import time
from collections import deque
from pathlib import Path

from config.settings import (
    AUDIO_CHANNELS,
    AUDIO_SAMPLE_RATE_HZ,
    FFMPEG_BINARY,
    TRANSCODE_TIMEOUT_SECONDS,
)
from engine.errors import TranscodeError
from engine.quality import AudioProfile
from media.ffprobe import get_media_duration
from metadata.tagging import tag_mp3

logger = logging.getLogger(__name__)

_STDERR_TAIL_LINES = 40


def build_ffmpeg_command(input_path, profile: AudioProfile, output_path) -> list[str]:
    return [
        FFMPEG_BINARY,
        "-hide_banner",
        "-nostdin",
        "-y",
        "-i",
        str(input_path),
        "-vn",
        "-acodec",
        "libmp3lame",
        "-b:a",
        f"{profile.bitrate_kbps}k",
        "-ac",
        str(AUDIO_CHANNELS),
        "-ar",
        str(AUDIO_SAMPLE_RATE_HZ),
        "-f",
        "mp3",
        "-id3v2_version",
        "3",
        "-write_id3v1",
        "1",
        "-progress",
        "pipe:1",
        "-nostats",
        str(output_path),
    ]


def parse_progress_line(line, duration_seconds):
    """Return percent complete for one ``-progress`` key=value line, or None.

    ffmpeg reports ``out_time_us`` and ``out_time_ms``; both carry
    microseconds.
    """
    if not line or "=" not in line:
        return None
    key, _, value = line.strip().partition("=")
    if key == "progress" and value == "end":
        return 100.0
    if key not in {"out_time_us", "out_time_ms"}:
        return None
    if not duration_seconds or duration_seconds <= 0:
        return None
    try:
        elapsed_us = int(value)
    except ValueError:
        return None
    percent = (elapsed_us / 1_000_000.0) / float(duration_seconds) * 100.0
    return max(0.0, min(100.0, percent))


def _run_ffmpeg(cmd, *, duration_seconds=None, progress_callback=None, timeout=None):
    """Run ffmpeg, streaming progress, and return its stderr tail.

    Raises:
        subprocess.CalledProcessError: on a non-zero exit.
        subprocess.TimeoutExpired: when ``timeout`` elapses; the process is killed.
    """
    stderr_tail = deque(maxlen=_STDERR_TAIL_LINES)

    proc = subprocess.Popen(
        cmd,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        bufsize=1,
    )

    def _read_progress():
        stream = proc.stdout
        if stream is None:
            return
        last_reported = -1
        for raw_line in iter(stream.readline, ""):
            percent = parse_progress_line(raw_line, duration_seconds)
            if percent is None or int(percent) == last_reported:
                continue
            last_reported = int(percent)
            if callable(progress_callback):
                try:
                    progress_callback(percent)
                except Exception:
                    logger.exception("transcode_progress_callback_failed")
        stream.close()

    def _read_stderr():
        stream = proc.stderr
        if stream is None:
            return
        for raw_line in iter(stream.readline, ""):
            stderr_tail.append(raw_line)
        stream.close()

    readers = [
        threading.Thread(target=_read_progress, name="ffmpeg-progress-reader", daemon=True),
        threading.Thread(target=_read_stderr, name="ffmpeg-stderr-reader", daemon=True),
    ]
    for reader in readers:
        reader.start()

    deadline = time.monotonic() + timeout if timeout else None
    while proc.poll() is None:
        if deadline is not None and time.monotonic() >= deadline:
            proc.kill()
            proc.wait()
            for reader in readers:
                reader.join(timeout=1)
            raise subprocess.TimeoutExpired(cmd, timeout, stderr="".join(stderr_tail))
        time.sleep(0.2)

    return_code = proc.wait()
    for reader in readers:
        reader.join(timeout=1)
    stderr_output = "".join(stderr_tail).strip()
    if return_code != 0:
        raise subprocess.CalledProcessError(return_code, cmd, stderr=stderr_output)
    return stderr_output


def _remove_partial_output(output_path: Path) -> None:
    try:
        output_path.unlink()
        logger.info("Removed partial transcode output %s", output_path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("Failed to remove partial transcode output %s", output_path, exc_info=True)


def _resolve_duration(input_path, duration_seconds):
    if duration_seconds:
        return float(duration_seconds)
    try:
        return get_media_duration(str(input_path))
    except (RuntimeError, ValueError):
        logger.warning("Duration unknown for %s; progress will not be reported", input_path)
        return None


def transcode(
    input_path,
    profile: AudioProfile,
    output_path,
    *,
    title=None,
    artist=None,
    source_url=None,
    duration_seconds=None,
    progress_callback=None,
    timeout=TRANSCODE_TIMEOUT_SECONDS,
):
    """Re-encode ``input_path`` to MP3 at ``profile.bitrate_kbps``, stereo, 44.1 kHz.

    The output is tagged with title/artist on success. On any failure the
    partial output is removed before ``TranscodeError`` propagates. The
    input file is left in place for its owner to delete.
    """
    input_path = Path(input_path)
    output_path = Path(output_path)
    if not input_path.is_file():
        raise TranscodeError("MP3 conversion failed", detail=f"input not found: {input_path}", step="transcode")

    cmd = build_ffmpeg_command(input_path, profile, output_path)
    duration = _resolve_duration(input_path, duration_seconds)
    logger.info("FFmpeg started with command: %s", " ".join(cmd))

    def _report(percent):
        logger.info("FFmpeg progress: %.1f%% done (%s)", percent, output_path.name)
        if callable(progress_callback):
            progress_callback(percent)

    try:
        _run_ffmpeg(cmd, duration_seconds=duration, progress_callback=_report, timeout=timeout)
        tag_mp3(str(output_path), title=title, artist=artist, source_url=source_url)
    except FileNotFoundError as exc:
        _remove_partial_output(output_path)
        logger.error("FFmpeg error: %s", exc)
        raise TranscodeError("MP3 conversion failed", detail="ffmpeg is not installed or not available in PATH", step="transcode") from exc
    except subprocess.TimeoutExpired as exc:
        _remove_partial_output(output_path)
        logger.error("FFmpeg timed out after %ss for %s", timeout, input_path)
        raise TranscodeError("MP3 conversion failed", detail=f"ffmpeg timed out after {timeout}s", step="transcode") from exc
    except subprocess.CalledProcessError as exc:
        _remove_partial_output(output_path)
        stderr_text = (exc.stderr or "").strip()
        last_line = stderr_text.splitlines()[-1] if stderr_text else f"exit status {exc.returncode}"
        logger.error("FFmpeg error (rc=%s): %s", exc.returncode, stderr_text)
        raise TranscodeError("MP3 conversion failed", detail=last_line, step="transcode") from exc
    except Exception as exc:
        _remove_partial_output(output_path)
        logger.exception("Transcode failed for %s", input_path)
        raise TranscodeError("MP3 conversion failed", detail=str(exc), step="transcode") from exc

    logger.info("FFmpeg finished, MP3 conversion complete: %s", output_path)


class FfmpegAudioTranscoder:
    """Transcoding capability backed by the ffmpeg binary."""

    def __init__(self, timeout=TRANSCODE_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout

    def transcode(self, input_path, profile, output_path, **kwargs):
        kwargs.setdefault("timeout", self._timeout)
        return transcode(input_path, profile, output_path, **kwargs)
