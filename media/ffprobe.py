"""Wrapper utilities for retrieving media information using ffprobe."""

from __future__ import annotations

import json
import subprocess
from dataclasses import dataclass

from config.settings import FFPROBE_BINARY, FFPROBE_TIMEOUT_SECONDS


@dataclass(frozen=True)
class AudioStreamInfo:
    codec: str | None
    channels: int | None
    sample_rate: int | None
    bit_rate: int | None


def _run_ffprobe(args: list[str], file_path: str) -> dict:
    command = [FFPROBE_BINARY, "-v", "error", "-print_format", "json", *args, file_path]

    try:
        completed = subprocess.run(
            command,
            capture_output=True,
            text=True,
            check=True,
            timeout=FFPROBE_TIMEOUT_SECONDS,
        )
    except FileNotFoundError as exc:
        raise RuntimeError("ffprobe is not installed or not available in PATH") from exc
    except subprocess.TimeoutExpired as exc:
        raise RuntimeError(f"ffprobe timed out while probing: {file_path}") from exc
    except subprocess.CalledProcessError as exc:
        stderr_text = (exc.stderr or "").strip()
        raise RuntimeError(f"ffprobe failed for {file_path}: {stderr_text or exc}") from exc

    try:
        payload = json.loads(completed.stdout or "{}")
    except json.JSONDecodeError as exc:
        raise ValueError(f"ffprobe returned invalid JSON for {file_path}") from exc
    return payload if isinstance(payload, dict) else {}


def _int_or_none(value) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def get_media_duration(file_path: str) -> float:
    """Return media duration in seconds using ``ffprobe`` JSON output.

    Raises:
        RuntimeError: If ``ffprobe`` execution fails or the command is missing.
        ValueError: If duration data is missing or not parseable as a float.
    """
    payload = _run_ffprobe(["-show_format"], file_path)

    duration_value = (payload.get("format") or {}).get("duration")
    if duration_value in (None, ""):
        raise ValueError(f"ffprobe did not return a duration for {file_path}")

    try:
        return float(duration_value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"ffprobe returned a non-numeric duration for {file_path}") from exc


def probe_audio_stream(file_path: str) -> AudioStreamInfo:
    """Return codec, channel count, sample rate and bit rate of the first audio stream.

    The container bit rate is used when the stream does not report one.

    Raises:
        RuntimeError: If ``ffprobe`` execution fails or the command is missing.
        ValueError: If the file has no audio stream.
    """
    payload = _run_ffprobe(["-show_streams", "-show_format", "-select_streams", "a:0"], file_path)
    streams = payload.get("streams") or []
    if not streams:
        raise ValueError(f"ffprobe found no audio stream in {file_path}")
    stream = streams[0]
    bit_rate = _int_or_none(stream.get("bit_rate"))
    if bit_rate is None:
        bit_rate = _int_or_none((payload.get("format") or {}).get("bit_rate"))
    return AudioStreamInfo(
        codec=stream.get("codec_name"),
        channels=_int_or_none(stream.get("channels")),
        sample_rate=_int_or_none(stream.get("sample_rate")),
        bit_rate=bit_rate,
    )
