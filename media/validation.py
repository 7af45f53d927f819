"""Media validation helpers."""

from __future__ import annotations

import logging

from config.settings import AUDIO_CHANNELS, AUDIO_SAMPLE_RATE_HZ
from media.ffprobe import probe_audio_stream

logger = logging.getLogger(__name__)


def validate_audio_output(file_path: str, bitrate_kbps: int, tolerance_kbps: float = 16.0) -> bool:
    """Check a transcoded file against the fixed audio output contract.

    Returns:
        ``True`` when the file has ``AUDIO_CHANNELS`` channels, an
        ``AUDIO_SAMPLE_RATE_HZ`` sample rate and a bit rate within
        ``tolerance_kbps`` of ``bitrate_kbps``. ``False`` otherwise, including
        when probing fails.
    """
    if bitrate_kbps <= 0 or tolerance_kbps < 0:
        logger.warning("Audio validation failed: bitrate and tolerance must be positive")
        return False

    try:
        info = probe_audio_stream(file_path)
    except Exception:
        logger.exception("Failed to probe audio stream for path=%s", file_path)
        return False

    problems = []
    if info.channels != AUDIO_CHANNELS:
        problems.append(f"channels={info.channels}")
    if info.sample_rate != AUDIO_SAMPLE_RATE_HZ:
        problems.append(f"sample_rate={info.sample_rate}")
    if info.bit_rate is None or abs(info.bit_rate / 1000.0 - bitrate_kbps) > tolerance_kbps:
        problems.append(f"bit_rate={info.bit_rate}")

    if problems:
        logger.warning(
            "audio_validation_failed path=%s expected=%skbps/%sch/%sHz actual=%s",
            file_path,
            bitrate_kbps,
            AUDIO_CHANNELS,
            AUDIO_SAMPLE_RATE_HZ,
            ",".join(problems),
        )
        return False
    return True
