"""ID3 tagging for converted audio files."""

from __future__ import annotations

import logging
import os
from typing import Any

from mutagen.id3 import ID3, ID3NoHeaderError, TIT2, TPE1, TXXX

_LOG = logging.getLogger(__name__)


def _set_text_frame(audio: Any, frame_cls: Any, value: str | None) -> None:
    if value is None:
        return
    text = str(value).strip()
    if not text:
        return
    audio.setall(frame_cls.__name__, [frame_cls(encoding=3, text=[text])])


def tag_mp3(path: str, *, title: str | None, artist: str | None = None, source_url: str | None = None) -> None:
    """Write title/artist as ID3v2.3 frames plus an ID3v1 copy."""
    ext = os.path.splitext(path)[1].lower()
    if ext != ".mp3":
        raise ValueError(f"Unsupported file format for tagging: {ext or '(none)'}")

    try:
        audio = ID3(path)
    except ID3NoHeaderError:
        audio = ID3()

    _set_text_frame(audio, TIT2, title)
    _set_text_frame(audio, TPE1, artist)
    if source_url:
        audio.setall("TXXX:Source URL", [TXXX(encoding=3, desc="Source URL", text=[source_url])])

    audio.save(path, v2_version=3, v1=2)
    _LOG.debug("Tagged %s title=%r artist=%r", path, title, artist)
