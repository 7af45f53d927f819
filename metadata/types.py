"""Structured metadata types for remote media sources."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class MediaMetadata:
    """Display and naming metadata resolved for one source URL."""

    title: str
    duration_seconds: int | None = None
    thumbnail_url: str | None = None
    author: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.title, str) or not self.title.strip():
            raise ValueError("title must be a non-empty string")
        if self.duration_seconds is not None and self.duration_seconds < 0:
            raise ValueError("duration_seconds must be non-negative")

    def to_dict(self) -> dict[str, Any]:
        """Render the public ``/api/info`` payload shape."""
        return {
            "title": self.title,
            "thumbnail": self.thumbnail_url,
            "duration": self.duration_seconds,
            "author": self.author,
        }
