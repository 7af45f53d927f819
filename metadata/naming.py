"""Output file naming helpers used by the conversion pipeline."""

from __future__ import annotations

import re
import time
from typing import Any
from uuid import uuid4

# Anything that is neither a word character nor whitespace.
_DISALLOWED_CHARS_RE = re.compile(r"[^\w\s]", re.UNICODE)
_MULTISPACE_RE = re.compile(r"\s+")

FALLBACK_TITLE = "media"
# Leaves room for "-<suffix>.<ext>" under the 255-byte filename limit.
MAX_TITLE_BYTES = 200


def sanitize_title(text: Any) -> str:
    """Return a filesystem-safe name of alphanumerics and underscores.

    Disallowed characters are dropped, whitespace runs become a single
    underscore. Titles that sanitize to nothing yield ``FALLBACK_TITLE``.
    """
    stripped = _DISALLOWED_CHARS_RE.sub("", str(text or ""))
    collapsed = _MULTISPACE_RE.sub("_", stripped.strip())
    return collapsed.strip("_") or FALLBACK_TITLE


def _truncate_utf8(text: str, limit: int) -> str:
    return text.encode("utf-8")[:limit].decode("utf-8", "ignore")


def unique_suffix() -> str:
    """Millisecond timestamp plus a random token, unique across concurrent jobs."""
    return f"{int(time.time() * 1000)}{uuid4().hex[:6]}"


def build_output_filename(title: Any, ext: str, *, suffix: str | None = None) -> str:
    safe_title = _truncate_utf8(sanitize_title(title), MAX_TITLE_BYTES).rstrip("_") or FALLBACK_TITLE
    extension = str(ext or "").lstrip(".")
    name = f"{safe_title}-{suffix or unique_suffix()}"
    if extension:
        return f"{name}.{extension}"
    return name


def content_disposition_filename(name: str) -> str:
    cleaned = name.replace('"', "'").replace("\n", " ").replace("\r", " ").strip()
    return cleaned or "download"
