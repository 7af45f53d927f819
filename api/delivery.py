"""Streaming delivery of finished artifacts to HTTP clients."""

from __future__ import annotations

import logging
import os
from urllib.parse import quote

from fastapi.responses import StreamingResponse

from download.worker import DeliveredArtifact
from metadata.naming import content_disposition_filename

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def iter_file(path, chunk_size=CHUNK_SIZE):
    """Yield the file's bytes; read errors end the stream and are only logged."""
    sent = 0
    try:
        with open(path, "rb") as handle:
            while True:
                chunk = handle.read(chunk_size)
                if not chunk:
                    break
                sent += len(chunk)
                yield chunk
    except OSError:
        logger.exception("Download error while streaming %s after %d bytes", path, sent)
        return
    logger.info("File download complete: %s (%d bytes)", os.path.basename(path), sent)


def content_disposition(filename):
    """Attachment header with an ASCII fallback plus the RFC 5987 UTF-8 form."""
    safe_name = content_disposition_filename(filename)
    ascii_name = safe_name.encode("ascii", "ignore").decode("ascii").strip() or "download"
    if ascii_name == safe_name:
        return f'attachment; filename="{ascii_name}"'
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(safe_name)}"


def build_download_response(artifact: DeliveredArtifact) -> StreamingResponse:
    """Stream ``artifact`` as an attachment. The file stays on disk afterwards."""
    headers = {
        "Content-Disposition": content_disposition(artifact.filename),
        "Content-Length": str(artifact.size_bytes),
    }
    logger.info("File download initiated: %s", artifact.filename)
    return StreamingResponse(
        iter_file(str(artifact.path)),
        media_type=artifact.media_type,
        headers=headers,
    )
