"""Failure taxonomy for the conversion pipeline.

Every component raises one of these; the HTTP layer maps them to a JSON
``{"error": ...}`` envelope using ``status_code``.
"""

from __future__ import annotations


class ConversionError(Exception):
    """Base class for pipeline failures surfaced to the caller."""

    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        detail: str | None = None,
        reason: str | None = None,
        step: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.reason = reason
        self.step = step

    def public_message(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


class MissingInputError(ConversionError):
    """No source URL was supplied."""

    status_code = 400

    def __init__(self, message: str = "Video URL is required") -> None:
        super().__init__(message, step="admission")


class ResolutionError(ConversionError):
    """Metadata probe failed (unreachable, malformed, or restricted source)."""


class AcquisitionError(ConversionError):
    """Stream selection, download, or merge failed."""


class TranscodeError(ConversionError):
    """Audio re-encode failed."""


class ArtifactMissingError(ConversionError):
    """A step reported success but its output is absent or empty."""
