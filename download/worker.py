"""Conversion worker: sequences resolve, acquire, transcode and delivery hand-off."""

from __future__ import annotations

import contextlib
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Protocol
from uuid import uuid4

from config.settings import AUDIO_BITRATE_TOLERANCE_KBPS, ENABLE_OUTPUT_VALIDATION
from engine.acquirer import RAW_AUDIO_CODEC, RawArtifact, YtDlpSourceAcquirer
from engine.errors import (
    AcquisitionError,
    ArtifactMissingError,
    ConversionError,
    MissingInputError,
    ResolutionError,
    TranscodeError,
)
from engine.events import log_event, utc_now
from engine.paths import EnginePaths, resolve_in_downloads
from engine.quality import AudioProfile, QualityProfile, parse_profile
from engine.resolver import YtDlpMetadataResolver
from media.transcode import FfmpegAudioTranscoder
from media.validation import validate_audio_output
from metadata.naming import build_output_filename
from metadata.types import MediaMetadata

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class JobState(str, Enum):
    CREATED = "created"
    RESOLVING_METADATA = "resolving_metadata"
    ACQUIRING = "acquiring"
    TRANSCODING = "transcoding"
    DELIVERING = "delivering"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = (JobState.DONE, JobState.FAILED)

_ALLOWED_TRANSITIONS = {
    JobState.CREATED: {JobState.RESOLVING_METADATA},
    JobState.RESOLVING_METADATA: {JobState.ACQUIRING},
    JobState.ACQUIRING: {JobState.TRANSCODING, JobState.DELIVERING},
    JobState.TRANSCODING: {JobState.DELIVERING},
    JobState.DELIVERING: {JobState.DONE},
}


class MetadataResolver(Protocol):
    def resolve(self, url: str) -> MediaMetadata:
        """Probe ``url`` without downloading media."""


class SourceAcquirer(Protocol):
    def acquire(
        self,
        url: str,
        profile: QualityProfile,
        destination: Path,
        *,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> RawArtifact:
        """Materialize the stream(s) matching ``profile`` at ``destination``."""


class AudioTranscoder(Protocol):
    def transcode(self, input_path: Path, profile: AudioProfile, output_path: Path, **kwargs: Any) -> None:
        """Re-encode ``input_path`` into ``output_path``."""


@dataclass
class TranscodeJob:
    source: str
    profile: QualityProfile
    job_id: str = field(default_factory=lambda: uuid4().hex)
    state: JobState = JobState.CREATED
    metadata: Optional[MediaMetadata] = None
    output_name: Optional[str] = None
    temp_artifact_path: Optional[Path] = None
    final_artifact_path: Optional[Path] = None
    created_at: str = field(default_factory=utc_now)
    error: Optional[str] = None

    def transition(self, new_state: JobState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"job {self.job_id} already terminal ({self.state.value})")
        if new_state is not JobState.FAILED and new_state not in _ALLOWED_TRANSITIONS.get(self.state, set()):
            raise RuntimeError(f"invalid transition {self.state.value} -> {new_state.value}")
        previous = self.state
        self.state = new_state
        log_event(
            logging.INFO,
            "job_state_changed",
            job_id=self.job_id,
            source=self.source,
            profile=self.profile.describe(),
            previous=previous.value,
            state=new_state.value,
        )


@dataclass(frozen=True)
class DeliveredArtifact:
    path: Path
    filename: str
    size_bytes: int
    media_type: str
    metadata: MediaMetadata


@contextlib.contextmanager
def temp_artifact(path: Path) -> Iterator[Path]:
    """Yield ``path`` and remove whatever exists there on exit, exactly once."""
    try:
        yield path
    finally:
        try:
            path.unlink()
            logger.info("Temp file deleted: %s", path)
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Failed to delete temp file %s", path, exc_info=True)


def verify_artifact(path: Optional[Path], *, step: str) -> int:
    """Return the artifact size, raising when it is missing or empty."""
    if path is None or not path.is_file():
        raise ArtifactMissingError(f"Output file not found after {step}", step=step)
    size = path.stat().st_size
    if size <= 0:
        raise ArtifactMissingError(f"Output file is empty after {step}", step=step)
    return size


class ConversionWorker:
    """Runs one conversion request end-to-end.

    Every request owns its own ``TranscodeJob``; the only shared resource is
    the downloads directory, where each job writes a uniquely named file.
    """

    def __init__(
        self,
        paths: EnginePaths,
        *,
        resolver: Optional[MetadataResolver] = None,
        acquirer: Optional[SourceAcquirer] = None,
        transcoder: Optional[AudioTranscoder] = None,
        config: Optional[dict] = None,
        validate_output: bool = ENABLE_OUTPUT_VALIDATION,
    ) -> None:
        self._paths = paths
        self._config = config or {}
        self._resolver = resolver or YtDlpMetadataResolver(self._config)
        self._acquirer = acquirer or YtDlpSourceAcquirer(self._config)
        self._transcoder = transcoder or FfmpegAudioTranscoder()
        self._validate_output = validate_output

    def probe(self, url: Optional[str]) -> MediaMetadata:
        source = _require_url(url)
        return self._resolver.resolve(source)

    def convert(self, url: Optional[str], mode: str, quality: Any = None) -> DeliveredArtifact:
        """Convert ``url`` into an audio (mp3) or video (mp4) deliverable.

        Raises:
            MissingInputError: when ``url`` is blank; no job is created.
            ConversionError: any pipeline failure, after temp cleanup.
        """
        source = _require_url(url)
        profile = parse_profile(mode, quality)
        job = TranscodeJob(source=source, profile=profile)
        log_event(
            logging.INFO,
            "job_created",
            job_id=job.job_id,
            source=source,
            mode=profile.mode,
            quality=quality,
            profile=profile.describe(),
        )

        try:
            return self._run(job)
        except ConversionError as exc:
            self._fail(job, exc)
            raise
        except Exception as exc:
            wrapped = _wrap_unexpected(job, exc)
            self._fail(job, wrapped)
            raise wrapped from exc

    def _run(self, job: TranscodeJob) -> DeliveredArtifact:
        job.transition(JobState.RESOLVING_METADATA)
        job.metadata = self._resolver.resolve(job.source)

        job.output_name = build_output_filename(job.metadata.title, job.profile.extension)
        job.final_artifact_path = Path(resolve_in_downloads(self._paths, job.output_name))
        job.transition(JobState.ACQUIRING)

        if isinstance(job.profile, AudioProfile):
            temp_name = f"temp-{job.job_id}.{RAW_AUDIO_CODEC}"
            job.temp_artifact_path = Path(resolve_in_downloads(self._paths, temp_name))
            with temp_artifact(job.temp_artifact_path) as temp_path:
                logger.info("Downloading audio to temp file: %s", temp_path)
                raw = self._acquirer.acquire(
                    job.source,
                    job.profile,
                    temp_path,
                    progress_callback=_progress_logger(job, "acquire"),
                )
                verify_artifact(raw.path, step="download")
                job.transition(JobState.TRANSCODING)
                self._transcoder.transcode(
                    raw.path,
                    job.profile,
                    job.final_artifact_path,
                    title=job.metadata.title,
                    artist=job.metadata.author,
                    source_url=job.source,
                    duration_seconds=job.metadata.duration_seconds,
                    progress_callback=_progress_logger(job, "transcode"),
                )
        else:
            logger.info("Starting MP4 download to: %s", job.final_artifact_path)
            self._acquirer.acquire(
                job.source,
                job.profile,
                job.final_artifact_path,
                progress_callback=_progress_logger(job, "acquire"),
            )

        job.transition(JobState.DELIVERING)
        size = verify_artifact(job.final_artifact_path, step="conversion")
        if self._validate_output and isinstance(job.profile, AudioProfile):
            validate_audio_output(
                str(job.final_artifact_path),
                job.profile.bitrate_kbps,
                AUDIO_BITRATE_TOLERANCE_KBPS,
            )

        artifact = DeliveredArtifact(
            path=job.final_artifact_path,
            filename=job.output_name,
            size_bytes=size,
            media_type=job.profile.media_type,
            metadata=job.metadata,
        )
        job.transition(JobState.DONE)
        log_event(
            logging.INFO,
            "job_complete",
            job_id=job.job_id,
            source=job.source,
            profile=job.profile.describe(),
            path=str(artifact.path),
            size_bytes=size,
            created_at=job.created_at,
            finished_at=utc_now(),
        )
        return artifact

    def _fail(self, job: TranscodeJob, exc: ConversionError) -> None:
        failed_in = job.state
        # Failed jobs leave no deliverable behind
        if job.final_artifact_path is not None and job.final_artifact_path.exists():
            try:
                os.unlink(job.final_artifact_path)
            except OSError:
                logger.warning("Failed to remove final artifact of failed job %s", job.job_id, exc_info=True)
        job.error = exc.public_message()
        if job.state not in TERMINAL_STATES:
            job.transition(JobState.FAILED)
        log_event(
            logging.ERROR,
            "job_failed",
            job_id=job.job_id,
            source=job.source,
            profile=job.profile.describe(),
            step=exc.step or failed_in.value,
            state=failed_in.value,
            error_type=exc.__class__.__name__,
            reason=exc.reason,
            error=job.error,
            created_at=job.created_at,
            finished_at=utc_now(),
        )


_STEP_ERRORS = {
    JobState.RESOLVING_METADATA: ResolutionError,
    JobState.ACQUIRING: AcquisitionError,
    JobState.TRANSCODING: TranscodeError,
}


def _wrap_unexpected(job: TranscodeJob, exc: Exception) -> ConversionError:
    logger.exception("Unexpected failure in job %s during %s", job.job_id, job.state.value)
    error_cls = _STEP_ERRORS.get(job.state, ConversionError)
    return error_cls("Conversion failed", detail=str(exc) or exc.__class__.__name__, step=job.state.value)


def _progress_logger(job: TranscodeJob, step: str) -> ProgressCallback:
    def _report(percent: float) -> None:
        logger.debug("job=%s step=%s progress=%.1f%%", job.job_id, step, percent)

    return _report


def _require_url(url: Optional[str]) -> str:
    source = str(url or "").strip()
    if not source:
        raise MissingInputError()
    return source
