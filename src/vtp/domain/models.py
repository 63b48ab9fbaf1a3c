"""Domain models for the Video Transcode Pipeline.

VideoAsset mirrors the subset of the catalog record the pipeline reads and
writes. ProcessingJob is owned by the scheduler and lives only in memory.
RenditionSpec is the planner's output and the encoder's input.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Any

from vtp.domain.enums import ErrorKind, JobState, VideoStatus
from vtp.domain.exceptions import InvalidJobTransition

# Video ids become storage key components
VIDEO_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,127}$")


@dataclass(frozen=True)
class RenditionSpec:
    """One entry of the quality ladder: what to encode.

    relative_cost_weight only feeds progress aggregation; it has no effect on
    encoder behavior.
    """

    label: str
    width: int
    height: int
    bitrate_kbps: int
    relative_cost_weight: float

    @property
    def resolution(self) -> str:
        """Pixel dimensions in manifest form, e.g. "1280x720"."""
        return f"{self.width}x{self.height}"

    @property
    def bandwidth(self) -> int:
        """Declared bandwidth in bits per second."""
        return self.bitrate_kbps * 1000


@dataclass(frozen=True)
class Rendition:
    """A rendition that was produced and stored."""

    label: str
    width: int
    height: int
    bitrate_kbps: int
    playlist_key: str
    segment_keys: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "width": self.width,
            "height": self.height,
            "bitrate_kbps": self.bitrate_kbps,
            "playlist_key": self.playlist_key,
            "segment_keys": list(self.segment_keys),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Rendition:
        return cls(
            label=data["label"],
            width=int(data["width"]),
            height=int(data["height"]),
            bitrate_kbps=int(data["bitrate_kbps"]),
            playlist_key=data["playlist_key"],
            segment_keys=tuple(data.get("segment_keys", ())),
        )


@dataclass(frozen=True)
class ProbeResult:
    """Source metadata reported by the prober."""

    duration_seconds: float
    width: int
    height: int
    codec: str
    audio_codec: str | None = None
    file_size: int | None = None

    def __post_init__(self) -> None:
        if self.duration_seconds <= 0:
            raise ValueError(f"duration must be positive, got {self.duration_seconds}")
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"dimensions must be positive, got {self.width}x{self.height}"
            )


@dataclass(frozen=True)
class JobError:
    """Structured error recorded on a failed or canceled job."""

    kind: ErrorKind
    message: str
    rendition: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.rendition is not None:
            result["rendition"] = self.rendition
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JobError:
        return cls(
            kind=ErrorKind(data["kind"]),
            message=data.get("message", ""),
            rendition=data.get("rendition"),
        )


@dataclass(frozen=True)
class VideoAsset:
    """Catalog view of a video asset.

    Construction enforces the visibility invariant: an asset is READY exactly
    when it has renditions and a manifest, and no other status carries any
    rendition, manifest or poster.
    """

    id: str
    status: VideoStatus = VideoStatus.UPLOADED
    source_duration: float | None = None
    source_width: int | None = None
    source_height: int | None = None
    renditions: tuple[Rendition, ...] = ()
    manifest_key: str | None = None
    poster_key: str | None = None
    thumbnail_keys: tuple[str, ...] = ()
    error: JobError | None = None

    def __post_init__(self) -> None:
        if self.status == VideoStatus.READY:
            if not self.renditions or not self.manifest_key:
                raise ValueError(
                    f"Video {self.id} cannot be ready without renditions and a manifest"
                )
        elif self.renditions or self.manifest_key or self.poster_key:
            raise ValueError(
                f"Video {self.id} has renditions but status is {self.status.value}"
            )
        if self.error is not None and self.status != VideoStatus.ERROR:
            raise ValueError(f"Video {self.id} has an error but is not in error status")


@dataclass
class ProcessingJob:
    """A scheduler-managed unit of work for one video asset.

    Jobs start QUEUED, become RUNNING when the scheduler grants a worker slot
    and finish in exactly one terminal state. progress_percent never
    decreases while the job is running.
    """

    video_id: str
    source_location: str
    state: JobState = JobState.QUEUED
    progress_percent: float = 0.0
    current_stage_message: str = "queued"
    error: JobError | None = None
    created_at: float = field(default_factory=time.time)
    started_at: float | None = None
    completed_at: float | None = None

    def _require_state(self, *allowed: JobState) -> None:
        if self.state not in allowed:
            raise InvalidJobTransition(
                f"Job for video {self.video_id} is {self.state.value}, "
                f"expected one of {[s.value for s in allowed]}"
            )

    def mark_running(self) -> None:
        """Promote a queued job to running."""
        self._require_state(JobState.QUEUED)
        self.state = JobState.RUNNING
        self.started_at = time.time()
        self.current_stage_message = "starting"

    def set_stage(self, message: str) -> None:
        """Record the human-readable description of the current stage."""
        self._require_state(JobState.RUNNING)
        self.current_stage_message = message

    def advance_progress(self, percent: float) -> bool:
        """Raise progress to percent, ignoring regressions.

        Returns:
            True if the stored progress changed.
        """
        self._require_state(JobState.RUNNING)
        percent = max(0.0, min(100.0, percent))
        if percent <= self.progress_percent:
            return False
        self.progress_percent = percent
        return True

    def mark_succeeded(self) -> None:
        self._require_state(JobState.RUNNING)
        self.state = JobState.SUCCEEDED
        self.progress_percent = 100.0
        self.current_stage_message = "completed"
        self.completed_at = time.time()

    def mark_failed(self, error: JobError) -> None:
        self._require_state(JobState.RUNNING)
        self.state = JobState.FAILED
        self.error = error
        self.current_stage_message = "failed"
        self.completed_at = time.time()

    def mark_canceled(self) -> None:
        self._require_state(JobState.QUEUED, JobState.RUNNING)
        was_running = self.state == JobState.RUNNING
        self.state = JobState.CANCELED
        self.current_stage_message = "canceled"
        self.completed_at = time.time()
        if was_running:
            self.error = JobError(ErrorKind.CANCELED, "Job canceled while running")

    @property
    def is_active(self) -> bool:
        return self.state in (JobState.QUEUED, JobState.RUNNING)

    def get_elapsed_time(self) -> float:
        """Seconds the job has been running (0 if it never started)."""
        if self.started_at is None:
            return 0.0
        end_time = self.completed_at or time.time()
        return end_time - self.started_at

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        result: dict[str, Any] = {
            "video_id": self.video_id,
            "source_location": self.source_location,
            "state": self.state.value,
            "progress_percent": round(self.progress_percent, 2),
            "current_stage_message": self.current_stage_message,
            "created_at": self.created_at,
        }
        if self.started_at is not None:
            result["started_at"] = self.started_at
        if self.completed_at is not None:
            result["completed_at"] = self.completed_at
        if self.error is not None:
            result["error"] = self.error.to_dict()
        return result
