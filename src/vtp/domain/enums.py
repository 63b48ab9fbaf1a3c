"""Domain enums for the Video Transcode Pipeline.

These enums are shared by the scheduler, the pipeline stages and the
external collaborators (catalog, event sink).
"""

from enum import Enum


class VideoStatus(Enum):
    """Playability status of a video asset in the catalog.

    The catalog status is the single source of truth for whether a video
    can be played. Only READY assets have renditions and a manifest.
    """

    UPLOADED = "uploaded"  # Source stored, not yet processed
    PROCESSING = "processing"  # A job is running for this asset
    READY = "ready"  # Renditions and manifest are available
    ERROR = "error"  # Last job failed, see the asset error


class JobState(Enum):
    """Lifecycle state of a scheduler-owned processing job."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        """True for states a job never leaves."""
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset(
    {JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELED}
)


class ErrorKind(Enum):
    """Machine-readable classification of a job error."""

    PROBE_FAILED = "probe_failed"
    ENCODE_FAILED = "encode_failed"
    THUMBNAIL_FAILED = "thumbnail_failed"  # Logged only, never terminal
    ASSEMBLY_FAILED = "assembly_failed"
    STORAGE_FAILED = "storage_failed"
    CANCELED = "canceled"
    INTERRUPTED = "interrupted"  # Process restarted while the job was in flight
    INTERNAL = "internal"


class EventType(Enum):
    """Event types emitted to the event sink."""

    PROGRESS = "progress"
    COMPLETED = "completed"
    ERROR = "error"
