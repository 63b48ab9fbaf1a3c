"""Exception hierarchy for the Video Transcode Pipeline.

Pipeline-stage errors carry an ErrorKind so the job boundary can map them
to a structured JobError without inspecting message text. Scheduler errors
are raised to callers of enqueue/cancel and never touch existing jobs.
"""

from __future__ import annotations

from vtp.domain.enums import ErrorKind


class VTPError(Exception):
    """Base exception for all pipeline errors."""


class PipelineError(VTPError):
    """Base exception for errors raised by a pipeline stage.

    Attributes:
        kind: Classification used for the job error and the catalog.
    """

    kind: ErrorKind = ErrorKind.INTERNAL


class ProbeError(PipelineError):
    """Raised when the source cannot be read or decoded by the prober."""

    kind = ErrorKind.PROBE_FAILED


class EncodeError(PipelineError):
    """Raised when the encoder exits non-zero for a rendition.

    Attributes:
        rendition: Label of the rendition that failed (e.g. "720p").
        exit_info: Return code and stderr tail reported by the encoder.
    """

    kind = ErrorKind.ENCODE_FAILED

    def __init__(self, rendition: str, exit_info: str) -> None:
        """Initialize the exception.

        Args:
            rendition: Label of the failed rendition.
            exit_info: Description of how the encoder exited.
        """
        self.rendition = rendition
        self.exit_info = exit_info
        super().__init__(f"Encoding {rendition} failed: {exit_info}")


class ThumbnailError(PipelineError):
    """Raised when no thumbnail could be extracted. Non-fatal for a job."""

    kind = ErrorKind.THUMBNAIL_FAILED


class AssemblyError(PipelineError):
    """Raised when the master manifest cannot be assembled or written."""

    kind = ErrorKind.ASSEMBLY_FAILED


class StorageError(PipelineError):
    """Raised when a storage read, write or delete fails."""

    kind = ErrorKind.STORAGE_FAILED


class SchedulerError(VTPError):
    """Base exception for caller-facing scheduler errors."""


class AlreadyQueuedError(SchedulerError):
    """Raised when a job for the video is already queued or running.

    Attributes:
        video_id: The video that already has a job.
    """

    def __init__(self, video_id: str) -> None:
        self.video_id = video_id
        super().__init__(f"A job for video {video_id} is already queued or running")


class NotFoundError(SchedulerError):
    """Raised when no job exists for the video.

    Attributes:
        video_id: The video that was looked up.
        operation: The operation that was attempted (e.g. "cancel").
    """

    def __init__(self, video_id: str, operation: str) -> None:
        self.video_id = video_id
        self.operation = operation
        super().__init__(f"Cannot {operation} job for video {video_id}: not found")


class SchedulerClosedError(SchedulerError):
    """Raised when a command is sent to a scheduler that is not running."""


class InvalidJobTransition(VTPError):
    """Raised when a job is moved to a state its current state cannot reach."""
