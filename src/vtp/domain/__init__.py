"""Domain models, enums and exceptions for the Video Transcode Pipeline.

Usage:
    from vtp.domain import ProcessingJob, RenditionSpec, VideoStatus
    from vtp.domain import AlreadyQueuedError, EncodeError
"""

from .enums import ErrorKind, EventType, JobState, VideoStatus
from .exceptions import (
    AlreadyQueuedError,
    AssemblyError,
    EncodeError,
    InvalidJobTransition,
    NotFoundError,
    PipelineError,
    ProbeError,
    SchedulerClosedError,
    SchedulerError,
    StorageError,
    ThumbnailError,
    VTPError,
)
from .models import (
    VIDEO_ID_PATTERN,
    JobError,
    ProbeResult,
    ProcessingJob,
    Rendition,
    RenditionSpec,
    VideoAsset,
)

__all__ = [
    # Models
    "JobError",
    "ProbeResult",
    "ProcessingJob",
    "VIDEO_ID_PATTERN",
    "Rendition",
    "RenditionSpec",
    "VideoAsset",
    # Enums
    "ErrorKind",
    "EventType",
    "JobState",
    "VideoStatus",
    # Exceptions
    "VTPError",
    "PipelineError",
    "ProbeError",
    "EncodeError",
    "ThumbnailError",
    "AssemblyError",
    "StorageError",
    "SchedulerError",
    "AlreadyQueuedError",
    "NotFoundError",
    "SchedulerClosedError",
    "InvalidJobTransition",
]
