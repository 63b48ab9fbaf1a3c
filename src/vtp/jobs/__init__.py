"""Job scheduling, the transcode pipeline and progress aggregation."""

from vtp.jobs.pipeline import JobRunner, PipelineOutcome, TranscodePipeline
from vtp.jobs.progress import NullProgressListener, ProgressAggregator, ProgressListener
from vtp.jobs.scheduler import JobScheduler

__all__ = [
    "JobRunner",
    "JobScheduler",
    "NullProgressListener",
    "PipelineOutcome",
    "ProgressAggregator",
    "ProgressListener",
    "TranscodePipeline",
]
