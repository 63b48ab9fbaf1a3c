"""Bounded-concurrency job scheduler.

JobScheduler owns the FIFO of queued jobs, the per-video index and the
worker slots. Every mutation of that state happens in one dispatch loop
that consumes commands from an asyncio.Queue, so callers never lock
anything: enqueue() and cancel() post a command and get the answer back
through a future, without waiting for any job to run.

At most max_concurrent jobs are running at any instant and at most one
job exists per video (queued or running).
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any

from vtp.domain.enums import ErrorKind
from vtp.domain.exceptions import (
    AlreadyQueuedError,
    NotFoundError,
    SchedulerClosedError,
)
from vtp.domain.models import JobError, ProcessingJob
from vtp.events.interface import EventSink
from vtp.events.publisher import StatusPublisher
from vtp.events.sinks import NullEventSink
from vtp.jobs.pipeline import JobRunner, PipelineOutcome, to_job_error
from vtp.logging.context import job_context

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 2


@dataclass
class _Enqueue:
    job: ProcessingJob
    reply: asyncio.Future[ProcessingJob]


@dataclass
class _Cancel:
    video_id: str
    reply: asyncio.Future[ProcessingJob]


@dataclass
class _JobFinished:
    video_id: str
    outcome: PipelineOutcome | None = None  # None when canceled
    canceled: bool = False


@dataclass
class _Stop:
    reply: asyncio.Future[None]


@dataclass
class _RunningJob:
    job: ProcessingJob
    slot: int
    publisher: StatusPublisher
    task: asyncio.Task[PipelineOutcome]
    cancel_requested: bool = False


class JobScheduler:
    """Runs transcode jobs with at most max_concurrent in flight.

    Example:
        async with JobScheduler(pipeline, sink, max_concurrent=2) as scheduler:
            await scheduler.enqueue("abc123", "uploads/abc123/movie.mp4")
            await scheduler.join()
    """

    def __init__(
        self,
        runner: JobRunner,
        sink: EventSink | None = None,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
    ) -> None:
        """Initialize the scheduler.

        Args:
            runner: Executes one job (normally a TranscodePipeline).
            sink: Receives progress and terminal events for every job.
            max_concurrent: Number of worker slots.

        Raises:
            ValueError: If max_concurrent is less than 1.
        """
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be at least 1, got {max_concurrent}")
        self._runner = runner
        self._sink: EventSink = sink or NullEventSink()
        self._max_concurrent = max_concurrent

        self._slots = asyncio.Semaphore(max_concurrent)
        self._free_slot_ids = set(range(1, max_concurrent + 1))
        self._pending: deque[ProcessingJob] = deque()
        self._queued: dict[str, ProcessingJob] = {}
        self._running: dict[str, _RunningJob] = {}

        self._commands: asyncio.Queue[Any] = asyncio.Queue()
        self._idle = asyncio.Event()
        self._idle.set()
        self._loop_task: asyncio.Task[None] | None = None
        self._accepting = False

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the dispatch loop. Must be called from a running event loop."""
        if self.is_running:
            return
        self._accepting = True
        self._loop_task = asyncio.create_task(
            self._dispatch_loop(), name="vtp-scheduler"
        )
        logger.info("Job scheduler started with %d slots", self._max_concurrent)

    async def stop(self, cancel_running: bool = True) -> None:
        """Stop accepting work and shut the dispatch loop down.

        Args:
            cancel_running: If True, queued jobs are dropped and running jobs
                are cancelled (with full cleanup). If False, queued and
                running jobs are allowed to finish first.
        """
        if not self.is_running:
            return
        self._accepting = False

        if cancel_running:
            # Queued jobs first so none of them grabs a slot freed by a cancel
            running = [r.job for r in self._running.values()]
            for job in list(self._pending) + running:
                try:
                    await self.cancel(job.video_id)
                except NotFoundError:
                    pass  # Finished while we were stopping
        await self.join()

        loop = asyncio.get_running_loop()
        stop = _Stop(reply=loop.create_future())
        await self._commands.put(stop)
        await stop.reply
        if self._loop_task is not None:
            await self._loop_task
        self._loop_task = None
        logger.info("Job scheduler stopped")

    async def join(self) -> None:
        """Wait until no job is queued or running."""
        await self._idle.wait()

    async def __aenter__(self) -> JobScheduler:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop(cancel_running=True)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def enqueue(self, video_id: str, source_location: str) -> ProcessingJob:
        """Queue a job for video_id. Returns once the job is queued.

        Raises:
            AlreadyQueuedError: If a job for video_id is queued or running.
            SchedulerClosedError: If the scheduler is not accepting work.
        """
        if not self._accepting or not self.is_running:
            raise SchedulerClosedError("Scheduler is not accepting new jobs")
        job = ProcessingJob(video_id=video_id, source_location=source_location)
        loop = asyncio.get_running_loop()
        reply: asyncio.Future[ProcessingJob] = loop.create_future()
        await self._commands.put(_Enqueue(job, reply))
        return await reply

    async def cancel(self, video_id: str) -> ProcessingJob:
        """Cancel the job for video_id.

        A queued job is removed at once and has no side effects. A running
        job has its pipeline task cancelled; it becomes canceled after its
        cleanup finishes, so the returned job may still show running.

        Raises:
            NotFoundError: If no job exists for video_id.
            SchedulerClosedError: If the scheduler is not running.
        """
        if not self.is_running:
            raise SchedulerClosedError("Scheduler is not running")
        loop = asyncio.get_running_loop()
        reply: asyncio.Future[ProcessingJob] = loop.create_future()
        await self._commands.put(_Cancel(video_id, reply))
        return await reply

    # ------------------------------------------------------------------
    # Queries (read-only)
    # ------------------------------------------------------------------

    def get_job(self, video_id: str) -> ProcessingJob | None:
        """Get the queued or running job for video_id, if any."""
        running = self._running.get(video_id)
        if running is not None:
            return running.job
        return self._queued.get(video_id)

    def list_jobs(self) -> list[ProcessingJob]:
        """Running jobs (by start time) followed by queued jobs (FIFO order)."""
        running = sorted(
            (r.job for r in self._running.values()),
            key=lambda job: job.started_at or 0.0,
        )
        return running + list(self._pending)

    def queue_status(self) -> dict[str, Any]:
        """Summary of scheduler load."""
        return {
            "queue_length": len(self._pending),
            "running": len(self._running),
            "active_jobs": sorted(self._running),
            "max_concurrent": self._max_concurrent,
        }

    # ------------------------------------------------------------------
    # Dispatch loop
    # ------------------------------------------------------------------

    async def _dispatch_loop(self) -> None:
        while True:
            command = await self._commands.get()
            try:
                if isinstance(command, _Stop):
                    command.reply.set_result(None)
                    return
                self._handle(command)
                await self._dispatch()
            except Exception:
                logger.exception("Scheduler failed handling %s", type(command).__name__)
            finally:
                self._update_idle()

    def _handle(self, command: Any) -> None:
        if isinstance(command, _Enqueue):
            self._handle_enqueue(command)
        elif isinstance(command, _Cancel):
            self._handle_cancel(command)
        elif isinstance(command, _JobFinished):
            self._handle_finished(command)
        else:
            raise TypeError(f"Unknown scheduler command: {command!r}")

    def _handle_enqueue(self, command: _Enqueue) -> None:
        video_id = command.job.video_id
        if not self._accepting:
            command.reply.set_exception(
                SchedulerClosedError("Scheduler is not accepting new jobs")
            )
        elif video_id in self._queued or video_id in self._running:
            command.reply.set_exception(AlreadyQueuedError(video_id))
        else:
            self._pending.append(command.job)
            self._queued[video_id] = command.job
            logger.info(
                "Queued job for %s (position %d)", video_id, len(self._pending)
            )
            command.reply.set_result(command.job)

    def _handle_cancel(self, command: _Cancel) -> None:
        video_id = command.video_id
        queued = self._queued.pop(video_id, None)
        if queued is not None:
            self._pending.remove(queued)
            queued.mark_canceled()
            logger.info("Canceled queued job for %s", video_id)
            command.reply.set_result(queued)
            return

        running = self._running.get(video_id)
        if running is None:
            command.reply.set_exception(NotFoundError(video_id, "cancel"))
            return

        if not running.cancel_requested:
            running.cancel_requested = True
            running.job.set_stage("canceling")
            running.task.cancel()
            logger.info("Canceling running job for %s", video_id)
        command.reply.set_result(running.job)

    def _handle_finished(self, command: _JobFinished) -> None:
        running = self._running.pop(command.video_id)
        job, publisher = running.job, running.publisher

        if command.canceled:
            job.mark_canceled()
            publisher.error(job.error or JobError(ErrorKind.CANCELED, "Job canceled"))
        elif command.outcome is not None and command.outcome.error is not None:
            job.mark_failed(command.outcome.error)
            publisher.error(command.outcome.error)
        else:
            outcome = command.outcome or PipelineOutcome()
            job.mark_succeeded()
            publisher.completed(
                outcome.renditions, outcome.manifest_key or "", outcome.poster_key
            )

        logger.info(
            "Job for %s %s after %.1fs",
            job.video_id,
            job.state.value,
            job.get_elapsed_time(),
        )
        self._free_slot_ids.add(running.slot)
        self._slots.release()

    async def _dispatch(self) -> None:
        while self._pending and not self._slots.locked():
            job = self._pending.popleft()
            del self._queued[job.video_id]
            await self._slots.acquire()
            slot = min(self._free_slot_ids)
            self._free_slot_ids.remove(slot)

            job.mark_running()
            publisher = StatusPublisher(self._sink, job.video_id)
            task = asyncio.create_task(
                self._run_job(job, slot, publisher), name=f"vtp-job-{job.video_id}"
            )
            # A task cancelled before its first step never enters _run_job,
            # so completion is reported from the callback
            task.add_done_callback(functools.partial(self._job_done, job.video_id))
            self._running[job.video_id] = _RunningJob(job, slot, publisher, task)
            logger.info("Started job for %s in slot %d", job.video_id, slot)

    async def _run_job(
        self, job: ProcessingJob, slot: int, publisher: StatusPublisher
    ) -> PipelineOutcome:
        with job_context(job.video_id, slot):
            return await self._runner.run(job, publisher)

    def _job_done(self, video_id: str, task: asyncio.Task[PipelineOutcome]) -> None:
        """Report the end of a job task to the dispatch loop."""
        finished = _JobFinished(video_id)
        if task.cancelled():
            finished.canceled = True
        elif task.exception() is not None:
            exc = task.exception()
            logger.error("Job runner raised for %s", video_id, exc_info=exc)
            finished.outcome = PipelineOutcome(error=to_job_error(exc))
        else:
            finished.outcome = task.result()
        self._commands.put_nowait(finished)

    def _update_idle(self) -> None:
        if self._pending or self._running:
            self._idle.clear()
        else:
            self._idle.set()
