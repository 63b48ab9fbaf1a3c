"""The per-video transcode pipeline.

TranscodePipeline.run() takes one running job from a staged source to a
published HLS package:

    stage source -> probe -> plan -> encode + upload each rendition
    -> thumbnails (non-fatal) -> master manifest -> publish to catalog

On failure every object written under the video's output prefix is
deleted, the work directory is removed and the catalog records the error.
Cancellation performs the same cleanup and returns the asset to uploaded.
Storage and catalog writes run in worker threads that are waited out
before cleanup starts. A cancel that arrives once publishing has begun is
ignored and the job completes.
"""

from __future__ import annotations

import asyncio
import io
import logging
import shutil
import sqlite3
import tempfile
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Protocol, TypeVar

from vtp.catalog.interface import Catalog
from vtp.domain.enums import ErrorKind, VideoStatus
from vtp.domain.exceptions import (
    AssemblyError,
    PipelineError,
    StorageError,
    ThumbnailError,
)
from vtp.domain.models import (
    JobError,
    ProbeResult,
    ProcessingJob,
    Rendition,
    RenditionSpec,
)
from vtp.events.publisher import StatusPublisher
from vtp.executor.rendition import EncodedRendition, RenditionEncoder
from vtp.executor.thumbnails import ThumbnailGenerator
from vtp.introspector.interface import MediaProber
from vtp.jobs.progress import ProgressAggregator
from vtp.pipeline.ladder import DEFAULT_LADDER, plan_renditions
from vtp.pipeline.manifest import build_master_playlist
from vtp.storage.interface import Storage

logger = logging.getLogger(__name__)

MASTER_PLAYLIST_NAME = "master.m3u8"

T = TypeVar("T")


@dataclass(frozen=True)
class PipelineOutcome:
    """Result of a pipeline run that was not cancelled.

    error is set when the run failed; the other fields are only meaningful
    on success.
    """

    renditions: tuple[Rendition, ...] = ()
    manifest_key: str | None = None
    poster_key: str | None = None
    thumbnail_keys: tuple[str, ...] = field(default_factory=tuple)
    error: JobError | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class JobRunner(Protocol):
    """What the scheduler runs for each job."""

    async def run(
        self, job: ProcessingJob, publisher: StatusPublisher
    ) -> PipelineOutcome:
        """Process job to completion.

        Returns:
            Outcome with renditions on success or an error on failure.

        Raises:
            asyncio.CancelledError: If cancelled. Cleanup has completed.
        """
        ...


def to_job_error(exc: BaseException) -> JobError:
    """Map an exception raised by a pipeline stage to a JobError."""
    if isinstance(exc, PipelineError):
        return JobError(
            kind=exc.kind,
            message=str(exc),
            rendition=getattr(exc, "rendition", None),
        )
    return JobError(kind=ErrorKind.INTERNAL, message=f"{type(exc).__name__}: {exc}")


async def _finish_in_thread(
    func: Callable[..., T], *args: Any
) -> tuple[T, bool]:
    """Run func in a worker thread and wait for it even if cancelled.

    A thread cannot be interrupted, so returning early on cancel would let
    it keep writing after cleanup has run. Returns the result and whether a
    cancel arrived while waiting.
    """
    future = asyncio.ensure_future(asyncio.to_thread(func, *args))
    canceled = False
    while True:
        try:
            return await asyncio.shield(future), canceled
        except asyncio.CancelledError:
            if future.cancelled():
                raise
            canceled = True


async def _in_thread(func: Callable[..., T], *args: Any) -> T:
    """Like asyncio.to_thread, but a cancel only takes effect once func ends."""
    result, canceled = await _finish_in_thread(func, *args)
    if canceled:
        raise asyncio.CancelledError
    return result


def _absorb_cancel(video_id: str) -> None:
    """Drop a cancel that arrived after the video was published."""
    logger.info("Ignoring cancel for %s: already published", video_id)
    task = asyncio.current_task()
    if task is not None:
        task.uncancel()


class TranscodePipeline:
    """Default JobRunner: probe, encode, package and publish one video."""

    def __init__(
        self,
        prober: MediaProber,
        encoder: RenditionEncoder,
        thumbnailer: ThumbnailGenerator,
        storage: Storage,
        catalog: Catalog,
        *,
        output_prefix: str = "processed",
        work_dir: Path | None = None,
        ladder: Sequence[RenditionSpec] = DEFAULT_LADDER,
    ) -> None:
        self._prober = prober
        self._encoder = encoder
        self._thumbnailer = thumbnailer
        self._storage = storage
        self._catalog = catalog
        self._output_prefix = output_prefix.strip("/")
        self._work_dir = work_dir
        self._ladder = tuple(ladder)

    def output_prefix_for(self, video_id: str) -> str:
        """Storage prefix holding every object produced for video_id."""
        return f"{self._output_prefix}/{video_id}"

    async def run(
        self, job: ProcessingJob, publisher: StatusPublisher
    ) -> PipelineOutcome:
        video_id = job.video_id
        work = self._make_work_dir(video_id)
        try:
            registered = await _in_thread(
                self._catalog.update_status, video_id, VideoStatus.PROCESSING
            )
            if not registered:
                raise PipelineError(f"Video {video_id} is not in the catalog")
            outcome = await self._process(job, publisher, work)
        except asyncio.CancelledError:
            logger.info("Job for %s canceled, cleaning up", video_id)
            await self._cleanup(video_id, work)
            await self._set_status(video_id, VideoStatus.UPLOADED)
            raise
        except Exception as e:
            error = to_job_error(e)
            if isinstance(e, PipelineError):
                logger.error("Processing %s failed: %s", video_id, e)
            else:
                logger.exception("Unexpected error processing %s", video_id)
            await self._cleanup(video_id, work)
            await self._set_status(video_id, VideoStatus.ERROR, error)
            return PipelineOutcome(error=error)

        _, canceled = await _finish_in_thread(shutil.rmtree, work, True)
        if canceled:
            _absorb_cancel(video_id)
        return outcome

    async def _process(
        self, job: ProcessingJob, publisher: StatusPublisher, work: Path
    ) -> PipelineOutcome:
        video_id = job.video_id
        prefix = self.output_prefix_for(video_id)

        def report(stage: str) -> None:
            job.set_stage(stage)
            publisher.progress(job.progress_percent, stage)

        report("staging source")
        source = await _in_thread(self._stage_source, job.source_location, work)

        report("probing source")
        probe = await self._prober.probe(source)
        await _in_thread(self._catalog.update_source_metadata, video_id, probe)

        specs = plan_renditions(probe.height, self._ladder)
        logger.info(
            "Planned %s for %dx%d source",
            ", ".join(s.label for s in specs),
            probe.width,
            probe.height,
        )

        stage = "encoding"

        def on_percent(percent: float) -> None:
            if job.advance_progress(percent):
                publisher.progress(job.progress_percent, stage)

        aggregator = ProgressAggregator(
            [s.relative_cost_weight for s in specs], on_percent=on_percent
        )

        renditions: list[Rendition] = []
        for index, spec in enumerate(specs):
            stage = f"encoding {spec.label} ({index + 1}/{len(specs)})"
            report(stage)
            encoded = await self._encoder.encode(
                source,
                spec,
                work / "hls" / spec.label,
                aggregator.listener_for(index),
                duration=probe.duration_seconds,
            )
            renditions.append(await self._upload_rendition(prefix, encoded))
            aggregator.complete(index)

        report("generating thumbnails")
        thumbnail_keys = await self._thumbnails(prefix, source, probe, work)
        poster_key = thumbnail_keys[0] if thumbnail_keys else None

        report("assembling manifest")
        manifest_key = f"{prefix}/hls/{MASTER_PLAYLIST_NAME}"
        manifest = build_master_playlist(renditions)
        try:
            await _in_thread(
                self._storage.write, manifest_key, io.BytesIO(manifest.encode("utf-8"))
            )
        except StorageError as e:
            raise AssemblyError(f"Cannot write master manifest: {e}") from e

        report("publishing")
        published, canceled = await _finish_in_thread(
            self._catalog.update_renditions,
            video_id,
            renditions,
            manifest_key,
            poster_key,
            thumbnail_keys,
        )
        if canceled:
            _absorb_cancel(video_id)
        if not published:
            raise PipelineError(f"Video {video_id} is not registered in the catalog")

        return PipelineOutcome(
            renditions=tuple(renditions),
            manifest_key=manifest_key,
            poster_key=poster_key,
            thumbnail_keys=tuple(thumbnail_keys),
        )

    async def _upload_rendition(
        self, prefix: str, encoded: EncodedRendition
    ) -> Rendition:
        spec = encoded.spec
        hls_prefix = f"{prefix}/hls"
        segment_keys: list[str] = []
        for segment in encoded.segment_paths:
            key = f"{hls_prefix}/{segment.name}"
            await _in_thread(self._upload_file, key, segment)
            segment_keys.append(key)
        # Playlist last so it never references a missing segment
        playlist_key = f"{hls_prefix}/{encoded.playlist_path.name}"
        await _in_thread(self._upload_file, playlist_key, encoded.playlist_path)
        return Rendition(
            label=spec.label,
            width=spec.width,
            height=spec.height,
            bitrate_kbps=spec.bitrate_kbps,
            playlist_key=playlist_key,
            segment_keys=tuple(segment_keys),
        )

    async def _thumbnails(
        self, prefix: str, source: Path, probe: ProbeResult, work: Path
    ) -> list[str]:
        try:
            images = await self._thumbnailer.generate(
                source, probe.duration_seconds, work / "thumbnails"
            )
        except ThumbnailError as e:
            logger.warning("Continuing without thumbnails: %s", e)
            return []

        keys: list[str] = []
        for image in images:
            key = f"{prefix}/thumbnails/{image.name}"
            await _in_thread(self._upload_file, key, image)
            keys.append(key)
        return keys

    def _make_work_dir(self, video_id: str) -> Path:
        if self._work_dir is not None:
            self._work_dir.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix=f"vtp-{video_id}-", dir=self._work_dir))

    def _stage_source(self, location: str, work: Path) -> Path:
        suffix = PurePosixPath(location).suffix or ".bin"
        local = work / f"source{suffix}"
        try:
            with self._storage.read(location) as src, local.open("wb") as dst:
                shutil.copyfileobj(src, dst)
        except OSError as e:
            raise StorageError(f"Cannot stage source {location}: {e}") from e
        return local

    def _upload_file(self, key: str, path: Path) -> None:
        try:
            with path.open("rb") as f:
                self._storage.write(key, f)
        except OSError as e:
            raise StorageError(f"Cannot upload {path.name} to {key}: {e}") from e

    async def _cleanup(self, video_id: str, work: Path) -> None:
        prefix = self.output_prefix_for(video_id)
        try:
            deleted = await asyncio.to_thread(self._storage.delete, prefix)
            logger.info("Removed %d partial outputs for %s", deleted, video_id)
        except StorageError as e:
            logger.error("Failed to remove partial outputs for %s: %s", video_id, e)
        await asyncio.to_thread(shutil.rmtree, work, True)

    async def _set_status(
        self, video_id: str, status: VideoStatus, error: JobError | None = None
    ) -> None:
        try:
            await asyncio.to_thread(
                self._catalog.update_status, video_id, status, error
            )
        except (sqlite3.Error, OSError):
            logger.exception(
                "Failed to record status %s for %s", status.value, video_id
            )
