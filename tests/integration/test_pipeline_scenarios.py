"""End-to-end scenarios: JobScheduler driving TranscodePipeline on fakes.

Storage and catalog are real (local directory and SQLite); only the
media tools are replaced.
"""

import asyncio

import pytest

from vtp.domain.enums import ErrorKind, EventType, JobState, VideoStatus
from vtp.domain.exceptions import AlreadyQueuedError
from vtp.domain.models import ProbeResult
from vtp.jobs.scheduler import JobScheduler
from vtp.pipeline.manifest import parse_master_playlist

pytestmark = pytest.mark.integration


class CountingEncoder:
    """Wraps an encoder and records the peak number of concurrent encodes."""

    def __init__(self, inner) -> None:
        self.inner = inner
        self.active = 0
        self.peak = 0

    async def encode(self, *args, **kwargs):
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            return await self.inner.encode(*args, **kwargs)
        finally:
            self.active -= 1


async def _run_all(scheduler: JobScheduler, video_ids, upload_source) -> None:
    for video_id in video_ids:
        await scheduler.enqueue(video_id, upload_source(video_id))
    await scheduler.join()


class TestScenarios:
    """Whole-job outcomes as seen through the catalog and storage."""

    @pytest.mark.asyncio
    async def test_full_hd_source(
        self, make_pipeline, recording_sink, upload_source, catalog, storage
    ) -> None:
        async with JobScheduler(make_pipeline(), recording_sink) as scheduler:
            await _run_all(scheduler, ["hd"], upload_source)

        asset = catalog.get_video("hd")
        assert asset.status == VideoStatus.READY
        assert [r.label for r in asset.renditions] == [
            "360p",
            "480p",
            "720p",
            "1080p",
        ]
        assert len(asset.thumbnail_keys) == 5
        assert asset.poster_key == asset.thumbnail_keys[0]

        with storage.read(asset.manifest_key) as f:
            variants = parse_master_playlist(f.read().decode("utf-8"))
        assert len(variants) == 4
        assert [v.bandwidth for v in variants] == [
            500_000,
            1_000_000,
            2_500_000,
            5_000_000,
        ]

        [completed] = recording_sink.of_type(EventType.COMPLETED)
        assert completed.payload["renditions"] == ["360p", "480p", "720p", "1080p"]

    @pytest.mark.asyncio
    async def test_sd_source_is_not_upscaled(
        self, make_pipeline, fakes, recording_sink, upload_source, catalog
    ) -> None:
        prober = fakes.Prober(ProbeResult(60.0, 854, 480, "h264", "aac"))
        pipeline = make_pipeline(prober=prober)
        async with JobScheduler(pipeline, recording_sink) as scheduler:
            await _run_all(scheduler, ["sd"], upload_source)

        asset = catalog.get_video("sd")
        assert [r.label for r in asset.renditions] == ["360p", "480p"]

    @pytest.mark.asyncio
    async def test_cancel_queued_job_has_no_side_effects(
        self,
        make_pipeline,
        fakes,
        recording_sink,
        upload_source,
        catalog,
        list_keys,
    ) -> None:
        gate = asyncio.Event()
        encoder = fakes.Encoder(gate=gate)
        pipeline = make_pipeline(encoder=encoder)
        async with JobScheduler(pipeline, recording_sink, 1) as scheduler:
            await scheduler.enqueue("first", upload_source("first"))
            await scheduler.enqueue("second", upload_source("second"))
            await encoder.started.wait()

            job = await scheduler.cancel("second")
            assert job.state == JobState.CANCELED
            assert scheduler.get_job("second") is None

            gate.set()
            await scheduler.join()

        assert catalog.get_video("second").status == VideoStatus.UPLOADED
        assert list_keys("processed/second") == []
        assert recording_sink.for_video("second") == []
        assert catalog.get_video("first").status == VideoStatus.READY

    @pytest.mark.asyncio
    async def test_second_rendition_failure(
        self,
        make_pipeline,
        fakes,
        recording_sink,
        upload_source,
        catalog,
        list_keys,
    ) -> None:
        pipeline = make_pipeline(encoder=fakes.Encoder(fail_on="480p"))
        async with JobScheduler(pipeline, recording_sink) as scheduler:
            job = await scheduler.enqueue("bad", upload_source("bad"))
            await scheduler.join()

        assert job.state == JobState.FAILED
        asset = catalog.get_video("bad")
        assert asset.status == VideoStatus.ERROR
        assert asset.error.kind == ErrorKind.ENCODE_FAILED
        assert asset.error.rendition == "480p"
        assert list_keys("processed/bad") == []

        terminal = [
            e for e in recording_sink.for_video("bad") if e.type != EventType.PROGRESS
        ]
        assert [e.type for e in terminal] == [EventType.ERROR]


class TestSchedulingProperties:
    """Concurrency, exclusivity and progress across real pipeline runs."""

    @pytest.mark.asyncio
    async def test_bounded_concurrency(
        self, make_pipeline, fakes, recording_sink, upload_source, catalog
    ) -> None:
        gate = asyncio.Event()
        encoder = CountingEncoder(fakes.Encoder(gate=gate))
        pipeline = make_pipeline(encoder=encoder)
        ids = [f"v{i}" for i in range(4)]

        async with JobScheduler(pipeline, recording_sink, 2) as scheduler:
            for video_id in ids:
                await scheduler.enqueue(video_id, upload_source(video_id))
            await encoder.inner.started.wait()
            status = scheduler.queue_status()
            assert status["running"] == 2
            assert status["queue_length"] == 2
            gate.set()
            await scheduler.join()

        assert encoder.peak <= 2
        for video_id in ids:
            assert catalog.get_video(video_id).status == VideoStatus.READY

    @pytest.mark.asyncio
    async def test_exclusivity(
        self, make_pipeline, fakes, recording_sink, upload_source
    ) -> None:
        gate = asyncio.Event()
        pipeline = make_pipeline(encoder=fakes.Encoder(gate=gate))
        async with JobScheduler(pipeline, recording_sink) as scheduler:
            source = upload_source("dup")
            await scheduler.enqueue("dup", source)
            with pytest.raises(AlreadyQueuedError):
                await scheduler.enqueue("dup", source)
            assert len(scheduler.list_jobs()) == 1
            gate.set()
            await scheduler.join()

        assert len(recording_sink.of_type(EventType.COMPLETED)) == 1

    @pytest.mark.asyncio
    async def test_progress_monotonic_and_reaches_100(
        self, make_pipeline, recording_sink, upload_source
    ) -> None:
        async with JobScheduler(make_pipeline(), recording_sink) as scheduler:
            await _run_all(scheduler, ["a", "b"], upload_source)

        for video_id in ("a", "b"):
            events = recording_sink.for_video(video_id)
            percents = [
                e.payload["percent"] for e in events if e.type == EventType.PROGRESS
            ]
            assert percents == sorted(percents)
            assert percents[-1] == 100.0
            assert events[-1].type == EventType.COMPLETED

    @pytest.mark.asyncio
    async def test_renditions_visible_only_on_success(
        self, make_pipeline, fakes, recording_sink, upload_source, catalog
    ) -> None:
        ok = make_pipeline()
        async with JobScheduler(ok, recording_sink) as scheduler:
            await _run_all(scheduler, ["vid"], upload_source)
        asset = catalog.get_video("vid")
        assert asset.renditions and asset.manifest_key

        # Reprocessing the same video fails and withdraws the old renditions
        failing = make_pipeline(encoder=fakes.Encoder(fail_on="1080p"))
        async with JobScheduler(failing, recording_sink) as scheduler:
            await scheduler.enqueue("vid", "uploads/vid/source.mp4")
            await scheduler.join()
        asset = catalog.get_video("vid")
        assert asset.status == VideoStatus.ERROR
        assert asset.renditions == ()
        assert asset.manifest_key is None
