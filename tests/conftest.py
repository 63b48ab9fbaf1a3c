"""Shared test fixtures for the Video Transcode Pipeline.

The pipeline collaborators that would normally run ffprobe and ffmpeg are
replaced by in-process fakes that write small placeholder files, so no
test needs the media tools installed.
"""

from __future__ import annotations

import asyncio
import io
import shutil
import tempfile
from collections import defaultdict
from collections.abc import Callable
from pathlib import Path
from types import SimpleNamespace

import pytest

from vtp.catalog.sqlite import SqliteCatalog
from vtp.domain.exceptions import EncodeError, ProbeError, ThumbnailError
from vtp.domain.models import ProbeResult, ProcessingJob, Rendition, RenditionSpec
from vtp.events.publisher import StatusPublisher
from vtp.events.sinks import RecordingEventSink
from vtp.executor.rendition import EncodedRendition
from vtp.jobs.pipeline import PipelineOutcome, TranscodePipeline
from vtp.jobs.progress import ProgressListener
from vtp.pipeline.manifest import playlist_name
from vtp.storage.local import LocalStorage

SEGMENTS_PER_RENDITION = 2


class FakeProber:
    """MediaProber returning a fixed result (or raising ProbeError)."""

    def __init__(
        self, result: ProbeResult | None = None, error: str | None = None
    ) -> None:
        self.result = result or ProbeResult(60.0, 1920, 1080, "h264", "aac", 1024)
        self.error = error
        self.probed: list[Path] = []

    async def probe(self, path: Path) -> ProbeResult:
        self.probed.append(path)
        await asyncio.sleep(0)
        if self.error is not None:
            raise ProbeError(self.error)
        return self.result


class FakeEncoder:
    """RenditionEncoder that writes a playlist and placeholder segments.

    Set fail_on to a label to make that rendition fail. Set gate to an
    asyncio.Event to hold every encode until the event is set.
    """

    def __init__(
        self,
        fail_on: str | None = None,
        gate: asyncio.Event | None = None,
        fractions: tuple[float, ...] = (0.25, 0.5, 0.75),
    ) -> None:
        self.fail_on = fail_on
        self.gate = gate
        self.fractions = fractions
        self.encoded: list[str] = []
        self.canceled: list[str] = []
        self.started = asyncio.Event()

    async def encode(
        self,
        source: Path,
        spec: RenditionSpec,
        output_dir: Path,
        listener: ProgressListener,
        duration: float | None = None,
    ) -> EncodedRendition:
        output_dir.mkdir(parents=True, exist_ok=True)
        self.started.set()
        try:
            if self.gate is not None:
                await self.gate.wait()
            for fraction in self.fractions:
                listener.on_fraction(fraction)
                await asyncio.sleep(0)
        except asyncio.CancelledError:
            self.canceled.append(spec.label)
            raise

        if spec.label == self.fail_on:
            # A failed encode still leaves partial segments behind
            (output_dir / f"{spec.label}_000.ts").write_bytes(b"partial")
            raise EncodeError(spec.label, "exit code 1: Conversion failed!")

        segments = []
        lines = ["#EXTM3U", "#EXT-X-VERSION:3", "#EXT-X-PLAYLIST-TYPE:VOD"]
        for index in range(SEGMENTS_PER_RENDITION):
            segment = output_dir / f"{spec.label}_{index:03d}.ts"
            segment.write_bytes(b"\x47" * 188)
            segments.append(segment)
            lines += ["#EXTINF:10.0,", segment.name]
        lines.append("#EXT-X-ENDLIST")
        playlist = output_dir / playlist_name(spec.label)
        playlist.write_text("\n".join(lines) + "\n", encoding="utf-8")

        listener.on_fraction(1.0)
        self.encoded.append(spec.label)
        return EncodedRendition(spec, playlist, tuple(segments))


class FakeThumbnailer:
    """ThumbnailGenerator writing count placeholder images."""

    def __init__(self, count: int = 5, fail: bool = False) -> None:
        self.count = count
        self.fail = fail

    async def generate(
        self, source: Path, duration: float, output_dir: Path
    ) -> list[Path]:
        if self.fail:
            raise ThumbnailError("No thumbnails could be extracted")
        output_dir.mkdir(parents=True, exist_ok=True)
        images = []
        for index in range(1, self.count + 1):
            image = output_dir / f"thumb_{index}.jpg"
            image.write_bytes(b"\xff\xd8\xff")
            images.append(image)
        return images


@pytest.fixture
def fakes() -> SimpleNamespace:
    """The fake collaborator classes, for tests that configure their own."""
    return SimpleNamespace(
        Prober=FakeProber, Encoder=FakeEncoder, Thumbnailer=FakeThumbnailer
    )


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test isolation."""
    dir_path = tempfile.mkdtemp()
    yield Path(dir_path)
    shutil.rmtree(dir_path, ignore_errors=True)


@pytest.fixture
def storage(temp_dir: Path) -> LocalStorage:
    """Local storage rooted in the temp directory."""
    return LocalStorage(temp_dir / "storage")


@pytest.fixture
def catalog(temp_dir: Path) -> SqliteCatalog:
    """Empty catalog in the temp directory."""
    return SqliteCatalog(temp_dir / "catalog.db")


@pytest.fixture
def recording_sink() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def upload_source(
    storage: LocalStorage, catalog: SqliteCatalog
) -> Callable[[str], str]:
    """Store a placeholder source for a video and register it.

    Returns a function taking a video id and returning the source key.
    """

    def _upload(video_id: str) -> str:
        key = f"uploads/{video_id}/source.mp4"
        storage.write(key, io.BytesIO(b"not really a video"))
        catalog.register(video_id, key)
        return key

    return _upload


@pytest.fixture
def make_pipeline(
    storage: LocalStorage, catalog: SqliteCatalog, temp_dir: Path
) -> Callable[..., TranscodePipeline]:
    """Factory for a TranscodePipeline wired to fakes.

    store and videos replace the shared storage and catalog, for tests that
    need a slow or failing backend over the same files.
    """

    def _make(
        prober: FakeProber | None = None,
        encoder: FakeEncoder | None = None,
        thumbnailer: FakeThumbnailer | None = None,
        store: LocalStorage | None = None,
        videos: SqliteCatalog | None = None,
    ) -> TranscodePipeline:
        return TranscodePipeline(
            prober=prober or FakeProber(),
            encoder=encoder or FakeEncoder(),
            thumbnailer=thumbnailer or FakeThumbnailer(),
            storage=store or storage,
            catalog=videos or catalog,
            work_dir=temp_dir / "work",
        )

    return _make


def stored_keys(storage: LocalStorage, prefix: str) -> list[str]:
    """All object keys under prefix, sorted."""
    root = storage.path_for(prefix)
    if not root.exists():
        return []
    return sorted(
        p.relative_to(storage.root).as_posix() for p in root.rglob("*") if p.is_file()
    )


@pytest.fixture
def list_keys(storage: LocalStorage) -> Callable[[str], list[str]]:
    """Function listing stored keys under a prefix."""
    return lambda prefix: stored_keys(storage, prefix)


class GatedRunner:
    """JobRunner whose jobs block until released by the test.

    Tracks start order, cancellations and the peak number of jobs running
    at once. results maps a video id to the outcome (or exception) its run
    should produce; the default is a one-rendition success.
    """

    def __init__(self) -> None:
        self.gates: dict[str, asyncio.Event] = defaultdict(asyncio.Event)
        self.started: dict[str, asyncio.Event] = defaultdict(asyncio.Event)
        self.order: list[str] = []
        self.canceled: list[str] = []
        self.results: dict[str, PipelineOutcome | Exception] = {}
        self.active = 0
        self.max_active = 0

    def release(self, video_id: str) -> None:
        self.gates[video_id].set()

    async def run(
        self, job: ProcessingJob, publisher: StatusPublisher
    ) -> PipelineOutcome:
        self.order.append(job.video_id)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.started[job.video_id].set()
        try:
            publisher.progress(10.0, "encoding")
            await self.gates[job.video_id].wait()
        except asyncio.CancelledError:
            self.canceled.append(job.video_id)
            raise
        finally:
            self.active -= 1
        result = self.results.get(job.video_id)
        if isinstance(result, Exception):
            raise result
        if result is not None:
            return result
        rendition = Rendition("360p", 640, 360, 500, f"p/{job.video_id}/360p.m3u8")
        return PipelineOutcome(
            renditions=(rendition,), manifest_key=f"p/{job.video_id}/master.m3u8"
        )


@pytest.fixture
def runner() -> GatedRunner:
    return GatedRunner()
