"""Tests for StatusPublisher throttling and terminal events."""

from vtp.domain.enums import ErrorKind, EventType
from vtp.domain.models import JobError, Rendition
from vtp.events.publisher import StatusPublisher
from vtp.events.sinks import RecordingEventSink


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _publisher() -> tuple[StatusPublisher, RecordingEventSink, FakeClock]:
    sink = RecordingEventSink()
    clock = FakeClock()
    return StatusPublisher(sink, "v1", clock=clock), sink, clock


def _percents(sink: RecordingEventSink) -> list[float]:
    return [e.payload["percent"] for e in sink.of_type(EventType.PROGRESS)]


class TestProgressThrottling:
    """Tests for StatusPublisher.progress."""

    def test_first_update_published(self) -> None:
        publisher, sink, _ = _publisher()
        assert publisher.progress(0.0, "probing source")
        assert sink.events[0].payload == {"percent": 0.0, "stage": "probing source"}

    def test_small_rise_suppressed_until_interval(self) -> None:
        publisher, sink, clock = _publisher()
        publisher.progress(10.0, "encoding")
        assert not publisher.progress(10.5, "encoding")
        clock.now = 1.5
        assert publisher.progress(10.6, "encoding")
        assert _percents(sink) == [10.0, 10.6]

    def test_large_rise_published(self) -> None:
        publisher, sink, _ = _publisher()
        publisher.progress(10.0, "encoding")
        assert publisher.progress(11.0, "encoding")

    def test_stage_change_always_published(self) -> None:
        publisher, sink, _ = _publisher()
        publisher.progress(10.0, "encoding 360p (1/2)")
        assert publisher.progress(10.0, "encoding 720p (2/2)")

    def test_never_decreases(self) -> None:
        publisher, sink, _ = _publisher()
        publisher.progress(50.0, "encoding")
        publisher.progress(20.0, "generating thumbnails")
        assert _percents(sink) == [50.0, 50.0]
        assert publisher.last_percent == 50.0

    def test_no_progress_after_terminal(self) -> None:
        publisher, sink, _ = _publisher()
        publisher.error(JobError(ErrorKind.PROBE_FAILED, "bad"))
        assert not publisher.progress(10.0, "encoding")


class TestTerminalEvents:
    """Tests for completed and error."""

    def test_completed_payload(self) -> None:
        publisher, sink, _ = _publisher()
        rendition = Rendition("360p", 640, 360, 500, "p/v1/hls/360p.m3u8")
        publisher.completed([rendition], "p/v1/hls/master.m3u8", "p/v1/t.jpg")
        [event] = sink.of_type(EventType.COMPLETED)
        assert event.payload == {
            "renditions": ["360p"],
            "manifest_key": "p/v1/hls/master.m3u8",
            "poster_key": "p/v1/t.jpg",
        }

    def test_error_payload(self) -> None:
        publisher, sink, _ = _publisher()
        publisher.error(JobError(ErrorKind.ENCODE_FAILED, "exit 1", "720p"))
        [event] = sink.of_type(EventType.ERROR)
        assert event.payload == {
            "kind": "encode_failed",
            "message": "exit 1",
            "rendition": "720p",
        }

    def test_only_one_terminal_event(self) -> None:
        publisher, sink, _ = _publisher()
        publisher.error(JobError(ErrorKind.CANCELED, "canceled"))
        publisher.completed([], "m.m3u8")
        publisher.error(JobError(ErrorKind.INTERNAL, "again"))
        assert len(sink.events) == 1
