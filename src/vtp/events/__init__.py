"""Job status events: sinks and the per-job publisher."""

from vtp.events.interface import EventSink
from vtp.events.publisher import StatusPublisher
from vtp.events.sinks import (
    BroadcastEventSink,
    CompositeEventSink,
    Event,
    LoggingEventSink,
    NullEventSink,
    RecordingEventSink,
)

__all__ = [
    "BroadcastEventSink",
    "CompositeEventSink",
    "Event",
    "EventSink",
    "LoggingEventSink",
    "NullEventSink",
    "RecordingEventSink",
    "StatusPublisher",
]
