"""EventSink implementations."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from vtp.domain.enums import EventType
from vtp.events.interface import EventSink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    """A published event, as delivered to subscribers."""

    video_id: str
    type: EventType
    payload: dict[str, Any]
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "video_id": self.video_id,
            "type": self.type.value,
            "payload": self.payload,
            "timestamp": self.timestamp,
        }


class NullEventSink:
    """Sink that discards all events."""

    def publish(
        self, video_id: str, event_type: EventType, payload: dict[str, Any]
    ) -> None:
        pass


class LoggingEventSink:
    """Sink that writes events to the log.

    Progress events go to DEBUG so a busy scheduler does not flood INFO.
    """

    def __init__(self, logger_name: str = "vtp.events") -> None:
        self._logger = logging.getLogger(logger_name)

    def publish(
        self, video_id: str, event_type: EventType, payload: dict[str, Any]
    ) -> None:
        if event_type == EventType.PROGRESS:
            self._logger.debug(
                "Video %s: %.1f%% %s",
                video_id,
                payload.get("percent", 0.0),
                payload.get("stage", ""),
            )
        elif event_type == EventType.COMPLETED:
            self._logger.info("Video %s processing completed", video_id)
        else:
            self._logger.warning(
                "Video %s processing failed: [%s] %s",
                video_id,
                payload.get("kind"),
                payload.get("message"),
            )


class CompositeEventSink:
    """Sink that forwards each event to several sinks.

    A failing sink is logged and skipped so the others still receive the
    event.
    """

    def __init__(self, sinks: list[EventSink]) -> None:
        self._sinks = list(sinks)

    def publish(
        self, video_id: str, event_type: EventType, payload: dict[str, Any]
    ) -> None:
        for sink in self._sinks:
            try:
                sink.publish(video_id, event_type, payload)
            except Exception:
                logger.exception(
                    "Event sink %s failed for %s", type(sink).__name__, video_id
                )


class RecordingEventSink:
    """Sink that keeps every event in memory. Used by tests."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def publish(
        self, video_id: str, event_type: EventType, payload: dict[str, Any]
    ) -> None:
        self.events.append(Event(video_id, event_type, dict(payload)))

    def for_video(self, video_id: str) -> list[Event]:
        return [e for e in self.events if e.video_id == video_id]

    def of_type(self, event_type: EventType) -> list[Event]:
        return [e for e in self.events if e.type == event_type]


class BroadcastEventSink:
    """Fan-out sink delivering events to asyncio subscriber queues.

    Each subscriber gets a bounded queue. When a subscriber falls behind,
    its oldest event is dropped to make room; publishing never waits.
    """

    DEFAULT_QUEUE_SIZE = 256

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._subscribers: set[asyncio.Queue[Event]] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue[Event]:
        """Register a new subscriber and return its queue."""
        queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[Event]) -> None:
        self._subscribers.discard(queue)

    def publish(
        self, video_id: str, event_type: EventType, payload: dict[str, Any]
    ) -> None:
        event = Event(video_id, event_type, dict(payload))
        for queue in list(self._subscribers):
            if queue.full():
                queue.get_nowait()
                logger.debug("Dropped oldest event for a slow subscriber")
            queue.put_nowait(event)
