"""Event sink interface for job status notifications."""

from typing import Any, Protocol

from vtp.domain.enums import EventType


class EventSink(Protocol):
    """Protocol for receivers of job status events.

    publish() is called from the event loop and must not block. Sinks that
    deliver to slow consumers must buffer or drop instead of waiting.
    """

    def publish(
        self, video_id: str, event_type: EventType, payload: dict[str, Any]
    ) -> None:
        """Deliver one event.

        Args:
            video_id: The asset the event is about.
            event_type: progress, completed or error.
            payload: JSON-serializable event body.
        """
        ...
