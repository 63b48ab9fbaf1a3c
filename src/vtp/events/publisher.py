"""Per-job status publishing with progress throttling."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from typing import Any

from vtp.domain.enums import EventType
from vtp.domain.models import JobError, Rendition
from vtp.events.interface import EventSink

logger = logging.getLogger(__name__)

MIN_PERCENT_DELTA = 1.0
MIN_INTERVAL_SECONDS = 1.0


class StatusPublisher:
    """Publishes one job's status to an EventSink.

    Progress events are throttled: one is sent when the percentage rose by
    at least MIN_PERCENT_DELTA, or rose at all and MIN_INTERVAL_SECONDS
    passed since the last event. A stage change is always sent. The
    published percentage never goes down.
    """

    def __init__(
        self,
        sink: EventSink,
        video_id: str,
        clock: Callable[[], float] = time.monotonic,
        min_delta: float = MIN_PERCENT_DELTA,
        min_interval: float = MIN_INTERVAL_SECONDS,
    ) -> None:
        self._sink = sink
        self._video_id = video_id
        self._clock = clock
        self._min_delta = min_delta
        self._min_interval = min_interval
        self._last_percent: float | None = None
        self._last_stage: str | None = None
        self._last_time = 0.0
        self._finished = False

    @property
    def last_percent(self) -> float:
        return self._last_percent or 0.0

    def progress(self, percent: float, stage: str) -> bool:
        """Offer a progress update.

        Args:
            percent: Job percentage (0-100).
            stage: Human-readable description of the current stage.

        Returns:
            True if an event was published.
        """
        if self._finished:
            return False

        now = self._clock()
        percent = max(0.0, min(100.0, percent))
        previous = self._last_percent
        if previous is not None and percent < previous:
            percent = previous

        stage_changed = stage != self._last_stage
        if previous is None or stage_changed:
            should_publish = True
        else:
            rise = percent - previous
            should_publish = rise >= self._min_delta or (
                rise > 0 and now - self._last_time >= self._min_interval
            )
        if not should_publish:
            return False

        self._last_percent = percent
        self._last_stage = stage
        self._last_time = now
        self._sink.publish(
            self._video_id,
            EventType.PROGRESS,
            {"percent": round(percent, 2), "stage": stage},
        )
        return True

    def completed(
        self,
        renditions: Sequence[Rendition],
        manifest_key: str,
        poster_key: str | None = None,
    ) -> None:
        """Publish the terminal success event."""
        self._publish_terminal(
            EventType.COMPLETED,
            {
                "renditions": [r.label for r in renditions],
                "manifest_key": manifest_key,
                "poster_key": poster_key,
            },
        )

    def error(self, error: JobError) -> None:
        """Publish the terminal error event."""
        self._publish_terminal(EventType.ERROR, error.to_dict())

    def _publish_terminal(self, event_type: EventType, payload: dict[str, Any]) -> None:
        if self._finished:
            logger.warning(
                "Ignoring second terminal event %s for %s",
                event_type.value,
                self._video_id,
            )
            return
        self._finished = True
        self._sink.publish(self._video_id, event_type, payload)
