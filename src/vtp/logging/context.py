"""Job context for structured logging.

Provides context propagation for pipeline tasks using contextvars, so every
log record emitted while a job runs carries its video_id and worker slot.
asyncio tasks copy the context at creation, which keeps concurrent jobs
from seeing each other's values.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

_video_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "video_id", default=None
)
_slot: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "slot", default=None
)


@contextmanager
def job_context(video_id: str, slot: int | None = None) -> Generator[None, None, None]:
    """Context manager for job processing context.

    Sets job context on entry and restores the previous values on exit.

    Args:
        video_id: The video being processed.
        slot: Worker slot number the job occupies, if known.

    Example:
        with job_context("abc123", slot=1):
            logger.info("Encoding")  # Record carries video_id and slot
    """
    video_token = _video_id.set(video_id)
    slot_token = _slot.set(slot)
    try:
        yield
    finally:
        _slot.reset(slot_token)
        _video_id.reset(video_token)


def get_job_context() -> tuple[str | None, int | None]:
    """Get current job context.

    Returns:
        Tuple of (video_id, slot), either may be None.
    """
    return _video_id.get(), _slot.get()


class JobContextFilter(logging.Filter):
    """Logging filter that injects job context into log records.

    Adds video_id and slot attributes for JSON output and a compact
    job_tag such as "[S1:vid:abc123] " for text output.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        video_id, slot = get_job_context()

        record.video_id = video_id
        record.slot = slot

        if video_id:
            if slot is not None:
                record.job_tag = f"[S{slot}:vid:{video_id}] "
            else:
                record.job_tag = f"[vid:{video_id}] "
        else:
            record.job_tag = ""

        return True  # Never filter out records
