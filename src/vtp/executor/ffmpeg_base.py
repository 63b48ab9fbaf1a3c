"""Base class for FFmpeg-based executors.

Provides the shared asyncio subprocess supervision used by the rendition
encoder and the thumbnail generator: progress parsing from ``-progress``
output, a bounded stderr tail for error reports, an optional timeout and
graceful termination when the awaiting task is cancelled.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from abc import ABC
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from vtp.tools.ffmpeg_progress import ProgressBlockReader

if TYPE_CHECKING:
    from vtp.jobs.progress import ProgressListener

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FFmpegRunResult:
    """Outcome of one ffmpeg invocation."""

    returncode: int
    stderr_tail: tuple[str, ...] = ()
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    def describe(self) -> str:
        """Short human-readable exit description for error messages."""
        if self.timed_out:
            head = "timed out"
        else:
            head = f"exit code {self.returncode}"
        if self.stderr_tail:
            return f"{head}: {' | '.join(self.stderr_tail)}"
        return head


class FFmpegExecutorBase(ABC):
    """Base class for executors that run ffmpeg.

    Subclasses build their own command lines and call run_ffmpeg().
    """

    STDERR_TAIL_LINES: int = 20
    DEFAULT_TERMINATE_GRACE: float = 5.0

    def __init__(
        self,
        ffmpeg_path: Path,
        timeout: float | None = None,
        terminate_grace: float = DEFAULT_TERMINATE_GRACE,
    ) -> None:
        """Initialize the executor.

        Args:
            ffmpeg_path: Path to the ffmpeg executable.
            timeout: Per-invocation timeout in seconds. None = no limit.
            terminate_grace: Seconds to wait after SIGTERM before SIGKILL.
        """
        self._ffmpeg_path = ffmpeg_path
        self._timeout = timeout
        self._terminate_grace = terminate_grace

    async def run_ffmpeg(
        self,
        args: list[str],
        description: str,
        duration: float | None = None,
        listener: ProgressListener | None = None,
    ) -> FFmpegRunResult:
        """Run ffmpeg with the given arguments and supervise it.

        If the calling task is cancelled, ffmpeg is sent SIGTERM, given the
        grace period to exit, then killed, and the cancellation propagates.

        Args:
            args: Arguments after the executable. Must include
                ``-progress pipe:1`` for progress to be reported.
            description: Description for logging (e.g., "720p encode").
            duration: Source duration used to turn out_time into a fraction.
            listener: Receives completion fractions as ffmpeg reports them.

        Returns:
            FFmpegRunResult with the return code and the stderr tail.
        """
        cmd = [str(self._ffmpeg_path), *args]
        logger.debug("Running %s: %s", description, " ".join(cmd))

        process = await asyncio.create_subprocess_exec(  # nosec B603
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stderr_tail: deque[str] = deque(maxlen=self.STDERR_TAIL_LINES)

        async def read_progress() -> None:
            assert process.stdout is not None
            reader = ProgressBlockReader()
            async for raw in process.stdout:
                snapshot = reader.feed(raw.decode("utf-8", errors="replace"))
                if snapshot is not None and listener is not None:
                    listener.on_fraction(snapshot.get_fraction(duration))

        async def read_stderr() -> None:
            # Drained continuously so a chatty ffmpeg never blocks on the pipe
            assert process.stderr is not None
            async for raw in process.stderr:
                line = raw.decode("utf-8", errors="replace").strip()
                if line:
                    stderr_tail.append(line)

        async def drain_and_wait() -> int:
            await asyncio.gather(read_progress(), read_stderr())
            return await process.wait()

        try:
            returncode = await asyncio.wait_for(drain_and_wait(), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("%s timed out after %s seconds", description, self._timeout)
            await self._terminate(process, description)
            return FFmpegRunResult(
                returncode=-1, stderr_tail=tuple(stderr_tail), timed_out=True
            )
        except asyncio.CancelledError:
            logger.info("%s canceled, stopping ffmpeg", description)
            await asyncio.shield(self._terminate(process, description))
            raise

        if returncode != 0:
            logger.warning("%s failed with exit code %d", description, returncode)
        return FFmpegRunResult(returncode=returncode, stderr_tail=tuple(stderr_tail))

    async def _terminate(
        self, process: asyncio.subprocess.Process, description: str
    ) -> None:
        """Stop ffmpeg with SIGTERM, escalating to SIGKILL after the grace period."""
        if process.returncode is not None:
            return
        try:
            process.send_signal(signal.SIGTERM)
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=self._terminate_grace)
        except asyncio.TimeoutError:
            logger.warning(
                "%s did not exit %.1fs after SIGTERM, killing",
                description,
                self._terminate_grace,
            )
            try:
                process.kill()
            except ProcessLookupError:
                return
            await process.wait()
