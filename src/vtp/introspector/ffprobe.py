"""FFprobe-based implementation of the MediaProber protocol."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from vtp.domain.exceptions import ProbeError
from vtp.domain.models import ProbeResult
from vtp.introspector.parsers import parse_probe_output

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT = 60


class FFprobeProber:
    """ffprobe-based implementation of the MediaProber protocol.

    Runs ffprobe as an asyncio subprocess so probing never blocks the
    event loop that the scheduler and other jobs share.
    """

    def __init__(
        self, ffprobe_path: Path, timeout: float = DEFAULT_PROBE_TIMEOUT
    ) -> None:
        """Initialize the prober.

        Args:
            ffprobe_path: Path to the ffprobe executable (see require_tool).
            timeout: Seconds before a hung ffprobe is killed.
        """
        self._ffprobe_path = ffprobe_path
        self._timeout = timeout

    async def probe(self, path: Path) -> ProbeResult:
        """Extract metadata from a source file.

        Raises:
            ProbeError: If the file is missing, ffprobe fails or times out,
                the output is not JSON, or it describes no usable video.
        """
        if not path.exists():
            raise ProbeError(f"File not found: {path}")

        data = await self._run_ffprobe(path)
        return parse_probe_output(data, source=str(path))

    async def _run_ffprobe(self, path: Path) -> dict:
        cmd = [
            str(self._ffprobe_path),
            "-v",
            "error",
            "-print_format",
            "json",
            "-show_streams",
            "-show_format",
            str(path),
        ]
        logger.debug("Running ffprobe: %s", " ".join(cmd))

        process = await asyncio.create_subprocess_exec(  # nosec B603
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self._timeout
            )
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise ProbeError(
                f"ffprobe timed out for {path} after {self._timeout}s"
            ) from e
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

        if process.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            raise ProbeError(
                f"ffprobe failed for {path} (exit {process.returncode}): "
                f"{message or 'no output'}"
            )

        try:
            data = json.loads(stdout.decode("utf-8", errors="replace"))
        except json.JSONDecodeError as e:
            raise ProbeError(f"Invalid ffprobe output for {path}: {e}") from e

        if not isinstance(data, dict) or "streams" not in data:
            raise ProbeError(
                f"Missing 'streams' in ffprobe output for {path}. "
                "File may be corrupted or not a valid media file."
            )
        return data
