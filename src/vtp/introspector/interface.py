"""MediaProber interface for source metadata extraction."""

from pathlib import Path
from typing import Protocol

from vtp.domain.models import ProbeResult


class MediaProber(Protocol):
    """Protocol for source probing implementations.

    A prober reads the container of an uploaded source and reports the
    duration and video dimensions the ladder and progress math rely on.
    """

    async def probe(self, path: Path) -> ProbeResult:
        """Extract metadata from a source file.

        Args:
            path: Path to the source file.

        Returns:
            ProbeResult with duration, dimensions and codecs.

        Raises:
            ProbeError: If the file cannot be read or has no usable video.
        """
        ...
