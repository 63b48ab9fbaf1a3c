"""Poster and thumbnail extraction with ffmpeg."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from vtp.domain.exceptions import ThumbnailError
from vtp.executor.ffmpeg_base import FFmpegExecutorBase

logger = logging.getLogger(__name__)

DEFAULT_THUMBNAIL_COUNT = 5
DEFAULT_THUMBNAIL_WIDTH = 320


class ThumbnailGenerator(Protocol):
    """Protocol for thumbnail generator implementations."""

    async def generate(
        self, source: Path, duration: float, output_dir: Path
    ) -> list[Path]:
        """Extract still frames from source.

        Returns:
            Paths of the extracted images, in timestamp order. At least one.

        Raises:
            ThumbnailError: If no frame could be extracted.
        """
        ...


def thumbnail_timestamps(
    duration: float, count: int = DEFAULT_THUMBNAIL_COUNT
) -> list[float]:
    """Evenly spaced timestamps that avoid the first and last frame.

    For count frames the timestamps are duration * i / (count + 1) for
    i = 1..count.
    """
    if duration <= 0:
        raise ValueError(f"duration must be positive, got {duration}")
    if count < 1:
        raise ValueError(f"count must be at least 1, got {count}")
    step = duration / (count + 1)
    return [step * i for i in range(1, count + 1)]


def build_thumbnail_command(
    source: Path,
    timestamp: float,
    output_path: Path,
    width: int = DEFAULT_THUMBNAIL_WIDTH,
) -> list[str]:
    """Build ffmpeg arguments (without the executable) for one frame."""
    return [
        "-hide_banner",
        "-nostats",
        "-y",
        "-ss",
        f"{timestamp:.3f}",
        "-i",
        str(source),
        "-frames:v",
        "1",
        "-vf",
        # -2 keeps the aspect ratio with an even height
        f"scale={width}:-2",
        "-q:v",
        "3",
        str(output_path),
    ]


class FFmpegThumbnailGenerator(FFmpegExecutorBase):
    """ffmpeg-based implementation of the ThumbnailGenerator protocol.

    A frame that fails to extract is skipped; the call fails only when
    every frame failed.
    """

    def __init__(
        self,
        ffmpeg_path: Path,
        count: int = DEFAULT_THUMBNAIL_COUNT,
        width: int = DEFAULT_THUMBNAIL_WIDTH,
        timeout: float | None = 60,
    ) -> None:
        super().__init__(ffmpeg_path, timeout=timeout)
        self._count = count
        self._width = width

    async def generate(
        self, source: Path, duration: float, output_dir: Path
    ) -> list[Path]:
        output_dir.mkdir(parents=True, exist_ok=True)
        produced: list[Path] = []

        for index, timestamp in enumerate(
            thumbnail_timestamps(duration, self._count), start=1
        ):
            output_path = output_dir / f"thumb_{index}.jpg"
            result = await self.run_ffmpeg(
                build_thumbnail_command(source, timestamp, output_path, self._width),
                description=f"thumbnail {index} at {timestamp:.2f}s",
            )
            if result.success and output_path.exists():
                produced.append(output_path)
            else:
                logger.warning(
                    "Skipping thumbnail %d at %.2fs: %s",
                    index,
                    timestamp,
                    result.describe(),
                )

        if not produced:
            raise ThumbnailError(f"No thumbnails could be extracted from {source.name}")
        return produced
