"""HLS rendition encoding with ffmpeg.

One ffmpeg invocation produces one rendition: an H.264/AAC stream scaled
to the rendition's exact dimensions and packaged as a VOD media playlist
with fixed-duration MPEG-TS segments.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from vtp.config.models import EncoderConfig
from vtp.domain.exceptions import EncodeError
from vtp.domain.models import RenditionSpec
from vtp.executor.ffmpeg_base import FFmpegExecutorBase
from vtp.pipeline.manifest import parse_media_playlist, playlist_name

if TYPE_CHECKING:
    from vtp.jobs.progress import ProgressListener

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncodedRendition:
    """Local output of a successful rendition encode."""

    spec: RenditionSpec
    playlist_path: Path
    segment_paths: tuple[Path, ...]


class RenditionEncoder(Protocol):
    """Protocol for rendition encoder implementations."""

    async def encode(
        self,
        source: Path,
        spec: RenditionSpec,
        output_dir: Path,
        listener: ProgressListener,
        duration: float | None = None,
    ) -> EncodedRendition:
        """Encode one rendition of source into output_dir.

        Args:
            source: Local path to the source video.
            spec: Rendition to produce.
            output_dir: Directory for the playlist and segments.
            listener: Receives completion fractions for this rendition.
            duration: Source duration, used to compute fractions.

        Returns:
            EncodedRendition with local paths of the produced files.

        Raises:
            EncodeError: If the encoder fails.
            asyncio.CancelledError: If cancelled; the encoder process has
                been stopped before this propagates.
        """
        ...


def segment_pattern(label: str) -> str:
    """ffmpeg segment filename template for a rendition."""
    return f"{label}_%03d.ts"


def build_rendition_command(
    source: Path,
    spec: RenditionSpec,
    output_dir: Path,
    config: EncoderConfig | None = None,
) -> list[str]:
    """Build ffmpeg arguments (without the executable) for one rendition.

    Args:
        source: Source video path.
        spec: Rendition to produce.
        output_dir: Directory the playlist and segments are written to.
        config: Encoder settings; defaults when None.

    Returns:
        Argument list suitable for FFmpegExecutorBase.run_ffmpeg().
    """
    config = config or EncoderConfig()
    kbps = spec.bitrate_kbps
    return [
        "-hide_banner",
        "-nostats",
        "-y",
        "-i",
        str(source),
        # Video
        "-map",
        "0:v:0",
        "-c:v",
        "libx264",
        "-preset",
        config.preset,
        "-crf",
        str(config.crf),
        "-maxrate",
        f"{kbps}k",
        "-bufsize",
        f"{kbps * 2}k",
        "-vf",
        f"scale={spec.width}:{spec.height}",
        "-profile:v",
        "main",
        "-g",
        str(config.gop_size),
        "-keyint_min",
        str(config.gop_size),
        "-sc_threshold",
        "0",
        # Audio (optional so silent sources still encode)
        "-map",
        "0:a:0?",
        "-c:a",
        "aac",
        "-b:a",
        f"{config.audio_bitrate_kbps}k",
        "-ac",
        "2",
        # Packaging
        "-f",
        "hls",
        "-hls_time",
        str(config.segment_duration),
        "-hls_list_size",
        "0",
        "-hls_playlist_type",
        "vod",
        "-hls_segment_filename",
        str(output_dir / segment_pattern(spec.label)),
        "-progress",
        "pipe:1",
        str(output_dir / playlist_name(spec.label)),
    ]


class FFmpegRenditionEncoder(FFmpegExecutorBase):
    """ffmpeg-based implementation of the RenditionEncoder protocol."""

    def __init__(
        self,
        ffmpeg_path: Path,
        config: EncoderConfig | None = None,
    ) -> None:
        self._config = config or EncoderConfig()
        super().__init__(
            ffmpeg_path,
            timeout=self._config.timeout_seconds,
            terminate_grace=self._config.terminate_grace_seconds,
        )

    async def encode(
        self,
        source: Path,
        spec: RenditionSpec,
        output_dir: Path,
        listener: ProgressListener,
        duration: float | None = None,
    ) -> EncodedRendition:
        output_dir.mkdir(parents=True, exist_ok=True)
        args = build_rendition_command(source, spec, output_dir, self._config)

        logger.info(
            "Encoding %s (%s @ %dk)", spec.label, spec.resolution, spec.bitrate_kbps
        )
        result = await self.run_ffmpeg(
            args,
            description=f"{spec.label} encode",
            duration=duration,
            listener=listener,
        )
        if not result.success:
            raise EncodeError(spec.label, result.describe())

        playlist_path = output_dir / playlist_name(spec.label)
        try:
            playlist_text = playlist_path.read_text(encoding="utf-8")
            segment_names = parse_media_playlist(playlist_text)
        except (OSError, ValueError) as e:
            raise EncodeError(spec.label, f"unreadable playlist: {e}") from e

        segment_paths = tuple(output_dir / name for name in segment_names)
        missing = [path.name for path in segment_paths if not path.exists()]
        if not segment_paths or missing:
            raise EncodeError(
                spec.label,
                f"playlist lists missing segments: {missing}"
                if missing
                else "no segments produced",
            )

        listener.on_fraction(1.0)
        return EncodedRendition(
            spec=spec, playlist_path=playlist_path, segment_paths=segment_paths
        )
