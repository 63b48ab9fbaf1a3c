"""Pure parsing functions for ffprobe JSON output.

These functions transform ffprobe JSON data into a ProbeResult. All functions
are pure (no I/O, no side effects) for easy testing.
"""

from __future__ import annotations

import logging
from typing import Any

from vtp.domain.exceptions import ProbeError
from vtp.domain.models import ProbeResult

logger = logging.getLogger(__name__)


def parse_duration(value: Any) -> float | None:
    """Parse a duration value from ffprobe into seconds.

    Args:
        value: Duration string from ffprobe (e.g., "3600.000") or None.

    Returns:
        Duration in seconds, or None if missing, unparseable or not positive.
    """
    if value is None:
        return None
    try:
        duration = float(value)
    except (ValueError, TypeError):
        return None
    if duration <= 0:
        return None
    return duration


def _parse_positive_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        parsed = int(value)
    except (ValueError, TypeError):
        return None
    return parsed if parsed > 0 else None


def _first_stream(streams: list[dict[str, Any]], codec_type: str) -> dict | None:
    for stream in streams:
        if stream.get("codec_type") != codec_type:
            continue
        # Cover art is reported as a video stream; skip it
        if stream.get("disposition", {}).get("attached_pic") == 1:
            continue
        return stream
    return None


def parse_probe_output(data: dict[str, Any], source: str = "<source>") -> ProbeResult:
    """Parse ffprobe JSON output into a ProbeResult.

    Duration comes from the container format, falling back to the video
    stream's own duration when the container does not report one.

    Args:
        data: Parsed JSON from ``ffprobe -show_streams -show_format``.
        source: Source name used in error messages.

    Returns:
        ProbeResult for the first video stream.

    Raises:
        ProbeError: If there is no video stream, no positive duration or
            no positive dimensions.
    """
    streams = data.get("streams") or []
    fmt = data.get("format") or {}

    video = _first_stream(streams, "video")
    if video is None:
        raise ProbeError(f"No video stream found in {source}")

    width = _parse_positive_int(video.get("width"))
    height = _parse_positive_int(video.get("height"))
    if width is None or height is None:
        raise ProbeError(f"Video stream in {source} has no valid dimensions")

    duration = parse_duration(fmt.get("duration"))
    if duration is None:
        duration = parse_duration(video.get("duration"))
    if duration is None:
        raise ProbeError(f"Could not determine a positive duration for {source}")

    audio = _first_stream(streams, "audio")
    file_size = _parse_positive_int(fmt.get("size"))

    logger.debug(
        "Probed %s: %.2fs %dx%d %s",
        source,
        duration,
        width,
        height,
        video.get("codec_name"),
    )

    return ProbeResult(
        duration_seconds=duration,
        width=width,
        height=height,
        codec=video.get("codec_name") or "unknown",
        audio_codec=audio.get("codec_name") if audio else None,
        file_size=file_size,
    )
