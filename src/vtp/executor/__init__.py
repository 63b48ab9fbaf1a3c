"""ffmpeg-driven executors: rendition encoding and thumbnail extraction."""

from vtp.executor.ffmpeg_base import FFmpegExecutorBase, FFmpegRunResult
from vtp.executor.interface import ToolNotFoundError, require_tool
from vtp.executor.rendition import (
    EncodedRendition,
    FFmpegRenditionEncoder,
    RenditionEncoder,
    build_rendition_command,
)
from vtp.executor.thumbnails import (
    FFmpegThumbnailGenerator,
    ThumbnailGenerator,
    build_thumbnail_command,
    thumbnail_timestamps,
)

__all__ = [
    "EncodedRendition",
    "FFmpegExecutorBase",
    "FFmpegRenditionEncoder",
    "FFmpegRunResult",
    "FFmpegThumbnailGenerator",
    "RenditionEncoder",
    "ThumbnailGenerator",
    "ToolNotFoundError",
    "build_rendition_command",
    "build_thumbnail_command",
    "require_tool",
    "thumbnail_timestamps",
]
