"""Configuration sections.

Each section is a dataclass that checks its own values on construction,
so a VTPConfig that exists is a valid one. Section and field names match
the [section] tables and keys of config.toml.
"""

from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_DATA_DIR = Path.home() / ".vtp"

X264_PRESETS = (
    "ultrafast",
    "superfast",
    "veryfast",
    "faster",
    "fast",
    "medium",
    "slow",
    "slower",
    "veryslow",
)
LOG_LEVELS = ("debug", "info", "warning", "error")
LOG_FORMATS = ("text", "json")


@dataclass
class ToolPathsConfig:
    """Explicit ffmpeg and ffprobe binaries. Unset tools are found on PATH."""

    ffmpeg: Path | None = None
    ffprobe: Path | None = None


@dataclass
class SchedulerConfig:
    # Worker slots: how many videos encode at once
    max_concurrent: int = 2

    def __post_init__(self) -> None:
        if self.max_concurrent < 1:
            raise ValueError(
                f"max_concurrent must be at least 1, got {self.max_concurrent}"
            )


@dataclass
class EncoderConfig:
    """Settings applied to every rendition encode.

    Keyframes land every gop_size frames with scene-cut detection off, so
    segment boundaries line up across renditions.
    """

    segment_duration: int = 10
    preset: str = "medium"
    crf: int = 23
    gop_size: int = 48
    audio_bitrate_kbps: int = 128

    # Per-rendition limit; None lets a stalled encode hold its slot
    timeout_seconds: int | None = None
    # SIGTERM to SIGKILL delay on cancel or timeout
    terminate_grace_seconds: float = 5.0
    probe_timeout_seconds: int = 60

    thumbnail_count: int = 5
    thumbnail_width: int = 320

    def __post_init__(self) -> None:
        if self.segment_duration < 1:
            raise ValueError("segment_duration must be at least 1 second")
        if self.preset not in X264_PRESETS:
            raise ValueError(f"preset must be one of {X264_PRESETS}, got {self.preset}")
        if not 0 <= self.crf <= 51:
            raise ValueError(f"crf must be between 0 and 51, got {self.crf}")
        if self.gop_size < 1:
            raise ValueError("gop_size must be at least 1")
        if self.audio_bitrate_kbps < 1:
            raise ValueError("audio_bitrate_kbps must be positive")
        if self.timeout_seconds is not None and self.timeout_seconds < 1:
            raise ValueError("timeout_seconds must be positive when set")
        if self.terminate_grace_seconds < 0:
            raise ValueError("terminate_grace_seconds must not be negative")
        if self.probe_timeout_seconds < 1:
            raise ValueError("probe_timeout_seconds must be positive")
        if self.thumbnail_count < 1 or self.thumbnail_width < 16:
            raise ValueError("thumbnail_count must be >= 1 and thumbnail_width >= 16")


@dataclass
class StorageConfig:
    """Local object storage.

    Outputs for a video go under ``<output_prefix>/<video_id>/``. Encoder
    scratch files go to work_dir, or the system temp dir when unset.
    """

    root: Path = field(default_factory=lambda: DEFAULT_DATA_DIR / "storage")
    output_prefix: str = "processed"
    work_dir: Path | None = None

    def __post_init__(self) -> None:
        self.output_prefix = self.output_prefix.strip("/")
        if not self.output_prefix:
            raise ValueError("output_prefix must not be empty")


@dataclass
class CatalogConfig:
    database_path: Path = field(
        default_factory=lambda: DEFAULT_DATA_DIR / "catalog.db"
    )


@dataclass
class ServerConfig:
    """Address of the HTTP job API and how long shutdown may take."""

    bind: str = "127.0.0.1"
    port: int = 8421
    shutdown_timeout: float = 30.0

    def __post_init__(self) -> None:
        if not 1 <= self.port <= 65535:
            raise ValueError(f"port must be between 1 and 65535, got {self.port}")
        if self.shutdown_timeout < 0:
            raise ValueError("shutdown_timeout must not be negative")


@dataclass
class LoggingConfig:
    """Log level, format and destination.

    With no file, logs go to stderr. With a file, they also go to stderr
    unless include_stderr is off. Files rotate at max_bytes.
    """

    level: str = "info"
    file: Path | None = None
    format: str = "text"
    include_stderr: bool = True
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5

    def __post_init__(self) -> None:
        if self.level.lower() not in LOG_LEVELS:
            raise ValueError(f"level must be one of {LOG_LEVELS}, got {self.level}")
        if self.format.lower() not in LOG_FORMATS:
            raise ValueError(
                f"format must be one of {LOG_FORMATS}, got {self.format}"
            )


@dataclass
class VTPConfig:
    tools: ToolPathsConfig = field(default_factory=ToolPathsConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    encoder: EncoderConfig = field(default_factory=EncoderConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def get_tool_path(self, tool_name: str) -> Path | None:
        """Configured path for "ffmpeg" or "ffprobe", or None to use PATH."""
        return getattr(self.tools, tool_name.lower(), None)
