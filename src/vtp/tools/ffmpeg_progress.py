"""FFmpeg progress parsing utilities.

ffmpeg started with ``-progress pipe:1`` writes key=value lines to stdout in
blocks, each block terminated by a ``progress=continue`` or ``progress=end``
line. This module turns those lines into FFmpegProgress snapshots and
converts them to completion fractions.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class FFmpegProgress:
    """One parsed ffmpeg progress block."""

    frame: int | None = None
    fps: float | None = None
    bitrate: str | None = None
    total_size: int | None = None
    out_time_us: int | None = None  # Output time in microseconds
    speed: str | None = None
    progress: str | None = None  # "continue" or "end"

    @property
    def out_time_seconds(self) -> float | None:
        if self.out_time_us is not None:
            return self.out_time_us / 1_000_000
        return None

    @property
    def is_final(self) -> bool:
        """True for the block ffmpeg writes when encoding finished."""
        return self.progress == "end"

    def get_fraction(self, duration_seconds: float | None) -> float:
        """Completion fraction based on the source duration.

        Args:
            duration_seconds: Total duration of the source in seconds.

        Returns:
            Fraction in [0.0, 1.0]; 0.0 if unknown, 1.0 for the final block.
        """
        if self.is_final:
            return 1.0
        if duration_seconds is None or duration_seconds <= 0:
            return 0.0
        out_time = self.out_time_seconds
        if out_time is None:
            return 0.0
        return max(0.0, min(1.0, out_time / duration_seconds))


# Keys that require numeric conversion (dropped on parse failure)
_INT_KEYS = frozenset(("frame", "total_size", "out_time_us"))
_FLOAT_KEYS = frozenset(("fps",))

_VALID_KEYS = frozenset(
    ("frame", "total_size", "out_time_us", "fps", "bitrate", "speed", "progress")
)


def _convert_progress_value(key: str, value: str) -> int | float | str | None:
    if value == "N/A":
        return None
    if key in _INT_KEYS:
        try:
            return int(value)
        except ValueError:
            return None
    if key in _FLOAT_KEYS:
        try:
            return float(value)
        except ValueError:
            return None
    return value


def parse_progress_line(line: str) -> dict[str, str | int | float]:
    """Parse a single line from FFmpeg -progress output.

    Args:
        line: A line such as "out_time_us=1500000".

    Returns:
        Dictionary with the parsed key-value pair, or empty dict if the line
        is not a recognized progress field.
    """
    line = line.strip()
    if "=" not in line:
        return {}

    key, _, value = line.partition("=")
    key = key.strip()
    if key not in _VALID_KEYS:
        return {}

    converted = _convert_progress_value(key, value.strip())
    if converted is None:
        return {}
    return {key: converted}


def parse_progress_block(block: str) -> FFmpegProgress:
    """Parse a complete FFmpeg progress block.

    Args:
        block: Newline-separated progress lines.

    Returns:
        Parsed FFmpegProgress object.
    """
    result = FFmpegProgress()
    for line in block.splitlines():
        for key, value in parse_progress_line(line).items():
            setattr(result, key, value)
    return result


class ProgressBlockReader:
    """Incremental reader for a stream of -progress lines.

    Feed lines as they arrive; a completed FFmpegProgress is returned each
    time a ``progress=`` terminator line is seen.

    Example:
        reader = ProgressBlockReader()
        for line in lines:
            snapshot = reader.feed(line)
            if snapshot is not None:
                listener.on_fraction(snapshot.get_fraction(duration))
    """

    def __init__(self) -> None:
        self._current = FFmpegProgress()

    def feed(self, line: str) -> FFmpegProgress | None:
        """Consume one line, returning a snapshot at block boundaries."""
        parsed = parse_progress_line(line)
        for key, value in parsed.items():
            setattr(self._current, key, value)
        if "progress" in parsed:
            snapshot = self._current
            self._current = FFmpegProgress()
            return snapshot
        return None
