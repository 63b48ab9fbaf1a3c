"""Tests for the rendition encoder and thumbnail generator.

Shell scripts stand in for ffmpeg and write the files ffmpeg would write
to the paths found in the command line.
"""

import stat
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

from vtp.domain.exceptions import EncodeError, ThumbnailError
from vtp.domain.models import RenditionSpec
from vtp.executor.rendition import FFmpegRenditionEncoder
from vtp.executor.thumbnails import FFmpegThumbnailGenerator
from vtp.jobs.progress import NullProgressListener

pytestmark = pytest.mark.skipif(
    sys.platform == "win32", reason="uses POSIX shell scripts"
)

SPEC_480 = RenditionSpec("480p", 854, 480, 1000, 0.4)

# Last argument is the output path for both executors
LAST_ARG = 'for last; do :; done\ndir=$(dirname "$last")\n'

FAKE_HLS_ENCODER = LAST_ARG + (
    'label=$(basename "$last" .m3u8)\n'
    'printf x > "$dir/${label}_000.ts"\n'
    'printf x > "$dir/${label}_001.ts"\n'
    "printf '#EXTM3U\\n#EXTINF:10.0,\\n%s_000.ts\\n#EXTINF:4.0,\\n%s_001.ts\\n"
    "#EXT-X-ENDLIST\\n' \"$label\" \"$label\" > \"$last\"\n"
    "echo progress=end\n"
)


@pytest.fixture
def make_script(temp_dir: Path) -> Callable[[str], Path]:
    def _make(body: str) -> Path:
        path = temp_dir / "fake-ffmpeg"
        path.write_text("#!/bin/sh\n" + body + "\n")
        path.chmod(path.stat().st_mode | stat.S_IEXEC)
        return path

    return _make


class RecordingListener:
    def __init__(self) -> None:
        self.fractions: list[float] = []

    def on_fraction(self, fraction: float) -> None:
        self.fractions.append(fraction)


class TestFFmpegRenditionEncoder:
    """Tests for FFmpegRenditionEncoder.encode."""

    @pytest.mark.asyncio
    async def test_collects_segments(self, make_script, temp_dir: Path) -> None:
        encoder = FFmpegRenditionEncoder(make_script(FAKE_HLS_ENCODER))
        listener = RecordingListener()
        output_dir = temp_dir / "hls" / "480p"

        encoded = await encoder.encode(
            temp_dir / "in.mp4", SPEC_480, output_dir, listener, duration=14.0
        )

        assert encoded.spec == SPEC_480
        assert encoded.playlist_path == output_dir / "480p.m3u8"
        assert [p.name for p in encoded.segment_paths] == [
            "480p_000.ts",
            "480p_001.ts",
        ]
        assert listener.fractions[-1] == 1.0

    @pytest.mark.asyncio
    async def test_nonzero_exit_raises(self, make_script, temp_dir: Path) -> None:
        encoder = FFmpegRenditionEncoder(make_script("echo 'bad input' >&2\nexit 1"))
        with pytest.raises(EncodeError) as exc_info:
            await encoder.encode(
                temp_dir / "in.mp4", SPEC_480, temp_dir / "out", NullProgressListener()
            )
        assert exc_info.value.rendition == "480p"
        assert "bad input" in exc_info.value.exit_info

    @pytest.mark.asyncio
    async def test_missing_segment_raises(self, make_script, temp_dir: Path) -> None:
        script = LAST_ARG + "printf '#EXTM3U\\nghost_000.ts\\n' > \"$last\""
        encoder = FFmpegRenditionEncoder(make_script(script))
        with pytest.raises(EncodeError, match="missing segments"):
            await encoder.encode(
                temp_dir / "in.mp4", SPEC_480, temp_dir / "out", NullProgressListener()
            )

    @pytest.mark.asyncio
    async def test_missing_playlist_raises(self, make_script, temp_dir: Path) -> None:
        encoder = FFmpegRenditionEncoder(make_script("exit 0"))
        with pytest.raises(EncodeError, match="unreadable playlist"):
            await encoder.encode(
                temp_dir / "in.mp4", SPEC_480, temp_dir / "out", NullProgressListener()
            )


class TestFFmpegThumbnailGenerator:
    """Tests for FFmpegThumbnailGenerator.generate."""

    @pytest.mark.asyncio
    async def test_generates_count_images(self, make_script, temp_dir: Path) -> None:
        generator = FFmpegThumbnailGenerator(
            make_script(LAST_ARG + 'printf x > "$last"'), count=5
        )
        images = await generator.generate(temp_dir / "in.mp4", 60.0, temp_dir / "th")
        assert [p.name for p in images] == [f"thumb_{i}.jpg" for i in range(1, 6)]

    @pytest.mark.asyncio
    async def test_skips_failed_frames(self, make_script, temp_dir: Path) -> None:
        script = LAST_ARG + (
            'case "$last" in *thumb_2.jpg) exit 1;; esac\nprintf x > "$last"'
        )
        generator = FFmpegThumbnailGenerator(make_script(script), count=3)
        images = await generator.generate(temp_dir / "in.mp4", 30.0, temp_dir / "th")
        assert [p.name for p in images] == ["thumb_1.jpg", "thumb_3.jpg"]

    @pytest.mark.asyncio
    async def test_all_failed_raises(self, make_script, temp_dir: Path) -> None:
        generator = FFmpegThumbnailGenerator(make_script("exit 1"), count=2)
        with pytest.raises(ThumbnailError):
            await generator.generate(temp_dir / "in.mp4", 30.0, temp_dir / "th")
