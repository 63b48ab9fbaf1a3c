"""Tests for ffprobe output parsing."""

import pytest

from vtp.domain.exceptions import ProbeError
from vtp.introspector.parsers import parse_duration, parse_probe_output


def _probe_data(**overrides) -> dict:
    data = {
        "streams": [
            {
                "index": 0,
                "codec_type": "video",
                "codec_name": "h264",
                "width": 1920,
                "height": 1080,
                "duration": "59.5",
            },
            {"index": 1, "codec_type": "audio", "codec_name": "aac"},
        ],
        "format": {"duration": "60.000", "size": "12345678"},
    }
    data.update(overrides)
    return data


class TestParseDuration:
    """Tests for parse_duration."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("60.5", 60.5), (12, 12.0), (None, None), ("N/A", None), ("0", None)],
    )
    def test_values(self, value, expected) -> None:
        assert parse_duration(value) == expected


class TestParseProbeOutput:
    """Tests for parse_probe_output."""

    def test_full_output(self) -> None:
        result = parse_probe_output(_probe_data())
        assert result.duration_seconds == 60.0
        assert (result.width, result.height) == (1920, 1080)
        assert result.codec == "h264"
        assert result.audio_codec == "aac"
        assert result.file_size == 12345678

    def test_duration_falls_back_to_stream(self) -> None:
        result = parse_probe_output(_probe_data(format={}))
        assert result.duration_seconds == 59.5

    def test_no_audio(self) -> None:
        data = _probe_data()
        data["streams"] = data["streams"][:1]
        assert parse_probe_output(data).audio_codec is None

    def test_skips_cover_art(self) -> None:
        data = _probe_data()
        cover = {
            "codec_type": "video",
            "codec_name": "mjpeg",
            "width": 600,
            "height": 600,
            "disposition": {"attached_pic": 1},
        }
        data["streams"].insert(0, cover)
        assert parse_probe_output(data).codec == "h264"

    def test_no_video_stream(self) -> None:
        data = _probe_data()
        data["streams"] = data["streams"][1:]
        with pytest.raises(ProbeError, match="No video stream"):
            parse_probe_output(data, source="song.mp3")

    def test_no_duration(self) -> None:
        data = _probe_data(format={})
        del data["streams"][0]["duration"]
        with pytest.raises(ProbeError, match="duration"):
            parse_probe_output(data)

    def test_invalid_dimensions(self) -> None:
        data = _probe_data()
        data["streams"][0]["height"] = 0
        with pytest.raises(ProbeError, match="dimensions"):
            parse_probe_output(data)

    def test_empty_output(self) -> None:
        with pytest.raises(ProbeError):
            parse_probe_output({})
