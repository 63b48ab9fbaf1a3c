"""Tests for ConfigBuilder layering and the layer factories."""

import logging
from pathlib import Path

import pytest

from vtp.config import ConfigBuilder, EnvReader, layer_from_env, layer_from_file


class TestConfigBuilder:
    """Tests for ConfigBuilder precedence."""

    def test_defaults(self) -> None:
        config = ConfigBuilder().build()
        assert config.scheduler.max_concurrent == 2
        assert config.encoder.segment_duration == 10
        assert config.encoder.timeout_seconds is None
        assert config.storage.output_prefix == "processed"
        assert config.server.port == 8421
        assert config.logging.level == "info"

    def test_later_layers_override(self) -> None:
        builder = ConfigBuilder()
        builder.apply({"scheduler": {"max_concurrent": 3}, "encoder": {"crf": 20}})
        builder.apply({"scheduler": {"max_concurrent": 5}})
        config = builder.build()
        assert config.scheduler.max_concurrent == 5
        assert config.encoder.crf == 20

    def test_none_does_not_override(self) -> None:
        builder = ConfigBuilder()
        builder.apply({"server": {"port": 9000}})
        builder.apply({"server": {"port": None}})
        assert builder.build().server.port == 9000

    def test_zero_timeout_means_no_limit(self) -> None:
        builder = ConfigBuilder()
        builder.apply({"encoder": {"timeout_seconds": 0}})
        assert builder.build().encoder.timeout_seconds is None

    def test_invalid_value_raises(self) -> None:
        builder = ConfigBuilder()
        builder.apply({"scheduler": {"max_concurrent": 0}})
        with pytest.raises(ValueError, match="max_concurrent"):
            builder.build()

    def test_unknown_section_rejected(self) -> None:
        with pytest.raises(KeyError):
            ConfigBuilder().apply({"database": {"path": "x"}})


class TestLayerFromFile:
    """Tests for layer_from_file."""

    def test_reads_sections(self) -> None:
        layer = layer_from_file(
            {
                "tools": {"ffmpeg": "/opt/ffmpeg/bin/ffmpeg"},
                "scheduler": {"max_concurrent": 4},
                "encoder": {"preset": "fast", "timeout_seconds": 600},
                "storage": {"root": "/srv/media", "output_prefix": "hls"},
                "server": {"port": 9100},
                "logging": {"format": "json"},
            }
        )
        assert layer["tools"]["ffmpeg"] == Path("/opt/ffmpeg/bin/ffmpeg")
        assert layer["storage"]["root"] == Path("/srv/media")
        assert layer["storage"]["output_prefix"] == "hls"

        builder = ConfigBuilder()
        builder.apply(layer)
        config = builder.build()
        assert config.scheduler.max_concurrent == 4
        assert config.encoder.preset == "fast"
        assert config.encoder.timeout_seconds == 600
        assert config.server.port == 9100
        assert config.logging.format == "json"

    def test_unknown_keys_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            layer = layer_from_file(
                {"scheduler": {"max_concurent": 4}, "database": {"path": "x"}}
            )
        assert layer == {"scheduler": {}}
        assert "scheduler.max_concurent" in caplog.text
        assert "[database]" in caplog.text

    def test_empty_config(self) -> None:
        assert layer_from_file({}) == {}


class TestLayerFromEnv:
    """Tests for layer_from_env."""

    def test_reads_variables(self, temp_dir: Path) -> None:
        ffmpeg = temp_dir / "ffmpeg"
        ffmpeg.touch()
        reader = EnvReader(
            env={
                "VTP_FFMPEG_PATH": str(ffmpeg),
                "VTP_MAX_CONCURRENT": "6",
                "VTP_STORAGE_ROOT": str(temp_dir / "not-yet"),
                "VTP_SERVER_PORT": "9200",
                "VTP_LOG_LEVEL": "debug",
            }
        )
        layer = layer_from_env(reader)
        assert layer["tools"]["ffmpeg"] == ffmpeg
        assert layer["scheduler"]["max_concurrent"] == 6
        assert layer["storage"]["root"] == temp_dir / "not-yet"
        assert layer["server"]["port"] == 9200
        assert layer["logging"]["level"] == "debug"

    def test_unset_variables_are_none(self) -> None:
        layer = layer_from_env(EnvReader(env={}))
        assert layer["server"]["port"] is None
        assert ConfigBuilder().build() == _built(layer)

    def test_missing_tool_path_is_ignored(self, temp_dir: Path) -> None:
        reader = EnvReader(env={"VTP_FFPROBE_PATH": str(temp_dir / "missing")})
        assert layer_from_env(reader)["tools"]["ffprobe"] is None


def _built(layer):
    builder = ConfigBuilder()
    builder.apply(layer)
    return builder.build()
