"""Tests for the config file loader and get_config precedence."""

from pathlib import Path

import pytest

from vtp.config import (
    EnvReader,
    TomlParseError,
    get_config,
    get_default_config_path,
    load_config_file,
)


class TestLoadConfigFile:
    """Tests for load_config_file."""

    def test_missing_file_is_empty(self, temp_dir: Path) -> None:
        assert load_config_file(temp_dir / "none.toml") == {}

    def test_parses_toml(self, temp_dir: Path) -> None:
        path = temp_dir / "config.toml"
        path.write_text("[scheduler]\nmax_concurrent = 3\n")
        assert load_config_file(path) == {"scheduler": {"max_concurrent": 3}}

    def test_invalid_toml_lenient(self, temp_dir: Path) -> None:
        path = temp_dir / "config.toml"
        path.write_text("[scheduler\n")
        assert load_config_file(path) == {}

    def test_invalid_toml_strict(self, temp_dir: Path) -> None:
        path = temp_dir / "config.toml"
        path.write_text("[scheduler\n")
        with pytest.raises(TomlParseError) as exc_info:
            load_config_file(path, strict=True)
        assert exc_info.value.path == path

    def test_unreadable_path_lenient(self, temp_dir: Path) -> None:
        assert load_config_file(temp_dir) == {}


class TestGetDefaultConfigPath:
    """Tests for get_default_config_path."""

    def test_env_override(self, temp_dir: Path) -> None:
        reader = EnvReader(env={"VTP_CONFIG_PATH": str(temp_dir / "custom.toml")})
        assert get_default_config_path(reader) == temp_dir / "custom.toml"

    def test_default_location(self) -> None:
        path = get_default_config_path(EnvReader(env={}))
        assert path == Path.home() / ".vtp" / "config.toml"

    def test_env_config_path_used_by_get_config(self, temp_dir: Path) -> None:
        path = temp_dir / "custom.toml"
        path.write_text("[server]\nport = 9300\n")
        reader = EnvReader(env={"VTP_CONFIG_PATH": str(path)})
        assert get_config(env_reader=reader).server.port == 9300


class TestGetConfig:
    """Tests for file < env < cli precedence."""

    def test_precedence(self, temp_dir: Path) -> None:
        path = temp_dir / "config.toml"
        path.write_text(
            "[scheduler]\nmax_concurrent = 3\n"
            "[server]\nport = 9000\nbind = '0.0.0.0'\n"
        )
        reader = EnvReader(env={"VTP_SERVER_PORT": "9100", "VTP_MAX_CONCURRENT": "4"})

        config = get_config(path, max_concurrent=5, env_reader=reader)

        assert config.scheduler.max_concurrent == 5  # cli
        assert config.server.port == 9100  # env
        assert config.server.bind == "0.0.0.0"  # file

    def test_storage_root_override(self, temp_dir: Path) -> None:
        config = get_config(
            temp_dir / "none.toml",
            storage_root=temp_dir / "media",
            env_reader=EnvReader(env={}),
        )
        assert config.storage.root == temp_dir / "media"
