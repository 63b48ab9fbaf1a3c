"""Load VTPConfig from defaults, config.toml, the environment and the CLI.

Later layers win:

    defaults < ~/.vtp/config.toml < VTP_* variables < command-line options

``VTP_CONFIG_PATH`` points at a different config file. The variables read
are listed in ``layer_from_env``.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from vtp.config.builder import ConfigBuilder, layer_from_env, layer_from_file
from vtp.config.env import EnvReader
from vtp.config.models import DEFAULT_DATA_DIR, VTPConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = DEFAULT_DATA_DIR / "config.toml"


class TomlParseError(ValueError):
    """The config file exists but could not be read as TOML."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Cannot read config file {path}: {reason}")
        self.path = path
        self.reason = reason


def get_default_config_path(env_reader: EnvReader | None = None) -> Path:
    """VTP_CONFIG_PATH if set, else ~/.vtp/config.toml."""
    reader = env_reader or EnvReader()
    return reader.path("CONFIG_PATH") or DEFAULT_CONFIG_FILE


def load_config_file(path: Path, *, strict: bool = False) -> dict[str, Any]:
    """Parse a TOML config file.

    A missing file is an empty config. A broken one raises TomlParseError
    when strict, otherwise it is logged and treated as empty.
    """
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        return {}
    except (tomllib.TOMLDecodeError, OSError) as e:
        if strict:
            raise TomlParseError(path, str(e)) from e
        logger.warning("Ignoring config file %s: %s", path, e)
        return {}


def get_config(
    config_path: Path | None = None,
    *,
    ffmpeg_path: Path | None = None,
    ffprobe_path: Path | None = None,
    database_path: Path | None = None,
    storage_root: Path | None = None,
    max_concurrent: int | None = None,
    env_reader: EnvReader | None = None,
    strict: bool = False,
) -> VTPConfig:
    """Resolve the full configuration.

    Args:
        config_path: Config file to read instead of the default location.
        ffmpeg_path: Command-line override for the ffmpeg binary.
        ffprobe_path: Command-line override for the ffprobe binary.
        database_path: Command-line override for the catalog database.
        storage_root: Command-line override for the storage root.
        max_concurrent: Command-line override for the worker slot count.
        env_reader: Environment to read, os.environ by default.
        strict: Raise TomlParseError instead of ignoring a broken file.

    Raises:
        TomlParseError: If strict and the config file cannot be parsed.
        ValueError: If a resolved value is invalid.
    """
    reader = env_reader or EnvReader()
    path = config_path or get_default_config_path(reader)

    builder = ConfigBuilder()
    builder.apply(layer_from_file(load_config_file(path, strict=strict)))
    builder.apply(layer_from_env(reader))
    builder.apply(
        {
            "tools": {"ffmpeg": ffmpeg_path, "ffprobe": ffprobe_path},
            "catalog": {"database_path": database_path},
            "storage": {"root": storage_root},
            "scheduler": {"max_concurrent": max_concurrent},
        }
    )
    return builder.build()
