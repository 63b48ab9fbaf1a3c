"""Layered configuration.

A layer is a mapping of section name to field values, shaped like the
TOML file::

    {"scheduler": {"max_concurrent": 4}, "storage": {"root": Path(...)}}

ConfigBuilder merges layers in the order they are applied, so later
layers win. None never overrides: it means the layer has no opinion.
Fields no layer sets keep their dataclass defaults.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import fields
from pathlib import Path
from typing import Any

from vtp.config.env import EnvReader
from vtp.config.models import (
    CatalogConfig,
    EncoderConfig,
    LoggingConfig,
    SchedulerConfig,
    ServerConfig,
    StorageConfig,
    ToolPathsConfig,
    VTPConfig,
)

logger = logging.getLogger(__name__)

ConfigLayer = Mapping[str, Mapping[str, Any]]

SECTIONS: dict[str, type] = {
    "tools": ToolPathsConfig,
    "scheduler": SchedulerConfig,
    "encoder": EncoderConfig,
    "storage": StorageConfig,
    "catalog": CatalogConfig,
    "server": ServerConfig,
    "logging": LoggingConfig,
}

# File values that name files or directories
_PATH_FIELDS = {
    ("tools", "ffmpeg"),
    ("tools", "ffprobe"),
    ("storage", "root"),
    ("storage", "work_dir"),
    ("catalog", "database_path"),
    ("logging", "file"),
}


class ConfigBuilder:
    """Merges configuration layers into a VTPConfig.

    Example:
        builder = ConfigBuilder()
        builder.apply(layer_from_file(file_config))
        builder.apply(layer_from_env(EnvReader()))
        builder.apply({"scheduler": {"max_concurrent": 8}})
        config = builder.build()
    """

    def __init__(self) -> None:
        self._sections: dict[str, dict[str, Any]] = {name: {} for name in SECTIONS}

    def apply(self, layer: ConfigLayer) -> None:
        for section, values in layer.items():
            if section not in SECTIONS:
                raise KeyError(f"Unknown config section: {section}")
            self._sections[section].update(
                (key, value) for key, value in values.items() if value is not None
            )

    def build(self) -> VTPConfig:
        """Construct every section from the merged values.

        Raises:
            ValueError: If a merged value fails section validation.
        """
        encoder = self._sections["encoder"]
        # A timeout of 0 disables it
        if encoder.get("timeout_seconds") == 0:
            encoder = {**encoder, "timeout_seconds": None}

        return VTPConfig(
            tools=ToolPathsConfig(**self._sections["tools"]),
            scheduler=SchedulerConfig(**self._sections["scheduler"]),
            encoder=EncoderConfig(**encoder),
            storage=StorageConfig(**self._sections["storage"]),
            catalog=CatalogConfig(**self._sections["catalog"]),
            server=ServerConfig(**self._sections["server"]),
            logging=LoggingConfig(**self._sections["logging"]),
        )


def layer_from_file(file_config: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    """Turn a parsed config.toml into a layer.

    Unknown sections and keys are logged and skipped, so a typo in the file
    does not stop the service. Path-valued fields become expanded Paths.
    """
    layer: dict[str, dict[str, Any]] = {}
    for section, values in file_config.items():
        section_type = SECTIONS.get(section)
        if section_type is None or not isinstance(values, Mapping):
            logger.warning("Ignoring unknown config section [%s]", section)
            continue
        known = {f.name for f in fields(section_type)}
        layer[section] = {}
        for key, value in values.items():
            if key not in known:
                logger.warning("Ignoring unknown config key %s.%s", section, key)
            elif (section, key) in _PATH_FIELDS and value:
                layer[section][key] = Path(value).expanduser()
            else:
                layer[section][key] = value
    return layer


def layer_from_env(reader: EnvReader) -> dict[str, dict[str, Any]]:
    """Read the supported VTP_* variables into a layer."""
    return {
        "tools": {
            "ffmpeg": reader.executable("FFMPEG_PATH"),
            "ffprobe": reader.executable("FFPROBE_PATH"),
        },
        "scheduler": {"max_concurrent": reader.integer("MAX_CONCURRENT")},
        "encoder": {"timeout_seconds": reader.integer("ENCODE_TIMEOUT")},
        "storage": {
            "root": reader.path("STORAGE_ROOT"),
            "work_dir": reader.path("WORK_DIR"),
        },
        "catalog": {"database_path": reader.path("DATABASE_PATH")},
        "server": {
            "bind": reader.text("SERVER_BIND"),
            "port": reader.integer("SERVER_PORT"),
        },
        "logging": {
            "level": reader.text("LOG_LEVEL"),
            "file": reader.path("LOG_FILE"),
            "format": reader.text("LOG_FORMAT"),
        },
    }
