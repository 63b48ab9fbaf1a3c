"""Configuration for the Video Transcode Pipeline.

Usage:
    from vtp.config import get_config
    config = get_config()
    slots = config.scheduler.max_concurrent
"""

from vtp.config.builder import ConfigBuilder, layer_from_env, layer_from_file
from vtp.config.env import EnvReader
from vtp.config.loader import (
    TomlParseError,
    get_config,
    get_default_config_path,
    load_config_file,
)
from vtp.config.logging_factory import build_logging_config
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

__all__ = [
    # Models
    "CatalogConfig",
    "EncoderConfig",
    "LoggingConfig",
    "SchedulerConfig",
    "ServerConfig",
    "StorageConfig",
    "ToolPathsConfig",
    "VTPConfig",
    # Loading
    "ConfigBuilder",
    "EnvReader",
    "TomlParseError",
    "build_logging_config",
    "get_config",
    "get_default_config_path",
    "layer_from_env",
    "layer_from_file",
    "load_config_file",
]
