"""Apply command-line logging options on top of the configured ones."""

from __future__ import annotations

import dataclasses
from pathlib import Path

from vtp.config.models import LoggingConfig


def build_logging_config(
    base: LoggingConfig,
    *,
    level: str | None = None,
    file: Path | None = None,
    format: str | None = None,
    include_stderr: bool | None = None,
) -> LoggingConfig:
    """Copy base with every option that was given replacing its field.

    Raises:
        ValueError: If an override fails LoggingConfig validation.
    """
    overrides = {
        "level": level,
        "file": file,
        "format": format,
        "include_stderr": include_stderr,
    }
    return dataclasses.replace(
        base, **{name: value for name, value in overrides.items() if value is not None}
    )
