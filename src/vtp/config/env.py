"""Typed access to VTP_* environment variables.

EnvReader looks names up under a prefix, so callers ask for
``reader.integer("MAX_CONCURRENT")`` rather than spelling out
``VTP_MAX_CONCURRENT``. A mapping can be injected for tests.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

logger = logging.getLogger(__name__)

ENV_PREFIX = "VTP_"


class EnvReader:
    """Reads VTP settings from the environment.

    Unset and blank variables read as None. Values that cannot be parsed
    are logged and read as None, so a bad variable falls back to the
    config file or the default instead of aborting startup.

    Example:
        reader = EnvReader(env={"VTP_SERVER_PORT": "9000"})
        reader.integer("SERVER_PORT")  # 9000
    """

    def __init__(
        self, env: Mapping[str, str] | None = None, prefix: str = ENV_PREFIX
    ) -> None:
        self._env: Mapping[str, str] = env if env is not None else os.environ
        self._prefix = prefix

    def variable(self, name: str) -> str:
        """Full variable name for a setting name."""
        return f"{self._prefix}{name}"

    def text(self, name: str) -> str | None:
        value = self._env.get(self.variable(name), "").strip()
        return value or None

    def integer(self, name: str) -> int | None:
        value = self.text(name)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            logger.warning(
                "Ignoring %s: %r is not an integer", self.variable(name), value
            )
            return None

    def path(self, name: str) -> Path | None:
        """Directory or file the pipeline creates on demand."""
        value = self.text(name)
        return Path(value).expanduser() if value is not None else None

    def executable(self, name: str) -> Path | None:
        """Path to an external tool. Must point at an existing file."""
        path = self.path(name)
        if path is not None and not path.is_file():
            logger.warning(
                "Ignoring %s: %s is not a file", self.variable(name), path
            )
            return None
        return path
