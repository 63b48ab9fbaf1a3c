"""Tool path resolution for the external media tools.

Paths come from configuration (config file or VTP_FFMPEG_PATH /
VTP_FFPROBE_PATH) with a fallback to the system PATH.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from vtp.domain.exceptions import VTPError

_INSTALL_HINT = (
    "Install ffmpeg, or configure a custom path via the VTP_{env}_PATH "
    "environment variable or the [tools] section of ~/.vtp/config.toml"
)


class ToolNotFoundError(VTPError):
    """Raised when a required external tool cannot be located."""

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(
            f"{tool_name} is not installed or not in PATH. "
            + _INSTALL_HINT.format(env=tool_name.upper())
        )


def require_tool(tool_name: str, configured: Path | None = None) -> Path:
    """Get path to a required tool, raising an error if not available.

    Args:
        tool_name: Name of the tool to find (ffmpeg, ffprobe).
        configured: Explicitly configured path, checked before PATH.

    Returns:
        Path to the tool executable.

    Raises:
        ToolNotFoundError: If the tool is not available.
    """
    if configured is not None:
        if configured.is_file():
            return configured
        raise ToolNotFoundError(tool_name)

    found = shutil.which(tool_name)
    if found is None:
        raise ToolNotFoundError(tool_name)
    return Path(found)

