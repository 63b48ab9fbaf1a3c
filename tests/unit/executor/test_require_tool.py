"""Tests for tool path resolution."""

from pathlib import Path
from unittest.mock import patch

import pytest

from vtp.executor.interface import ToolNotFoundError, require_tool


class TestRequireTool:
    """Tests for require_tool."""

    def test_configured_path(self, temp_dir: Path) -> None:
        tool = temp_dir / "ffmpeg"
        tool.touch()
        assert require_tool("ffmpeg", tool) == tool

    def test_configured_path_missing(self, temp_dir: Path) -> None:
        with pytest.raises(ToolNotFoundError) as exc_info:
            require_tool("ffmpeg", temp_dir / "nope")
        assert exc_info.value.tool_name == "ffmpeg"
        assert "VTP_FFMPEG_PATH" in str(exc_info.value)

    @patch("vtp.executor.interface.shutil.which", return_value="/usr/bin/ffprobe")
    def test_found_on_path(self, mock_which) -> None:
        assert require_tool("ffprobe") == Path("/usr/bin/ffprobe")
        mock_which.assert_called_once_with("ffprobe")

    @patch("vtp.executor.interface.shutil.which", return_value=None)
    def test_not_on_path(self, mock_which) -> None:
        with pytest.raises(ToolNotFoundError):
            require_tool("ffprobe")
