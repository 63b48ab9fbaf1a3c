"""Tests for building services from configuration."""

from pathlib import Path
from unittest.mock import patch

import pytest

from vtp.config.models import (
    CatalogConfig,
    SchedulerConfig,
    StorageConfig,
    VTPConfig,
)
from vtp.executor.interface import ToolNotFoundError
from vtp.jobs.factory import build_services
from vtp.jobs.pipeline import TranscodePipeline


@pytest.fixture
def config(temp_dir: Path) -> VTPConfig:
    return VTPConfig(
        scheduler=SchedulerConfig(max_concurrent=3),
        storage=StorageConfig(root=temp_dir / "storage", output_prefix="out"),
        catalog=CatalogConfig(database_path=temp_dir / "vtp.db"),
    )


class TestBuildServices:
    """Tests for build_services."""

    def test_builds_everything(self, config: VTPConfig, temp_dir: Path) -> None:
        with patch(
            "vtp.jobs.factory.require_tool",
            side_effect=lambda name, configured=None: Path(f"/usr/bin/{name}"),
        ):
            services = build_services(config)

        assert isinstance(services.pipeline, TranscodePipeline)
        assert services.storage.root == (temp_dir / "storage").resolve()
        assert services.catalog.db_path == temp_dir / "vtp.db"
        assert services.pipeline.output_prefix_for("v1") == "out/v1"

    def test_scheduler_uses_configured_slots(self, config: VTPConfig) -> None:
        with patch("vtp.jobs.factory.require_tool", return_value=Path("/bin/true")):
            services = build_services(config)
        assert services.create_scheduler().max_concurrent == 3

    def test_missing_tool(self, config: VTPConfig) -> None:
        with patch(
            "vtp.jobs.factory.require_tool",
            side_effect=ToolNotFoundError("ffmpeg"),
        ):
            with pytest.raises(ToolNotFoundError):
                build_services(config)
