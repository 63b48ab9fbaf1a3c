"""Wiring of the pipeline collaborators from configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from vtp.catalog.sqlite import SqliteCatalog
from vtp.config.models import VTPConfig
from vtp.events.interface import EventSink
from vtp.executor.interface import require_tool
from vtp.executor.rendition import FFmpegRenditionEncoder
from vtp.executor.thumbnails import FFmpegThumbnailGenerator
from vtp.introspector.ffprobe import FFprobeProber
from vtp.jobs.pipeline import TranscodePipeline
from vtp.jobs.scheduler import JobScheduler
from vtp.storage.local import LocalStorage

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """The long-lived objects a CLI command or the server works with."""

    config: VTPConfig
    storage: LocalStorage
    catalog: SqliteCatalog
    pipeline: TranscodePipeline

    def create_scheduler(self, sink: EventSink | None = None) -> JobScheduler:
        return JobScheduler(
            self.pipeline,
            sink,
            max_concurrent=self.config.scheduler.max_concurrent,
        )


def build_pipeline(
    config: VTPConfig, storage: LocalStorage, catalog: SqliteCatalog
) -> TranscodePipeline:
    """Build a TranscodePipeline backed by ffprobe and ffmpeg.

    Raises:
        ToolNotFoundError: If ffmpeg or ffprobe cannot be located.
    """
    ffmpeg = require_tool("ffmpeg", config.get_tool_path("ffmpeg"))
    ffprobe = require_tool("ffprobe", config.get_tool_path("ffprobe"))
    encoder_config = config.encoder
    logger.debug("Using ffmpeg at %s and ffprobe at %s", ffmpeg, ffprobe)

    return TranscodePipeline(
        prober=FFprobeProber(ffprobe, timeout=encoder_config.probe_timeout_seconds),
        encoder=FFmpegRenditionEncoder(ffmpeg, encoder_config),
        thumbnailer=FFmpegThumbnailGenerator(
            ffmpeg,
            count=encoder_config.thumbnail_count,
            width=encoder_config.thumbnail_width,
        ),
        storage=storage,
        catalog=catalog,
        output_prefix=config.storage.output_prefix,
        work_dir=config.storage.work_dir,
    )


def build_services(config: VTPConfig) -> Services:
    """Create storage, catalog and pipeline for config."""
    storage = LocalStorage(config.storage.root)
    catalog = SqliteCatalog(config.catalog.database_path)
    return Services(
        config=config,
        storage=storage,
        catalog=catalog,
        pipeline=build_pipeline(config, storage, catalog),
    )
