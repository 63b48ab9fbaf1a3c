"""CLI command to process local files without running the server."""

from __future__ import annotations

import asyncio
import logging
import re
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

import click

from vtp.cli import get_cli_config
from vtp.cli.exit_codes import ExitCode
from vtp.config.models import SchedulerConfig
from vtp.domain.enums import EventType, VideoStatus
from vtp.domain.exceptions import StorageError
from vtp.domain.models import VIDEO_ID_PATTERN
from vtp.events.sinks import CompositeEventSink, LoggingEventSink
from vtp.executor.interface import ToolNotFoundError
from vtp.jobs.factory import Services, build_services

logger = logging.getLogger(__name__)

UPLOAD_PREFIX = "uploads"


def video_id_from_path(path: Path) -> str:
    """Derive a valid video id from a file name.

    Raises:
        click.BadParameter: If nothing usable is left of the name.
    """
    candidate = re.sub(r"[^A-Za-z0-9_-]+", "-", path.stem).lstrip("-_")[:128]
    if not VIDEO_ID_PATTERN.match(candidate):
        raise click.BadParameter(
            f"cannot derive a video id from {path.name!r}, use --video-id"
        )
    return candidate


class ConsoleProgressSink:
    """Writes one line per event to stderr."""

    def publish(
        self, video_id: str, event_type: EventType, payload: dict[str, Any]
    ) -> None:
        if event_type == EventType.PROGRESS:
            line = f"[{video_id}] {payload['percent']:5.1f}% {payload['stage']}"
        elif event_type == EventType.COMPLETED:
            line = f"[{video_id}] done: {payload['manifest_key']}"
        else:
            line = f"[{video_id}] failed ({payload['kind']}): {payload['message']}"
        click.echo(line, err=True)


def _stage_upload(services: Services, video_id: str, source: Path) -> str:
    """Copy a local file into storage and register it as uploaded."""
    key = f"{UPLOAD_PREFIX}/{video_id}/{source.name}"
    with source.open("rb") as f:
        services.storage.write(key, f)
    if not services.catalog.register(video_id, key):
        logger.info("Video %s already registered, reprocessing", video_id)
    return key


async def _process_all(
    services: Services, uploads: list[tuple[str, str]], quiet: bool
) -> None:
    sinks: list[Any] = [LoggingEventSink()]
    if not quiet:
        sinks.append(ConsoleProgressSink())
    async with services.create_scheduler(CompositeEventSink(sinks)) as scheduler:
        for video_id, key in uploads:
            await scheduler.enqueue(video_id, key)
        await scheduler.join()


@click.command("process")
@click.argument(
    "sources",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--video-id",
    default=None,
    help="Video id to use (only with a single SOURCE; default: file name).",
)
@click.option(
    "--max-concurrent",
    "-j",
    type=click.IntRange(min=1),
    default=None,
    help="Number of videos to encode at the same time.",
)
@click.option("--quiet", "-q", is_flag=True, help="Do not print progress.")
@click.pass_context
def process_command(
    ctx: click.Context,
    sources: tuple[Path, ...],
    video_id: str | None,
    max_concurrent: int | None,
    quiet: bool,
) -> None:
    """Transcode SOURCES into HLS packages in local storage.

    Each file is copied into storage, registered in the catalog and run
    through the pipeline. Exits non-zero if any video fails.
    """
    config = get_cli_config(ctx)
    if max_concurrent is not None:
        config = replace(config, scheduler=SchedulerConfig(max_concurrent))

    if video_id is not None:
        if len(sources) != 1:
            raise click.UsageError("--video-id can only be used with one SOURCE")
        if not VIDEO_ID_PATTERN.match(video_id):
            raise click.BadParameter(f"invalid video id {video_id!r}")
        ids = [video_id]
    else:
        ids = [video_id_from_path(source) for source in sources]
    if len(set(ids)) != len(ids):
        raise click.UsageError("SOURCES must map to distinct video ids")

    try:
        services = build_services(config)
    except ToolNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(ExitCode.TOOL_NOT_AVAILABLE) from e

    try:
        uploads = [
            (vid, _stage_upload(services, vid, source))
            for vid, source in zip(ids, sources)
        ]
    except (OSError, StorageError) as e:
        click.echo(f"Error: Cannot stage source: {e}", err=True)
        raise SystemExit(ExitCode.OPERATION_FAILED) from e

    try:
        asyncio.run(_process_all(services, uploads, quiet))
    except KeyboardInterrupt:
        click.echo("Interrupted", err=True)
        raise SystemExit(ExitCode.INTERRUPTED) from None

    failed = 0
    for vid, _ in uploads:
        asset = services.catalog.get_video(vid)
        if asset is not None and asset.status == VideoStatus.READY:
            click.echo(f"{vid}: ready ({len(asset.renditions)} renditions)")
            assert asset.manifest_key is not None
            manifest = services.storage.path_for(asset.manifest_key)
            click.echo(f"  manifest: {manifest}")
        else:
            failed += 1
            reason = asset.error.message if asset and asset.error else "unknown error"
            click.echo(f"{vid}: failed: {reason}", err=True)

    if failed:
        sys.exit(ExitCode.OPERATION_FAILED)
