"""CLI commands for looking at a source before processing it."""

from __future__ import annotations

import asyncio
import json
from dataclasses import asdict
from pathlib import Path

import click

from vtp.cli import get_cli_config
from vtp.cli.exit_codes import ExitCode
from vtp.domain.exceptions import ProbeError
from vtp.executor.interface import ToolNotFoundError, require_tool
from vtp.introspector.ffprobe import FFprobeProber
from vtp.pipeline.ladder import plan_renditions


@click.command("probe")
@click.argument(
    "source", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_context
def probe_command(ctx: click.Context, source: Path, json_output: bool) -> None:
    """Show the metadata ffprobe reports for SOURCE and the planned ladder."""
    config = get_cli_config(ctx)
    try:
        ffprobe = require_tool("ffprobe", config.tools.ffprobe)
    except ToolNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(ExitCode.TOOL_NOT_AVAILABLE) from e

    prober = FFprobeProber(ffprobe, timeout=config.encoder.probe_timeout_seconds)
    try:
        result = asyncio.run(prober.probe(source))
    except ProbeError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(ExitCode.PROBE_FAILED) from e

    specs = plan_renditions(result.height)
    if json_output:
        data = asdict(result)
        data["renditions"] = [spec.label for spec in specs]
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(f"File: {source}")
    click.echo(f"Duration: {result.duration_seconds:.2f}s")
    click.echo(f"Video: {result.codec} {result.width}x{result.height}")
    click.echo(f"Audio: {result.audio_codec or 'none'}")
    if result.file_size is not None:
        click.echo(f"Size: {result.file_size} bytes")
    click.echo(f"Renditions: {', '.join(spec.label for spec in specs)}")


@click.command("plan")
@click.argument("height", type=int)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
def plan_command(height: int, json_output: bool) -> None:
    """Show the renditions that a source HEIGHT pixels tall would get."""
    if height <= 0:
        click.echo("Error: HEIGHT must be positive", err=True)
        raise SystemExit(ExitCode.INVALID_INPUT)

    specs = plan_renditions(height)
    if json_output:
        click.echo(json.dumps([asdict(spec) for spec in specs], indent=2))
        return

    for spec in specs:
        click.echo(
            f"{spec.label:>6}  {spec.width}x{spec.height}  {spec.bitrate_kbps} kbps"
        )
