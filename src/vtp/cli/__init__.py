"""CLI module for the Video Transcode Pipeline."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from vtp.cli.exit_codes import ExitCode
from vtp.config import build_logging_config, get_config
from vtp.config.loader import TomlParseError
from vtp.config.models import VTPConfig
from vtp.logging import configure_logging

logger = logging.getLogger(__name__)


def _load_config(config_path: Path | None) -> VTPConfig:
    try:
        return get_config(config_path, strict=True)
    except (TomlParseError, ValueError) as e:
        click.echo(f"Error: Invalid configuration: {e}", err=True)
        raise SystemExit(ExitCode.CONFIG_ERROR) from e


def get_cli_config(ctx: click.Context) -> VTPConfig:
    """Configuration resolved by the main group (tests may inject one)."""
    return ctx.obj["config"]


@click.group()
@click.version_option(package_name="video-transcode-pipeline")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to configuration file (default: ~/.vtp/config.toml).",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Override log level (default: info).",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Override log file path.",
)
@click.option(
    "--log-json",
    is_flag=True,
    default=False,
    help="Use JSON log format.",
)
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Path | None,
    log_level: str | None,
    log_file: Path | None,
    log_json: bool,
) -> None:
    """Video Transcode Pipeline - Encode uploads into adaptive HLS packages."""
    ctx.ensure_object(dict)
    # Preserve a config passed in by tests
    if "config" not in ctx.obj:
        ctx.obj["config"] = _load_config(config_path)
    config: VTPConfig = ctx.obj["config"]

    try:
        logging_config = build_logging_config(
            config.logging,
            level=log_level,
            file=log_file,
            format="json" if log_json else None,
        )
    except ValueError as e:
        click.echo(f"Error: Invalid logging options: {e}", err=True)
        raise SystemExit(ExitCode.CONFIG_ERROR) from e
    configure_logging(logging_config)
    logger.debug(
        "VTP starting: storage=%s, database=%s, slots=%d",
        config.storage.root,
        config.catalog.database_path,
        config.scheduler.max_concurrent,
    )


# Defer import to avoid circular dependency
def _register_commands() -> None:
    from vtp.cli.inspect import plan_command, probe_command
    from vtp.cli.process import process_command
    from vtp.cli.serve import serve_command

    main.add_command(probe_command)
    main.add_command(plan_command)
    main.add_command(process_command)
    main.add_command(serve_command)


_register_commands()
