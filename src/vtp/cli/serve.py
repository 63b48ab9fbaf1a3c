"""CLI serve command.

This module provides the `vtp serve` command that runs the job API and
scheduler as a long-lived service suitable for systemd management.
"""

from __future__ import annotations

import asyncio
import errno
import logging
import os
import signal
from dataclasses import replace

import click

from vtp.cli import get_cli_config
from vtp.cli.exit_codes import ExitCode
from vtp.config.models import SchedulerConfig
from vtp.executor.interface import ToolNotFoundError
from vtp.jobs.factory import Services, build_services

logger = logging.getLogger(__name__)

_SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


def _setup_signal_handlers(
    loop: asyncio.AbstractEventLoop, shutdown_event: asyncio.Event
) -> None:
    for sig in _SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, shutdown_event.set)
        except NotImplementedError:
            # Not available on Windows; Ctrl+C still raises KeyboardInterrupt
            logger.debug("Signal handler for %s not supported", sig.name)


def _remove_signal_handlers(loop: asyncio.AbstractEventLoop) -> None:
    for sig in _SHUTDOWN_SIGNALS:
        try:
            loop.remove_signal_handler(sig)
        except NotImplementedError:
            pass


async def run_server(
    services: Services,
    bind: str,
    port: int,
    shutdown_timeout: float,
) -> int:
    """Run the job API until SIGTERM or SIGINT.

    Args:
        services: Storage, catalog and pipeline to serve.
        bind: Address to bind to.
        port: Port to bind to.
        shutdown_timeout: Seconds to wait for graceful shutdown.

    Returns:
        Exit code (0 for clean shutdown, non-zero for errors).
    """
    from aiohttp import web

    from vtp.server.app import create_app

    app = create_app(
        services.storage,
        services.catalog,
        services.pipeline,
        max_concurrent=services.config.scheduler.max_concurrent,
    )

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    _setup_signal_handlers(loop, shutdown_event)

    runner = web.AppRunner(app, shutdown_timeout=shutdown_timeout)
    await runner.setup()

    try:
        site = web.TCPSite(runner, bind, port)
        await site.start()

        logger.info(
            "VTP server started on http://%s:%d (PID %d)", bind, port, os.getpid()
        )
        logger.info("Health endpoint: http://%s:%d/health", bind, port)
        logger.info("Press Ctrl+C or send SIGTERM to stop")

        await shutdown_event.wait()
        logger.info("Shutdown initiated, canceling in-flight jobs")
    except OSError as e:
        if e.errno == errno.EADDRINUSE:
            logger.error("Port %d is already in use", port)
        elif e.errno == errno.EADDRNOTAVAIL:
            logger.error("Cannot bind to address %s", bind)
        else:
            logger.error("Server error: %s", e)
        return ExitCode.SERVER_ERROR
    finally:
        _remove_signal_handlers(loop)
        # Runs on_cleanup, which stops the scheduler
        await runner.cleanup()
        logger.info("VTP server stopped")

    return ExitCode.SUCCESS


@click.command("serve")
@click.option(
    "--bind",
    type=str,
    default=None,
    help="Address to bind to (default: 127.0.0.1).",
)
@click.option(
    "--port",
    "-p",
    type=click.IntRange(1, 65535),
    default=None,
    help="Port to bind to (default: 8421).",
)
@click.option(
    "--max-concurrent",
    "-j",
    type=click.IntRange(min=1),
    default=None,
    help="Number of videos to encode at the same time.",
)
@click.pass_context
def serve_command(
    ctx: click.Context,
    bind: str | None,
    port: int | None,
    max_concurrent: int | None,
) -> None:
    """Run the job API and scheduler.

    Exposes POST/GET/DELETE /api/jobs, the /api/events stream and /health.
    Handles graceful shutdown on SIGTERM (from systemd) or SIGINT (Ctrl+C):
    running jobs are canceled and their partial outputs removed.

    The server binds to localhost by default. Override with --bind 0.0.0.0
    to expose it on all interfaces.
    """
    config = get_cli_config(ctx)
    if max_concurrent is not None:
        config = replace(config, scheduler=SchedulerConfig(max_concurrent))

    effective_bind = bind or config.server.bind
    effective_port = port or config.server.port

    try:
        services = build_services(config)
    except ToolNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(ExitCode.TOOL_NOT_AVAILABLE) from e

    logger.info(
        "Serving storage %s with catalog %s",
        services.storage.root,
        config.catalog.database_path,
    )
    exit_code = asyncio.run(
        run_server(
            services,
            effective_bind,
            effective_port,
            config.server.shutdown_timeout,
        )
    )
    raise SystemExit(exit_code)
