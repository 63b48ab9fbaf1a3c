"""HTTP application for the job API.

This module provides the aiohttp Application: health check, job routes and
the SSE event stream. The scheduler lives and dies with the application.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any

from aiohttp import web

from vtp import __version__
from vtp.catalog.sqlite import SqliteCatalog
from vtp.events.sinks import BroadcastEventSink, CompositeEventSink, LoggingEventSink
from vtp.jobs.pipeline import JobRunner
from vtp.jobs.scheduler import DEFAULT_MAX_CONCURRENT, JobScheduler
from vtp.server.api import setup_event_routes, setup_job_routes
from vtp.storage.interface import Storage

logger = logging.getLogger(__name__)


@dataclass
class HealthStatus:
    """Health check response payload."""

    status: str
    """Overall status: 'healthy' or 'unhealthy'."""

    uptime_seconds: float
    version: str
    scheduler: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def create_app(
    storage: Storage,
    catalog: SqliteCatalog,
    runner: JobRunner,
    max_concurrent: int = DEFAULT_MAX_CONCURRENT,
) -> web.Application:
    """Create and configure the aiohttp Application.

    Args:
        storage: Storage holding sources and outputs.
        catalog: Catalog the pipeline reports to.
        runner: Runs each job (normally a TranscodePipeline).
        max_concurrent: Number of scheduler worker slots.

    Returns:
        Configured aiohttp Application instance.
    """
    app = web.Application()

    broadcaster = BroadcastEventSink()
    sink = CompositeEventSink([LoggingEventSink(), broadcaster])

    app["storage"] = storage
    app["catalog"] = catalog
    app["broadcaster"] = broadcaster
    app["scheduler"] = JobScheduler(runner, sink, max_concurrent=max_concurrent)
    app["started_at"] = time.monotonic()

    app.router.add_get("/health", health_handler)
    setup_job_routes(app)
    setup_event_routes(app)

    app.on_startup.append(_recover_interrupted)
    app.on_startup.append(_start_scheduler)
    app.on_cleanup.append(_stop_scheduler)

    return app


async def _recover_interrupted(app: web.Application) -> None:
    """Fail catalog entries left processing by a previous process."""
    catalog: SqliteCatalog = app["catalog"]
    count = await asyncio.to_thread(catalog.fail_interrupted)
    if count:
        logger.warning("Marked %d videos as interrupted from a previous run", count)


async def _start_scheduler(app: web.Application) -> None:
    app["scheduler"].start()


async def _stop_scheduler(app: web.Application) -> None:
    """Cancel in-flight jobs so their partial outputs are cleaned up."""
    scheduler: JobScheduler = app["scheduler"]
    await scheduler.stop(cancel_running=True)


async def health_handler(request: web.Request) -> web.Response:
    """Handle GET /health requests.

    Returns 200 while the scheduler is running, 503 otherwise.
    """
    scheduler: JobScheduler = request.app["scheduler"]
    healthy = scheduler.is_running
    health = HealthStatus(
        status="healthy" if healthy else "unhealthy",
        uptime_seconds=round(time.monotonic() - request.app["started_at"], 1),
        version=__version__,
        scheduler=scheduler.queue_status(),
    )
    return web.json_response(health.to_dict(), status=200 if healthy else 503)
