"""Job API handlers.

Endpoints:
    POST   /api/jobs             - Queue a video for processing
    GET    /api/jobs             - List queued and running jobs
    GET    /api/jobs/{video_id}  - Get the job for a video
    DELETE /api/jobs/{video_id}  - Cancel the job for a video
"""

from __future__ import annotations

import asyncio
import json
import logging

from aiohttp import web
from pydantic import ValidationError

from vtp.domain.exceptions import (
    AlreadyQueuedError,
    NotFoundError,
    SchedulerClosedError,
    StorageError,
)
from vtp.server.api.errors import ErrorCode, api_error
from vtp.server.api.models import EnqueueJobRequest

logger = logging.getLogger(__name__)


async def enqueue_job_handler(request: web.Request) -> web.Response:
    """Handle POST /api/jobs.

    Registers the video in the catalog if needed and queues a job. Returns
    202 with the queued job; processing happens in the background.
    """
    try:
        body = await request.json()
    except json.JSONDecodeError:
        return api_error("Request body must be valid JSON", ErrorCode.INVALID_JSON)

    try:
        payload = EnqueueJobRequest.model_validate(body)
    except ValidationError as e:
        details = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        return api_error(
            "Invalid job request", ErrorCode.INVALID_REQUEST, details=details
        )

    storage = request.app["storage"]
    catalog = request.app["catalog"]
    scheduler = request.app["scheduler"]

    try:
        source_exists = await asyncio.to_thread(storage.exists, payload.source)
    except StorageError as e:
        return api_error(str(e), ErrorCode.INVALID_REQUEST)
    if not source_exists:
        return api_error(
            f"Source {payload.source} not found in storage", ErrorCode.INVALID_REQUEST
        )

    await asyncio.to_thread(catalog.register, payload.video_id, payload.source)

    try:
        job = await scheduler.enqueue(payload.video_id, payload.source)
    except AlreadyQueuedError as e:
        return api_error(str(e), ErrorCode.ALREADY_QUEUED)
    except SchedulerClosedError as e:
        return api_error(str(e), ErrorCode.SHUTTING_DOWN)

    return web.json_response(job.to_dict(), status=202)


async def list_jobs_handler(request: web.Request) -> web.Response:
    """Handle GET /api/jobs."""
    scheduler = request.app["scheduler"]
    jobs = [job.to_dict() for job in scheduler.list_jobs()]
    return web.json_response({"jobs": jobs, "total": len(jobs)})


async def get_job_handler(request: web.Request) -> web.Response:
    """Handle GET /api/jobs/{video_id}."""
    video_id = request.match_info["video_id"]
    job = request.app["scheduler"].get_job(video_id)
    if job is None:
        return api_error(f"No job for video {video_id}", ErrorCode.NOT_FOUND)
    return web.json_response(job.to_dict())


async def cancel_job_handler(request: web.Request) -> web.Response:
    """Handle DELETE /api/jobs/{video_id}.

    A queued job is returned as canceled. A running job is returned while
    its cleanup is still in progress; its terminal event follows.
    """
    video_id = request.match_info["video_id"]
    try:
        job = await request.app["scheduler"].cancel(video_id)
    except NotFoundError as e:
        return api_error(str(e), ErrorCode.NOT_FOUND)
    except SchedulerClosedError as e:
        return api_error(str(e), ErrorCode.SHUTTING_DOWN)
    return web.json_response(job.to_dict())


def setup_job_routes(app: web.Application) -> None:
    """Register job API routes."""
    app.router.add_post("/api/jobs", enqueue_job_handler)
    app.router.add_get("/api/jobs", list_jobs_handler)
    app.router.add_get("/api/jobs/{video_id}", get_job_handler)
    app.router.add_delete("/api/jobs/{video_id}", cancel_job_handler)
