"""Live job events over Server-Sent Events.

GET /api/events streams every event the scheduler publishes. Pass
``?video_id=...`` to follow a single video. Each message uses the event
type (progress, completed, error) as its SSE event name and the event's
dict form as data; a heartbeat goes out after a quiet interval so proxies
keep the connection open.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

from aiohttp import web

from vtp.events.sinks import BroadcastEventSink
from vtp.server.api.errors import ErrorCode, api_error

logger = logging.getLogger(__name__)

HEARTBEAT_SECONDS = 15
WRITE_TIMEOUT_SECONDS = 5.0
MAX_SSE_CONNECTIONS = 100
RETRY_AFTER_SECONDS = 10

_STREAM_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def sse_message(name: str, data: dict[str, Any]) -> bytes:
    """Encode one SSE message."""
    return f"event: {name}\ndata: {json.dumps(data)}\n\n".encode("utf-8")


async def _send(response: web.StreamResponse, message: bytes) -> bool:
    """Write message; False once the client is gone or stalled."""
    try:
        await asyncio.wait_for(response.write(message), WRITE_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.warning("Dropping event stream client that stopped reading")
        return False
    except ConnectionError:
        return False
    return True


async def stream_events(request: web.Request) -> web.StreamResponse:
    broadcaster: BroadcastEventSink = request.app["broadcaster"]
    video_id = request.query.get("video_id") or None

    if broadcaster.subscriber_count >= MAX_SSE_CONNECTIONS:
        logger.warning(
            "Rejecting event stream from %s: %d clients connected",
            request.remote,
            broadcaster.subscriber_count,
        )
        resp = api_error(
            "Too many event stream clients", ErrorCode.SERVICE_UNAVAILABLE
        )
        resp.headers["Retry-After"] = str(RETRY_AFTER_SECONDS)
        return resp

    response = web.StreamResponse(headers=_STREAM_HEADERS)
    await response.prepare(request)

    queue = broadcaster.subscribe()
    logger.debug("Event stream opened for %s (video=%s)", request.remote, video_id)
    try:
        while True:
            try:
                event = await asyncio.wait_for(queue.get(), HEARTBEAT_SECONDS)
            except asyncio.TimeoutError:
                message = sse_message("heartbeat", {"time": time.time()})
            else:
                if video_id is not None and event.video_id != video_id:
                    continue
                message = sse_message(event.type.value, event.to_dict())
            if not await _send(response, message):
                break
    finally:
        broadcaster.unsubscribe(queue)
        logger.debug("Event stream closed for %s", request.remote)

    return response


def setup_event_routes(app: web.Application) -> None:
    app.router.add_get("/api/events", stream_events)
