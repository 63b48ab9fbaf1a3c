"""Error responses for the job API.

Every error body has the same shape::

    {"error": "<message>", "code": "<ErrorCode>", "details": ...}

``details`` is only present when there is something to add, such as the
per-field problems of a rejected job request.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from aiohttp import web


class ErrorCode(Enum):
    """Machine-readable error codes, each with the HTTP status it maps to."""

    INVALID_JSON = ("INVALID_JSON", 400)
    INVALID_REQUEST = ("INVALID_REQUEST", 400)
    NOT_FOUND = ("NOT_FOUND", 404)
    ALREADY_QUEUED = ("ALREADY_QUEUED", 409)
    SHUTTING_DOWN = ("SHUTTING_DOWN", 503)
    SERVICE_UNAVAILABLE = ("SERVICE_UNAVAILABLE", 503)

    def __init__(self, label: str, status: int) -> None:
        self.label = label
        self.status = status


def api_error(message: str, code: ErrorCode, details: Any = None) -> web.Response:
    body: dict[str, Any] = {"error": message, "code": code.label}
    if details is not None:
        body["details"] = details
    return web.json_response(body, status=code.status)
