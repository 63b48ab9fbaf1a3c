"""HTTP API handlers."""

from vtp.server.api.events import setup_event_routes
from vtp.server.api.jobs import setup_job_routes

__all__ = ["setup_event_routes", "setup_job_routes"]
