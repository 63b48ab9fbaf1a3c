"""Structured logging module for VTP.

Provides configurable logging with JSON format support and file rotation.
Includes per-job context so concurrent pipelines can be told apart.
"""

from vtp.logging.config import configure_logging
from vtp.logging.context import JobContextFilter, get_job_context, job_context
from vtp.logging.handlers import JSONFormatter

__all__ = [
    "JSONFormatter",
    "JobContextFilter",
    "configure_logging",
    "get_job_context",
    "job_context",
]
