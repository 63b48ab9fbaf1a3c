"""JSON log formatting.

One JSON object per line. Job fields set by JobContextFilter are promoted
to top-level keys so log shippers can index them; any other ``extra=``
attributes are grouped under "extra".
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

# Attributes every LogRecord has, plus the ones formatting adds
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime"}

_JOB_ATTRS = ("video_id", "slot")
_IGNORED_ATTRS = _RECORD_ATTRS | set(_JOB_ATTRS) | {"job_tag"}


class JSONFormatter(logging.Formatter):
    """Format records as single-line JSON.

    Keys: timestamp (ISO-8601 UTC), level, logger, message, then video_id
    and slot while a job is running, extra, and exception when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for attr in _JOB_ATTRS:
            value = getattr(record, attr, None)
            if value is not None:
                entry[attr] = value

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _IGNORED_ATTRS and not key.startswith("_")
        }
        if extra:
            entry["extra"] = extra

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)
