"""
Startup Accelerator Platform
Logging setup.

One root stream handler. JSON lines outside DEBUG/TESTING, a short coloured
line format otherwise; ``LOG_FORMAT`` (json | readable) overrides the
choice and ``LOG_LEVEL`` the level.

Every record emitted inside a request carries ``request_id`` and, once the
access guard has run, ``user_id`` / ``role`` of the caller, so service logs
can be joined to the request log line without passing them around.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Structured fields services and middleware pass through ``extra=``
EXTRA_FIELDS = (
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "request_id",
    "user_id",
    "role",
    "application_id",
    "assignment_id",
    "budget_id",
    "expense_id",
    "opportunity_id",
    "pledge_id",
    "event_id",
    "advertisement_id",
    "event_type",
)


class RequestContextFilter(logging.Filter):
    """Fill request_id / user_id / role from ``g`` unless the call set them."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not has_request_context():
            return True
        if getattr(record, "request_id", None) is None:
            record.request_id = getattr(g, "request_id", None)
        actor = getattr(g, "actor", None)
        if actor is not None:
            if getattr(record, "user_id", None) is None:
                record.user_id = actor.user_id
            if getattr(record, "role", None) is None:
                record.role = actor.role
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in EXTRA_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``12:03:44 INFO  accelerator.services.review_service: ... [u7 ab12cd]``"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tags = []
        user_id = getattr(record, "user_id", None)
        if user_id is not None:
            tags.append(f"u{user_id}")
        request_id = getattr(record, "request_id", None)
        if request_id:
            tags.append(request_id)
        suffix = f" [{' '.join(tags)}]" if tags else ""
        line = f"{color}{ts} {record.levelname:<7}{self.RESET} {record.name}: {record.getMessage()}{suffix}"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _use_json(app) -> bool:
    forced = (os.getenv("LOG_FORMAT") or app.config.get("LOG_FORMAT") or "").lower()
    if forced in ("json", "readable"):
        return forced == "json"
    return not app.config.get("DEBUG", False) and not app.config.get("TESTING", False)


def configure_logging(app):
    """Install the root handler for ``app``; safe to call once per app instance."""
    as_json = _use_json(app)
    level_name = (os.getenv("LOG_LEVEL") or ("INFO" if as_json else "DEBUG")).upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if as_json else ReadableFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)

    # Replacing handlers keeps repeated create_app() calls from duplicating output
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in ("werkzeug", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)
    if not app.config.get("TESTING", False):
        app.logger.info("Logging configured: level=%s format=%s", level_name, "json" if as_json else "readable")
