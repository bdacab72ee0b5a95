"""
Startup Accelerator Platform
Request timing & correlation.

Each /api/ request gets a request id (the caller's ``X-Request-ID`` or a
fresh one) stored on ``g`` for the logging filter, one access log line, and
``X-Request-ID`` / ``X-Request-Duration-Ms`` response headers. Requests
slower than ``SLOW_REQUEST_MS`` log at WARNING.
"""

import logging
import time
import uuid

from flask import Flask, current_app, g, request

logger = logging.getLogger(__name__)

DEFAULT_SLOW_REQUEST_MS = 1000

# Inbound ids longer than this are replaced
_MAX_REQUEST_ID = 64


def _request_id():
    supplied = (request.headers.get("X-Request-ID") or "").strip()
    if supplied and len(supplied) <= _MAX_REQUEST_ID:
        return supplied
    return uuid.uuid4().hex[:12]


def init_request_timing(app: Flask):
    """Register before/after hooks for request timing."""

    @app.before_request
    def _start_timer():
        g.request_start = time.perf_counter()
        g.request_id = _request_id()

    @app.after_request
    def _log_request(response):
        start = getattr(g, "request_start", None)
        if start is None:
            return response

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"
        response.headers["X-Request-ID"] = g.request_id

        if not request.path.startswith("/api/") or request.path == "/api/v1/health":
            return response

        extra = {
            "method": request.method,
            "path": request.path,
            "status": response.status_code,
            "duration_ms": round(duration_ms, 1),
            "remote_addr": request.remote_addr,
        }
        slow_ms = current_app.config.get("SLOW_REQUEST_MS", DEFAULT_SLOW_REQUEST_MS)
        if response.status_code >= 500:
            level = logging.ERROR
        elif duration_ms > slow_ms:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(level, "%s %s %d (%.0fms)", request.method, request.path,
                   response.status_code, duration_ms, extra=extra)
        return response
