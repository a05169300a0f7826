"""
Request timing middleware.

Every response carries ``X-Request-ID`` (echoed from the request or freshly
generated) and ``X-Request-Duration-Ms``. Server errors and requests slower
than SLOW_THRESHOLD_MS are logged at error / warning level, the rest at
debug. Health probes are never logged.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

_UNLOGGED_PATHS = frozenset({"/api/v1/health", "/api/v1/health/ready", "/api/v1/health/live"})

# A full documentation run makes five sequential LLM calls
SLOW_THRESHOLD_MS = 30_000


def _log_level(status: int, duration_ms: float) -> int:
    if status >= 500:
        return logging.ERROR
    if duration_ms > SLOW_THRESHOLD_MS:
        return logging.WARNING
    return logging.DEBUG


def init_request_timing(app: Flask):
    @app.before_request
    def _tag_request():
        g.request_started = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _stamp_response(response):
        started = g.get("request_started")
        if started is None:
            return response

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = g.request_id
        response.headers["X-Request-Duration-Ms"] = f"{elapsed_ms:.1f}"

        if request.path not in _UNLOGGED_PATHS:
            logger.log(
                _log_level(response.status_code, elapsed_ms),
                "%s %s -> %d (%.0fms)",
                request.method, request.path, response.status_code, elapsed_ms,
                extra={
                    "request_id": g.request_id,
                    "method": request.method,
                    "path": request.path,
                    "status": response.status_code,
                    "duration_ms": elapsed_ms,
                    "remote_addr": request.remote_addr,
                    "project_id": (request.view_args or {}).get("project_id"),
                },
            )
        return response
