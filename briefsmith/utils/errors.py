"""JSON error bodies shared by every blueprint.

    return api_error(E.VALIDATION_REQUIRED, "message is required")
    return api_error(E.STAGE_FAILED, str(exc), details={"stage": exc.stage}, exc=exc)

Body shape: ``{"error": str, "code": str, "details"?: dict, "trace"?: str}``.
``trace`` is only ever attached outside production.
"""

from __future__ import annotations

import traceback

from flask import current_app, jsonify


class E:
    """Machine-readable error codes."""

    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    NOT_FOUND = "ERR_NOT_FOUND"
    BAD_REQUEST = "ERR_BAD_REQUEST"
    RATE_LIMITED = "ERR_RATE_LIMITED"

    # LLM generation
    STAGE_FAILED = "ERR_STAGE_FAILED"
    PARSE_FAILED = "ERR_PARSE_FAILED"
    PROVIDER_UNAVAILABLE = "ERR_PROVIDER_UNAVAILABLE"

    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


_STATUS_BY_CODE = {
    E.VALIDATION_REQUIRED: 400,
    E.BAD_REQUEST: 400,
    E.NOT_FOUND: 404,
    E.VALIDATION_INVALID: 422,
    E.RATE_LIMITED: 429,
    E.DATABASE: 500,
    E.INTERNAL: 500,
    # Upstream model output unusable vs. no upstream at all
    E.STAGE_FAILED: 502,
    E.PARSE_FAILED: 502,
    E.PROVIDER_UNAVAILABLE: 503,
}


def is_production() -> bool:
    return current_app.config.get("ENV_NAME") == "production"


def api_error(code: str, message: str, *, status: int | None = None,
              details: dict | None = None, exc: BaseException | None = None):
    """Build a ``(response, status)`` pair for ``code``.

    ``status`` overrides the code's default; ``exc`` contributes its
    formatted stack trace outside production.
    """
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    if exc is not None and not is_production():
        body["trace"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return jsonify(body), status or _STATUS_BY_CODE.get(code, 400)
