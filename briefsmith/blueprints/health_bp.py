"""
Health check blueprint.

Endpoints:
    GET /api/v1/health        — service identity
    GET /api/v1/health/ready  — simple 200 for load balancers
    GET /api/v1/health/live   — dependency status (DB, cache, LLM chain)
"""

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from briefsmith.blueprints import get_cache, get_gateway
from briefsmith.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")

SERVICE_NAME = "briefsmith"


@health_bp.route("", methods=["GET"])
def health():
    return jsonify({
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": SERVICE_NAME,
    }), 200


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness probe: always 200 if the app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Detailed liveness check with dependency status."""
    checks = {}
    overall = True

    # ── Database ─────────────────────────────────────────────────────
    try:
        t0 = time.perf_counter()
        db.session.execute(text("SELECT 1"))
        checks["database"] = {"status": "ok",
                              "latency_ms": round((time.perf_counter() - t0) * 1000, 1)}
    except SQLAlchemyError as exc:
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check: database failed: %s", exc)

    # ── Response cache (optional; never fails overall health) ─────────
    checks["cache"] = get_cache().health_check()

    # ── LLM provider chain ───────────────────────────────────────────
    providers = get_gateway().providers_status()
    checks["llm"] = {
        "status": "ok" if any(p["configured"] for p in providers) else "unconfigured",
        "providers": providers,
    }

    checks["app"] = {
        "name": SERVICE_NAME,
        "env": current_app.config.get("ENV_NAME"),
        "debug": current_app.debug,
    }

    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), 200 if overall else 503
