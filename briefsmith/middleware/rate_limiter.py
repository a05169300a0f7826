"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter. The Limiter instance is
created in briefsmith/__init__.py with no default limits; storage comes from
RATELIMIT_STORAGE_URI.

Usage:
    from briefsmith.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

# Every orders call may fan out to one or more LLM requests
ORDERS_LIMIT = "30/minute"
REQUIREMENTS_LIMIT = "10/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - orders:        30/minute
        - requirements:  10/minute
        - health:        exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("orders")
    if bp:
        limiter.limit(ORDERS_LIMIT)(bp)

    bp = app.blueprints.get("requirements")
    if bp:
        limiter.limit(REQUIREMENTS_LIMIT)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured: orders %s, requirements %s",
                    ORDERS_LIMIT, REQUIREMENTS_LIMIT)
