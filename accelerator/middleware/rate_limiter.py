"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in accelerator/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from accelerator.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)

WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"

# Blueprints whose routes mutate workflow state
_MUTATION_BLUEPRINTS = ("applications", "reviews", "budgets", "sponsorships", "events")


def rate_limit_key():
    """Rate limit key: authenticated user if known, else remote IP."""
    actor = getattr(g, "actor", None)
    if actor is not None:
        return f"user:{actor.user_id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per user, falling back to remote IP):
        - Workflow blueprints:  60/minute
        - Notifications:        200/minute
        - Health check:         exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in _MUTATION_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT, key_func=rate_limit_key)(bp)

    bp = app.blueprints.get("notifications")
    if bp:
        limiter.limit(READ_LIMIT, key_func=rate_limit_key)(bp)

    app.logger.info("Rate limiter configured: workflow: %s, notifications: %s",
                    WRITE_LIMIT, READ_LIMIT)
