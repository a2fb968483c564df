"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter. The Limiter instance is
created in concierge/__init__.py with no default limits and keyed by
_rate_limit_key (verified identity when present, else remote IP).

Usage:
    from concierge.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)

CHECKLIST_LIMIT = "120/minute"
UPLOAD_LIMIT = "20/minute"


def rate_limit_key():
    """Identity subject if the JWT middleware set one, else remote IP."""
    user_id = getattr(g, "jwt_user_id", None)
    if user_id:
        return f"user:{user_id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per identity):
        - Checklist read/update:  120/minute
        - Attachment endpoints:   20/minute (uploads hit object storage)
        - Health check:           exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("checklist")
    if bp:
        limiter.limit(CHECKLIST_LIMIT)(bp)

    bp = app.blueprints.get("checklist_files")
    if bp:
        limiter.limit(UPLOAD_LIMIT)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured: checklist: %s, files: %s", CHECKLIST_LIMIT, UPLOAD_LIMIT,
    )
