"""
Relocation Concierge
Authentication decorator for identity-bound endpoints.

The JWT middleware (concierge.middleware.jwt_auth) only parses the bearer
token. Endpoints that act on behalf of a client wrap their view with
require_identity, which answers 401 when no verified identity is present.
"""

import functools
import logging

from flask import g, request

from concierge.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def require_identity(f):
    """
    Decorator: require a verified JWT identity on the request.

    Sets nothing itself; downstream code reads g.jwt_user_id / g.jwt_roles.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if getattr(g, "jwt_user_id", None):
            return f(*args, **kwargs)

        reason = getattr(g, "jwt_error", None)
        if reason == "expired":
            message = "Token expired"
        elif reason == "invalid":
            message = "Invalid token"
        else:
            message = "Authentication required. Provide a Bearer token."
        logger.info("Unauthenticated request to %s (%s)", request.path, reason or "no token")
        return api_error(E.UNAUTHORIZED, message)

    return decorated
