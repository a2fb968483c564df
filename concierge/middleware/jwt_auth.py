"""
JWT Auth Middleware: Parses JWT from Authorization header, sets g.jwt_*.

The hook never rejects a request by itself. It only populates:
  g.jwt_user_id  subject of a valid access token, else None
  g.jwt_roles    role list from the token, else []
  g.jwt_error    "expired" / "invalid" when a bearer token was sent but rejected

Endpoints that need an identity enforce it with concierge.auth.require_identity.
"""

import logging

import jwt as pyjwt
from flask import g, request

from concierge.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)


# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
    "/static/",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.jwt_roles = []
        g.jwt_error = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            g.jwt_error = "expired"
            return
        except pyjwt.InvalidTokenError as exc:
            g.jwt_error = "invalid"
            logger.debug("Rejected bearer token: %s", exc)
            return

        g.jwt_user_id = str(payload["sub"])
        roles = payload.get("roles") or []
        g.jwt_roles = [roles] if isinstance(roles, str) else list(roles)
