"""
Client Access Service: turns a verified identity into a client id.

The blueprint resolves the client once per request and passes the id into
checklist_service / attachment_service explicitly. Services never look at
flask.g.

Resolution order for client-facing routes (resolve_client_id):
    1. admin + explicit client id of an existing client → that client
    2. delegate authorization (client_authorizations)   → authorizing client
    3. own client row (clients.user_id)                 → that client
    otherwise UnauthorizedError

Agent-facing routes (resolve_agent_client):
    agent owns the client (clients.owner_agent_id)      → client
    admin                                               → any existing client
    otherwise NotFoundError (a foreign client looks like a missing one)
"""

import logging

from concierge.core.exceptions import NotFoundError, UnauthorizedError
from concierge.models import db
from concierge.models.client import Client, ClientAuthorization
from concierge.services.jwt_service import ROLE_ADMIN, ROLE_AGENT

logger = logging.getLogger(__name__)


def _is_admin(roles) -> bool:
    return ROLE_ADMIN in (roles or [])


def resolve_client_id(user_id: str | None, roles: list[str] | None, requested_client_id: str | None = None) -> str:
    """Client id the caller acts for on the client-facing checklist routes.

    A requested_client_id from a non-admin is ignored; non-admins always act
    for their own (or their delegating) client.

    Raises:
        UnauthorizedError: no identity, or the identity maps to no client.
    """
    if not user_id:
        raise UnauthorizedError("Authentication required")

    if requested_client_id and _is_admin(roles):
        client = db.session.get(Client, requested_client_id)
        if client is not None:
            return client.id
        logger.info(
            "Admin requested unknown client, falling back to own identity",
            extra={"client_id": requested_client_id},
        )

    delegation = ClientAuthorization.query.filter_by(authorized_user_id=user_id).first()
    if delegation is not None:
        return delegation.client_id

    own = Client.query.filter_by(user_id=user_id).first()
    if own is not None:
        return own.id

    logger.warning("Identity has no client record: user=%s", user_id)
    raise UnauthorizedError("No client record for this user")


def resolve_agent_client(agent_user_id: str | None, roles: list[str] | None, client_id: str) -> str:
    """Authorise an agent (or admin) to act on client_id.

    Raises:
        UnauthorizedError: no identity, or the caller is neither agent nor admin.
        NotFoundError:     client missing or not assigned to this agent.
    """
    if not agent_user_id:
        raise UnauthorizedError("Authentication required")

    roles = roles or []
    if not _is_admin(roles) and ROLE_AGENT not in roles:
        raise UnauthorizedError("Agent role required")

    client = db.session.get(Client, client_id)
    if client is None:
        raise NotFoundError(resource="Client", resource_id=client_id)

    if _is_admin(roles) or client.owner_agent_id == agent_user_id:
        return client.id

    logger.warning(
        "Agent %s denied access to client", agent_user_id,
        extra={"client_id": client_id},
    )
    raise NotFoundError(resource="Client", resource_id=client_id)
