"""
Client and delegation models.

A Client is the relocating family. Callers never address a client directly;
their verified identity (identity-provider subject) is resolved to a client id
through one of these rows:

    - clients.user_id                       → the client themself
    - client_authorizations.authorized_user_id → a delegate (e.g. spouse)
    - clients.owner_agent_id                → the assigned agent
"""

import uuid
from datetime import datetime, timezone

from concierge.models import db


def _uuid():
    """Generate a new UUID4 string for primary keys."""
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


class Client(db.Model):
    """Relocating client family."""

    __tablename__ = "clients"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    user_id = db.Column(
        db.String(64), nullable=True, unique=True, index=True,
        comment="Identity-provider subject of the client themself",
    )
    owner_agent_id = db.Column(
        db.String(64), nullable=True, index=True,
        comment="Identity-provider subject of the assigned agent",
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    authorizations = db.relationship(
        "ClientAuthorization", backref="client", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Client {self.id} {self.name!r}>"


class ClientAuthorization(db.Model):
    """Grants a second identity (typically a spouse) access to a client's data.

    A delegate acts on exactly one client; authorized_user_id is unique.
    """

    __tablename__ = "client_authorizations"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    client_id = db.Column(
        db.String(36), db.ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    authorized_user_id = db.Column(db.String(64), nullable=False, unique=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self):
        return f"<ClientAuthorization {self.authorized_user_id} → {self.client_id}>"
