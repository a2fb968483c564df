"""
Checklist models: template catalog, per-client progress, attachments.

    ChecklistTemplate   immutable catalog entry (admin-curated, seeded via CLI)
    ChecklistItem       one client's mutable progress on one template
    ChecklistAttachment file metadata for a ChecklistItem; bytes live in object storage

A ChecklistItem does not exist until the client (or a delegate/agent) first
touches the template. (client_id, template_id) is unique.
"""

import json
import uuid
from datetime import datetime, timezone

from concierge.core.exceptions import UnknownCategoryError
from concierge.models import db


def _uuid():
    """Generate a new UUID4 string for primary keys."""
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def isoformat_utc(value):
    """ISO-8601 string for a stored datetime; SQLite drops tzinfo, values are UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


# ── Timeline phases ──────────────────────────────────────────────────────────


class TimelinePhase:
    PRE_DEPARTURE = "PRE_DEPARTURE"
    ARRIVAL = "ARRIVAL"
    EARLY_SETTLEMENT = "EARLY_SETTLEMENT"
    SETTLEMENT_COMPLETE = "SETTLEMENT_COMPLETE"

    ALL = (PRE_DEPARTURE, ARRIVAL, EARLY_SETTLEMENT, SETTLEMENT_COMPLETE)


# Template category key → phase. "settlement" is the legacy key for early settlement.
CATEGORY_PHASES = {
    "pre_departure": TimelinePhase.PRE_DEPARTURE,
    "arrival": TimelinePhase.ARRIVAL,
    "settlement_early": TimelinePhase.EARLY_SETTLEMENT,
    "settlement_complete": TimelinePhase.SETTLEMENT_COMPLETE,
    "settlement": TimelinePhase.EARLY_SETTLEMENT,
}

PHASE_CATEGORIES = {
    TimelinePhase.PRE_DEPARTURE: "pre_departure",
    TimelinePhase.ARRIVAL: "arrival",
    TimelinePhase.EARLY_SETTLEMENT: "settlement_early",
    TimelinePhase.SETTLEMENT_COMPLETE: "settlement_complete",
}

VALID_CATEGORIES = frozenset(CATEGORY_PHASES)


def category_to_phase(category: str) -> str:
    """Map a template category key to its timeline phase.

    Raises:
        UnknownCategoryError: category has no mapping.
    """
    try:
        return CATEGORY_PHASES[category]
    except (KeyError, TypeError):
        raise UnknownCategoryError(category) from None


def phase_to_category(phase: str) -> str:
    """Canonical category key for a phase (inverse of category_to_phase)."""
    try:
        return PHASE_CATEGORIES[phase]
    except KeyError:
        raise UnknownCategoryError(phase) from None


def parse_description(raw) -> list[dict]:
    """Normalise a stored description into a list of content blocks.

    Each block is ``{"text": str, "subText"?: [str], "important"?: bool}``.
    Accepts a block list, a single block, a JSON string of either, or
    legacy plain text (one block per non-empty line). Anything else → [].
    """
    if not raw:
        return []
    if isinstance(raw, list):
        return [b for b in raw if isinstance(b, dict) and "text" in b]
    if isinstance(raw, dict):
        return [raw] if "text" in raw else []
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except ValueError:
            return [{"text": line} for line in raw.split("\n") if line.strip()]
        if isinstance(parsed, (list, dict)):
            return parse_description(parsed)
        return [{"text": line} for line in raw.split("\n") if line.strip()]
    return []


# ── Models ───────────────────────────────────────────────────────────────────


class ChecklistTemplate(db.Model):
    """Immutable catalog entry describing one relocation task."""

    __tablename__ = "checklist_templates"
    __table_args__ = (
        db.Index("ix_checklist_templates_category_order", "category", "order_num"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    title = db.Column(db.String(255), nullable=False)
    category = db.Column(
        db.String(40), nullable=False,
        comment="pre_departure | arrival | settlement_early | settlement_complete",
    )
    sub_category = db.Column(db.String(100), nullable=True)
    description = db.Column(db.JSON, nullable=False, default=list)
    order_num = db.Column(db.Integer, nullable=False, default=0)
    is_required = db.Column(db.Boolean, nullable=False, default=False)
    reference_url = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self):
        return f"<ChecklistTemplate {self.category}#{self.order_num} {self.title!r}>"


class ChecklistItem(db.Model):
    """A client's progress on one template. At most one per (client, template)."""

    __tablename__ = "checklist_items"
    __table_args__ = (
        db.UniqueConstraint("client_id", "template_id", name="uq_checklist_item_client_template"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    client_id = db.Column(
        db.String(36), db.ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    template_id = db.Column(
        db.String(36), db.ForeignKey("checklist_templates.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.Text, nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    attachments = db.relationship(
        "ChecklistAttachment", backref="item", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "template_id": self.template_id,
            "is_completed": bool(self.is_completed),
            "notes": self.notes,
            "completed_at": isoformat_utc(self.completed_at),
        }

    def __repr__(self):
        return f"<ChecklistItem {self.id} client={self.client_id} template={self.template_id}>"


class ChecklistAttachment(db.Model):
    """Metadata for a file attached to a ChecklistItem."""

    __tablename__ = "checklist_attachments"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    checklist_item_id = db.Column(
        db.String(36), db.ForeignKey("checklist_items.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    client_id = db.Column(
        db.String(36), db.ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    file_name = db.Column(db.String(255), nullable=False)
    mime_type = db.Column(db.String(100), nullable=True)
    file_size = db.Column(db.Integer, nullable=True, comment="Size in bytes")
    storage_path = db.Column(db.String(500), nullable=False, comment="Object key in the bucket")
    file_url = db.Column(db.String(1000), nullable=False)
    uploaded_by = db.Column(db.String(64), nullable=False, comment="Identity subject of uploader")
    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        uploaded = self.uploaded_at
        if uploaded is not None and uploaded.tzinfo is None:
            uploaded = uploaded.replace(tzinfo=timezone.utc)
        return {
            "id": self.id,
            "item_id": self.checklist_item_id,
            "name": self.file_name,
            "type": self.mime_type or "application/octet-stream",
            "size": self.file_size,
            "url": self.file_url,
            "uploaded_by": self.uploaded_by,
            "timestamp": int(uploaded.timestamp() * 1000) if uploaded else None,
        }

    def __repr__(self):
        return f"<ChecklistAttachment {self.id} {self.file_name!r}>"
