"""
Checklist Service: template/progress merge (read) and upsert (write).

Read path:
    ChecklistTemplate catalog + the client's ChecklistItem rows
        → get_merged_checklist() → one MergedItem per template, catalog order
        → group_by_phase()       → {category_key: [MergedItem, ...]}

Write path:
    apply_checklist_updates(client_id, [UpdateRequest, ...])
        → per item: template check → find-or-create (client, template)
                    → partial update → commit
        → BatchResult (updated rows + attempted/failed counts)

Design decisions:
    - The catalog defines the ordering: (category, order_num) ascending.
      Progress rows never reorder or filter the view; a template with no
      progress row renders with defaults.
    - The caller resolves and authorises client_id. Every ChecklistItem
      lookup here is filtered by that client_id, so a foreign record is
      indistinguishable from a missing one.
    - Batch items are independent transactions. One failing item never
      aborts the rest; the caller gets attempted vs. succeeded counts.
    - (client_id, template_id) is unique in the store. A concurrent insert
      that loses the race re-reads the winner and updates it instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from concierge.core.exceptions import TemplateNotFoundError
from concierge.models import db
from concierge.models.checklist import (
    ChecklistAttachment,
    ChecklistItem,
    ChecklistTemplate,
    category_to_phase,
    isoformat_utc,
    parse_description,
    phase_to_category,
)
from concierge.utils.helpers import parse_datetime_input

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════════
# Read path: merge
# ═════════════════════════════════════════════════════════════════════════════


def _fetch_templates() -> list[ChecklistTemplate]:
    return (
        ChecklistTemplate.query
        .order_by(ChecklistTemplate.category.asc(), ChecklistTemplate.order_num.asc())
        .all()
    )


def _fetch_progress(client_id: str) -> list[ChecklistItem]:
    return ChecklistItem.query.filter_by(client_id=client_id).all()


def _fetch_attachments(client_id: str, item_ids: list[str]) -> dict[str, list[dict]]:
    """Attachment dicts keyed by checklist_item_id. One query for all matched items."""
    if not item_ids:
        return {}
    rows = (
        ChecklistAttachment.query
        .filter(
            ChecklistAttachment.client_id == client_id,
            ChecklistAttachment.checklist_item_id.in_(item_ids),
        )
        .order_by(ChecklistAttachment.uploaded_at.asc())
        .all()
    )
    by_item: dict[str, list[dict]] = {}
    for att in rows:
        by_item.setdefault(att.checklist_item_id, []).append(att.to_dict())
    return by_item


def _merge_item(template: ChecklistTemplate, item: ChecklistItem | None, files: list[dict]) -> dict:
    merged = {
        "templateId": template.id,
        "title": template.title,
        "category": template.sub_category or "",
        "phase": category_to_phase(template.category),
        "description": parse_description(template.description),
        "isCompleted": False,
        "memo": "",
        "files": files,
        "isRequired": bool(template.is_required),
        "referenceUrl": template.reference_url,
        "orderNum": template.order_num,
    }
    if item is not None:
        merged["id"] = item.id
        merged["isCompleted"] = bool(item.is_completed)
        merged["memo"] = item.notes or ""
        if item.completed_at is not None:
            merged["completedAt"] = isoformat_utc(item.completed_at)
    return merged


def get_merged_checklist(client_id: str) -> list[dict]:
    """Return one merged item per catalog template for the given client.

    Args:
        client_id: Resolved, authorised client id. Trusted as-is.

    Returns:
        List of MergedItem dicts in catalog order. Its length always equals
        the catalog size; an empty catalog yields [].

    Raises:
        UnknownCategoryError: a template's category has no phase mapping.
        SQLAlchemyError: the template catalog itself could not be read.
    """
    templates = _fetch_templates()
    if not templates:
        logger.info("Checklist catalog is empty", extra={"client_id": client_id})
        return []

    # A progress fetch failure degrades to the template-only view.
    try:
        progress = _fetch_progress(client_id)
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception(
            "Checklist progress fetch failed; returning template-only view",
            extra={"client_id": client_id},
        )
        progress = []

    items_by_template = {item.template_id: item for item in progress}

    try:
        files_by_item = _fetch_attachments(client_id, [item.id for item in progress])
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception(
            "Checklist attachment fetch failed; returning items without files",
            extra={"client_id": client_id},
        )
        files_by_item = {}

    merged = []
    for template in templates:
        item = items_by_template.get(template.id)
        files = files_by_item.get(item.id, []) if item is not None else []
        merged.append(_merge_item(template, item, files))

    logger.debug(
        "Checklist merged",
        extra={
            "client_id": client_id,
            "template_count": len(templates),
            "progress_count": len(progress),
        },
    )
    return merged


def group_by_phase(items: list[dict]) -> dict[str, list[dict]]:
    """Group merged items by phase category key, preserving input order."""
    grouped: dict[str, list[dict]] = {}
    for item in items:
        grouped.setdefault(phase_to_category(item["phase"]), []).append(item)
    return grouped


def get_checklist_view(client_id: str) -> dict:
    """Response body shared by the client and agent checklist endpoints."""
    checklist = get_merged_checklist(client_id)
    return {
        "checklist": checklist,
        "groupedByCategory": group_by_phase(checklist),
    }


# ═════════════════════════════════════════════════════════════════════════════
# Write path: upsert
# ═════════════════════════════════════════════════════════════════════════════


@dataclass
class BatchResult:
    """Outcome of apply_checklist_updates. Partial success is not an error."""

    attempted: int
    updated: list[dict] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.updated)

    @property
    def partial(self) -> bool:
        return self.count < self.attempted

    def to_dict(self) -> dict:
        return {
            "updated": self.updated,
            "count": self.count,
            "attempted": self.attempted,
            "failed": self.failed,
            "partial": self.partial,
        }


def _require_template(template_id: str | None) -> ChecklistTemplate:
    template = db.session.get(ChecklistTemplate, template_id) if template_id else None
    if template is None:
        raise TemplateNotFoundError(template_id)
    return template


def _find_item(client_id: str, template_id: str) -> ChecklistItem | None:
    return ChecklistItem.query.filter_by(client_id=client_id, template_id=template_id).first()


def _find_or_create_item(client_id: str, template_id: str) -> tuple[ChecklistItem, bool]:
    """Return (item, created). Flushes a new row; the caller commits."""
    item = _find_item(client_id, template_id)
    if item is not None:
        return item, False

    item = ChecklistItem(
        client_id=client_id,
        template_id=template_id,
        is_completed=False,
        notes=None,
        completed_at=None,
    )
    db.session.add(item)
    try:
        db.session.flush()
    except IntegrityError:
        # Another request inserted the same (client, template) pair first.
        db.session.rollback()
        item = _find_item(client_id, template_id)
        if item is None:
            raise
        logger.info(
            "Checklist item insert lost a race; updating existing row",
            extra={"client_id": client_id, "template_id": template_id},
        )
        return item, False
    return item, True


def _apply_fields(item: ChecklistItem, update: dict, now: datetime) -> None:
    """Apply only the fields present in the update (partial update).

    completed_at rules:
        is_completed True,  explicit completed_at → trust the supplied value
        is_completed True,  none supplied         → now, unless already completed
        is_completed False                        → cleared
        is_completed absent, completed_at given   → applied only if item is completed
    """
    explicit_completed_at = parse_datetime_input(update.get("completed_at"))

    if update.get("is_completed") is not None:
        completed = bool(update["is_completed"])
        if completed:
            if explicit_completed_at is not None:
                item.completed_at = explicit_completed_at
            elif not item.is_completed or item.completed_at is None:
                item.completed_at = now
        else:
            item.completed_at = None
        item.is_completed = completed
    elif explicit_completed_at is not None and item.is_completed:
        item.completed_at = explicit_completed_at

    if "notes" in update:
        item.notes = update["notes"] or None


def _apply_one(client_id: str, update: dict) -> dict:
    template_id = update.get("templateId")
    _require_template(template_id)

    now = datetime.now(timezone.utc)
    item, created = _find_or_create_item(client_id, template_id)
    _apply_fields(item, update, now)
    db.session.commit()

    logger.info(
        "Checklist item %s",
        "created" if created else "updated",
        extra={"client_id": client_id, "template_id": template_id, "item_id": item.id},
    )
    return item.to_dict()


def apply_checklist_updates(client_id: str, updates: list[dict]) -> BatchResult:
    """Idempotently create-or-update the client's progress for each update.

    Each update is ``{"templateId", "is_completed"?, "notes"?, "completed_at"?}``.
    Items are processed independently; failures are collected, not raised.

    Args:
        client_id: Resolved, authorised client id.
        updates:   UpdateRequest dicts (already shape-validated by the caller).

    Returns:
        BatchResult with successful rows in ``updated`` and failures in
        ``failed`` as ``{"templateId", "error"}`` entries.
    """
    result = BatchResult(attempted=len(updates))

    for update in updates:
        template_id = update.get("templateId")
        try:
            result.updated.append(_apply_one(client_id, update))
        except TemplateNotFoundError:
            logger.warning(
                "Checklist update skipped; template not found",
                extra={"client_id": client_id, "template_id": template_id},
            )
            result.failed.append({"templateId": template_id, "error": "TemplateNotFound"})
        except ValueError as exc:
            db.session.rollback()
            result.failed.append({"templateId": template_id, "error": "ValidationError", "detail": str(exc)})
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception(
                "Checklist update failed in store",
                extra={"client_id": client_id, "template_id": template_id},
            )
            result.failed.append({"templateId": template_id, "error": "StoreUnavailable"})

    if result.partial:
        logger.warning(
            "Checklist batch partially applied: %d/%d",
            result.count, result.attempted,
            extra={"client_id": client_id},
        )
    else:
        logger.info(
            "Checklist batch applied: %d items",
            result.count,
            extra={"client_id": client_id},
        )
    return result


def ensure_progress_record(client_id: str, template_id: str) -> ChecklistItem:
    """Find or create the client's progress record for a template, all defaults.

    Raises:
        TemplateNotFoundError: template_id is not in the catalog.
    """
    _require_template(template_id)
    item, created = _find_or_create_item(client_id, template_id)
    if created:
        db.session.commit()
        logger.info(
            "Checklist item materialised with defaults",
            extra={"client_id": client_id, "template_id": template_id, "item_id": item.id},
        )
    return item
