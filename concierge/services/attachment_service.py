"""
Checklist Attachment Service: file metadata glue around the object store.

An attachment always hangs off a ChecklistItem (progress record). When the
caller only knows the template, the progress record is materialised first with
all defaults via checklist_service.ensure_progress_record().

Blob bytes go to object storage through the storage gateway; this service owns
only the metadata rows.

Failure policy:
    upload ok, metadata insert fails  → blob removed again, StoreUnavailableError
    blob delete fails on delete       → metadata still removed, warning returned
    (an orphaned blob is a lesser failure than a download link that 404s)
"""

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from concierge.core.exceptions import StoreUnavailableError, ValidationError
from concierge.integrations import storage_gateway as gw_module
from concierge.models import db
from concierge.models.checklist import ChecklistAttachment, ChecklistItem
from concierge.services.checklist_service import ensure_progress_record
from concierge.services.helpers.scoped_queries import get_scoped
from concierge.utils.file_sanitization import generate_object_name, sanitize_file_name

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTACHMENT_BYTES = 6 * 1024 * 1024

ALLOWED_MIME_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
})

SIGNED_URL_TTL_SECONDS = 60


def _max_attachment_bytes() -> int:
    return int(current_app.config.get("MAX_ATTACHMENT_BYTES", DEFAULT_MAX_ATTACHMENT_BYTES))


def _validate_file(file_bytes: bytes, mime_type: str | None) -> None:
    if mime_type not in ALLOWED_MIME_TYPES:
        raise ValidationError(
            "Unsupported file type. Allowed: JPG, PNG, WEBP, PDF, DOC, DOCX, TXT.",
            details={"mime_type": mime_type},
        )
    limit = _max_attachment_bytes()
    if not file_bytes:
        raise ValidationError("File is empty", details={"file": "empty"})
    if len(file_bytes) > limit:
        raise ValidationError(
            f"File must be at most {limit // (1024 * 1024)} MB",
            details={"size": len(file_bytes), "max_size": limit},
        )


def _resolve_item(client_id: str, item_id: str | None, template_id: str | None) -> ChecklistItem:
    if item_id:
        return get_scoped(ChecklistItem, item_id, client_id=client_id)
    if template_id:
        return ensure_progress_record(client_id, template_id)
    raise ValidationError("item_id or template_id is required")


def attach_file(
    client_id: str,
    *,
    file_bytes: bytes,
    file_name: str,
    mime_type: str,
    uploader_id: str,
    item_id: str | None = None,
    template_id: str | None = None,
) -> dict:
    """Upload a file and record its metadata against a progress record.

    Args:
        client_id:   Resolved, authorised client id.
        item_id:     Existing progress record id (scoped to client_id), or
        template_id: template whose progress record is found or created.
        uploader_id: Identity subject of the uploading user (client, delegate or agent).

    Returns:
        Attachment dict (see ChecklistAttachment.to_dict).

    Raises:
        ValidationError:       bad type/size, or neither id supplied.
        NotFoundError:         item_id not owned by client_id.
        TemplateNotFoundError: template_id not in the catalog.
        StoreUnavailableError: upload or metadata write failed.
    """
    _validate_file(file_bytes, mime_type)
    item = _resolve_item(client_id, item_id, template_id)

    display_name = sanitize_file_name(file_name)
    storage_path = f"{client_id}/checklist/{item.id}/{generate_object_name(file_name)}"

    gateway = gw_module.storage_gateway
    result = gateway.put(storage_path, file_bytes, mime_type)
    if not result.ok:
        logger.error(
            "Attachment upload failed: %s", result.error,
            extra={"client_id": client_id, "item_id": item.id},
        )
        raise StoreUnavailableError("object_storage", result.error)

    attachment = ChecklistAttachment(
        checklist_item_id=item.id,
        client_id=client_id,
        file_name=display_name,
        mime_type=mime_type,
        file_size=len(file_bytes),
        storage_path=storage_path,
        file_url=result.url,
        uploaded_by=uploader_id,
    )
    db.session.add(attachment)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception(
            "Attachment metadata insert failed; removing uploaded blob",
            extra={"client_id": client_id, "item_id": item.id},
        )
        cleanup = gateway.remove(storage_path)
        if not cleanup.ok:
            logger.warning("Orphaned blob left in storage: %s (%s)", storage_path, cleanup.error)
        raise StoreUnavailableError("database", str(exc.__class__.__name__)) from exc

    logger.info(
        "Attachment stored",
        extra={
            "client_id": client_id,
            "item_id": item.id,
            "attachment_id": attachment.id,
            "uploaded_by": uploader_id,
        },
    )
    return attachment.to_dict()


def list_attachments(client_id: str, item_id: str) -> list[dict]:
    """Live listing of a progress record's attachments, oldest first."""
    item = get_scoped(ChecklistItem, item_id, client_id=client_id)
    rows = (
        ChecklistAttachment.query
        .filter_by(checklist_item_id=item.id, client_id=client_id)
        .order_by(ChecklistAttachment.uploaded_at.asc())
        .all()
    )
    return [row.to_dict() for row in rows]


def delete_attachment(client_id: str, attachment_id: str) -> dict:
    """Remove an attachment's metadata, then its blob.

    The metadata delete is committed before the blob is touched. A blob
    left behind after that is only logged.

    Returns:
        {"deleted": True, "id": ...} plus "warning" when the blob could not be
        removed.

    Raises:
        NotFoundError:         attachment missing or owned by another client.
        StoreUnavailableError: the metadata delete itself failed.
    """
    attachment = get_scoped(ChecklistAttachment, attachment_id, client_id=client_id)
    storage_path = attachment.storage_path

    db.session.delete(attachment)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception(
            "Attachment metadata delete failed",
            extra={"client_id": client_id, "attachment_id": attachment_id},
        )
        raise StoreUnavailableError("database", str(exc.__class__.__name__)) from exc

    response = {"deleted": True, "id": attachment_id}
    blob = gw_module.storage_gateway.remove(storage_path)
    if not blob.ok:
        logger.warning(
            "Blob delete failed after metadata removal: %s (%s)", storage_path, blob.error,
            extra={"client_id": client_id, "attachment_id": attachment_id},
        )
        response["warning"] = "File removed from checklist, but storage cleanup failed."

    logger.info("Attachment deleted", extra={"client_id": client_id, "attachment_id": attachment_id})
    return response


def create_download_url(client_id: str, attachment_id: str) -> str:
    """Short-lived signed URL for downloading an attachment."""
    attachment = get_scoped(ChecklistAttachment, attachment_id, client_id=client_id)
    result = gw_module.storage_gateway.create_signed_url(
        attachment.storage_path, expires_in=SIGNED_URL_TTL_SECONDS,
    )
    if not result.ok:
        logger.error(
            "Signed URL creation failed: %s", result.error,
            extra={"client_id": client_id, "attachment_id": attachment_id},
        )
        raise StoreUnavailableError("object_storage", result.error)
    return result.url
