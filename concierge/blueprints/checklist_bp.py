"""Relocation checklist blueprint.

REST API for the merged (template + client progress) checklist and its
attachments.

Endpoint groups:
  Client checklist     GET   /api/v1/client/checklist[?client_id=]   (client_id: admins only)
                       PATCH /api/v1/client/checklist
  Client attachments   GET    /api/v1/client/checklist/files?item_id=
                       POST   /api/v1/client/checklist/files         (multipart)
                       DELETE /api/v1/client/checklist/files/<attachment_id>
                       GET    /api/v1/client/checklist/files/<attachment_id>/download
  Agent checklist      GET   /api/v1/agent/clients/<client_id>/checklist
                       PATCH /api/v1/agent/clients/<client_id>/checklist

The caller's client is resolved once per request (client_access) and passed
into the services explicitly. Service layer owns all business logic and commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, redirect, request
from werkzeug.exceptions import HTTPException

import concierge.services.attachment_service as attachments
import concierge.services.checklist_service as checklist
import concierge.services.client_access as client_access
from concierge.auth import require_identity
from concierge.core.exceptions import (
    NotFoundError,
    StoreUnavailableError,
    UnauthorizedError,
    ValidationError,
)
from concierge.utils.errors import E, api_error
from concierge.utils.helpers import is_valid_uuid, parse_datetime_input

logger = logging.getLogger(__name__)

checklist_bp = Blueprint("checklist", __name__, url_prefix="/api/v1")
checklist_files_bp = Blueprint("checklist_files", __name__, url_prefix="/api/v1/client/checklist/files")

MAX_NOTES_LENGTH = 2000
MAX_BATCH_SIZE = 200


# ── Error handlers ────────────────────────────────────────────────────────────


def _handle_not_found(error: NotFoundError):
    logger.info("Not found: %s", error)
    return api_error(E.NOT_FOUND, f"{error.resource} not found")


def _handle_validation(error: ValidationError):
    return api_error(E.BUSINESS_RULE, str(error), details=error.details)


def _handle_unauthorized(error: UnauthorizedError):
    return api_error(E.UNAUTHORIZED, str(error))


def _handle_store_unavailable(error: StoreUnavailableError):
    logger.error("Backing store unavailable: %s endpoint=%s", error, request.endpoint)
    return api_error(E.STORE_UNAVAILABLE, f"{error.store} temporarily unavailable, please retry")


def _handle_http(error: HTTPException):
    return jsonify({"error": error.description, "code": f"HTTP_{error.code}"}), error.code


def _handle_unexpected(error: Exception):
    logger.exception("Unexpected error in checklist endpoint=%s", request.endpoint)
    return api_error(E.INTERNAL, "Internal server error")


for _bp in (checklist_bp, checklist_files_bp):
    _bp.register_error_handler(NotFoundError, _handle_not_found)
    _bp.register_error_handler(ValidationError, _handle_validation)
    _bp.register_error_handler(UnauthorizedError, _handle_unauthorized)
    _bp.register_error_handler(StoreUnavailableError, _handle_store_unavailable)
    _bp.register_error_handler(HTTPException, _handle_http)
    _bp.register_error_handler(Exception, _handle_unexpected)


# ── Request helpers ───────────────────────────────────────────────────────────


def _client_scope() -> str:
    """Resolve the client the caller acts for; remembered on g for request logs."""
    client_id = client_access.resolve_client_id(
        g.jwt_user_id, g.jwt_roles, request.args.get("client_id"),
    )
    g.client_id = client_id
    return client_id


def _agent_scope(client_id: str) -> str:
    resolved = client_access.resolve_agent_client(g.jwt_user_id, g.jwt_roles, client_id)
    g.client_id = resolved
    return resolved


def _validate_update(raw, index: int) -> tuple[dict | None, dict | None]:
    """Shape-check one UpdateRequest. Returns (update, None) or (None, error)."""
    if not isinstance(raw, dict):
        return None, {"index": index, "error": "item must be an object"}

    template_id = raw.get("templateId")
    if not is_valid_uuid(template_id):
        return None, {"index": index, "field": "templateId", "error": "templateId must be a UUID"}

    update = {"templateId": template_id.lower()}

    if "is_completed" in raw and raw["is_completed"] is not None:
        if not isinstance(raw["is_completed"], bool):
            return None, {"index": index, "field": "is_completed", "error": "is_completed must be a boolean"}
        update["is_completed"] = raw["is_completed"]

    if "notes" in raw:
        notes = raw["notes"]
        if notes is not None and not isinstance(notes, str):
            return None, {"index": index, "field": "notes", "error": "notes must be a string or null"}
        if notes is not None and len(notes) > MAX_NOTES_LENGTH:
            return None, {
                "index": index, "field": "notes",
                "error": f"notes must be ≤ {MAX_NOTES_LENGTH} characters",
            }
        update["notes"] = notes

    if raw.get("completed_at") is not None:
        try:
            parse_datetime_input(raw["completed_at"])
        except ValueError as exc:
            return None, {"index": index, "field": "completed_at", "error": str(exc)}
        update["completed_at"] = raw["completed_at"]

    return update, None


def _parse_update_batch() -> tuple[list[dict] | None, tuple | None]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None, api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")

    items = data.get("items")
    if not isinstance(items, list):
        return None, api_error(E.VALIDATION_REQUIRED, "items must be a list")
    if len(items) > MAX_BATCH_SIZE:
        return None, api_error(E.VALIDATION_INVALID, f"items must contain ≤ {MAX_BATCH_SIZE} entries")

    updates, errors = [], []
    for index, raw in enumerate(items):
        update, error = _validate_update(raw, index)
        if error:
            errors.append(error)
        else:
            updates.append(update)

    if errors:
        return None, api_error(E.VALIDATION_INVALID, "Invalid checklist update", details=errors)
    return updates, None


def _apply_batch(client_id: str):
    updates, err = _parse_update_batch()
    if err:
        return err
    result = checklist.apply_checklist_updates(client_id, updates)
    return jsonify(result.to_dict()), 200


# ═════════════════════════════════════════════════════════════════════════
# Client checklist  (/api/v1/client/checklist)
# ═════════════════════════════════════════════════════════════════════════


@checklist_bp.route("/client/checklist", methods=["GET"])
@require_identity
def get_client_checklist():
    """Merged checklist for the caller's client.

    Returns: {"checklist": [MergedItem], "groupedByCategory": {category: [MergedItem]}}
    """
    client_id = _client_scope()
    return jsonify(checklist.get_checklist_view(client_id)), 200


@checklist_bp.route("/client/checklist", methods=["PATCH"])
@require_identity
def update_client_checklist():
    """Batch create-or-update of the caller's progress.

    Body: {"items": [{templateId, is_completed?, notes?, completed_at?}, ...]}
    Returns: {updated, count, attempted, failed, partial} (200, also when partial)
    """
    client_id = _client_scope()
    return _apply_batch(client_id)


# ═════════════════════════════════════════════════════════════════════════
# Agent checklist  (/api/v1/agent/clients/<client_id>/checklist)
# ═════════════════════════════════════════════════════════════════════════


@checklist_bp.route("/agent/clients/<client_id>/checklist", methods=["GET"])
@require_identity
def get_agent_client_checklist(client_id):
    """Merged checklist for a client the calling agent is assigned to."""
    resolved = _agent_scope(client_id)
    return jsonify(checklist.get_checklist_view(resolved)), 200


@checklist_bp.route("/agent/clients/<client_id>/checklist", methods=["PATCH"])
@require_identity
def update_agent_client_checklist(client_id):
    resolved = _agent_scope(client_id)
    return _apply_batch(resolved)


# ═════════════════════════════════════════════════════════════════════════
# Client attachments  (/api/v1/client/checklist/files)
# ═════════════════════════════════════════════════════════════════════════


@checklist_files_bp.route("", methods=["GET"])
@require_identity
def list_files():
    """Query params: item_id (required)"""
    item_id = request.args.get("item_id", "")
    if not item_id:
        return api_error(E.VALIDATION_REQUIRED, "item_id is required")
    if not is_valid_uuid(item_id):
        return api_error(E.VALIDATION_INVALID, "item_id must be a UUID")
    client_id = _client_scope()
    return jsonify({"files": attachments.list_attachments(client_id, item_id.lower())}), 200


@checklist_files_bp.route("", methods=["POST"])
@require_identity
def upload_file():
    """Attach a file to a checklist item.

    Multipart form: file (required), item_id or template_id.
    With only template_id the item is created first if the client never touched it.
    Returns: {"file": Attachment} (201)
    """
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return api_error(E.VALIDATION_REQUIRED, "file is required")

    item_id = (request.form.get("item_id") or "").strip() or None
    template_id = (request.form.get("template_id") or "").strip() or None
    if not item_id and not template_id:
        return api_error(E.VALIDATION_REQUIRED, "item_id or template_id is required")
    for field, value in (("item_id", item_id), ("template_id", template_id)):
        if value and not is_valid_uuid(value):
            return api_error(E.VALIDATION_INVALID, f"{field} must be a UUID")
    item_id = item_id.lower() if item_id else None
    template_id = template_id.lower() if template_id else None

    client_id = _client_scope()
    attachment = attachments.attach_file(
        client_id,
        item_id=item_id,
        template_id=template_id,
        file_bytes=upload.read(),
        file_name=upload.filename,
        mime_type=upload.mimetype,
        uploader_id=g.jwt_user_id,
    )
    return jsonify({"file": attachment}), 201


@checklist_files_bp.route("/<attachment_id>", methods=["DELETE"])
@require_identity
def delete_file(attachment_id):
    """Returns: {"deleted": true, "id": ..., "warning"?: ...}"""
    if not is_valid_uuid(attachment_id):
        return api_error(E.NOT_FOUND, "ChecklistAttachment not found")
    client_id = _client_scope()
    return jsonify(attachments.delete_attachment(client_id, attachment_id.lower())), 200


@checklist_files_bp.route("/<attachment_id>/download", methods=["GET"])
@require_identity
def download_file(attachment_id):
    """302 to a short-lived signed URL."""
    if not is_valid_uuid(attachment_id):
        return api_error(E.NOT_FOUND, "ChecklistAttachment not found")
    client_id = _client_scope()
    return redirect(attachments.create_download_url(client_id, attachment_id.lower()), code=302)
