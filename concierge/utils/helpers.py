"""Shared input-parsing helpers for blueprints and services.

parse_datetime_input:  raises ValueError on bad input (blueprints turn it into 400)
is_valid_uuid:         format check for opaque ids arriving in URLs / bodies
"""
import logging
import uuid
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def parse_datetime_input(value):
    """Parse an ISO-8601 datetime string into an aware UTC datetime.

    Accepts a trailing ``Z``. Naive input is taken to be UTC.
    Returns None for empty input; raises ValueError for anything unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        if not isinstance(value, str):
            raise ValueError("Invalid datetime. Use ISO-8601, e.g. 2025-01-31T09:00:00Z.")
        raw = value.strip()
        if raw.endswith("Z") or raw.endswith("z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError as exc:
            raise ValueError(
                "Invalid datetime. Use ISO-8601, e.g. 2025-01-31T09:00:00Z."
            ) from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def is_valid_uuid(value) -> bool:
    """True when value is a canonical UUID string."""
    if not isinstance(value, str):
        return False
    try:
        return str(uuid.UUID(value)) == value.lower()
    except ValueError:
        return False
