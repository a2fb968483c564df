"""
Client-scoped query helpers.

Every get-by-id on client-owned data MUST go through get_scoped instead of
db.session.get(Model, pk). A bare primary-key lookup would let a caller who
knows (or guesses) another client's record id read or mutate it.

Usage:
    item = get_scoped(ChecklistItem, item_id, client_id=client_id)
    att = get_scoped(ChecklistAttachment, att_id, client_id=client_id)

A model without a client_id column raises ValueError at call time.
"""

import logging

from sqlalchemy import select

from concierge.core.exceptions import NotFoundError
from concierge.models import db

logger = logging.getLogger(__name__)


def get_scoped(model, pk: str, *, client_id: str | None = None):
    """Fetch a single entity by PK, filtered to the owning client.

    Access to another client's record is indistinguishable from a missing
    record: both raise NotFoundError.

    Raises:
        ValueError: no client_id given, or the model has no client_id column.
        NotFoundError: entity missing OR owned by another client.
    """
    if not client_id:
        raise ValueError(
            f"{model.__name__} id={pk} requires a client_id scope. "
            "Unscoped lookups are forbidden."
        )
    if not hasattr(model, "client_id"):
        raise ValueError(
            f"{model.__name__} has no client_id column. "
            "Refusing to perform an unscoped lookup."
        )

    stmt = select(model).where(model.id == pk, model.client_id == client_id)
    result = db.session.execute(stmt).scalar_one_or_none()

    if result is None:
        logger.debug("get_scoped: %s id=%s not found for client %s", model.__name__, pk, client_id)
        raise NotFoundError(resource=model.__name__, resource_id=pk)

    return result
