"""
Service-layer exception hierarchy.

Services raise these; blueprints register handlers against them once and
map each type to a consistent HTTP status and JSON body.

Usage:
    from concierge.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="ChecklistItem", resource_id=item_id)
    raise ValidationError("notes is too long", details={"notes": "max 2000"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    Used for BOTH genuinely missing records AND records owned by another
    client. A 403 would confirm the resource exists; a 404 does not.

    Args:
        resource: Human-readable entity name (e.g. "ChecklistItem").
        resource_id: The id that was looked up. Included in logs, not in HTTP response.
        client_id: Optional scope that was enforced. For debug logging only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: str | None = None,
        client_id: str | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.client_id = client_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if client_id is not None:
            msg += f" (client={client_id})"
        super().__init__(msg)


class TemplateNotFoundError(NotFoundError):
    """A checklist write referenced a template id that is not in the catalog."""

    def __init__(self, template_id: str | None) -> None:
        super().__init__(resource="ChecklistTemplate", resource_id=template_id)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Distinct from HTTP 400 (malformed input, caught in blueprint): the data
    was well-formed but violated a business rule.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class UnknownCategoryError(ValidationError):
    """A template carries a category with no timeline phase mapping."""

    def __init__(self, category: str | None) -> None:
        self.category = category
        super().__init__(
            f"Unknown checklist category {category!r}",
            details={"category": category},
        )


class UnauthorizedError(Exception):
    """The caller's identity is missing or does not resolve to a client.

    Maps to HTTP 401.
    """

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class StoreUnavailableError(Exception):
    """A call to the relational store or the object store failed.

    Maps to HTTP 503. Callers decide whether to retry.

    Args:
        store: "database" or "object_storage".
        message: Underlying error summary (logged, not echoed verbatim to clients).
    """

    def __init__(self, store: str, message: str | None = None) -> None:
        self.store = store
        msg = f"{store} unavailable"
        if message:
            msg += f": {message}"
        super().__init__(msg)
