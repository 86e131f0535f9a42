"""
Platform-wide exception hierarchy.

These are the exceptions services RAISE.  Approval transitions do not
raise for expected outcomes (invalid state, missing approver, permission
denied); they return structured error dicts instead, see
services/approval_engine.py.  What remains here are the cases a caller
cannot reasonably branch on: lookups that must exist, configuration
that violates a business rule, and writes to immutable records.

Usage:
    from procurement.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Requisition", resource_id=42, tenant_id=1)
    raise ValidationError("Role inheritance cycle", details={"chain": [...]})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    Security note: Used for BOTH genuinely missing records AND cross-tenant
    access attempts, so a caller can never tell whether a record exists in
    another tenant.

    Args:
        resource: Human-readable model/entity name (e.g. "Requisition").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
        tenant_id: Optional, the scope that was enforced. For debug logging only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        tenant_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.tenant_id = tenant_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if tenant_id is not None:
            msg += f" (tenant={tenant_id})"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Maps to HTTP 422 in the app-level error handler.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would create a duplicate unique constraint violation.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class ImmutableRecordError(Exception):
    """Raised by ORM listeners when code tries to edit or delete an append-only row."""

    def __init__(self, entity_type: str, entity_id: int | str | None, reason: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Immutability violation on {entity_type} {entity_id}: {reason}")
