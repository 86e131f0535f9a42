"""Standardised API error responses.

Usage
-----
    from procurement.utils.errors import api_error, error_payload, E

    return api_error(E.NOT_FOUND, "Requisition not found")

    # service layer: build the dict, let the blueprint render it
    return None, error_payload(E.INVALID_TRANSITION, "Requisition is not in progress")
"""

from __future__ import annotations

from flask import jsonify


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants.

    Convention:
     • ERR_  prefix for standard application errors
     • APPROVAL_ prefix for workflow-specific outcomes
    """

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    # Business rule – HTTP 422
    VALIDATION_RULE = "ERR_VALIDATION_RULE"

    # Identity / access
    NOT_AUTHENTICATED = "ERR_NOT_AUTHENTICATED"
    PERMISSION_DENIED = "ERR_PERMISSION_DENIED"

    # Not-found – HTTP 404 (also cross-tenant access)
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict / duplicate – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"

    # Approval workflow
    NOT_ELIGIBLE_APPROVER = "APPROVAL_NOT_ELIGIBLE_APPROVER"
    NO_ELIGIBLE_APPROVER = "APPROVAL_NO_ELIGIBLE_APPROVER"
    INVALID_TRANSITION = "APPROVAL_INVALID_TRANSITION"
    CONCURRENT_MODIFICATION = "APPROVAL_CONCURRENT_MODIFICATION"

    # Server – HTTP 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.VALIDATION_RULE: 422,
    E.NOT_AUTHENTICATED: 401,
    E.PERMISSION_DENIED: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.NOT_ELIGIBLE_APPROVER: 403,
    E.NO_ELIGIBLE_APPROVER: 422,
    E.INVALID_TRANSITION: 409,
    E.CONCURRENT_MODIFICATION: 409,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}


def error_payload(code: str, message: str, *, details: dict | None = None) -> dict:
    """Build the service-layer error dict ``{"error", "code", "status"[, "details"]}``."""
    payload = {
        "error": message,
        "code": code,
        "status": _DEFAULT_STATUS.get(code, 400),
    }
    if details:
        payload["details"] = details
    return payload


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload.

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def error_response(err: dict):
    """Render a service-layer error dict (see ``error_payload``) as a response."""
    return api_error(
        err.get("code", E.INTERNAL),
        err.get("error", "Request failed"),
        status=err.get("status"),
        details=err.get("details"),
    )
