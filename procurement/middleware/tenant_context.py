"""
Tenant Context Middleware — enforces tenant isolation on API requests.

Authentication happens upstream (gateway / auth service).  The verified
identity reaches this service as two request headers:

    X-Tenant-Id   tenant of the caller (required on every /api/v1 call)
    X-User-Id     acting user (optional here; operations that need an
                  actor report NOT_AUTHENTICATED themselves)

This middleware:
  1. parses both headers into ``g.tenant_id`` / ``g.user_id``
  2. verifies the tenant exists and is active (403 otherwise)
  3. sets ``g.tenant`` to the Tenant model instance

Chain order:
  timing.py  →  tenant_context.py  →  route handler
"""

import logging

from flask import g, request

from procurement.models import db
from procurement.models.auth import Tenant
from procurement.utils.errors import E, api_error

logger = logging.getLogger(__name__)

TENANT_HEADER = "X-Tenant-Id"
USER_HEADER = "X-User-Id"

# Paths that skip tenant context
TENANT_SKIP_PREFIXES = (
    "/api/v1/health",
)


def _header_int(name):
    """Return (value, error).  Missing header → (None, None)."""
    raw = (request.headers.get(name) or "").strip()
    if not raw:
        return None, None
    if not raw.isdigit():
        return None, api_error(E.VALIDATION_INVALID, f"{name} must be a positive integer")
    return int(raw), None


def init_tenant_context(app):
    """Register tenant context middleware as a before_request hook."""

    @app.before_request
    def _tenant_context():
        g.tenant = None
        g.tenant_id = None
        g.user_id = None

        if not request.path.startswith("/api/v1/"):
            return None

        for prefix in TENANT_SKIP_PREFIXES:
            if request.path.startswith(prefix):
                return None

        tenant_id, err = _header_int(TENANT_HEADER)
        if err:
            return err
        if tenant_id is None:
            return api_error(E.NOT_AUTHENTICATED, f"{TENANT_HEADER} header is required")

        user_id, err = _header_int(USER_HEADER)
        if err:
            return err

        tenant = db.session.get(Tenant, tenant_id)
        if tenant is None:
            logger.warning("Tenant %d not found", tenant_id, extra={"tenant_id": tenant_id})
            return api_error(E.PERMISSION_DENIED, "Tenant not found", status=403)

        if not tenant.is_active:
            logger.warning("Tenant %d is deactivated", tenant_id, extra={"tenant_id": tenant_id})
            return api_error(E.PERMISSION_DENIED, "Tenant account is deactivated", status=403)

        g.tenant = tenant
        g.tenant_id = tenant_id
        g.user_id = user_id
        return None

    logger.info("Tenant context middleware installed")
