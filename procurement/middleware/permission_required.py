"""
Permission Decorators — RBAC guards for routes that are not approval
transitions.

Approval transitions authorize inside the engine (the check is part of
the transition's validation), so these decorators are for plain reads.

Usage:
    @bp.route("/api/v1/requisitions/<int:req_id>/approval-history", methods=["GET"])
    @require_permission("pr.view")
    def approval_history(req_id):
        ...
"""

import functools
import logging

from flask import g

from procurement.services.permission_service import check_permission
from procurement.utils.errors import error_response

logger = logging.getLogger(__name__)


def require_permission(codename: str):
    """
    Decorator: require the caller (``g.user_id`` in ``g.tenant_id``) to
    hold a specific permission.

    Administrators pass every check.

    Args:
        codename: Permission codename, e.g. "pr.view"
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user_id = getattr(g, "user_id", None)
            tenant_id = getattr(g, "tenant_id", None)
            err = check_permission(user_id, tenant_id, codename)
            if err:
                logger.warning(
                    "User %s denied: missing permission '%s' on %s",
                    user_id, codename, f.__name__,
                    extra={"tenant_id": tenant_id, "user_id": user_id, "error_code": err["code"]},
                )
                return error_response(err)
            return f(*args, **kwargs)
        return decorated
    return decorator
