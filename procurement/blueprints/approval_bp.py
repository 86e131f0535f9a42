"""
Requisition Approval Blueprint — thin HTTP adapter over the approval engine.

Routes:
  POST   /requisitions/<rid>/submit              – submit for approval
  POST   /requisitions/<rid>/decision            – approve / reject current stage
  POST   /requisitions/<rid>/return              – send back to an earlier stage
  POST   /requisitions/<rid>/cancel              – cancel
  GET    /requisitions/<rid>/approval-status     – StatusView
  GET    /requisitions/<rid>/approval-history    – ledger entries
  GET    /approvals/pending                      – my pending approvals

Identity comes from the tenant context middleware (g.tenant_id, g.user_id).
The engine owns validation, authorization and commits; this module only
parses the body and renders the result.
"""

import logging

from flask import Blueprint, g, jsonify, request

from procurement.core.exceptions import NotFoundError
from procurement.middleware.permission_required import require_permission
from procurement.models.requisition import Requisition
from procurement.services import approval_engine
from procurement.services.approval_ledger import history_view
from procurement.services.permission_service import PERM_PR_VIEW
from procurement.utils.errors import E, api_error, error_response

logger = logging.getLogger(__name__)

approval_bp = Blueprint("approval_bp", __name__, url_prefix="/api/v1")


def _render(result):
    view, err = result
    if err:
        return error_response(err)
    return jsonify(view), 200


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


# ═════════════════════════════════════════════════════════════════════════════
# TRANSITIONS
# ═════════════════════════════════════════════════════════════════════════════

@approval_bp.route("/requisitions/<int:rid>/submit", methods=["POST"])
def submit_requisition(rid):
    return _render(approval_engine.submit(rid, g.user_id, g.tenant_id))


@approval_bp.route("/requisitions/<int:rid>/decision", methods=["POST"])
def decide_requisition(rid):
    """Body: { action: "approve" | "reject", comments? }"""
    data = _body()
    action = data.get("action")
    if not action:
        return api_error(E.VALIDATION_REQUIRED, "action is required")
    return _render(approval_engine.decide(rid, g.user_id, g.tenant_id, action, data.get("comments")))


@approval_bp.route("/requisitions/<int:rid>/return", methods=["POST"])
def return_requisition(rid):
    """Body: { stage_order: int, comments? }"""
    data = _body()
    if data.get("stage_order") is None:
        return api_error(E.VALIDATION_REQUIRED, "stage_order is required")
    stage_order = data["stage_order"]
    # bool is an int subclass; floats are not truncated
    if isinstance(stage_order, bool) or not isinstance(stage_order, int):
        return api_error(E.VALIDATION_INVALID, "stage_order must be an integer")
    return _render(
        approval_engine.return_to_stage(rid, g.user_id, g.tenant_id, stage_order, data.get("comments"))
    )


@approval_bp.route("/requisitions/<int:rid>/cancel", methods=["POST"])
def cancel_requisition(rid):
    return _render(approval_engine.cancel(rid, g.user_id, g.tenant_id))


# ═════════════════════════════════════════════════════════════════════════════
# READS
# ═════════════════════════════════════════════════════════════════════════════

@approval_bp.route("/requisitions/<int:rid>/approval-status", methods=["GET"])
@require_permission(PERM_PR_VIEW)
def approval_status(rid):
    return jsonify(approval_engine.get_status(rid, g.tenant_id)), 200


@approval_bp.route("/requisitions/<int:rid>/approval-history", methods=["GET"])
@require_permission(PERM_PR_VIEW)
def approval_history(rid):
    if Requisition.get_for_tenant(rid, g.tenant_id) is None:
        raise NotFoundError(resource="Requisition", resource_id=rid, tenant_id=g.tenant_id)
    return jsonify(history_view(rid, g.tenant_id)), 200


@approval_bp.route("/approvals/pending", methods=["GET"])
def pending_approvals():
    if g.user_id is None:
        return api_error(E.NOT_AUTHENTICATED, "Authenticated user is required")
    return jsonify(approval_engine.list_pending_for_approver(g.user_id, g.tenant_id)), 200
