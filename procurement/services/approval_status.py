"""
Approval Status Projector — read-only view of where a requisition stands.

StatusView shape:
    {
        "requisition_id": 12,
        "requisition_status": "in_progress",
        "status": "in_progress",              # instance status, or "not_started"
        "current_stage": {"stage": "Department Approval", "stage_order": 1} | None,
        "current_approvers": [{"user_id", "name", "email", "role"}],
        "completed_stages": [
            {"stage", "stage_order", "approver": {"user_id", "name"},
             "status", "comments", "action_date"},
        ],
        "is_complete": False,
    }

Completed stages are replayed from the ledger entries of the current
approval instance: approved / rejected entries close a stage, a returned
entry re-opens every stage at or after its target.
"""

from procurement.core.exceptions import NotFoundError
from procurement.models.approval import (
    ACTION_APPROVED,
    ACTION_REJECTED,
    ACTION_RETURNED,
    INSTANCE_NOT_STARTED,
    ApprovalInstance,
)
from procurement.models.requisition import Requisition
from procurement.services import approval_ledger
from procurement.services.approver_resolver import approver_role_label, current_approvers


def current_instance(requisition):
    return ApprovalInstance.get_for_tenant(requisition.approval_instance_id, requisition.tenant_id)


def _completed_stages(entries):
    closed = {}
    for h in entries:
        if h.action_type in (ACTION_APPROVED, ACTION_REJECTED):
            closed[h.stage_order] = {
                "stage": h.stage_name,
                "stage_order": h.stage_order,
                "approver": {"user_id": h.action_by_id, "name": h.action_by_name},
                "status": h.action_type,
                "comments": h.comments,
                "action_date": h.action_date.isoformat() if h.action_date else None,
            }
        elif h.action_type == ACTION_RETURNED and h.stage_order is not None:
            for order in [o for o in closed if o >= h.stage_order]:
                del closed[order]
    return [closed[o] for o in sorted(closed)]


def build_status_view(requisition) -> dict:
    view = {
        "requisition_id": requisition.id,
        "requisition_status": requisition.status,
        "status": INSTANCE_NOT_STARTED,
        "current_stage": None,
        "current_approvers": [],
        "completed_stages": [],
        "is_complete": False,
    }
    instance = current_instance(requisition)
    if instance is None:
        return view

    stage = instance.current_stage
    if stage is not None:
        role = approver_role_label(stage)
        view["current_stage"] = {"stage": stage.name, "stage_order": stage.order}
        view["current_approvers"] = [
            {"user_id": u.id, "name": u.full_name, "email": u.email, "role": role}
            for u in current_approvers(requisition, stage)
        ]
    view["status"] = instance.status
    view["is_complete"] = bool(instance.is_complete)
    view["completed_stages"] = _completed_stages(
        approval_ledger.list_for(requisition.id, requisition.tenant_id, instance.id)
    )
    return view


def get_approval_status(requisition_id: int, tenant_id: int) -> dict:
    """StatusView of a requisition.  Raises NotFoundError outside the tenant."""
    requisition = Requisition.get_for_tenant(requisition_id, tenant_id)
    if requisition is None:
        raise NotFoundError(resource="Requisition", resource_id=requisition_id, tenant_id=tenant_id)
    return build_status_view(requisition)
