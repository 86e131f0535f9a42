"""
Approval History Ledger — append-only record of accepted transitions.

``append`` only adds and flushes; the caller (approval engine) commits
it together with the state change it describes, so an entry exists if
and only if its transition was committed.  Existing rows are protected
by the ORM listeners in models/approval.py.
"""

import logging

from procurement.core.exceptions import ValidationError
from procurement.models import db
from procurement.models.approval import LEDGER_ACTIONS, ApprovalHistory, _utcnow

logger = logging.getLogger(__name__)


def append(
    *,
    tenant_id: int,
    requisition_id: int,
    action_type: str,
    status_to: str,
    status_from: str | None = None,
    approval_instance_id: int | None = None,
    stage=None,
    actor=None,
    comments: str | None = None,
    approver_role: str | None = None,
) -> ApprovalHistory:
    """Add one ledger entry to the current transaction.

    ``stage`` is the ApprovalStage the action closed (or returned to);
    ``actor`` is the acting User.
    """
    if action_type not in LEDGER_ACTIONS:
        raise ValidationError(
            f"Unknown ledger action {action_type!r}",
            details={"allowed": sorted(LEDGER_ACTIONS)},
        )
    entry = ApprovalHistory(
        tenant_id=tenant_id,
        requisition_id=requisition_id,
        approval_instance_id=approval_instance_id,
        stage_order=stage.order if stage is not None else None,
        stage_name=stage.name if stage is not None else None,
        action_type=action_type,
        action_by_id=actor.id if actor is not None else None,
        action_by_name=(actor.full_name or actor.email) if actor is not None else None,
        action_date=_utcnow(),
        status_from=status_from,
        status_to=status_to,
        comments=comments,
        approver_role=approver_role,
    )
    db.session.add(entry)
    db.session.flush()
    logger.debug(
        "Ledger %s entry #%d", action_type, entry.id,
        extra={"tenant_id": tenant_id, "requisition_id": requisition_id, "action": action_type},
    )
    return entry


def list_for(requisition_id: int, tenant_id: int, approval_instance_id: int | None = None) -> list[ApprovalHistory]:
    """Entries of a requisition in append order, optionally for one instance."""
    q = ApprovalHistory.query_for_tenant(tenant_id).filter_by(requisition_id=requisition_id)
    if approval_instance_id is not None:
        q = q.filter_by(approval_instance_id=approval_instance_id)
    return q.order_by(ApprovalHistory.id).all()


def history_view(requisition_id: int, tenant_id: int) -> list[dict]:
    return [h.to_dict() for h in list_for(requisition_id, tenant_id)]
