"""
Approval Engine — the requisition approval state machine.

Public API (all tenant-scoped):
    submit(requisition_id, actor_id, tenant_id)
    decide(requisition_id, actor_id, tenant_id, action, comments=None)
    return_to_stage(requisition_id, actor_id, tenant_id, stage_order, comments=None)
    cancel(requisition_id, actor_id, tenant_id)
    get_status(requisition_id, tenant_id)
    list_pending_for_approver(user_id, tenant_id)
    authorize(user_id, tenant_id, permission_code)

Transitions return ``(status_view, None)`` on success and
``(None, {"error", "code", "status"})`` on an expected failure (invalid
state, missing permission, ineligible approver, ...).  Nothing is
written when a transition fails.

Instance lifecycle:
    not_started → in_progress → approved | rejected
    any non-terminal state → cancelled
    "submitted" and "returned" are transient requisition states; the
    ledger records them as actions, the stored status moves straight on
    to in_progress.

Required permissions:
    submit        pr.submit
    decide        pr.approve  (+ eligibility on the current stage)
    return        pr.approve  (+ eligibility on the current stage)
    cancel        pr.cancel

Concurrency:
    Each transition runs validate → mutate → ledger → commit under an
    in-process lock keyed by (tenant_id, requisition_id).  Across
    processes every transition rewrites the requisition row, whose
    version column (like ApprovalInstance.version) makes a lost race
    raise StaleDataError on commit; the transition is rolled back and
    re-validated against fresh state, up to APPROVAL_MAX_ATTEMPTS times,
    then reported as CONCURRENT_MODIFICATION.
"""

import contextlib
import functools
import logging
import threading

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from procurement.core.exceptions import ValidationError
from procurement.models import db
from procurement.models.approval import (
    ACTION_APPROVED,
    ACTION_CANCELLED,
    ACTION_REJECTED,
    ACTION_RETURNED,
    ACTION_SUBMITTED,
    DECISION_APPROVED,
    DECISION_REJECTED,
    INSTANCE_APPROVED,
    INSTANCE_CANCELLED,
    INSTANCE_IN_PROGRESS,
    INSTANCE_REJECTED,
    STAGE_APPROVED,
    STAGE_IN_PROGRESS,
    STAGE_NOT_STARTED,
    STAGE_REJECTED,
    ApprovalDecision,
    ApprovalInstance,
    ApprovalStage,
    _utcnow,
)
from procurement.models.auth import User
from procurement.models.requisition import (
    REQ_APPROVED,
    REQ_CANCELLED,
    REQ_IN_PROGRESS,
    REQ_REJECTED,
    SUBMITTABLE_STATUSES,
    Requisition,
)
from procurement.services import approval_ledger
from procurement.services.approval_status import build_status_view, current_instance, get_approval_status
from procurement.services.approver_resolver import (
    active_workflow,
    approver_role_label,
    build_stage_plan,
    is_eligible_approver,
    resolve_approvers,
)
from procurement.services.permission_service import (
    PERM_PR_APPROVE,
    PERM_PR_CANCEL,
    PERM_PR_SUBMIT,
    authorize,
    check_permission,
)
from procurement.utils.errors import E, error_payload

logger = logging.getLogger(__name__)

__all__ = [
    "submit",
    "decide",
    "return_to_stage",
    "cancel",
    "get_status",
    "list_pending_for_approver",
    "authorize",
]

ACTION_APPROVE = "approve"
ACTION_REJECT = "reject"
DECISION_ACTIONS = (ACTION_APPROVE, ACTION_REJECT)

DEFAULT_MAX_ATTEMPTS = 3

# (tenant_id, requisition_id) → [Lock, holders]; dropped when the last holder leaves
_requisition_locks: dict[tuple[int, int], list] = {}
_locks_guard = threading.Lock()


@contextlib.contextmanager
def _requisition_lock(tenant_id, requisition_id):
    key = (tenant_id, requisition_id)
    with _locks_guard:
        entry = _requisition_locks.get(key)
        if entry is None:
            entry = _requisition_locks[key] = [threading.Lock(), 0]
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _locks_guard:
            entry[1] -= 1
            if entry[1] == 0:
                _requisition_locks.pop(key, None)


# ═════════════════════════════════════════════════════════════════════════════
# Transaction runner
# ═════════════════════════════════════════════════════════════════════════════


def _run(action, requisition_id, actor_id, tenant_id, step):
    """Run *step* as one serialized, retried transaction.

    *step* loads fresh state, validates, mutates and appends to the ledger.
    It returns an error dict to abort (everything is rolled back) or None
    to commit.
    """
    ctx = {
        "tenant_id": tenant_id,
        "requisition_id": requisition_id,
        "user_id": actor_id,
        "action": action,
    }
    max_attempts = max(1, int(current_app.config.get("APPROVAL_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS)))

    with _requisition_lock(tenant_id, requisition_id):
        for attempt in range(1, max_attempts + 1):
            db.session.expire_all()
            try:
                err = step()
                if err:
                    db.session.rollback()
                    logger.info("Approval %s refused: %s", action, err["error"],
                                extra={**ctx, "error_code": err["code"]})
                    return None, err
                db.session.commit()
            except StaleDataError:
                db.session.rollback()
                logger.warning("Approval %s lost a concurrent update (attempt %d/%d)",
                               action, attempt, max_attempts, extra={**ctx, "attempt": attempt})
                continue
            except ValidationError:
                db.session.rollback()
                raise
            except SQLAlchemyError:
                db.session.rollback()
                logger.exception("Approval %s failed", action, extra=ctx)
                raise

            logger.info("Approval %s committed", action, extra={**ctx, "attempt": attempt})
            return get_approval_status(requisition_id, tenant_id), None

    logger.error("Approval %s gave up after %d attempts", action, max_attempts,
                 extra={**ctx, "error_code": E.CONCURRENT_MODIFICATION})
    return None, error_payload(
        E.CONCURRENT_MODIFICATION,
        "Requisition was modified concurrently, please retry",
    )


# ── step helpers ─────────────────────────────────────────────────────────────


def _not_found():
    return error_payload(E.NOT_FOUND, "Requisition not found")


def _no_approver(stage_name):
    return error_payload(
        E.NO_ELIGIBLE_APPROVER,
        f"No eligible approver for stage '{stage_name}'",
        details={"stage": stage_name},
    )


def _actor(actor_id):
    return db.session.get(User, actor_id)


def _in_progress_instance(requisition):
    """(instance, None) when the requisition has an open approval, else (None, error)."""
    instance = current_instance(requisition)
    if instance is None or instance.status != INSTANCE_IN_PROGRESS or instance.current_stage is None:
        return None, error_payload(
            E.INVALID_TRANSITION,
            f"Requisition approval is not in progress (status: {requisition.status})",
        )
    return instance, None


def _close(instance, outcome, now):
    instance.status = outcome
    instance.outcome = outcome
    instance.is_complete = True
    instance.completed_at = now
    instance.updated_at = now


# ═════════════════════════════════════════════════════════════════════════════
# Submit
# ═════════════════════════════════════════════════════════════════════════════


def _submit_step(requisition_id, actor_id, tenant_id):
    req = Requisition.get_for_tenant(requisition_id, tenant_id)
    if req is None:
        return _not_found()
    err = check_permission(actor_id, tenant_id, PERM_PR_SUBMIT)
    if err:
        return err
    if req.status not in SUBMITTABLE_STATUSES:
        return error_payload(
            E.INVALID_TRANSITION,
            f"Cannot submit a requisition in status '{req.status}'",
        )

    workflow = active_workflow(tenant_id)
    try:
        plan = build_stage_plan(req, workflow=workflow)
    except ValidationError as exc:
        return error_payload(
            E.VALIDATION_RULE,
            f"Approval workflow is misconfigured: {exc}",
            details=exc.details,
        )
    if not plan:
        return error_payload(
            E.NO_ELIGIBLE_APPROVER,
            "No approval stage applies to this requisition",
        )
    first_approvers = resolve_approvers(req, plan[0])
    if not first_approvers:
        return _no_approver(plan[0]["name"])

    now = _utcnow()
    instance = ApprovalInstance(
        tenant_id=tenant_id,
        requisition_id=req.id,
        workflow_id=workflow.id if workflow else None,
        current_stage_index=0,
        status=INSTANCE_IN_PROGRESS,
        is_complete=False,
        started_at=now,
        updated_at=now,
    )
    for order, descriptor in enumerate(plan):
        instance.stages.append(ApprovalStage(
            tenant_id=tenant_id,
            name=descriptor["name"],
            order=order,
            rule=descriptor["rule"],
            role_code=descriptor["role_code"],
            status=STAGE_IN_PROGRESS if order == 0 else STAGE_NOT_STARTED,
            approver_ids=[u.id for u in first_approvers] if order == 0 else [],
        ))
    db.session.add(instance)
    db.session.flush()

    previous = req.status
    req.updated_at = now
    req.approval_instance_id = instance.id
    req.status = REQ_IN_PROGRESS
    req.submitted_at = now

    approval_ledger.append(
        tenant_id=tenant_id,
        requisition_id=req.id,
        approval_instance_id=instance.id,
        action_type=ACTION_SUBMITTED,
        actor=_actor(actor_id),
        status_from=previous,
        status_to=REQ_IN_PROGRESS,
    )
    return None


def submit(requisition_id, actor_id, tenant_id):
    """Start a fresh approval instance for a draft/returned/rejected/cancelled requisition."""
    step = functools.partial(_submit_step, requisition_id, actor_id, tenant_id)
    return _run("submit", requisition_id, actor_id, tenant_id, step)


# ═════════════════════════════════════════════════════════════════════════════
# Decide (approve / reject)
# ═════════════════════════════════════════════════════════════════════════════


def _decide_step(requisition_id, actor_id, tenant_id, action, comments):
    req = Requisition.get_for_tenant(requisition_id, tenant_id)
    if req is None:
        return _not_found()
    err = check_permission(actor_id, tenant_id, PERM_PR_APPROVE)
    if err:
        return err
    instance, err = _in_progress_instance(req)
    if err:
        return err
    stage = instance.current_stage
    if not is_eligible_approver(actor_id, req, stage):
        return error_payload(
            E.NOT_ELIGIBLE_APPROVER,
            f"User is not an approver for stage '{stage.name}'",
        )

    next_stage = None
    next_approvers = []
    if action == ACTION_APPROVE and instance.current_stage_index + 1 < len(instance.stages):
        next_stage = instance.stages[instance.current_stage_index + 1]
        next_approvers = resolve_approvers(req, next_stage)
        if not next_approvers:
            return _no_approver(next_stage.name)

    now = _utcnow()
    previous = req.status
    req.updated_at = now
    stage.decisions.append(ApprovalDecision(
        tenant_id=tenant_id,
        actor_id=actor_id,
        decision=DECISION_APPROVED if action == ACTION_APPROVE else DECISION_REJECTED,
        comments=comments,
        decided_at=now,
    ))

    if action == ACTION_REJECT:
        stage.status = STAGE_REJECTED
        _close(instance, INSTANCE_REJECTED, now)
        req.status = REQ_REJECTED
        ledger_action = ACTION_REJECTED
    elif next_stage is not None:
        stage.status = STAGE_APPROVED
        next_stage.status = STAGE_IN_PROGRESS
        next_stage.approver_ids = [u.id for u in next_approvers]
        instance.current_stage_index += 1
        instance.updated_at = now
        req.status = REQ_IN_PROGRESS
        ledger_action = ACTION_APPROVED
    else:
        stage.status = STAGE_APPROVED
        _close(instance, INSTANCE_APPROVED, now)
        req.status = REQ_APPROVED
        ledger_action = ACTION_APPROVED

    approval_ledger.append(
        tenant_id=tenant_id,
        requisition_id=req.id,
        approval_instance_id=instance.id,
        action_type=ledger_action,
        stage=stage,
        actor=_actor(actor_id),
        status_from=previous,
        status_to=req.status,
        comments=comments,
        approver_role=approver_role_label(stage),
    )
    return None


def decide(requisition_id, actor_id, tenant_id, action, comments=None):
    """Approve or reject the current stage.  *action* is case-insensitive."""
    normalized = (action or "").strip().lower() if isinstance(action, str) else ""
    if normalized not in DECISION_ACTIONS:
        return None, error_payload(
            E.VALIDATION_INVALID,
            f"action must be one of {list(DECISION_ACTIONS)}",
        )
    step = functools.partial(_decide_step, requisition_id, actor_id, tenant_id, normalized, comments)
    return _run(normalized, requisition_id, actor_id, tenant_id, step)


# ═════════════════════════════════════════════════════════════════════════════
# Return to an earlier stage
# ═════════════════════════════════════════════════════════════════════════════


def _return_step(requisition_id, actor_id, tenant_id, stage_order, comments):
    req = Requisition.get_for_tenant(requisition_id, tenant_id)
    if req is None:
        return _not_found()
    err = check_permission(actor_id, tenant_id, PERM_PR_APPROVE)
    if err:
        return err
    instance, err = _in_progress_instance(req)
    if err:
        return err
    current = instance.current_stage
    if not is_eligible_approver(actor_id, req, current):
        return error_payload(
            E.NOT_ELIGIBLE_APPROVER,
            f"User is not an approver for stage '{current.name}'",
        )
    if not 0 <= stage_order < instance.current_stage_index:
        return error_payload(
            E.INVALID_TRANSITION,
            f"Can only return to a stage before the current one (0..{instance.current_stage_index - 1})",
            details={"stage_order": stage_order, "current_stage_order": instance.current_stage_index},
        )

    target = instance.stages[stage_order]
    target_approvers = resolve_approvers(req, target)
    if not target_approvers:
        return _no_approver(target.name)

    now = _utcnow()
    for stage in instance.stages[stage_order:]:
        stage.decisions.clear()
        stage.status = STAGE_NOT_STARTED
        stage.approver_ids = []
    target.status = STAGE_IN_PROGRESS
    target.approver_ids = [u.id for u in target_approvers]
    instance.current_stage_index = stage_order
    instance.updated_at = now

    previous = req.status
    req.updated_at = now
    req.status = REQ_IN_PROGRESS

    approval_ledger.append(
        tenant_id=tenant_id,
        requisition_id=req.id,
        approval_instance_id=instance.id,
        action_type=ACTION_RETURNED,
        stage=target,
        actor=_actor(actor_id),
        status_from=previous,
        status_to=REQ_IN_PROGRESS,
        comments=comments,
        approver_role=approver_role_label(current),
    )
    return None


def return_to_stage(requisition_id, actor_id, tenant_id, stage_order, comments=None):
    """Send the approval back to an earlier stage, clearing later decisions."""
    if isinstance(stage_order, bool) or not isinstance(stage_order, int):
        return None, error_payload(E.VALIDATION_INVALID, "stage_order must be an integer")
    step = functools.partial(_return_step, requisition_id, actor_id, tenant_id, stage_order, comments)
    return _run("return", requisition_id, actor_id, tenant_id, step)


# ═════════════════════════════════════════════════════════════════════════════
# Cancel
# ═════════════════════════════════════════════════════════════════════════════


def _cancel_step(requisition_id, actor_id, tenant_id):
    req = Requisition.get_for_tenant(requisition_id, tenant_id)
    if req is None:
        return _not_found()
    err = check_permission(actor_id, tenant_id, PERM_PR_CANCEL)
    if err:
        return err
    if req.status == REQ_CANCELLED:
        logger.debug("Requisition %d already cancelled", req.id,
                     extra={"tenant_id": tenant_id, "requisition_id": req.id})
        return None
    if req.status in (REQ_APPROVED, REQ_REJECTED):
        return error_payload(
            E.INVALID_TRANSITION,
            f"Cannot cancel a requisition in status '{req.status}'",
        )

    now = _utcnow()
    instance = current_instance(req)
    stage = None
    if instance is not None and not instance.is_complete:
        stage = instance.current_stage
        _close(instance, INSTANCE_CANCELLED, now)

    previous = req.status
    req.updated_at = now
    req.status = REQ_CANCELLED

    approval_ledger.append(
        tenant_id=tenant_id,
        requisition_id=req.id,
        approval_instance_id=instance.id if instance is not None else None,
        action_type=ACTION_CANCELLED,
        stage=stage,
        actor=_actor(actor_id),
        status_from=previous,
        status_to=REQ_CANCELLED,
    )
    return None


def cancel(requisition_id, actor_id, tenant_id):
    """Cancel from any non-terminal state.  Cancelling twice is a no-op."""
    step = functools.partial(_cancel_step, requisition_id, actor_id, tenant_id)
    return _run("cancel", requisition_id, actor_id, tenant_id, step)


# ═════════════════════════════════════════════════════════════════════════════
# Reads
# ═════════════════════════════════════════════════════════════════════════════


def get_status(requisition_id, tenant_id):
    """StatusView of a requisition.  Raises NotFoundError outside the tenant."""
    return get_approval_status(requisition_id, tenant_id)


def list_pending_for_approver(user_id, tenant_id) -> list[dict]:
    """Requisitions whose current stage the user may act on."""
    if not authorize(user_id, tenant_id, PERM_PR_APPROVE):
        return []
    pending = []
    instances = (
        ApprovalInstance.query_for_tenant(tenant_id)
        .filter_by(status=INSTANCE_IN_PROGRESS)
        .order_by(ApprovalInstance.id)
        .all()
    )
    for instance in instances:
        req = Requisition.get_for_tenant(instance.requisition_id, tenant_id)
        if req is None or req.approval_instance_id != instance.id:
            continue
        if is_eligible_approver(user_id, req, instance.current_stage):
            view = build_status_view(req)
            view["requisition"] = req.to_dict()
            pending.append(view)
    return pending
