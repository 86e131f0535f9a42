"""
Approver Resolver — who may act on an approval stage.

Stages are data: each carries a rule tag (plus an optional role_code).
A rule is a function ``(requisition, role_code) -> list[User]`` registered
in ``_RULES``; adding a stage type means registering one more function,
the engine does not change.

Rule table (first non-empty result wins):
    cost_center_head    → head of the requisition's cost center
    department_manager  → manager of the requisition's department
    role_pool           → every active tenant user holding ``role_code``
Any stage that declares ``role_code`` falls back to that role pool when
its own rule yields nobody.

Only active users of the requisition's tenant are ever returned.

Live vs snapshot (config APPROVERS_FOLLOW_ORG_CHANGES):
    True   current approvers are re-derived from the org chart on every
           check, so reassigning a cost-center head moves the pending
           stage to the new head
    False  the approver ids stored on the stage when it was entered
           stay authoritative until the stage is re-entered
"""

import logging

from flask import current_app

from procurement.core.exceptions import ValidationError
from procurement.models import db
from procurement.models.approval import (
    RULE_COST_CENTER_HEAD,
    RULE_DEPARTMENT_MANAGER,
    RULE_ROLE_POOL,
    STAGE_RULES,
    ApprovalWorkflow,
)
from procurement.models.auth import Role, User, UserRole
from procurement.models.organization import CostCenter, Department

logger = logging.getLogger(__name__)

DEFAULT_STAGE_NAMES = {
    RULE_COST_CENTER_HEAD: "Cost Center Approval",
    RULE_DEPARTMENT_MANAGER: "Department Approval",
}

_RULES = {}


def register_rule(tag):
    """Decorator: register an approver rule under *tag*."""
    def decorator(fn):
        _RULES[tag] = fn
        return fn
    return decorator


def _active_tenant_user(user_id, tenant_id):
    if user_id is None:
        return None
    user = db.session.get(User, user_id)
    if user is None or user.tenant_id != tenant_id or not user.is_active:
        return None
    return user


@register_rule(RULE_COST_CENTER_HEAD)
def _cost_center_head(requisition, role_code=None):
    cc = CostCenter.get_for_tenant(requisition.cost_center_id, requisition.tenant_id)
    if cc is None:
        return []
    head = _active_tenant_user(cc.head_id, requisition.tenant_id)
    return [head] if head else []


@register_rule(RULE_DEPARTMENT_MANAGER)
def _department_manager(requisition, role_code=None):
    dept = Department.get_for_tenant(requisition.department_id, requisition.tenant_id)
    if dept is None:
        return []
    manager = _active_tenant_user(dept.manager_id, requisition.tenant_id)
    return [manager] if manager else []


@register_rule(RULE_ROLE_POOL)
def _role_pool(requisition, role_code=None):
    if not role_code:
        return []
    return (
        User.query
        .join(UserRole, UserRole.user_id == User.id)
        .join(Role, Role.id == UserRole.role_id)
        .filter(
            User.tenant_id == requisition.tenant_id,
            User.status == "active",
            Role.tenant_id == requisition.tenant_id,
            Role.code == role_code,
        )
        .order_by(User.id)
        .distinct()
        .all()
    )


def _rule_and_role(stage):
    """Accept an ApprovalStage row or a plain stage descriptor dict."""
    if isinstance(stage, dict):
        return stage.get("rule"), stage.get("role_code")
    return stage.rule, stage.role_code


def resolve_approvers(requisition, stage) -> list[User]:
    """Eligible approvers for *stage* according to the current org chart."""
    rule, role_code = _rule_and_role(stage)
    fn = _RULES.get(rule)
    if fn is None:
        logger.warning("Unknown approver rule %r", rule,
                       extra={"tenant_id": requisition.tenant_id, "requisition_id": requisition.id})
        approvers = []
    else:
        approvers = fn(requisition, role_code)
    if not approvers and role_code and rule != RULE_ROLE_POOL:
        approvers = _role_pool(requisition, role_code)
    return approvers


def current_approvers(requisition, stage) -> list[User]:
    """Approvers of a stage that is already in progress."""
    if current_app.config.get("APPROVERS_FOLLOW_ORG_CHANGES", True):
        return resolve_approvers(requisition, stage)
    users = []
    for uid in stage.approver_ids or []:
        user = _active_tenant_user(uid, requisition.tenant_id)
        if user is not None:
            users.append(user)
    return users


def is_eligible_approver(user_id, requisition, stage) -> bool:
    if user_id is None or stage is None:
        return False
    return any(u.id == user_id for u in current_approvers(requisition, stage))


def approver_role_label(stage) -> str:
    """Role shown next to an approver: the pool role, else the rule tag."""
    rule, role_code = _rule_and_role(stage)
    if rule == RULE_ROLE_POOL and role_code:
        return role_code
    return rule


# ── Stage plans ──────────────────────────────────────────────────────────


def active_workflow(tenant_id):
    return (
        ApprovalWorkflow.query_for_tenant(tenant_id)
        .filter_by(is_active=True)
        .order_by(ApprovalWorkflow.id)
        .first()
    )


def _default_plan(requisition):
    plan = []
    if requisition.cost_center_id:
        plan.append({"name": DEFAULT_STAGE_NAMES[RULE_COST_CENTER_HEAD], "rule": RULE_COST_CENTER_HEAD})
    if requisition.department_id:
        plan.append({"name": DEFAULT_STAGE_NAMES[RULE_DEPARTMENT_MANAGER], "rule": RULE_DEPARTMENT_MANAGER})
    return plan


def build_stage_plan(requisition, workflow=None) -> list[dict]:
    """Ordered stage descriptors ``{"name", "rule", "role_code"}``.

    Uses the tenant's active workflow when one exists, otherwise the
    default plan (cost center, then department, each only when the
    requisition references one).
    """
    if workflow is None:
        workflow = active_workflow(requisition.tenant_id)
    if workflow is None:
        raw = _default_plan(requisition)
    else:
        raw = workflow.stages or []

    plan = []
    for i, descriptor in enumerate(raw):
        rule = descriptor.get("rule")
        if rule not in STAGE_RULES:
            raise ValidationError(
                f"Stage {i} has unknown rule {rule!r}",
                details={"stage": i, "allowed": sorted(STAGE_RULES)},
            )
        role_code = descriptor.get("role_code") or None
        if rule == RULE_ROLE_POOL and not role_code:
            raise ValidationError(
                f"Stage {i} is a role pool without role_code",
                details={"stage": i},
            )
        plan.append({
            "name": descriptor.get("name") or DEFAULT_STAGE_NAMES.get(rule) or f"Stage {i + 1}",
            "rule": rule,
            "role_code": role_code,
        })
    return plan
