"""
Approval Models — workflow templates, live approval instances, and the
append-only approval history ledger.

Models:
    - ApprovalWorkflow:  tenant-level stage plan (stages as data, one rule tag each)
    - ApprovalInstance:  live workflow state for one submission of a requisition
    - ApprovalStage:     one ordered step of an instance
    - ApprovalDecision:  an approver's decision on a stage (cleared by Return)
    - ApprovalHistory:   immutable ledger row, one per accepted transition

Ownership:
    ApprovalInstance / ApprovalStage / ApprovalDecision are written only by
    services/approval_engine.py.  ApprovalHistory rows are appended only by
    services/approval_ledger.py and can never be updated or deleted; the ORM
    listeners at the bottom of this module refuse both.

Concurrency:
    ApprovalInstance.version is SQLAlchemy's ``version_id_col``: every UPDATE
    is issued as ``... WHERE id = :id AND version = :loaded_version`` and a
    zero-row result raises StaleDataError, which the engine turns into a
    retry or a CONCURRENT_MODIFICATION error.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import event

from procurement.core.exceptions import ImmutableRecordError
from procurement.models import db
from procurement.models.base import TenantModel

logger = logging.getLogger(__name__)

# ── Constants ─────────────────────────────────────────────────────────────────

# Stage rule tags, see services/approver_resolver.py for the rule table.
RULE_COST_CENTER_HEAD = "cost_center_head"
RULE_DEPARTMENT_MANAGER = "department_manager"
RULE_ROLE_POOL = "role_pool"
STAGE_RULES = frozenset({RULE_COST_CENTER_HEAD, RULE_DEPARTMENT_MANAGER, RULE_ROLE_POOL})

# Instance status
INSTANCE_NOT_STARTED = "not_started"
INSTANCE_IN_PROGRESS = "in_progress"
INSTANCE_APPROVED = "approved"
INSTANCE_REJECTED = "rejected"
INSTANCE_CANCELLED = "cancelled"
TERMINAL_INSTANCE_STATUSES = frozenset({INSTANCE_APPROVED, INSTANCE_REJECTED, INSTANCE_CANCELLED})

# Stage status
STAGE_NOT_STARTED = "not_started"
STAGE_IN_PROGRESS = "in_progress"
STAGE_APPROVED = "approved"
STAGE_REJECTED = "rejected"

# Decision values
DECISION_APPROVED = "approved"
DECISION_REJECTED = "rejected"

# Ledger action types
ACTION_SUBMITTED = "submitted"
ACTION_APPROVED = "approved"
ACTION_REJECTED = "rejected"
ACTION_RETURNED = "returned"
ACTION_CANCELLED = "cancelled"
LEDGER_ACTIONS = frozenset({
    ACTION_SUBMITTED,
    ACTION_APPROVED,
    ACTION_REJECTED,
    ACTION_RETURNED,
    ACTION_CANCELLED,
})


def _utcnow():
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════
# 1. APPROVAL WORKFLOWS (stage plan templates)
# ═══════════════════════════════════════════════════════════════
class ApprovalWorkflow(TenantModel):
    """Per-tenant stage plan.

    ``stages`` is a JSON list of descriptors, in order:
        [{"name": "Cost Center Approval", "rule": "cost_center_head"},
         {"name": "Finance Approval", "rule": "role_pool", "role_code": "finance_analyst"}]

    ``role_code`` on a non-pool stage acts as a fallback pool when the
    primary rule yields nobody.
    """

    __tablename__ = "approval_workflows"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    is_active = db.Column(db.Boolean, default=True)
    stages = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "is_active": self.is_active,
            "stages": self.stages or [],
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# ═══════════════════════════════════════════════════════════════
# 2. APPROVAL INSTANCES
# ═══════════════════════════════════════════════════════════════
class ApprovalInstance(TenantModel):
    __tablename__ = "approval_instances"

    id = db.Column(db.Integer, primary_key=True)
    requisition_id = db.Column(
        db.Integer, db.ForeignKey("requisitions.id", ondelete="CASCADE"), nullable=False
    )
    workflow_id = db.Column(
        db.Integer, db.ForeignKey("approval_workflows.id", ondelete="SET NULL"), nullable=True
    )
    current_stage_index = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(
        db.String(20), nullable=False, default=INSTANCE_NOT_STARTED,
        comment="not_started | in_progress | approved | rejected | cancelled",
    )
    is_complete = db.Column(db.Boolean, nullable=False, default=False)
    outcome = db.Column(db.String(20), nullable=True)
    version = db.Column(db.Integer, nullable=False, default=1)
    started_at = db.Column(db.DateTime(timezone=True))
    completed_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        db.Index("ix_approval_instances_tenant_requisition", "tenant_id", "requisition_id"),
        db.Index("ix_approval_instances_tenant_status", "tenant_id", "status"),
    )
    __mapper_args__ = {"version_id_col": version}

    stages = db.relationship(
        "ApprovalStage",
        back_populates="instance",
        order_by="ApprovalStage.order",
        cascade="all, delete-orphan",
    )

    @property
    def current_stage(self):
        """The stage awaiting action, or None once the instance is closed."""
        if self.is_complete:
            return None
        if 0 <= self.current_stage_index < len(self.stages):
            return self.stages[self.current_stage_index]
        return None

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "requisition_id": self.requisition_id,
            "workflow_id": self.workflow_id,
            "current_stage_index": self.current_stage_index,
            "status": self.status,
            "is_complete": self.is_complete,
            "outcome": self.outcome,
            "version": self.version,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "stages": [s.to_dict() for s in self.stages],
        }

    def __repr__(self):
        return f"<ApprovalInstance #{self.id} req={self.requisition_id} {self.status}@{self.current_stage_index}>"


# ═══════════════════════════════════════════════════════════════
# 3. APPROVAL STAGES
# ═══════════════════════════════════════════════════════════════
class ApprovalStage(TenantModel):
    __tablename__ = "approval_stages"

    id = db.Column(db.Integer, primary_key=True)
    instance_id = db.Column(
        db.Integer, db.ForeignKey("approval_instances.id", ondelete="CASCADE"), nullable=False
    )
    name = db.Column(db.String(200), nullable=False)
    order = db.Column(db.Integer, nullable=False)
    rule = db.Column(db.String(40), nullable=False)
    role_code = db.Column(db.String(100), nullable=True)
    status = db.Column(db.String(20), nullable=False, default=STAGE_NOT_STARTED)
    # Approvers resolved when the stage was entered (audit snapshot).
    approver_ids = db.Column(db.JSON, default=list)

    __table_args__ = (
        db.UniqueConstraint("instance_id", "order", name="uq_approval_stage_order"),
    )

    instance = db.relationship("ApprovalInstance", back_populates="stages")
    decisions = db.relationship(
        "ApprovalDecision",
        back_populates="stage",
        order_by="ApprovalDecision.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "order": self.order,
            "rule": self.rule,
            "role_code": self.role_code,
            "status": self.status,
            "approver_ids": list(self.approver_ids or []),
            "decisions": [d.to_dict() for d in self.decisions],
        }


# ═══════════════════════════════════════════════════════════════
# 4. APPROVAL DECISIONS
# ═══════════════════════════════════════════════════════════════
class ApprovalDecision(TenantModel):
    __tablename__ = "approval_decisions"

    id = db.Column(db.Integer, primary_key=True)
    stage_id = db.Column(
        db.Integer, db.ForeignKey("approval_stages.id", ondelete="CASCADE"), nullable=False
    )
    actor_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    decision = db.Column(db.String(20), nullable=False)
    comments = db.Column(db.Text)
    decided_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    stage = db.relationship("ApprovalStage", back_populates="decisions")

    def to_dict(self):
        return {
            "id": self.id,
            "actor_id": self.actor_id,
            "decision": self.decision,
            "comments": self.comments,
            "decided_at": self.decided_at.isoformat() if self.decided_at else None,
        }


# ═══════════════════════════════════════════════════════════════
# 5. APPROVAL HISTORY (append-only ledger)
# ═══════════════════════════════════════════════════════════════
class ApprovalHistory(TenantModel):
    """
    Immutable record of one accepted approval transition.

    Business rules:
    - Exactly one row per accepted transition, none for rejected ones.
    - Rows are NEVER updated or deleted (enforced by ORM listeners below).
    - Read order is append order (primary key).
    - stage_order/stage_name identify the stage the action closed; for
      'returned' rows they identify the stage the instance went back to.
    """

    __tablename__ = "approval_history"

    id = db.Column(db.Integer, primary_key=True)
    requisition_id = db.Column(
        db.Integer, db.ForeignKey("requisitions.id", ondelete="CASCADE"), nullable=False
    )
    approval_instance_id = db.Column(db.Integer, nullable=True)
    stage_order = db.Column(db.Integer, nullable=True)
    stage_name = db.Column(db.String(200), nullable=True)
    action_type = db.Column(
        db.String(20), nullable=False,
        comment="submitted | approved | rejected | returned | cancelled",
    )
    action_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action_by_name = db.Column(db.String(255), nullable=True)
    action_date = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    status_from = db.Column(db.String(20), nullable=True)
    status_to = db.Column(db.String(20), nullable=False)
    comments = db.Column(db.Text)
    approver_role = db.Column(db.String(100), nullable=True)

    __table_args__ = (
        db.Index("ix_approval_history_tenant_requisition", "tenant_id", "requisition_id"),
        db.Index("ix_approval_history_instance", "approval_instance_id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "requisition_id": self.requisition_id,
            "approval_instance_id": self.approval_instance_id,
            "stage_order": self.stage_order,
            "stage_name": self.stage_name,
            "action_type": self.action_type,
            "action_by": self.action_by_id,
            "action_by_name": self.action_by_name,
            "action_date": self.action_date.isoformat() if self.action_date else None,
            "status_from": self.status_from,
            "status_to": self.status_to,
            "comments": self.comments,
            "approver_role": self.approver_role,
        }

    def __repr__(self) -> str:
        return f"<ApprovalHistory #{self.id} req={self.requisition_id} {self.action_type}>"


# ── Immutability guards ───────────────────────────────────────────────────────


@event.listens_for(ApprovalHistory, "before_update")
def _refuse_history_update(mapper, connection, target):
    logger.error(
        "immutability_violation_blocked",
        extra={"entity_type": "ApprovalHistory", "entity_id": str(target.id), "operation": "UPDATE"},
    )
    raise ImmutableRecordError("ApprovalHistory", target.id, "history entries cannot be modified")


@event.listens_for(ApprovalHistory, "before_delete")
def _refuse_history_delete(mapper, connection, target):
    logger.error(
        "immutability_violation_blocked",
        extra={"entity_type": "ApprovalHistory", "entity_id": str(target.id), "operation": "DELETE"},
    )
    raise ImmutableRecordError("ApprovalHistory", target.id, "history entries cannot be deleted")
