"""
Requisition Models — purchase requests and their line items.

Requisition content (title, items, amounts) is created and edited by the
requisition CRUD collaborator. The approval engine reads the routing
fields (cost_center_id, department_id) and is the only writer of
``status``, ``approval_instance_id`` and ``submitted_at``.
"""

from datetime import datetime, timezone

from procurement.models import db
from procurement.models.base import TenantModel

# ── Constants ─────────────────────────────────────────────────────────────────

REQ_DRAFT = "draft"
REQ_SUBMITTED = "submitted"
REQ_IN_PROGRESS = "in_progress"
REQ_APPROVED = "approved"
REQ_REJECTED = "rejected"
REQ_RETURNED = "returned"
REQ_CANCELLED = "cancelled"

REQUISITION_STATUSES = frozenset({
    REQ_DRAFT,
    REQ_SUBMITTED,
    REQ_IN_PROGRESS,
    REQ_APPROVED,
    REQ_REJECTED,
    REQ_RETURNED,
    REQ_CANCELLED,
})

# A requisition in one of these may be (re)submitted; rejected and cancelled
# requisitions get a fresh approval instance.
SUBMITTABLE_STATUSES = frozenset({REQ_DRAFT, REQ_RETURNED, REQ_REJECTED, REQ_CANCELLED})


class Requisition(TenantModel):
    __tablename__ = "requisitions"

    id = db.Column(db.Integer, primary_key=True)
    requisition_number = db.Column(db.String(50), nullable=False)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text)
    created_by_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    cost_center_id = db.Column(
        db.Integer, db.ForeignKey("cost_centers.id", ondelete="SET NULL"), nullable=True
    )
    department_id = db.Column(
        db.Integer, db.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True
    )
    status = db.Column(
        db.String(20), nullable=False, default=REQ_DRAFT,
        comment="draft | submitted | in_progress | approved | rejected | returned | cancelled",
    )
    # Plain integer, not an FK: approval_instances already points back here and
    # the engine keeps the pair consistent inside one transaction.
    approval_instance_id = db.Column(db.Integer, nullable=True)
    # Every engine transition rewrites the row, so concurrent transitions on
    # one requisition compare-and-swap this column (StaleDataError on loss).
    version = db.Column(db.Integer, nullable=False, default=1)
    total_amount = db.Column(db.Numeric(14, 2), default=0)
    currency = db.Column(db.String(3), default="INR")
    submitted_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("tenant_id", "requisition_number", name="uq_requisition_tenant_number"),
        db.Index("ix_requisitions_tenant_status", "tenant_id", "status"),
    )
    __mapper_args__ = {"version_id_col": version}

    items = db.relationship(
        "RequisitionItem",
        back_populates="requisition",
        order_by="RequisitionItem.line_no",
        cascade="all, delete-orphan",
    )
    created_by = db.relationship("User", foreign_keys=[created_by_id])

    def to_dict(self, include_items=False):
        d = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "requisition_number": self.requisition_number,
            "title": self.title,
            "description": self.description,
            "created_by_id": self.created_by_id,
            "cost_center_id": self.cost_center_id,
            "department_id": self.department_id,
            "status": self.status,
            "approval_instance_id": self.approval_instance_id,
            "version": self.version,
            "total_amount": float(self.total_amount) if self.total_amount is not None else 0.0,
            "currency": self.currency,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_items:
            d["items"] = [i.to_dict() for i in self.items]
        return d

    def __repr__(self):
        return f"<Requisition {self.requisition_number} {self.status}>"


class RequisitionItem(TenantModel):
    __tablename__ = "requisition_items"

    id = db.Column(db.Integer, primary_key=True)
    requisition_id = db.Column(
        db.Integer, db.ForeignKey("requisitions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    line_no = db.Column(db.Integer, nullable=False, default=1)
    description = db.Column(db.String(500), nullable=False)
    quantity = db.Column(db.Numeric(12, 3), nullable=False, default=1)
    unit_price = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    requisition = db.relationship("Requisition", back_populates="items")

    @property
    def line_total(self):
        return (self.quantity or 0) * (self.unit_price or 0)

    def to_dict(self):
        return {
            "id": self.id,
            "line_no": self.line_no,
            "description": self.description,
            "quantity": float(self.quantity) if self.quantity is not None else 0.0,
            "unit_price": float(self.unit_price) if self.unit_price is not None else 0.0,
            "line_total": float(self.line_total),
        }
