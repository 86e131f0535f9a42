"""
Organization Models — cost centers and departments.

Owned by the org-structure CRUD collaborators. The approval core reads
``CostCenter.head_id`` and ``Department.manager_id`` to find
stage-specific approvers; it never writes these tables.
"""

from datetime import datetime, timezone

from procurement.models import db
from procurement.models.base import TenantModel


class CostCenter(TenantModel):
    __tablename__ = "cost_centers"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    budget = db.Column(db.Numeric(14, 2), default=0)
    head_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="Approver for the cost-center stage; NULL leaves that stage unresolvable",
    )
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("tenant_id", "code", name="uq_cost_center_tenant_code"),
    )

    head = db.relationship("User", foreign_keys=[head_id])

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "code": self.code,
            "name": self.name,
            "budget": float(self.budget) if self.budget is not None else 0.0,
            "head_id": self.head_id,
        }


class Department(TenantModel):
    __tablename__ = "departments"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    cost_center_id = db.Column(
        db.Integer, db.ForeignKey("cost_centers.id", ondelete="SET NULL"), nullable=True
    )
    manager_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="Approver for the department stage",
    )
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    cost_center = db.relationship("CostCenter")
    manager = db.relationship("User", foreign_keys=[manager_id])

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "cost_center_id": self.cost_center_id,
            "manager_id": self.manager_id,
        }
