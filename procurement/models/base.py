"""
TenantModel — Abstract base class for tenant-scoped models.

All models that need tenant isolation inherit from TenantModel
instead of db.Model directly. This adds:
  - tenant_id FK column with index
  - query_for_tenant(tenant_id) classmethod
  - get_for_tenant(pk, tenant_id) scoped primary-key lookup
"""

from sqlalchemy.orm import declared_attr

from procurement.models import db


class TenantModel(db.Model):
    """Abstract base for tenant-scoped tables."""
    __abstract__ = True

    # FK columns on an abstract base must be produced per subclass
    @declared_attr
    def tenant_id(cls):
        return db.Column(
            db.Integer,
            db.ForeignKey("tenants.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )

    @classmethod
    def query_for_tenant(cls, tenant_id):
        """Return a query filtered by tenant_id."""
        return cls.query.filter_by(tenant_id=tenant_id)

    @classmethod
    def get_for_tenant(cls, pk, tenant_id):
        """Primary-key lookup that never crosses tenants.

        A row owned by another tenant is reported as missing (None), the
        same as a row that does not exist.
        """
        if pk is None or tenant_id is None:
            return None
        obj = db.session.get(cls, pk)
        if obj is None or obj.tenant_id != tenant_id:
            return None
        return obj
