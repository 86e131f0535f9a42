"""
Shared pytest fixtures for the procurement approvals test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - org: a seeded tenant with roles, users, a cost center, a department
    - make_requisition: factory for draft requisitions in that tenant
    - headers_for: X-Tenant-Id / X-User-Id headers for a user
"""

import pytest

from procurement import create_app
from procurement.models import db as _db
from procurement.models.auth import Permission, Role, RolePermission, Tenant, User, UserRole
from procurement.models.organization import CostCenter, Department
from procurement.models.requisition import Requisition, RequisitionItem
from procurement.services.permission_service import invalidate_all_cache

PERMISSION_CATALOG = [
    ("pr.view", "pr"),
    ("pr.submit", "pr"),
    ("pr.approve", "pr"),
    ("pr.cancel", "pr"),
    ("vendor.manage", "vendor"),
]


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        # Ids are reused after every recreate; a stale cached permission
        # set would leak between tests.
        invalidate_all_cache()
        yield
        invalidate_all_cache()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Seed helpers ─────────────────────────────────────────────────────────


def seed_permissions():
    perms = {}
    for codename, category in PERMISSION_CATALOG:
        p = Permission(codename=codename, category=category, display_name=codename)
        _db.session.add(p)
        perms[codename] = p
    _db.session.flush()
    return perms


def make_role(tenant, code, perms, codenames=(), inherits_from=None):
    role = Role(tenant_id=tenant.id, code=code, name=code.title(), inherits_from=inherits_from)
    _db.session.add(role)
    _db.session.flush()
    for codename in codenames:
        _db.session.add(RolePermission(role_id=role.id, permission_id=perms[codename].id))
    _db.session.flush()
    return role


def make_user(tenant, email, full_name, roles=(), status="active"):
    user = User(tenant_id=tenant.id, email=email, full_name=full_name, status=status)
    _db.session.add(user)
    _db.session.flush()
    for role in roles:
        _db.session.add(UserRole(user_id=user.id, role_id=role.id))
    _db.session.flush()
    return user


class Org:
    """Handle on the seeded organisation of one tenant."""

    def __init__(self, tenant, perms):
        self.tenant = tenant
        self.perms = perms
        self.roles = {}
        self.users = {}
        self.cost_center = None
        self.department = None


def build_org(slug, perms):
    """Tenant with the standard role ladder and approvers.

    Roles:
        requester  pr.view, pr.submit, pr.cancel
        approver   pr.approve, inherits requester
        finance    inherits approver
        administrator
    Users:
        requester, head (cost center head), manager (department manager),
        bystander (approver role, not on any stage), finance_1, finance_2,
        admin
    """
    tenant = Tenant(name=slug.title(), slug=slug)
    _db.session.add(tenant)
    _db.session.flush()

    org = Org(tenant, perms)
    r = org.roles
    r["requester"] = make_role(tenant, "requester", perms, ["pr.view", "pr.submit", "pr.cancel"])
    r["approver"] = make_role(tenant, "approver", perms, ["pr.approve"], inherits_from="requester")
    r["finance"] = make_role(tenant, "finance", perms, [], inherits_from="approver")
    r["administrator"] = make_role(tenant, "administrator", perms, [])

    u = org.users
    u["requester"] = make_user(tenant, f"requester@{slug}.test", "Rita Requester", [r["requester"]])
    u["head"] = make_user(tenant, f"head@{slug}.test", "Hank Head", [r["approver"]])
    u["manager"] = make_user(tenant, f"manager@{slug}.test", "Mona Manager", [r["approver"]])
    u["bystander"] = make_user(tenant, f"bystander@{slug}.test", "Bo Bystander", [r["approver"]])
    u["finance_1"] = make_user(tenant, f"fin1@{slug}.test", "Fay Finance", [r["finance"]])
    u["finance_2"] = make_user(tenant, f"fin2@{slug}.test", "Finn Finance", [r["finance"]])
    u["admin"] = make_user(tenant, f"admin@{slug}.test", "Ada Admin", [r["administrator"]])

    org.cost_center = CostCenter(
        tenant_id=tenant.id, code="CC-100", name="Operations", head_id=u["head"].id,
    )
    _db.session.add(org.cost_center)
    _db.session.flush()
    org.department = Department(
        tenant_id=tenant.id, name="Facilities",
        cost_center_id=org.cost_center.id, manager_id=u["manager"].id,
    )
    _db.session.add(org.department)
    _db.session.commit()
    return org


@pytest.fixture()
def perms():
    return seed_permissions()


@pytest.fixture()
def org(perms):
    return build_org("acme", perms)


@pytest.fixture()
def other_org(perms, org):
    return build_org("globex", perms)


@pytest.fixture()
def make_requisition(org):
    counter = {"n": 0}

    def _make(target_org=None, cost_center=True, department=True, status="draft"):
        o = target_org or org
        counter["n"] += 1
        req = Requisition(
            tenant_id=o.tenant.id,
            requisition_number=f"PR-{counter['n']:04d}",
            title="Office chairs",
            created_by_id=o.users["requester"].id,
            cost_center_id=o.cost_center.id if cost_center else None,
            department_id=o.department.id if department else None,
            status=status,
            total_amount=1200,
        )
        req.items.append(RequisitionItem(
            tenant_id=o.tenant.id, line_no=1, description="Ergonomic chair",
            quantity=4, unit_price=300,
        ))
        _db.session.add(req)
        _db.session.commit()
        return req

    return _make


@pytest.fixture()
def headers_for():
    def _headers(user):
        return {"X-Tenant-Id": str(user.tenant_id), "X-User-Id": str(user.id)}
    return _headers
