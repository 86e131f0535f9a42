"""
Role Service — tenant-admin changes to the inputs of permission resolution.

Every write here commits and then invalidates the permission cache
entries it affects:

  - role definition / permission / parent changes → the whole tenant
  - assignment changes → the one user

Role inheritance must stay acyclic: ``set_role_parent`` and
``create_role`` refuse a parent whose ancestor chain reaches back to
the role itself.
"""

import logging
from datetime import datetime, timezone

from procurement.core.exceptions import ConflictError, NotFoundError, ValidationError
from procurement.models import db
from procurement.models.auth import Permission, Role, RolePermission, User, UserRole
from procurement.services.permission_service import (
    invalidate_tenant_permissions,
    invalidate_user_permissions,
)

logger = logging.getLogger(__name__)


def _get_role(role_id: int, tenant_id: int) -> Role:
    role = db.session.get(Role, role_id)
    if role is None or role.tenant_id != tenant_id:
        raise NotFoundError(resource="Role", resource_id=role_id, tenant_id=tenant_id)
    return role


def _get_role_by_code(code: str, tenant_id: int) -> Role:
    role = Role.query.filter_by(tenant_id=tenant_id, code=code).first()
    if role is None:
        raise NotFoundError(resource="Role", resource_id=code, tenant_id=tenant_id)
    return role


def _get_user(user_id: int, tenant_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None or user.tenant_id != tenant_id:
        raise NotFoundError(resource="User", resource_id=user_id, tenant_id=tenant_id)
    return user


def _check_parent(tenant_id: int, code: str, parent_code: str | None) -> None:
    """Raise ValidationError if *code* inheriting *parent_code* forms a cycle."""
    if not parent_code:
        return
    if parent_code == code:
        raise ValidationError(
            f"Role '{code}' cannot inherit from itself",
            details={"role": code, "inherits_from": parent_code},
        )
    chain = [code]
    current = parent_code
    while current:
        if current == code or current in chain[1:]:
            chain.append(current)
            raise ValidationError(
                "Role inheritance cycle",
                details={"chain": chain},
            )
        chain.append(current)
        parent = Role.query.filter_by(tenant_id=tenant_id, code=current).first()
        current = parent.inherits_from if parent else None


def _replace_permissions(role: Role, codenames: list[str]) -> None:
    wanted = sorted(set(codenames))
    perms = Permission.query.filter(Permission.codename.in_(wanted)).all() if wanted else []
    unknown = sorted(set(wanted) - {p.codename for p in perms})
    if unknown:
        raise ValidationError("Unknown permission codenames", details={"unknown": unknown})
    RolePermission.query.filter_by(role_id=role.id).delete()
    db.session.flush()
    for perm in perms:
        db.session.add(RolePermission(role_id=role.id, permission_id=perm.id))


# ═══════════════════════════════════════════════════════════════
# Role definitions
# ═══════════════════════════════════════════════════════════════

def create_role(
    tenant_id: int,
    code: str,
    name: str = None,
    description: str = None,
    inherits_from: str = None,
    permission_codenames: list[str] = None,
) -> Role:
    """Create a role scoped to a tenant."""
    if not code or not code.strip():
        raise ValidationError("Role code is required", details={"code": "required"})
    code = code.strip().lower().replace(" ", "_")

    if Role.query.filter_by(tenant_id=tenant_id, code=code).first():
        raise ConflictError("Role", "code", code)
    _check_parent(tenant_id, code, inherits_from)

    role = Role(
        tenant_id=tenant_id,
        code=code,
        name=name or code.replace("_", " ").title(),
        description=description,
        inherits_from=inherits_from,
    )
    db.session.add(role)
    db.session.flush()
    if permission_codenames:
        _replace_permissions(role, permission_codenames)

    db.session.commit()
    invalidate_tenant_permissions(tenant_id)
    logger.info("Created role '%s' for tenant %d", code, tenant_id, extra={"tenant_id": tenant_id})
    return role


def set_role_permissions(tenant_id: int, role_id: int, permission_codenames: list[str]) -> Role:
    """Replace the role's own permission set."""
    role = _get_role(role_id, tenant_id)
    _replace_permissions(role, permission_codenames or [])
    db.session.commit()
    invalidate_tenant_permissions(tenant_id)
    logger.info("Updated permissions of role '%s' (tenant %d)", role.code, tenant_id,
                extra={"tenant_id": tenant_id})
    return role


def set_role_parent(tenant_id: int, role_id: int, parent_code: str | None) -> Role:
    """Point the role at a new parent code (None detaches it)."""
    role = _get_role(role_id, tenant_id)
    _check_parent(tenant_id, role.code, parent_code)
    role.inherits_from = parent_code or None
    db.session.commit()
    invalidate_tenant_permissions(tenant_id)
    logger.info("Role '%s' now inherits from %r (tenant %d)", role.code, parent_code, tenant_id,
                extra={"tenant_id": tenant_id})
    return role


# ═══════════════════════════════════════════════════════════════
# Assignments
# ═══════════════════════════════════════════════════════════════

def assign_role(tenant_id: int, user_id: int, role_code: str, assigned_by: int = None) -> UserRole:
    user = _get_user(user_id, tenant_id)
    role = _get_role_by_code(role_code, tenant_id)
    if UserRole.query.filter_by(user_id=user.id, role_id=role.id).first():
        raise ConflictError("UserRole", "role", role_code)

    ur = UserRole(
        user_id=user.id,
        role_id=role.id,
        assigned_by=assigned_by,
        assigned_at=datetime.now(timezone.utc),
    )
    db.session.add(ur)
    db.session.commit()
    invalidate_user_permissions(user.id, tenant_id)
    logger.info("Assigned role '%s' to user %d", role_code, user.id,
                extra={"tenant_id": tenant_id, "user_id": user.id})
    return ur


def remove_role(tenant_id: int, user_id: int, role_code: str) -> None:
    user = _get_user(user_id, tenant_id)
    role = _get_role_by_code(role_code, tenant_id)
    ur = UserRole.query.filter_by(user_id=user.id, role_id=role.id).first()
    if ur is None:
        raise NotFoundError(resource="UserRole", resource_id=role_code, tenant_id=tenant_id)
    db.session.delete(ur)
    db.session.commit()
    invalidate_user_permissions(user.id, tenant_id)
    logger.info("Removed role '%s' from user %d", role_code, user.id,
                extra={"tenant_id": tenant_id, "user_id": user.id})
