"""
Permission Service — tenant-scoped, DB-driven RBAC with role inheritance
and a TTL cache.

Evaluation is deterministic and deny-by-default:
  - only the user's own tenant is considered; a user id that belongs to
    another tenant resolves to nothing
  - inactive users resolve to nothing
  - a user holding the administrator role (config ADMIN_ROLE_CODE)
    passes every check
  - otherwise the permission set is the union of every assigned role's
    own permissions and the permissions of its full ancestor chain

Role inheritance:
  Role.inherits_from holds the parent role *code*, looked up inside the
  same tenant.  A missing parent ends the chain.  A chain that revisits a
  role is cut at the repeat and logged; role_service refuses to create
  such chains in the first place.

Cache:
  (tenant_id, user_id) → permission codenames, stored through
  cache_service with PERMISSION_CACHE_TTL.  Writes are best-effort: a
  failing cache never fails an authorization.
"""

import logging

from flask import current_app

from procurement.models import db
from procurement.models.auth import Permission, Role, RolePermission, User, UserRole
from procurement.services import cache_service
from procurement.utils.errors import E, error_payload

logger = logging.getLogger(__name__)

# ── Permission codenames used by the approval core ───────────────────────
PERM_PR_VIEW = "pr.view"
PERM_PR_SUBMIT = "pr.submit"
PERM_PR_APPROVE = "pr.approve"
PERM_PR_CANCEL = "pr.cancel"

DEFAULT_ADMIN_ROLE = "administrator"


def _admin_role_code() -> str:
    return current_app.config.get("ADMIN_ROLE_CODE", DEFAULT_ADMIN_ROLE)


def _cache_ttl() -> int:
    return int(current_app.config.get("PERMISSION_CACHE_TTL", cache_service.PERMISSION_TTL))


def _tenant_user(user_id: int | None, tenant_id: int | None) -> User | None:
    """The user if it exists *in this tenant*, else None."""
    if user_id is None or tenant_id is None:
        return None
    user = db.session.get(User, user_id)
    if user is None or user.tenant_id != tenant_id:
        return None
    return user


# ═══════════════════════════════════════════════════════════════
# Role lookup
# ═══════════════════════════════════════════════════════════════

def get_user_roles(user_id: int, tenant_id: int) -> list[Role]:
    """Roles assigned to the user, restricted to roles of the same tenant."""
    return (
        Role.query
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id, Role.tenant_id == tenant_id)
        .order_by(Role.id)
        .all()
    )


def get_user_role_codes(user_id: int, tenant_id: int) -> list[str]:
    cached = cache_service.get_cached_roles(tenant_id, user_id)
    if cached is not None:
        return cached
    codes = sorted({r.code for r in get_user_roles(user_id, tenant_id)})
    _store(cache_service.set_cached_roles, tenant_id, user_id, codes)
    return codes


def ancestor_chain(role: Role) -> list[Role]:
    """The role followed by its ancestors, nearest first.

    Stops at a dangling parent code and at the first repeated code.
    """
    chain = [role]
    seen = {role.code}
    parent_code = role.inherits_from
    while parent_code:
        if parent_code in seen:
            logger.warning(
                "Role inheritance cycle at '%s' (tenant %d): %s",
                parent_code, role.tenant_id, " -> ".join(r.code for r in chain),
                extra={"tenant_id": role.tenant_id},
            )
            break
        parent = Role.query.filter_by(tenant_id=role.tenant_id, code=parent_code).first()
        if parent is None:
            break
        chain.append(parent)
        seen.add(parent.code)
        parent_code = parent.inherits_from
    return chain


# ═══════════════════════════════════════════════════════════════
# Permission resolution
# ═══════════════════════════════════════════════════════════════

def _store(setter, tenant_id, user_id, values):
    """Best-effort cache write."""
    try:
        setter(tenant_id, user_id, values, ttl=_cache_ttl())
    except Exception as exc:
        logger.warning(
            "Permission cache write failed for user %s: %s", user_id, exc,
            extra={"tenant_id": tenant_id, "user_id": user_id},
        )


def _all_permission_codes() -> set[str]:
    return {row[0] for row in db.session.query(Permission.codename).all()}


def _permissions_for_roles(roles: list[Role]) -> set[str]:
    role_ids = set()
    for role in roles:
        role_ids.update(r.id for r in ancestor_chain(role))
    if not role_ids:
        return set()
    rows = (
        db.session.query(Permission.codename)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .filter(RolePermission.role_id.in_(sorted(role_ids)))
        .distinct()
        .all()
    )
    return {r[0] for r in rows}


def is_administrator(user_id: int, tenant_id: int) -> bool:
    user = _tenant_user(user_id, tenant_id)
    if user is None or not user.is_active:
        return False
    return _admin_role_code() in get_user_role_codes(user_id, tenant_id)


def resolve_permissions(user_id: int, tenant_id: int) -> set[str]:
    """Effective permission codenames of a user inside a tenant."""
    user = _tenant_user(user_id, tenant_id)
    if user is None or not user.is_active:
        return set()

    if _admin_role_code() in get_user_role_codes(user_id, tenant_id):
        return _all_permission_codes()

    cached = cache_service.get_cached_permissions(tenant_id, user_id)
    if cached is not None:
        return set(cached)

    perms = _permissions_for_roles(get_user_roles(user_id, tenant_id))
    _store(cache_service.set_cached_permissions, tenant_id, user_id, perms)
    logger.debug(
        "Resolved %d permissions for user %d", len(perms), user_id,
        extra={"tenant_id": tenant_id, "user_id": user_id},
    )
    return perms


def authorize(user_id: int | None, tenant_id: int | None, permission_code: str) -> bool:
    """True when the user holds *permission_code* in *tenant_id*."""
    if user_id is None or tenant_id is None:
        return False
    if is_administrator(user_id, tenant_id):
        return True
    return permission_code in resolve_permissions(user_id, tenant_id)


def check_permission(actor_id: int | None, tenant_id: int | None, permission_code: str) -> dict | None:
    """Structured variant of :func:`authorize`.

    Returns None when allowed, otherwise an error dict
    (NOT_AUTHENTICATED, NOT_FOUND or PERMISSION_DENIED).
    """
    if actor_id is None or tenant_id is None:
        return error_payload(E.NOT_AUTHENTICATED, "Authenticated user is required")
    if _tenant_user(actor_id, tenant_id) is None:
        return error_payload(E.NOT_FOUND, "User not found")
    if not authorize(actor_id, tenant_id, permission_code):
        return error_payload(
            E.PERMISSION_DENIED,
            "Permission denied",
            details={"required": permission_code},
        )
    return None


# ═══════════════════════════════════════════════════════════════
# Invalidation
# ═══════════════════════════════════════════════════════════════

def invalidate_user_permissions(user_id: int, tenant_id: int) -> None:
    cache_service.invalidate_user_cache(tenant_id, user_id)


def invalidate_tenant_permissions(tenant_id: int) -> None:
    """Drop every cached entry of a tenant (role or role-permission change)."""
    cache_service.invalidate_tenant_cache(tenant_id)


def invalidate_all_cache() -> None:
    cache_service.clear_all()
