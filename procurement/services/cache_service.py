"""
Tenant-Aware Cache Service.

Provides a thin cache wrapper with:
  - Permission cache (TTL from PERMISSION_CACHE_TTL, default 5 min)
  - Role-code cache (same TTL)
  - Manual invalidation helpers (per user, per tenant, everything)

Keys are always built from (tenant_id, user_id): nothing cached for one
tenant is ever visible to another.

Uses Redis when REDIS_URL points at a server, falls back to a simple
in-memory dict for development/testing ("memory://" or unreachable Redis).
"""

import json
import logging
import time

import redis

logger = logging.getLogger(__name__)

# ── In-memory fallback ───────────────────────────────────────────────────

_memory_store: dict = {}  # key → (value_json, expire_ts)


class _MemoryBackend:
    """Simple dict cache for dev/testing."""

    def get(self, key):
        entry = _memory_store.get(key)
        if entry is None:
            return None
        val, expires = entry
        if expires and time.time() > expires:
            _memory_store.pop(key, None)
            return None
        return val

    def setex(self, key, ttl_seconds, value):
        _memory_store[key] = (value, time.time() + ttl_seconds)

    def delete(self, *keys):
        for k in keys:
            _memory_store.pop(k, None)

    def keys(self, pattern):
        """Simple glob matching for 'prefix*' patterns."""
        if pattern.endswith("*"):
            prefix = pattern[:-1]
            return [k for k in _memory_store if k.startswith(prefix)]
        return [k for k in _memory_store if k == pattern]

    def flushdb(self):
        _memory_store.clear()

    def ping(self):
        return True


# ── Singleton cache backend ──────────────────────────────────────────────

_backend = None


def init_cache(app):
    """Select the backend from ``app.config["REDIS_URL"]``."""
    global _backend
    redis_url = app.config.get("REDIS_URL")
    if redis_url and not redis_url.startswith("memory://"):
        try:
            _backend = redis.from_url(redis_url, decode_responses=True)
            _backend.ping()
            logger.info("Cache: using Redis at %s", redis_url.split("@")[-1])
        except redis.RedisError as exc:
            logger.warning("Redis unavailable (%s), falling back to memory cache", exc)
            _backend = _MemoryBackend()
    else:
        _backend = _MemoryBackend()
    return _backend


def _get_backend():
    global _backend
    if _backend is None:
        _backend = _MemoryBackend()
    return _backend


# ── Default TTLs ─────────────────────────────────────────────────────────

PERMISSION_TTL = 300   # 5 minutes
ROLE_TTL = 300         # 5 minutes


# ── Key builders ─────────────────────────────────────────────────────────

def _perm_key(tenant_id, user_id):
    return f"perm:{tenant_id}:{user_id}"


def _role_key(tenant_id, user_id):
    return f"roles:{tenant_id}:{user_id}"


def _load(key):
    raw = _get_backend().get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None


# ── Public API ───────────────────────────────────────────────────────────


def get_cached_permissions(tenant_id, user_id):
    """Return cached permission codenames list, or None on miss."""
    return _load(_perm_key(tenant_id, user_id))


def set_cached_permissions(tenant_id, user_id, permissions, ttl=PERMISSION_TTL):
    """Cache a list of permission codenames."""
    _get_backend().setex(
        _perm_key(tenant_id, user_id),
        ttl,
        json.dumps(sorted(permissions)),
    )


def get_cached_roles(tenant_id, user_id):
    """Return cached role codes list, or None on miss."""
    return _load(_role_key(tenant_id, user_id))


def set_cached_roles(tenant_id, user_id, roles, ttl=ROLE_TTL):
    """Cache a list of role codes."""
    _get_backend().setex(
        _role_key(tenant_id, user_id),
        ttl,
        json.dumps(sorted(roles)),
    )


def invalidate_user_cache(tenant_id, user_id):
    """Remove all cached data for a specific user."""
    _get_backend().delete(_perm_key(tenant_id, user_id), _role_key(tenant_id, user_id))


def invalidate_tenant_cache(tenant_id):
    """Remove all cached data for a tenant (e.g. after role/permission change)."""
    be = _get_backend()
    for prefix in ("perm:", "roles:"):
        keys = be.keys(f"{prefix}{tenant_id}:*")
        if keys:
            be.delete(*keys)


def clear_all():
    """Flush entire cache (use sparingly, mainly for testing)."""
    _get_backend().flushdb()


def health_check():
    """Return cache backend status."""
    be = _get_backend()
    backend_type = "memory" if isinstance(be, _MemoryBackend) else "redis"
    try:
        be.ping()
    except redis.RedisError as exc:
        return {"status": "error", "backend": backend_type, "detail": str(exc)}
    return {"status": "ok", "backend": backend_type}
