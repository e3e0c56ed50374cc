"""Permission resolution and the per-user permission cache.

A user's effective permission codes are derived data: role -> ordered
role_permissions.  They are read on every guarded request, so they are
cached per user and purged whenever the user record changes.  The cache
is never authoritative; a purge that fails only means the snapshot
lives until its TTL runs out.

Root users bypass code checks entirely (``allows`` returns True).
"""

from __future__ import annotations

import json
import logging
from uuid import UUID

from console.core.config import SETTINGS
from console.core.errors import report_side_effect
from console.core.metrics import (
    PERMISSION_CACHE_INVALIDATIONS,
    PERMISSION_CACHE_OPERATIONS,
)
from console.models.role import Role
from console.models.user import User
from console.repos.role_repo import RoleRepo
from console.repos.user_repo import UserRepo
from console.services.cache import CacheService

logger = logging.getLogger(__name__)


def permissions_key(user_id: UUID) -> str:
    return f"user:{user_id}:permissions"


def role_key(user_id: UUID) -> str:
    return f"user:{user_id}:role"


def user_pattern(user_id: UUID) -> str:
    return f"user:{user_id}:*"


class PermissionResolver:
    """Computes permission codes from Role and RolePermission data."""

    def __init__(self, users: UserRepo, roles: RoleRepo) -> None:
        self._users = users
        self._roles = roles

    async def get_user_role(self, user_id: UUID) -> Role | None:
        user = await self._users.get_by_id(user_id)
        if user is None or user.role_id is None:
            return None
        return await self._roles.get_by_id(user.role_id)

    async def get_user_permissions(self, user_id: UUID) -> tuple[str, ...]:
        user = await self._users.get_by_id(user_id)
        if user is None or user.role_id is None:
            return ()
        codes = await self._roles.get_permission_codes(user.role_id)
        # Ordered set: first occurrence wins.
        return tuple(dict.fromkeys(codes))


class PermissionCache:
    def __init__(
        self,
        cache: CacheService,
        resolver: PermissionResolver,
        *,
        ttl_seconds: int = SETTINGS.permission_cache_ttl,
    ) -> None:
        self._cache = cache
        self._resolver = resolver
        self._ttl = ttl_seconds

    async def _read(self, key: str) -> str | None:
        try:
            return await self._cache.get(key)
        except Exception as exc:
            report_side_effect(logger, f"cache read {key}", exc)
            return None

    async def _write(self, key: str, value: str) -> None:
        try:
            await self._cache.set(key, value, self._ttl)
        except Exception as exc:
            report_side_effect(logger, f"cache write {key}", exc)

    async def get(self, user_id: UUID) -> tuple[str, ...]:
        key = permissions_key(user_id)
        cached = await self._read(key)
        if cached is not None:
            PERMISSION_CACHE_OPERATIONS.labels(operation="hit").inc()
            return tuple(json.loads(cached))

        PERMISSION_CACHE_OPERATIONS.labels(operation="miss").inc()
        codes = await self._resolver.get_user_permissions(user_id)
        await self._write(key, json.dumps(list(codes)))
        return codes

    async def get_role(self, user_id: UUID) -> Role | None:
        key = role_key(user_id)
        cached = await self._read(key)
        if cached is not None:
            data = json.loads(cached)
            if data is None:
                return None
            return Role(id=UUID(data["id"]), name=data["name"], description=data["description"])

        role = await self._resolver.get_user_role(user_id)
        payload = (
            None
            if role is None
            else {"id": str(role.id), "name": role.name, "description": role.description}
        )
        await self._write(key, json.dumps(payload))
        return role

    async def invalidate(self, user_id: UUID) -> None:
        """Purge every cached entry derived from ``user_id``.  Never raises."""
        try:
            await self._cache.delete_pattern(user_pattern(user_id))
        except Exception as exc:
            PERMISSION_CACHE_INVALIDATIONS.labels(result="failed").inc()
            report_side_effect(
                logger, "permission cache purge", exc, target_user_id=user_id
            )
            return
        PERMISSION_CACHE_INVALIDATIONS.labels(result="ok").inc()
        logger.debug("Permission cache purged user=%s", user_id)

    async def allows(self, user: User, code: str) -> bool:
        if user.is_root:
            return True
        return code in await self.get(user.id)
