"""Request-scoped wiring: repositories, services, and auth guards.

Repositories are PostgreSQL-backed when DATABASE_URL is configured (one
session per request) and module-level in-memory singletons otherwise.
Services are cheap objects built per request around those repos.
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from console.db.engine import get_async_session
from console.models.user import User
from console.repos.dict_repo import DictRepo, InMemoryDictRepo
from console.repos.page_repo import InMemoryMicropageRepo, InMemoryPageRepo
from console.repos.payconfig_repo import InMemoryPayConfigRepo
from console.repos.pg_dict_repo import PgDictRepo
from console.repos.pg_role_repo import PgRoleRepo
from console.repos.pg_user_repo import PgUserRepo
from console.repos.role_repo import InMemoryRoleRepo, RoleRepo
from console.repos.user_repo import InMemoryUserRepo, UserRepo
from console.services import token_service
from console.services.accounts import AccountService
from console.services.cache import cache_service
from console.services.login_settings import LoginSettingsService
from console.services.pages import PageService
from console.services.payconfig import PayConfigService
from console.services.permissions import PermissionCache, PermissionResolver
from console.services.supervisor import RestartCoordinator, restart_coordinator

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

# ---------------------------------------------------------------------------
# In-memory stores (used when no DATABASE_URL is configured)
# ---------------------------------------------------------------------------
user_repo = InMemoryUserRepo()
role_repo = InMemoryRoleRepo()
dict_repo = InMemoryDictRepo()
payconfig_repo = InMemoryPayConfigRepo()
page_repo = InMemoryPageRepo()
micropage_repo = InMemoryMicropageRepo()

SessionDep = Annotated[AsyncSession | None, Depends(get_async_session)]


def get_user_repo(session: SessionDep) -> UserRepo:
    return PgUserRepo(session) if session is not None else user_repo


def get_role_repo(session: SessionDep) -> RoleRepo:
    return PgRoleRepo(session) if session is not None else role_repo


def get_dict_repo(session: SessionDep) -> DictRepo:
    return PgDictRepo(session) if session is not None else dict_repo


def get_permission_cache(
    users: Annotated[UserRepo, Depends(get_user_repo)],
    roles: Annotated[RoleRepo, Depends(get_role_repo)],
) -> PermissionCache:
    return PermissionCache(cache_service, PermissionResolver(users, roles))


def get_account_service(
    users: Annotated[UserRepo, Depends(get_user_repo)],
    roles: Annotated[RoleRepo, Depends(get_role_repo)],
    permissions: Annotated[PermissionCache, Depends(get_permission_cache)],
) -> AccountService:
    return AccountService(users, roles, permissions)


def get_login_settings_service(
    store: Annotated[DictRepo, Depends(get_dict_repo)],
) -> LoginSettingsService:
    return LoginSettingsService(store)


def get_payconfig_service() -> PayConfigService:
    return PayConfigService(payconfig_repo, cache_service)


def get_page_service() -> PageService:
    return PageService(page_repo, micropage_repo)


def get_restart_coordinator() -> RestartCoordinator:
    return restart_coordinator


# ---------------------------------------------------------------------------
# Auth guards
# ---------------------------------------------------------------------------


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
    users: Annotated[UserRepo, Depends(get_user_repo)],
) -> User:
    """Validate the bearer token and load the acting user.

    The user is re-read on every request so disabling an account locks it
    out immediately.
    """
    try:
        claims = token_service.decode_access_token(raw_token)
        user_id = UUID(claims["sub"])
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise _unauthorized("Token expired") from None
    except (jwt.InvalidTokenError, ValueError) as e:
        logger.warning("Invalid token rejected: %s", e)
        raise _unauthorized("Invalid token") from None

    user = await users.get_by_id(user_id)
    if user is None or not user.is_enabled:
        logger.warning("Token for missing or disabled user=%s rejected", user_id)
        raise _unauthorized("Invalid token")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_permission(code: str):
    """Dependency factory: demand a permission code (root always passes).

    Usage: Depends(require_permission("users:update"))
    """

    async def _guard(
        user: CurrentUser,
        permissions: Annotated[PermissionCache, Depends(get_permission_cache)],
    ) -> User:
        if not await permissions.allows(user, code):
            logger.warning("Access denied: user=%s missing permission=%s", user.id, code)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return _guard
