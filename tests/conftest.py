from __future__ import annotations

import sys
from dataclasses import replace
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import console` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from console.api import dependencies  # noqa: E402
from console.main import app  # noqa: E402
from console.models.role import Role  # noqa: E402
from console.models.user import User  # noqa: E402
from console.services import passwords, token_service  # noqa: E402
from console.services.cache import cache_service  # noqa: E402
from console.services.supervisor import restart_coordinator  # noqa: E402

ADMIN_PERMISSIONS = [
    "users:list",
    "users:detail",
    "users:create",
    "users:update",
    "users:delete",
    "users:batch-delete",
    "users:batch-update",
    "users:update-status",
    "users:reset-password",
    "users:reset-password-auto",
    "users:change-balance",
    "users:login-settings",
    "users:set-login-settings",
]


@pytest.fixture(autouse=True)
def reset_stores() -> None:
    """Clear every in-memory repository between tests."""
    dependencies.user_repo._by_id.clear()
    dependencies.role_repo._roles.clear()
    dependencies.role_repo._codes.clear()
    dependencies.dict_repo._store.clear()
    dependencies.payconfig_repo._by_id.clear()
    dependencies.page_repo._by_name.clear()
    dependencies.micropage_repo._by_id.clear()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_restart_coordinator() -> None:
    restart_coordinator.reset()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(user: User) -> str:
    """Create a valid ES256 JWT for an existing user."""
    return token_service.create_access_token(sub=str(user.id))


def auth(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {mint_token(user)}"}


def seed_role(name: str, codes: list[str]) -> Role:
    role = Role.new(name=name)
    dependencies.role_repo._roles[role.id] = role
    dependencies.role_repo._codes[role.id] = list(codes)
    return role


def seed_user(
    username: str,
    *,
    password: str = "secret-pw1",
    role: Role | None = None,
    is_root: bool = False,
    **fields,
) -> User:
    user = User.new(
        username=username,
        password_hash=passwords.hash_password(password),
        role_id=role.id if role else None,
        is_root=is_root,
    )
    if fields:
        user = replace(user, **fields)
    dependencies.user_repo._by_id[user.id] = user
    return user


@pytest.fixture
def root_user() -> User:
    return seed_user("root", is_root=True)


@pytest.fixture
def admin_role() -> Role:
    return seed_role("admin", ADMIN_PERMISSIONS)


@pytest.fixture
def admin_user(admin_role: Role) -> User:
    return seed_user("admin", role=admin_role)


@pytest.fixture
def plain_user() -> User:
    return seed_user("alice")
