from __future__ import annotations

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest

from console.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from console.models.role import Role
from console.models.user import SECRET_FIELDS, User, UserFilter, UserStatus, UserView
from console.repos.role_repo import InMemoryRoleRepo
from console.repos.user_repo import InMemoryUserRepo
from console.services import passwords
from console.services.accounts import (
    AccountService,
    BalanceAction,
    BalanceChange,
    NewUser,
)
from console.services.cache import InMemoryCacheService
from console.services.permissions import (
    PermissionCache,
    PermissionResolver,
    permissions_key,
)


class _Env:
    def __init__(self) -> None:
        self.users = InMemoryUserRepo()
        self.roles = InMemoryRoleRepo()
        self.cache = InMemoryCacheService()
        self.permissions = PermissionCache(
            self.cache, PermissionResolver(self.users, self.roles), ttl_seconds=60
        )
        self.service = AccountService(self.users, self.roles, self.permissions)

    def add_user(self, username: str, *, is_root: bool = False, **fields) -> User:
        user = User.new(
            username=username,
            password_hash=passwords.hash_password("old-pass1"),
            is_root=is_root,
            **fields,
        )
        asyncio.run(self.users.add(user))
        return user

    def add_role(self, name: str, codes: list[str]) -> Role:
        role = Role.new(name=name)
        asyncio.run(self.roles.add(role, codes))
        return role


@pytest.fixture
def env() -> _Env:
    return _Env()


class _JournalUserRepo(InMemoryUserRepo):
    """Records commits so their order against cache purges can be checked."""

    def __init__(self, journal: list[str]) -> None:
        super().__init__()
        self._journal = journal

    async def commit(self) -> None:
        self._journal.append("commit")


class _JournalCache(InMemoryCacheService):
    def __init__(self, journal: list[str]) -> None:
        super().__init__()
        self._journal = journal

    async def delete_pattern(self, pattern: str) -> None:
        self._journal.append("purge")
        await super().delete_pattern(pattern)


class _StaleLookupUserRepo(InMemoryUserRepo):
    """Username lookups miss, as when a concurrent insert has not committed yet."""

    async def get_by_username(self, username: str) -> User | None:
        return None


@pytest.fixture
def journal_env() -> tuple[_Env, list[str]]:
    journal: list[str] = []
    env = _Env()
    env.users = _JournalUserRepo(journal)
    env.cache = _JournalCache(journal)
    env.permissions = PermissionCache(
        env.cache, PermissionResolver(env.users, env.roles), ttl_seconds=60
    )
    env.service = AccountService(env.users, env.roles, env.permissions)
    return env, journal


# ---- create / read ----


def test_create_returns_view_without_secrets(env: _Env) -> None:
    view = asyncio.run(env.service.create(NewUser(username="bob", password="pw-123abc")))
    assert isinstance(view, UserView)
    for name in SECRET_FIELDS:
        assert not hasattr(view, name)
    assert view.nickname == "bob"
    assert view.balance == Decimal("0.00")


def test_create_rejects_duplicate_username(env: _Env) -> None:
    env.add_user("bob")
    with pytest.raises(ConflictError) as exc:
        asyncio.run(env.service.create(NewUser(username="bob", password="x1")))
    assert exc.value.code == "username_taken"


def test_create_losing_username_race_is_a_conflict(env: _Env) -> None:
    users = _StaleLookupUserRepo()
    service = AccountService(users, env.roles, env.permissions)
    asyncio.run(service.create(NewUser(username="bob", password="pw-123abc")))
    with pytest.raises(ConflictError) as exc:
        asyncio.run(service.create(NewUser(username="bob", password="pw-456def")))
    assert exc.value.code == "username_taken"
    assert asyncio.run(users.paginate(UserFilter()))[1] == 1


def test_create_rejects_blank_username_and_password(env: _Env) -> None:
    with pytest.raises(ValidationError, match="Username"):
        asyncio.run(env.service.create(NewUser(username="  ", password="x1")))
    with pytest.raises(ValidationError) as exc:
        asyncio.run(env.service.create(NewUser(username="carol", password="")))
    assert exc.value.code == "password_required"


def test_create_rejects_unknown_role(env: _Env) -> None:
    with pytest.raises(ValidationError) as exc:
        asyncio.run(
            env.service.create(NewUser(username="dave", password="x1", role_id=uuid4()))
        )
    assert exc.value.code == "role_not_found"


def test_get_missing_user_raises_not_found(env: _Env) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(env.service.get(uuid4()))


def test_list_users_filters_and_paginates(env: _Env) -> None:
    admin = env.add_user("admin")
    for i in range(5):
        env.add_user(f"shop-{i}")
    env.add_user("other", status=UserStatus.DISABLED)

    page = asyncio.run(
        env.service.list_users(UserFilter(keyword="shop", page=1, page_size=2), admin)
    )
    assert page.total == 5
    assert len(page.items) == 2

    disabled = asyncio.run(
        env.service.list_users(UserFilter(status=UserStatus.DISABLED), admin)
    )
    assert [v.username for v in disabled.items] == ["other"]


def test_user_info_includes_role_and_permissions(env: _Env) -> None:
    role = env.add_role("editor", ["users:list", "users:detail", "users:list"])
    user = env.add_user("ed", role_id=role.id)

    info = asyncio.run(env.service.get_user_info(user))
    assert info.role == role
    assert info.permissions == ("users:list", "users:detail")
    assert info.has_permissions == 1


def test_user_info_for_user_without_role(env: _Env) -> None:
    user = env.add_user("nobody")
    info = asyncio.run(env.service.get_user_info(user))
    assert info.role is None
    assert info.permissions == ()
    assert info.has_permissions == 0


# ---- root protection ----


def test_delete_root_is_rejected_even_by_root(env: _Env) -> None:
    root = env.add_user("root", is_root=True)
    with pytest.raises(AuthorizationError) as exc:
        asyncio.run(env.service.delete(root.id, root))
    assert exc.value.code == "no_permission"
    assert asyncio.run(env.users.get_by_id(root.id)) is not None


def test_batch_delete_with_roots_lists_every_root_and_deletes_nothing(env: _Env) -> None:
    admin = env.add_user("admin")
    root_a = env.add_user("root-a", is_root=True)
    root_b = env.add_user("root-b", is_root=True)
    normal = env.add_user("normal")

    with pytest.raises(AuthorizationError) as exc:
        asyncio.run(env.service.batch_delete([normal.id, root_a.id, root_b.id], admin))
    assert exc.value.code == "root_not_deletable"
    assert str(root_a.id) in str(exc.value)
    assert str(root_b.id) in str(exc.value)
    assert asyncio.run(env.users.get_by_id(normal.id)) is not None


def test_batch_delete_removes_plain_users(env: _Env) -> None:
    admin = env.add_user("admin")
    a = env.add_user("a")
    b = env.add_user("b")
    assert asyncio.run(env.service.batch_delete([a.id, b.id, a.id], admin)) == 2
    assert asyncio.run(env.users.get_by_id(a.id)) is None


def test_batch_delete_rejects_empty_list(env: _Env) -> None:
    admin = env.add_user("admin")
    with pytest.raises(ValidationError) as exc:
        asyncio.run(env.service.batch_delete([], admin))
    assert exc.value.code == "empty_id_list"


def test_root_can_update_itself(env: _Env) -> None:
    root = env.add_user("root", is_root=True)
    view = asyncio.run(env.service.update(root.id, {"nickname": "Boss"}, root))
    assert view.nickname == "Boss"


def test_other_user_cannot_update_root(env: _Env) -> None:
    root = env.add_user("root", is_root=True)
    admin = env.add_user("admin")
    with pytest.raises(AuthorizationError):
        asyncio.run(env.service.update(root.id, {"nickname": "Hacked"}, admin))
    with pytest.raises(AuthorizationError):
        asyncio.run(env.service.set_status(root.id, UserStatus.DISABLED, admin))
    with pytest.raises(AuthorizationError):
        asyncio.run(env.service.reset_password(root.id, "new-pass1", admin))
    stored = asyncio.run(env.users.get_by_id(root.id))
    assert stored is not None and stored.nickname == "root"


def test_batch_update_touching_root_is_rejected(env: _Env) -> None:
    root = env.add_user("root", is_root=True)
    admin = env.add_user("admin")
    normal = env.add_user("normal")
    with pytest.raises(AuthorizationError) as exc:
        asyncio.run(
            env.service.batch_update(
                [normal.id, root.id], {"status": UserStatus.DISABLED}, admin
            )
        )
    assert exc.value.code == "root_not_modifiable"
    stored = asyncio.run(env.users.get_by_id(normal.id))
    assert stored is not None and stored.is_enabled


def test_other_user_cannot_touch_root_balance_or_auto_reset(env: _Env) -> None:
    root = env.add_user("root", is_root=True, balance=Decimal("5.00"))
    admin = env.add_user("admin")
    with pytest.raises(AuthorizationError):
        asyncio.run(
            env.service.update_balance(
                root.id, BalanceChange(BalanceAction.DECREASE, Decimal("5")), admin
            )
        )
    with pytest.raises(AuthorizationError):
        asyncio.run(env.service.reset_password_auto(root.id, admin))

    stored = asyncio.run(env.users.get_by_id(root.id))
    assert stored is not None
    assert stored.balance == Decimal("5.00")
    assert passwords.verify_password("old-pass1", stored.password_hash)


def test_root_can_batch_update_itself(env: _Env) -> None:
    role = env.add_role("viewer", ["users:list"])
    root = env.add_user("root", is_root=True)
    normal = env.add_user("normal")
    updated = asyncio.run(
        env.service.batch_update([root.id, normal.id], {"role_id": role.id}, root)
    )
    assert updated == 2
    stored = asyncio.run(env.users.get_by_id(root.id))
    assert stored is not None and stored.role_id == role.id


# ---- update ----


def test_update_rejects_unknown_fields(env: _Env) -> None:
    admin = env.add_user("admin")
    target = env.add_user("target")
    with pytest.raises(ValidationError) as exc:
        asyncio.run(env.service.update(target.id, {"is_root": True}, admin))
    assert exc.value.code == "invalid_field"


def test_update_rejects_taken_username(env: _Env) -> None:
    admin = env.add_user("admin")
    target = env.add_user("target")
    with pytest.raises(ConflictError):
        asyncio.run(env.service.update(target.id, {"username": "admin"}, admin))


@pytest.mark.parametrize("field", ["username", "nickname", "status"])
def test_update_rejects_null_for_required_field(env: _Env, field: str) -> None:
    admin = env.add_user("admin")
    target = env.add_user("target")
    with pytest.raises(ValidationError) as exc:
        asyncio.run(env.service.update(target.id, {field: None}, admin))
    assert exc.value.code == "field_not_nullable"
    assert asyncio.run(env.users.get_by_id(target.id)) == target


def test_update_with_null_role_clears_it(env: _Env) -> None:
    role = env.add_role("viewer", ["users:list"])
    admin = env.add_user("admin")
    target = env.add_user("target", role_id=role.id)
    view = asyncio.run(
        env.service.update(target.id, {"role_id": None, "email": None}, admin)
    )
    assert view.role_id is None
    assert asyncio.run(env.permissions.get(target.id)) == ()


def test_batch_update_rejects_null_status(env: _Env) -> None:
    admin = env.add_user("admin")
    target = env.add_user("target")
    with pytest.raises(ValidationError) as exc:
        asyncio.run(env.service.batch_update([target.id], {"status": None}, admin))
    assert exc.value.code == "field_not_nullable"
    assert asyncio.run(env.users.get_by_id(target.id)) == target


def test_update_keeping_own_username_is_allowed(env: _Env) -> None:
    admin = env.add_user("admin")
    target = env.add_user("target")
    view = asyncio.run(
        env.service.update(target.id, {"username": "target", "email": "t@x.io"}, admin)
    )
    assert view.email == "t@x.io"


def test_update_purges_permission_cache(env: _Env) -> None:
    role = env.add_role("viewer", ["users:list"])
    admin = env.add_user("admin")
    target = env.add_user("target", role_id=role.id)
    asyncio.run(env.permissions.get(target.id))
    assert asyncio.run(env.cache.get(permissions_key(target.id))) is not None

    asyncio.run(env.service.update(target.id, {"nickname": "T"}, admin))
    assert asyncio.run(env.cache.get(permissions_key(target.id))) is None


def test_mutations_commit_before_purging_cache(
    journal_env: tuple[_Env, list[str]],
) -> None:
    env, journal = journal_env
    admin = env.add_user("admin")
    a = env.add_user("a")
    b = env.add_user("b")

    asyncio.run(env.service.update(a.id, {"nickname": "A"}, admin))
    assert journal == ["commit", "purge"]

    journal.clear()
    asyncio.run(env.service.set_status(a.id, UserStatus.DISABLED, admin))
    assert journal == ["commit", "purge"]

    journal.clear()
    asyncio.run(
        env.service.batch_update([a.id, b.id], {"status": UserStatus.ENABLED}, admin)
    )
    assert journal == ["commit", "purge", "purge"]

    journal.clear()
    asyncio.run(env.service.delete(a.id, admin))
    assert journal == ["commit", "purge"]

    journal.clear()
    asyncio.run(env.service.batch_delete([b.id], admin))
    assert journal == ["commit", "purge"]


def test_role_change_is_visible_on_next_lookup(env: _Env) -> None:
    viewer = env.add_role("viewer", ["users:list"])
    editor = env.add_role("editor", ["users:list", "users:update"])
    admin = env.add_user("admin")
    target = env.add_user("target", role_id=viewer.id)
    assert asyncio.run(env.permissions.get(target.id)) == ("users:list",)

    asyncio.run(env.service.update(target.id, {"role_id": editor.id}, admin))
    assert asyncio.run(env.permissions.get(target.id)) == ("users:list", "users:update")


def test_set_status_disables_user(env: _Env) -> None:
    admin = env.add_user("admin")
    target = env.add_user("target")
    view = asyncio.run(env.service.set_status(target.id, UserStatus.DISABLED, admin))
    assert view.status == UserStatus.DISABLED


def test_batch_update_sets_status(env: _Env) -> None:
    admin = env.add_user("admin")
    a = env.add_user("a")
    b = env.add_user("b")
    count = asyncio.run(
        env.service.batch_update([a.id, b.id], {"status": UserStatus.DISABLED}, admin)
    )
    assert count == 2
    assert all(
        not u.is_enabled for u in asyncio.run(env.users.get_many([a.id, b.id]))
    )


def test_batch_update_rejects_non_batch_fields(env: _Env) -> None:
    admin = env.add_user("admin")
    a = env.add_user("a")
    with pytest.raises(ValidationError) as exc:
        asyncio.run(env.service.batch_update([a.id], {"nickname": "x"}, admin))
    assert exc.value.code == "invalid_batch_field"


# ---- passwords ----


def test_reset_password_auto_replaces_credentials(env: _Env) -> None:
    admin = env.add_user("admin")
    target = env.add_user("target")

    new_password = asyncio.run(env.service.reset_password_auto(target.id, admin))
    assert len(new_password) == passwords.GENERATED_PASSWORD_LENGTH
    assert asyncio.run(env.service.authenticate("target", "old-pass1")) is None
    assert asyncio.run(env.service.authenticate("target", new_password)) is not None


def test_reset_password_rejects_empty(env: _Env) -> None:
    admin = env.add_user("admin")
    target = env.add_user("target")
    with pytest.raises(ValidationError):
        asyncio.run(env.service.reset_password(target.id, "", admin))


def test_authenticate_rejects_disabled_user(env: _Env) -> None:
    env.add_user("sleepy", status=UserStatus.DISABLED)
    assert asyncio.run(env.service.authenticate("sleepy", "old-pass1")) is None


# ---- balance ----


def test_balance_increase_and_decrease(env: _Env) -> None:
    admin = env.add_user("admin")
    target = env.add_user("target", balance=Decimal("10.00"))

    view = asyncio.run(
        env.service.update_balance(
            target.id, BalanceChange(BalanceAction.INCREASE, Decimal("2.5")), admin
        )
    )
    assert view.balance == Decimal("12.50")

    view = asyncio.run(
        env.service.update_balance(
            target.id, BalanceChange(BalanceAction.DECREASE, Decimal("0.50")), admin
        )
    )
    assert view.balance == Decimal("12.00")


def test_balance_decrease_is_floored_at_zero(env: _Env) -> None:
    admin = env.add_user("admin")
    target = env.add_user("target", balance=Decimal("3.00"))
    view = asyncio.run(
        env.service.update_balance(
            target.id, BalanceChange(BalanceAction.DECREASE, Decimal("5")), admin
        )
    )
    assert view.balance == Decimal("0.00")


def test_balance_rejects_non_positive_amount(env: _Env) -> None:
    admin = env.add_user("admin")
    target = env.add_user("target")
    with pytest.raises(ValidationError) as exc:
        asyncio.run(
            env.service.update_balance(
                target.id, BalanceChange(BalanceAction.INCREASE, Decimal("0")), admin
            )
        )
    assert exc.value.code == "invalid_balance_amount"


# ---- bootstrap ----


def test_ensure_root_is_idempotent(env: _Env) -> None:
    first = asyncio.run(env.service.ensure_root("root", "root-pass1"))
    second = asyncio.run(env.service.ensure_root("another", "root-pass2"))
    assert first.id == second.id
    assert first.is_root is True
