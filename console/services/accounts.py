"""Account lifecycle: create, read, mutate and delete console users.

Every operation that returns a user returns a ``UserView``; the stored
``User`` (with its password hash and external identity) never leaves
this module.

Root protection applies to every mutation: a root account may only be
changed by itself and may never be deleted.  Mutations that can change
what a user is allowed to do purge that user's permission cache after
the write succeeds; a failed purge is logged and does not affect the
result.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum
from uuid import UUID

from console.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from console.models.role import Role
from console.models.user import Page, User, UserFilter, UserStatus, UserView
from console.repos.role_repo import RoleRepo
from console.repos.user_repo import UserRepo
from console.services import passwords
from console.services.permissions import PermissionCache

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")

UPDATABLE_FIELDS = frozenset(
    {"username", "nickname", "email", "phone", "avatar", "role_id", "status"}
)
BATCH_UPDATABLE_FIELDS = frozenset({"status", "role_id"})
# ``role_id=None`` clears the role; these columns have no empty value.
NON_NULLABLE_FIELDS = frozenset({"username", "nickname", "status"})


class BalanceAction(StrEnum):
    INCREASE = "increase"
    DECREASE = "decrease"


@dataclass(frozen=True, slots=True)
class NewUser:
    username: str
    password: str
    nickname: str = ""
    email: str | None = None
    phone: str | None = None
    avatar: str | None = None
    role_id: UUID | None = None
    status: UserStatus = UserStatus.ENABLED
    balance: Decimal = Decimal("0.00")


@dataclass(frozen=True, slots=True)
class BalanceChange:
    action: BalanceAction
    amount: Decimal


@dataclass(frozen=True, slots=True)
class UserInfo:
    user: UserView
    role: Role | None
    permissions: tuple[str, ...]

    @property
    def has_permissions(self) -> int:
        return 1 if self.user.is_root or self.permissions else 0


def _money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


class AccountService:
    def __init__(
        self, users: UserRepo, roles: RoleRepo, permissions: PermissionCache
    ) -> None:
        self._users = users
        self._roles = roles
        self._permissions = permissions

    # ------------------------------------------------------------------
    # Guards and helpers
    # ------------------------------------------------------------------

    async def _load(self, user_id: UUID) -> User:
        user = await self._users.get_by_id(user_id)
        if user is None:
            logger.warning("User not found id=%s", user_id)
            raise NotFoundError("user_not_found")
        return user

    @staticmethod
    def _guard_root(target: User, actor: User) -> None:
        if target.is_root and actor.id != target.id:
            logger.warning(
                "Root protection: actor=%s tried to modify root=%s", actor.id, target.id
            )
            raise AuthorizationError("no_permission")

    async def _check_role(self, role_id: UUID | None) -> None:
        if role_id is not None and await self._roles.get_by_id(role_id) is None:
            raise ValidationError("role_not_found", role_id=role_id)

    async def _check_username(self, username: str, *, owner: UUID | None = None) -> str:
        username = username.strip()
        if not username:
            raise ValidationError("username_required")
        existing = await self._users.get_by_username(username)
        if existing is not None and existing.id != owner:
            logger.warning("Rejected duplicate username=%s", username)
            raise ConflictError("username_taken", username=username)
        return username

    @staticmethod
    def _reject_nulls(changes: Mapping[str, object]) -> None:
        nulls = sorted(k for k in NON_NULLABLE_FIELDS if k in changes and changes[k] is None)
        if nulls:
            raise ValidationError("field_not_nullable", field=", ".join(nulls))

    async def _store_new(self, user: User) -> None:
        try:
            await self._users.add(user)
        except ValueError as exc:
            # Lost a race with a concurrent insert of the same username.
            logger.warning("Rejected duplicate username=%s on insert", user.username)
            raise ConflictError("username_taken", username=user.username) from exc

    async def _persist(self, user: User) -> User:
        try:
            return await self._users.save(replace(user, updated_at=datetime.now(UTC)))
        except ValueError as exc:
            logger.warning("Rejected duplicate username=%s on save", user.username)
            raise ConflictError("username_taken", username=user.username) from exc

    async def _purge(self, user_ids: Iterable[UUID]) -> None:
        # Commit first so a refill after the purge reads the new rows.
        await self._users.commit()
        for user_id in user_ids:
            await self._permissions.invalidate(user_id)

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    async def create(self, data: NewUser) -> UserView:
        username = await self._check_username(data.username)
        if not data.password:
            raise ValidationError("password_required")
        if data.balance < 0:
            raise ValidationError("invalid_balance_amount")
        await self._check_role(data.role_id)

        user = User.new(
            username=username,
            password_hash=passwords.hash_password(data.password),
            nickname=data.nickname,
            email=data.email,
            phone=data.phone,
            avatar=data.avatar,
            role_id=data.role_id,
            status=data.status,
            balance=_money(data.balance),
        )
        await self._store_new(user)
        logger.info("Created user id=%s username=%s", user.id, user.username)
        return UserView.of(user)

    async def get(self, user_id: UUID) -> UserView:
        return UserView.of(await self._load(user_id))

    async def list_users(self, query: UserFilter, actor: User) -> Page:
        users, total = await self._users.paginate(query)
        logger.debug(
            "User list requested by=%s page=%d total=%d", actor.id, query.page, total
        )
        return Page(
            items=[UserView.of(u) for u in users],
            total=total,
            page=query.page,
            page_size=query.page_size,
        )

    async def get_user_info(self, actor: User) -> UserInfo:
        user = await self._load(actor.id)
        return UserInfo(
            user=UserView.of(user),
            role=await self._permissions.get_role(user.id),
            permissions=await self._permissions.get(user.id),
        )

    async def list_roles(self) -> list[Role]:
        return await self._roles.list_all()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def update(
        self, user_id: UUID, patch: Mapping[str, object], actor: User
    ) -> UserView:
        target = await self._load(user_id)
        self._guard_root(target, actor)

        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError("invalid_field", field=", ".join(sorted(unknown)))

        changes = dict(patch)
        self._reject_nulls(changes)
        if "username" in changes:
            changes["username"] = await self._check_username(
                str(changes["username"]), owner=target.id
            )
        if "role_id" in changes:
            await self._check_role(changes["role_id"])  # type: ignore[arg-type]
        if "status" in changes:
            changes["status"] = UserStatus(changes["status"])

        updated = await self._persist(replace(target, **changes))
        logger.info(
            "Updated user id=%s fields=%s by=%s", user_id, sorted(changes), actor.id
        )
        await self._purge([user_id])
        return UserView.of(updated)

    async def set_status(self, user_id: UUID, status: UserStatus, actor: User) -> UserView:
        target = await self._load(user_id)
        self._guard_root(target, actor)
        updated = await self._persist(replace(target, status=UserStatus(status)))
        logger.info("Set status user=%s status=%d by=%s", user_id, updated.status, actor.id)
        await self._purge([user_id])
        return UserView.of(updated)

    async def reset_password(self, user_id: UUID, new_password: str, actor: User) -> bool:
        if not new_password:
            raise ValidationError("password_required")
        target = await self._load(user_id)
        self._guard_root(target, actor)
        await self._persist(
            replace(target, password_hash=passwords.hash_password(new_password))
        )
        logger.info("Password reset user=%s by=%s", user_id, actor.id)
        return True

    async def reset_password_auto(self, user_id: UUID, actor: User) -> str:
        """Reset to a generated password and return it.

        The plaintext exists only in this return value; only its hash is
        stored, so it cannot be retrieved again.
        """
        password = passwords.generate_password()
        await self.reset_password(user_id, password, actor)
        return password

    async def update_balance(
        self, user_id: UUID, change: BalanceChange, actor: User
    ) -> UserView:
        amount = _money(change.amount)
        if amount <= 0:
            raise ValidationError("invalid_balance_amount")
        target = await self._load(user_id)
        self._guard_root(target, actor)

        if BalanceAction(change.action) is BalanceAction.INCREASE:
            balance = target.balance + amount
        else:
            balance = target.balance - amount
            if balance < 0:
                logger.warning(
                    "Balance floored at zero user=%s requested=-%s had=%s",
                    user_id,
                    amount,
                    target.balance,
                )
                balance = Decimal("0.00")

        updated = await self._persist(replace(target, balance=_money(balance)))
        logger.info(
            "Balance %s user=%s amount=%s new=%s by=%s",
            change.action,
            user_id,
            amount,
            updated.balance,
            actor.id,
        )
        return UserView.of(updated)

    async def batch_update(
        self, user_ids: Iterable[UUID], patch: Mapping[str, object], actor: User
    ) -> int:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            raise ValidationError("empty_id_list")
        unknown = set(patch) - BATCH_UPDATABLE_FIELDS
        if unknown:
            raise ValidationError("invalid_batch_field", field=", ".join(sorted(unknown)))

        changes = dict(patch)
        self._reject_nulls(changes)
        if "role_id" in changes:
            await self._check_role(changes["role_id"])  # type: ignore[arg-type]
        if "status" in changes:
            changes["status"] = UserStatus(changes["status"])

        targets = await self._users.get_many(ids)
        protected = [str(u.id) for u in targets if u.is_root and u.id != actor.id]
        if protected:
            logger.warning("Batch update touches root users=%s by=%s", protected, actor.id)
            raise AuthorizationError("root_not_modifiable", ids=", ".join(protected))

        for target in targets:
            await self._persist(replace(target, **changes))
        await self._purge(t.id for t in targets)
        logger.info(
            "Batch updated %d users fields=%s by=%s", len(targets), sorted(changes), actor.id
        )
        return len(targets)

    async def delete(self, user_id: UUID, actor: User) -> bool:
        target = await self._load(user_id)
        if target.is_root:
            logger.warning("Refused to delete root user=%s by=%s", user_id, actor.id)
            raise AuthorizationError("no_permission")
        deleted = await self._users.delete(user_id)
        logger.info("Deleted user id=%s by=%s", user_id, actor.id)
        await self._purge([user_id])
        return deleted

    async def batch_delete(self, user_ids: Iterable[UUID], actor: User) -> int:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            raise ValidationError("empty_id_list")

        targets = await self._users.get_many(ids)
        roots = [str(u.id) for u in targets if u.is_root]
        if roots:
            logger.warning("Refused batch delete of root users=%s by=%s", roots, actor.id)
            raise AuthorizationError("root_not_deletable", ids=", ".join(roots))

        count = await self._users.delete_many(ids)
        logger.info("Batch deleted %d users by=%s", count, actor.id)
        await self._purge(ids)
        return count

    # ------------------------------------------------------------------
    # Authentication and bootstrap
    # ------------------------------------------------------------------

    async def authenticate(self, username: str, password: str) -> User | None:
        user = await self._users.get_by_username(username.strip())
        if user is None or not user.is_enabled:
            return None
        if not passwords.verify_password(password, user.password_hash):
            return None

        if passwords.needs_rehash(user.password_hash):
            user = await self._users.save(
                replace(user, password_hash=passwords.hash_password(password))
            )
            logger.info("Rehashed password for user=%s", user.id)
        return user

    async def ensure_root(self, username: str, password: str) -> UserView:
        existing = await self._users.get_root()
        if existing is not None:
            return UserView.of(existing)

        root = User.new(
            username=await self._check_username(username),
            password_hash=passwords.hash_password(password),
            is_root=True,
        )
        await self._store_new(root)
        logger.info("Bootstrapped root user id=%s username=%s", root.id, root.username)
        return UserView.of(root)
