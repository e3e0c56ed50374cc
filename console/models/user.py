from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import IntEnum
from uuid import UUID, uuid4


class UserStatus(IntEnum):
    DISABLED = 0
    ENABLED = 1


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class User:
    """Stored account record, secrets included.

    Never hand this to a response; project it with ``UserView.of``.
    """

    id: UUID
    username: str
    password_hash: str
    nickname: str = ""
    email: str | None = None
    phone: str | None = None
    avatar: str | None = None
    openid: str | None = None
    role_id: UUID | None = None
    is_root: bool = False
    status: UserStatus = UserStatus.ENABLED
    balance: Decimal = Decimal("0.00")
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @property
    def is_enabled(self) -> bool:
        return self.status == UserStatus.ENABLED

    @staticmethod
    def new(
        *,
        username: str,
        password_hash: str,
        nickname: str = "",
        email: str | None = None,
        phone: str | None = None,
        avatar: str | None = None,
        role_id: UUID | None = None,
        is_root: bool = False,
        status: UserStatus = UserStatus.ENABLED,
        balance: Decimal = Decimal("0.00"),
    ) -> User:
        now = _now()
        return User(
            id=uuid4(),
            username=username,
            password_hash=password_hash,
            nickname=nickname or username,
            email=email,
            phone=phone,
            avatar=avatar,
            role_id=role_id,
            is_root=is_root,
            status=status,
            balance=balance,
            created_at=now,
            updated_at=now,
        )


# Fields that must never leave the service boundary.
SECRET_FIELDS = frozenset({"password_hash", "openid"})


@dataclass(frozen=True, slots=True)
class UserView:
    """Public projection of a User: everything except SECRET_FIELDS."""

    id: UUID
    username: str
    nickname: str
    email: str | None
    phone: str | None
    avatar: str | None
    role_id: UUID | None
    is_root: bool
    status: UserStatus
    balance: Decimal
    created_at: datetime
    updated_at: datetime

    @staticmethod
    def of(user: User) -> UserView:
        return UserView(
            id=user.id,
            username=user.username,
            nickname=user.nickname,
            email=user.email,
            phone=user.phone,
            avatar=user.avatar,
            role_id=user.role_id,
            is_root=user.is_root,
            status=user.status,
            balance=user.balance,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


@dataclass(frozen=True, slots=True)
class UserFilter:
    keyword: str | None = None
    status: UserStatus | None = None
    role_id: UUID | None = None
    page: int = 1
    page_size: int = 20

    @property
    def offset(self) -> int:
        return (max(self.page, 1) - 1) * self.page_size

    def matches(self, user: User) -> bool:
        if self.status is not None and user.status != self.status:
            return False
        if self.role_id is not None and user.role_id != self.role_id:
            return False
        if self.keyword:
            needle = self.keyword.strip().lower()
            haystack = (user.username, user.nickname, user.email, user.phone)
            if not any(needle in (v or "").lower() for v in haystack):
                return False
        return True


@dataclass(frozen=True, slots=True)
class Page:
    items: list[UserView]
    total: int
    page: int
    page_size: int
