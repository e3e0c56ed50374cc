"""PostgreSQL implementation of UserRepo."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from console.db.tables import UserRow
from console.models.user import User, UserFilter, UserStatus


class PgUserRepo:
    """Satisfies the UserRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, user_id: UUID) -> User | None:
        row = await self._session.get(UserRow, user_id)
        return _row_to_user(row) if row is not None else None

    async def get_by_username(self, username: str) -> User | None:
        stmt = select(UserRow).where(UserRow.username == username)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_user(row) if row is not None else None

    async def get_many(self, user_ids: Iterable[UUID]) -> list[User]:
        ids = list(user_ids)
        if not ids:
            return []
        stmt = select(UserRow).where(UserRow.id.in_(ids))
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_user(r) for r in rows]

    async def get_root(self) -> User | None:
        stmt = select(UserRow).where(UserRow.is_root.is_(True)).limit(1)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_user(row) if row is not None else None

    async def add(self, user: User) -> None:
        self._session.add(_user_to_row(user))
        await self._flush()

    async def save(self, user: User) -> User:
        row = await self._session.get(UserRow, user.id)
        if row is None:
            raise KeyError("user not found")
        row.username = user.username
        row.nickname = user.nickname
        row.email = user.email
        row.phone = user.phone
        row.avatar = user.avatar
        row.password_hash = user.password_hash
        row.openid = user.openid
        row.role_id = user.role_id
        row.is_root = user.is_root
        row.status = int(user.status)
        row.balance = user.balance
        row.updated_at = user.updated_at
        await self._flush()
        return _row_to_user(row)

    async def delete(self, user_id: UUID) -> bool:
        result = await self._session.execute(delete(UserRow).where(UserRow.id == user_id))
        return result.rowcount > 0

    async def delete_many(self, user_ids: Iterable[UUID]) -> int:
        ids = list(user_ids)
        if not ids:
            return 0
        result = await self._session.execute(delete(UserRow).where(UserRow.id.in_(ids)))
        return result.rowcount

    async def paginate(self, query: UserFilter) -> tuple[list[User], int]:
        stmt = select(UserRow)
        if query.status is not None:
            stmt = stmt.where(UserRow.status == int(query.status))
        if query.role_id is not None:
            stmt = stmt.where(UserRow.role_id == query.role_id)
        if query.keyword:
            pattern = f"%{query.keyword.strip()}%"
            stmt = stmt.where(
                or_(
                    UserRow.username.ilike(pattern),
                    UserRow.nickname.ilike(pattern),
                    UserRow.email.ilike(pattern),
                    UserRow.phone.ilike(pattern),
                )
            )

        total_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self._session.execute(total_stmt)).scalar_one()

        page_stmt = (
            stmt.order_by(UserRow.created_at.desc())
            .offset(query.offset)
            .limit(query.page_size)
        )
        rows = (await self._session.execute(page_stmt)).scalars().all()
        return [_row_to_user(r) for r in rows], total

    async def commit(self) -> None:
        await self._session.commit()

    async def _flush(self) -> None:
        try:
            await self._session.flush()
        except IntegrityError as exc:
            if "username" not in str(exc.orig):
                raise
            raise ValueError("username already exists") from exc


def _user_to_row(user: User) -> UserRow:
    return UserRow(
        id=user.id,
        username=user.username,
        nickname=user.nickname,
        email=user.email,
        phone=user.phone,
        avatar=user.avatar,
        password_hash=user.password_hash,
        openid=user.openid,
        role_id=user.role_id,
        is_root=user.is_root,
        status=int(user.status),
        balance=user.balance,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _row_to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        username=row.username,
        nickname=row.nickname or "",
        email=row.email,
        phone=row.phone,
        avatar=row.avatar,
        password_hash=row.password_hash,
        openid=row.openid,
        role_id=row.role_id,
        is_root=row.is_root,
        status=UserStatus(row.status),
        balance=row.balance,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
