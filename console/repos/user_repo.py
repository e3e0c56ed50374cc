from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol
from uuid import UUID

from console.models.user import User, UserFilter


class UserRepo(Protocol):
    async def get_by_id(self, user_id: UUID) -> User | None: ...
    async def get_by_username(self, username: str) -> User | None: ...
    async def get_many(self, user_ids: Iterable[UUID]) -> list[User]: ...
    async def get_root(self) -> User | None: ...
    async def add(self, user: User) -> None: ...
    async def save(self, user: User) -> User: ...
    async def delete(self, user_id: UUID) -> bool: ...
    async def delete_many(self, user_ids: Iterable[UUID]) -> int: ...
    async def paginate(self, query: UserFilter) -> tuple[list[User], int]: ...
    async def commit(self) -> None: ...


class InMemoryUserRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, User] = {}

    async def get_by_id(self, user_id: UUID) -> User | None:
        return self._by_id.get(user_id)

    async def get_by_username(self, username: str) -> User | None:
        return next((u for u in self._by_id.values() if u.username == username), None)

    async def get_many(self, user_ids: Iterable[UUID]) -> list[User]:
        return [self._by_id[i] for i in dict.fromkeys(user_ids) if i in self._by_id]

    async def get_root(self) -> User | None:
        return next((u for u in self._by_id.values() if u.is_root), None)

    async def add(self, user: User) -> None:
        if any(u.username == user.username for u in self._by_id.values()):
            raise ValueError("username already exists")
        self._by_id[user.id] = user

    async def save(self, user: User) -> User:
        if user.id not in self._by_id:
            raise KeyError("user not found")
        self._by_id[user.id] = user
        return user

    async def delete(self, user_id: UUID) -> bool:
        return self._by_id.pop(user_id, None) is not None

    async def delete_many(self, user_ids: Iterable[UUID]) -> int:
        return sum(1 for i in set(user_ids) if self._by_id.pop(i, None) is not None)

    async def paginate(self, query: UserFilter) -> tuple[list[User], int]:
        matched = [u for u in self._by_id.values() if query.matches(u)]
        matched.sort(key=lambda u: u.created_at, reverse=True)
        return matched[query.offset : query.offset + query.page_size], len(matched)

    async def commit(self) -> None:
        return None
