from __future__ import annotations

from typing import Protocol
from uuid import UUID

from console.models.role import Role


class RoleRepo(Protocol):
    async def get_by_id(self, role_id: UUID) -> Role | None: ...
    async def list_all(self) -> list[Role]: ...
    async def add(self, role: Role, codes: list[str] | None = None) -> None: ...
    async def get_permission_codes(self, role_id: UUID) -> list[str]: ...
    async def set_permission_codes(self, role_id: UUID, codes: list[str]) -> None: ...


class InMemoryRoleRepo:
    def __init__(self) -> None:
        self._roles: dict[UUID, Role] = {}
        self._codes: dict[UUID, list[str]] = {}

    async def get_by_id(self, role_id: UUID) -> Role | None:
        return self._roles.get(role_id)

    async def list_all(self) -> list[Role]:
        return sorted(self._roles.values(), key=lambda r: r.name)

    async def add(self, role: Role, codes: list[str] | None = None) -> None:
        self._roles[role.id] = role
        self._codes[role.id] = list(codes or [])

    async def get_permission_codes(self, role_id: UUID) -> list[str]:
        return list(self._codes.get(role_id, []))

    async def set_permission_codes(self, role_id: UUID, codes: list[str]) -> None:
        if role_id not in self._roles:
            raise KeyError("role not found")
        self._codes[role_id] = list(codes)
