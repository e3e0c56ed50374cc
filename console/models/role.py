from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Role:
    id: UUID
    name: str
    description: str = ""

    @staticmethod
    def new(*, name: str, description: str = "") -> Role:
        return Role(id=uuid4(), name=name, description=description)


@dataclass(frozen=True, slots=True)
class RolePermission:
    role_id: UUID
    code: str  # e.g. "users:update"
