"""PostgreSQL implementation of RoleRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from console.db.tables import RolePermissionRow, RoleRow
from console.models.role import Role


class PgRoleRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, role_id: UUID) -> Role | None:
        row = await self._session.get(RoleRow, role_id)
        if row is None:
            return None
        return Role(id=row.id, name=row.name, description=row.description)

    async def list_all(self) -> list[Role]:
        rows = (
            (await self._session.execute(select(RoleRow).order_by(RoleRow.name)))
            .scalars()
            .all()
        )
        return [Role(id=r.id, name=r.name, description=r.description) for r in rows]

    async def add(self, role: Role, codes: list[str] | None = None) -> None:
        self._session.add(RoleRow(id=role.id, name=role.name, description=role.description))
        await self._session.flush()
        if codes:
            await self.set_permission_codes(role.id, codes)

    async def get_permission_codes(self, role_id: UUID) -> list[str]:
        stmt = (
            select(RolePermissionRow.code)
            .where(RolePermissionRow.role_id == role_id)
            .order_by(RolePermissionRow.position)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def set_permission_codes(self, role_id: UUID, codes: list[str]) -> None:
        await self._session.execute(
            delete(RolePermissionRow).where(RolePermissionRow.role_id == role_id)
        )
        self._session.add_all(
            RolePermissionRow(role_id=role_id, code=code, position=i)
            for i, code in enumerate(dict.fromkeys(codes))
        )
        await self._session.flush()
