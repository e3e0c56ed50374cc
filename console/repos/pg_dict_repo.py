"""PostgreSQL implementation of DictRepo."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from console.db.tables import DictEntryRow


class PgDictRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _row(self, key: str, group: str) -> DictEntryRow | None:
        stmt = select(DictEntryRow).where(
            DictEntryRow.key == key, DictEntryRow.group == group
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def get(self, key: str, default: Any = None, group: str = "default") -> Any:
        row = await self._row(key, group)
        if row is None:
            return default
        return row.value

    async def set(
        self, key: str, value: Any, *, group: str = "default", description: str = ""
    ) -> None:
        row = await self._row(key, group)
        if row is None:
            self._session.add(
                DictEntryRow(key=key, group=group, value=value, description=description)
            )
        else:
            row.value = value
            if description:
                row.description = description
        await self._session.flush()
