from __future__ import annotations

from typing import Protocol
from uuid import UUID

from console.models.page import DecoratePage, Micropage


class PageRepo(Protocol):
    async def get_by_name(self, name: str) -> DecoratePage | None: ...
    async def save(self, page: DecoratePage) -> DecoratePage: ...


class MicropageRepo(Protocol):
    async def get_by_id(self, page_id: UUID) -> Micropage | None: ...
    async def list_all(self) -> list[Micropage]: ...
    async def save(self, page: Micropage) -> Micropage: ...
    async def delete(self, page_id: UUID) -> bool: ...


class InMemoryPageRepo:
    def __init__(self) -> None:
        self._by_name: dict[str, DecoratePage] = {}

    async def get_by_name(self, name: str) -> DecoratePage | None:
        return self._by_name.get(name)

    async def save(self, page: DecoratePage) -> DecoratePage:
        self._by_name[page.name] = page
        return page


class InMemoryMicropageRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Micropage] = {}

    async def get_by_id(self, page_id: UUID) -> Micropage | None:
        return self._by_id.get(page_id)

    async def list_all(self) -> list[Micropage]:
        return sorted(self._by_id.values(), key=lambda p: p.created_at, reverse=True)

    async def save(self, page: Micropage) -> Micropage:
        self._by_id[page.id] = page
        return page

    async def delete(self, page_id: UUID) -> bool:
        return self._by_id.pop(page_id, None) is not None
