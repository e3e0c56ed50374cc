from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace
from uuid import UUID

from console.core.errors import NotFoundError, ValidationError
from console.models.page import DecoratePage, Micropage
from console.repos.page_repo import MicropageRepo, PageRepo

logger = logging.getLogger(__name__)

# Layout served when a type has never been saved.
CONSOLE_DEFAULT_LAYOUT = "layout-1"
WEB_DEFAULT_LAYOUT = "layout-5"

MICROPAGE_FIELDS = frozenset({"name", "content", "page_type", "source"})
# Internal bookkeeping hidden from the public site.
MICROPAGE_PRIVATE_FIELDS = ("page_type", "source")


def default_layout(layout: str) -> dict:
    return {"layout": layout, "menus": []}


class PageService:
    def __init__(self, pages: PageRepo, micropages: MicropageRepo) -> None:
        self._pages = pages
        self._micropages = micropages

    async def get_layout(self, layout_type: str) -> DecoratePage | None:
        """Return the stored layout, or None so the caller serves its default."""
        return await self._pages.get_by_name(layout_type)

    async def save_layout(self, layout_type: str, data: dict) -> DecoratePage:
        existing = await self._pages.get_by_name(layout_type)
        if existing is None:
            page = DecoratePage.new(name=layout_type, data=data)
        else:
            page = replace(existing, data=data)
        saved = await self._pages.save(page)
        logger.info("Saved layout type=%s id=%s", layout_type, saved.id)
        return saved

    async def create_micropage(self, name: str, content: list) -> Micropage:
        page = await self._micropages.save(Micropage.new(name=name, content=content))
        logger.info("Created micropage id=%s", page.id)
        return page

    async def list_micropages(self) -> list[Micropage]:
        return await self._micropages.list_all()

    async def get_micropage(self, page_id: UUID) -> Micropage:
        page = await self._micropages.get_by_id(page_id)
        if page is None:
            raise NotFoundError("micropage_not_found")
        return page

    async def update_micropage(self, page_id: UUID, patch: Mapping[str, object]) -> Micropage:
        unknown = set(patch) - MICROPAGE_FIELDS
        if unknown:
            raise ValidationError("invalid_field", field=", ".join(sorted(unknown)))
        page = await self.get_micropage(page_id)
        return await self._micropages.save(replace(page, **patch))

    async def delete_micropage(self, page_id: UUID) -> bool:
        if not await self._micropages.delete(page_id):
            raise NotFoundError("micropage_not_found")
        logger.info("Deleted micropage id=%s", page_id)
        return True
