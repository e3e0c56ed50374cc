"""Decorate-page layouts and micropages.

Console routes (``/console/...``) edit content and need permissions;
web routes (``/web/...``) serve it publicly to the storefront.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict

from console.api.dependencies import get_page_service, require_permission
from console.models.user import User
from console.services.pages import (
    CONSOLE_DEFAULT_LAYOUT,
    MICROPAGE_PRIVATE_FIELDS,
    WEB_DEFAULT_LAYOUT,
    PageService,
    default_layout,
)

console_router = APIRouter(prefix="/console", tags=["decorate"])
web_router = APIRouter(prefix="/web", tags=["decorate"])

Pages = Annotated[PageService, Depends(get_page_service)]


def _requires(code: str):
    return Annotated[User, Depends(require_permission(code))]


class LayoutOut(BaseModel):
    id: UUID | None = None
    data: dict


class MicropageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    page_type: str
    source: str
    content: list
    created_at: datetime


class MicropageCreateIn(BaseModel):
    name: str
    content: list = []


class MicropageUpdateIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    content: list | None = None


# ---------------------------------------------------------------------------
# Console
# ---------------------------------------------------------------------------


@console_router.get("/decorate-page/layout/{layout_type}", response_model=LayoutOut)
async def console_get_layout(
    layout_type: str, _actor: _requires("decorate-page:get-layout"), pages: Pages
) -> LayoutOut:
    page = await pages.get_layout(layout_type)
    if page is None:
        return LayoutOut(data=default_layout(CONSOLE_DEFAULT_LAYOUT))
    return LayoutOut(id=page.id, data=page.data or default_layout(CONSOLE_DEFAULT_LAYOUT))


@console_router.post("/decorate-page/layout/{layout_type}", response_model=LayoutOut)
async def console_save_layout(
    layout_type: str,
    data: dict,
    _actor: _requires("decorate-page:save-layout"),
    pages: Pages,
) -> LayoutOut:
    page = await pages.save_layout(layout_type, data)
    return LayoutOut(id=page.id, data=page.data)


@console_router.get("/micropages", response_model=list[MicropageOut])
async def list_micropages(_actor: _requires("micropage:list"), pages: Pages) -> list:
    return [MicropageOut.model_validate(p) for p in await pages.list_micropages()]


@console_router.post(
    "/micropages", response_model=MicropageOut, status_code=status.HTTP_201_CREATED
)
async def create_micropage(
    payload: MicropageCreateIn, _actor: _requires("micropage:create"), pages: Pages
) -> MicropageOut:
    page = await pages.create_micropage(payload.name, payload.content)
    return MicropageOut.model_validate(page)


@console_router.get("/micropages/{page_id}", response_model=MicropageOut)
async def get_micropage(
    page_id: UUID, _actor: _requires("micropage:detail"), pages: Pages
) -> MicropageOut:
    return MicropageOut.model_validate(await pages.get_micropage(page_id))


@console_router.patch("/micropages/{page_id}", response_model=MicropageOut)
async def update_micropage(
    page_id: UUID,
    payload: MicropageUpdateIn,
    _actor: _requires("micropage:update"),
    pages: Pages,
) -> MicropageOut:
    patch = payload.model_dump(exclude_unset=True, exclude_none=True)
    return MicropageOut.model_validate(await pages.update_micropage(page_id, patch))


@console_router.delete("/micropages/{page_id}")
async def delete_micropage(
    page_id: UUID, _actor: _requires("micropage:delete"), pages: Pages
) -> dict:
    return {"success": await pages.delete_micropage(page_id)}


# ---------------------------------------------------------------------------
# Web (public)
# ---------------------------------------------------------------------------


@web_router.get("/decorate-page/layout/{layout_type}", response_model=LayoutOut)
async def web_get_layout(layout_type: str, pages: Pages) -> LayoutOut:
    page = await pages.get_layout(layout_type)
    if page is None:
        return LayoutOut(data=default_layout(WEB_DEFAULT_LAYOUT))
    return LayoutOut(id=page.id, data=page.data)


@web_router.get("/decorate-page/micropage/{page_id}")
async def web_get_micropage(page_id: UUID, pages: Pages) -> dict:
    page = MicropageOut.model_validate(await pages.get_micropage(page_id))
    return page.model_dump(mode="json", exclude=set(MICROPAGE_PRIVATE_FIELDS))
