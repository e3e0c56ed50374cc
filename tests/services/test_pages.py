from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from console.core.errors import NotFoundError, ValidationError
from console.repos.page_repo import InMemoryMicropageRepo, InMemoryPageRepo
from console.services.pages import PageService


@pytest.fixture
def service() -> PageService:
    return PageService(InMemoryPageRepo(), InMemoryMicropageRepo())


def test_unsaved_layout_is_none(service: PageService) -> None:
    assert asyncio.run(service.get_layout("web")) is None


def test_save_layout_overwrites_in_place(service: PageService) -> None:
    first = asyncio.run(service.save_layout("web", {"layout": "layout-2"}))
    second = asyncio.run(service.save_layout("web", {"layout": "layout-3"}))
    assert first.id == second.id
    stored = asyncio.run(service.get_layout("web"))
    assert stored is not None and stored.data == {"layout": "layout-3"}


def test_micropage_lifecycle(service: PageService) -> None:
    page = asyncio.run(service.create_micropage("Home", [{"type": "banner"}]))
    assert page.page_type == "custom"
    assert page.source == "console"

    renamed = asyncio.run(service.update_micropage(page.id, {"name": "Landing"}))
    assert renamed.name == "Landing"
    assert [p.id for p in asyncio.run(service.list_micropages())] == [page.id]

    assert asyncio.run(service.delete_micropage(page.id)) is True
    with pytest.raises(NotFoundError):
        asyncio.run(service.get_micropage(page.id))


def test_micropage_update_rejects_unknown_fields(service: PageService) -> None:
    page = asyncio.run(service.create_micropage("Home", []))
    with pytest.raises(ValidationError):
        asyncio.run(service.update_micropage(page.id, {"id": uuid4()}))


def test_delete_missing_micropage_raises(service: PageService) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(service.delete_micropage(uuid4()))
