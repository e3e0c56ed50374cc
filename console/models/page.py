from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class DecoratePage:
    """A named layout document, e.g. the "web" navigation layout."""

    id: UUID
    name: str
    data: dict

    @staticmethod
    def new(*, name: str, data: dict) -> DecoratePage:
        return DecoratePage(id=uuid4(), name=name, data=data)


@dataclass(frozen=True, slots=True)
class Micropage:
    id: UUID
    name: str
    page_type: str = "custom"
    source: str = "console"
    content: list = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @staticmethod
    def new(
        *, name: str, content: list, page_type: str = "custom", source: str = "console"
    ) -> Micropage:
        return Micropage(
            id=uuid4(),
            name=name,
            page_type=page_type,
            source=source,
            content=content,
        )
