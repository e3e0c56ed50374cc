from __future__ import annotations

from typing import Protocol
from uuid import UUID

from console.models.payconfig import PayConfig, PayType


class PayConfigRepo(Protocol):
    async def get_by_id(self, config_id: UUID) -> PayConfig | None: ...
    async def list_all(self) -> list[PayConfig]: ...
    async def get_enabled(self, pay_type: PayType) -> PayConfig | None: ...
    async def add(self, config: PayConfig) -> None: ...
    async def save(self, config: PayConfig) -> PayConfig: ...


class InMemoryPayConfigRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, PayConfig] = {}

    async def get_by_id(self, config_id: UUID) -> PayConfig | None:
        return self._by_id.get(config_id)

    async def list_all(self) -> list[PayConfig]:
        return list(self._by_id.values())

    async def get_enabled(self, pay_type: PayType) -> PayConfig | None:
        return next(
            (c for c in self._by_id.values() if c.pay_type == pay_type and c.is_enable),
            None,
        )

    async def add(self, config: PayConfig) -> None:
        self._by_id[config.id] = config

    async def save(self, config: PayConfig) -> PayConfig:
        if config.id not in self._by_id:
            raise KeyError("payconfig not found")
        self._by_id[config.id] = config
        return config
