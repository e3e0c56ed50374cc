"""Payment configuration management.

Checkout code reads the enabled config for a pay type on every payment,
so ``get_enabled`` is read-through cached.  Any write purges the cached
entry for the affected pay type; that purge is the refresh signal for
payment clients built from the old credentials.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import asdict, replace
from uuid import UUID

from console.core.errors import NotFoundError, ValidationError, report_side_effect
from console.models.payconfig import PayConfig, PayConfigSummary, PayType
from console.repos.payconfig_repo import PayConfigRepo
from console.services.cache import CacheService

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 600

UPDATABLE_FIELDS = frozenset(
    {"name", "is_enable", "is_default", "logo", "sort", "merchant_id", "app_id", "api_key", "cert"}
)


def _cache_key(pay_type: PayType) -> str:
    return f"payconfig:{int(pay_type)}"


def _dump(config: PayConfig) -> str:
    data = asdict(config)
    data["id"] = str(config.id)
    data["pay_type"] = int(config.pay_type)
    return json.dumps(data)


def _load(raw: str) -> PayConfig:
    data = json.loads(raw)
    data["id"] = UUID(data["id"])
    data["pay_type"] = PayType(data["pay_type"])
    return PayConfig(**data)


class PayConfigService:
    def __init__(self, repo: PayConfigRepo, cache: CacheService) -> None:
        self._repo = repo
        self._cache = cache

    async def _load(self, config_id: UUID) -> PayConfig:
        config = await self._repo.get_by_id(config_id)
        if config is None:
            raise NotFoundError("payconfig_not_found")
        return config

    async def _refresh(self, pay_type: PayType) -> None:
        try:
            await self._cache.delete(_cache_key(pay_type))
        except Exception as exc:
            report_side_effect(logger, f"payconfig refresh type={int(pay_type)}", exc)

    async def list_configs(self) -> list[PayConfigSummary]:
        configs = await self._repo.list_all()
        configs.sort(key=lambda c: c.sort, reverse=True)
        return [PayConfigSummary.of(c) for c in configs]

    async def get(self, config_id: UUID) -> PayConfig:
        return await self._load(config_id)

    async def update_status(self, config_id: UUID, is_enable: bool) -> PayConfig:
        config = await self._load(config_id)
        updated = await self._repo.save(replace(config, is_enable=bool(is_enable)))
        logger.info("Payconfig id=%s is_enable=%s", config_id, updated.is_enable)
        await self._refresh(updated.pay_type)
        return updated

    async def update(self, config_id: UUID, patch: Mapping[str, object]) -> PayConfig:
        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError("invalid_field", field=", ".join(sorted(unknown)))
        config = await self._load(config_id)
        updated = await self._repo.save(replace(config, **patch))
        logger.info("Payconfig updated id=%s fields=%s", config_id, sorted(patch))
        await self._refresh(updated.pay_type)
        return updated

    async def get_enabled(self, pay_type: PayType) -> PayConfig:
        key = _cache_key(pay_type)
        try:
            cached = await self._cache.get(key)
        except Exception as exc:
            report_side_effect(logger, f"cache read {key}", exc)
            cached = None
        if cached is not None:
            return _load(cached)

        config = await self._repo.get_enabled(pay_type)
        if config is None:
            raise NotFoundError("payconfig_not_found")
        try:
            await self._cache.set(key, _dump(config), CACHE_TTL_SECONDS)
        except Exception as exc:
            report_side_effect(logger, f"cache write {key}", exc)
        return config
