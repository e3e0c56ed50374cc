from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from console.core.errors import NotFoundError, ValidationError
from console.models.payconfig import PayConfig, PayType
from console.repos.payconfig_repo import InMemoryPayConfigRepo
from console.services.cache import InMemoryCacheService
from console.services.payconfig import PayConfigService


def _setup():
    repo, cache = InMemoryPayConfigRepo(), InMemoryCacheService()
    wechat = PayConfig.new(
        name="WeChat Pay", pay_type=PayType.WECHAT, is_enable=True, sort=1, api_key="k1"
    )
    alipay = PayConfig.new(name="Alipay", pay_type=PayType.ALIPAY, sort=5)
    asyncio.run(repo.add(wechat))
    asyncio.run(repo.add(alipay))
    return PayConfigService(repo, cache), cache, wechat, alipay


def test_list_is_sorted_and_hides_credentials() -> None:
    service, _, wechat, alipay = _setup()
    listed = asyncio.run(service.list_configs())
    assert [c.id for c in listed] == [alipay.id, wechat.id]
    assert not hasattr(listed[0], "api_key")


def test_get_enabled_is_cached_until_update() -> None:
    service, cache, wechat, _ = _setup()
    assert asyncio.run(service.get_enabled(PayType.WECHAT)).api_key == "k1"
    assert asyncio.run(cache.get("payconfig:1")) is not None

    asyncio.run(service.update(wechat.id, {"api_key": "k2"}))
    assert asyncio.run(cache.get("payconfig:1")) is None
    assert asyncio.run(service.get_enabled(PayType.WECHAT)).api_key == "k2"


def test_disabled_type_has_no_enabled_config() -> None:
    service, _, wechat, _ = _setup()
    asyncio.run(service.update_status(wechat.id, False))
    with pytest.raises(NotFoundError):
        asyncio.run(service.get_enabled(PayType.WECHAT))


def test_update_rejects_unknown_field_and_missing_config() -> None:
    service, _, wechat, _ = _setup()
    with pytest.raises(ValidationError):
        asyncio.run(service.update(wechat.id, {"pay_type": 2}))
    with pytest.raises(NotFoundError):
        asyncio.run(service.get(uuid4()))
