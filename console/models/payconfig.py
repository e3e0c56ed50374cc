from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from uuid import UUID, uuid4


class PayType(IntEnum):
    WECHAT = 1
    ALIPAY = 2


@dataclass(frozen=True, slots=True)
class PayConfig:
    id: UUID
    name: str
    pay_type: PayType
    is_enable: bool = False
    is_default: bool = False
    logo: str = ""
    sort: int = 0
    merchant_id: str = ""
    app_id: str = ""
    api_key: str = ""  # secret
    cert: str = ""  # secret

    @staticmethod
    def new(*, name: str, pay_type: PayType, **fields) -> PayConfig:
        return PayConfig(id=uuid4(), name=name, pay_type=pay_type, **fields)


@dataclass(frozen=True, slots=True)
class PayConfigSummary:
    """List projection: no merchant credentials."""

    id: UUID
    name: str
    pay_type: PayType
    is_enable: bool
    logo: str
    sort: int
    is_default: bool

    @staticmethod
    def of(config: PayConfig) -> PayConfigSummary:
        return PayConfigSummary(
            id=config.id,
            name=config.name,
            pay_type=config.pay_type,
            is_enable=config.is_enable,
            logo=config.logo,
            sort=config.sort,
            is_default=config.is_default,
        )
