from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from console.api.dependencies import get_payconfig_service, require_permission
from console.models.payconfig import PayType
from console.models.user import User
from console.services.payconfig import PayConfigService

router = APIRouter(prefix="/console/payconfig", tags=["payconfig"])

Service = Annotated[PayConfigService, Depends(get_payconfig_service)]


def _requires(code: str):
    return Annotated[User, Depends(require_permission(f"payconfig:{code}"))]


class PayConfigSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    pay_type: PayType
    is_enable: bool
    logo: str
    sort: int
    is_default: bool


class PayConfigOut(PayConfigSummaryOut):
    merchant_id: str
    app_id: str
    api_key: str
    cert: str


class PayConfigUpdateIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    is_enable: bool | None = None
    is_default: bool | None = None
    logo: str | None = None
    sort: int | None = None
    merchant_id: str | None = None
    app_id: str | None = None
    api_key: str | None = None
    cert: str | None = None


class PayConfigStatusIn(BaseModel):
    is_enable: bool


@router.get("", response_model=list[PayConfigSummaryOut])
async def list_payconfigs(_actor: _requires("list"), service: Service) -> list:
    return [PayConfigSummaryOut.model_validate(c) for c in await service.list_configs()]


@router.get("/{config_id}", response_model=PayConfigOut)
async def get_payconfig(
    config_id: UUID, _actor: _requires("detail"), service: Service
) -> PayConfigOut:
    return PayConfigOut.model_validate(await service.get(config_id))


@router.patch("/{config_id}", response_model=PayConfigOut)
async def update_payconfig(
    config_id: UUID, payload: PayConfigUpdateIn, _actor: _requires("update"), service: Service
) -> PayConfigOut:
    patch = payload.model_dump(exclude_unset=True, exclude_none=True)
    return PayConfigOut.model_validate(await service.update(config_id, patch))


@router.post("/{config_id}/status", response_model=PayConfigOut)
async def update_payconfig_status(
    config_id: UUID,
    payload: PayConfigStatusIn,
    _actor: _requires("update-status"),
    service: Service,
) -> PayConfigOut:
    return PayConfigOut.model_validate(
        await service.update_status(config_id, payload.is_enable)
    )
