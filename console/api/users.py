from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from console.api.dependencies import (
    CurrentUser,
    get_account_service,
    get_login_settings_service,
    require_permission,
)
from console.models.login_settings import LoginSettings
from console.models.user import User, UserFilter, UserStatus
from console.services.accounts import AccountService, BalanceAction, BalanceChange, NewUser
from console.services.login_settings import LoginSettingsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/console/users", tags=["users"])

Accounts = Annotated[AccountService, Depends(get_account_service)]


def _requires(code: str):
    return Annotated[User, Depends(require_permission(f"users:{code}"))]


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    nickname: str
    email: str | None
    phone: str | None
    avatar: str | None
    role_id: UUID | None
    is_root: bool
    status: UserStatus
    balance: Decimal
    created_at: datetime
    updated_at: datetime


class RoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str


class UserInfoOut(BaseModel):
    user: UserOut
    role: RoleOut | None
    permissions: list[str]
    has_permissions: int


class UserPageOut(BaseModel):
    items: list[UserOut]
    total: int
    page: int
    page_size: int


class UserCreateIn(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1)
    nickname: str = ""
    email: str | None = None
    phone: str | None = None
    avatar: str | None = None
    role_id: UUID | None = None
    status: UserStatus = UserStatus.ENABLED
    balance: Decimal = Field(default=Decimal("0.00"), ge=0)


class UserUpdateIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    username: str | None = Field(default=None, min_length=1, max_length=64)
    nickname: str | None = None
    email: str | None = None
    phone: str | None = None
    avatar: str | None = None
    role_id: UUID | None = None
    status: UserStatus | None = None


class IdsIn(BaseModel):
    ids: list[UUID]


class BatchUpdateIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ids: list[UUID]
    status: UserStatus | None = None
    role_id: UUID | None = None


class PasswordIn(BaseModel):
    password: str


class StatusIn(BaseModel):
    status: UserStatus


class BalanceIn(BaseModel):
    action: BalanceAction
    amount: Decimal = Field(gt=0)


class LoginSettingsModel(BaseModel):
    allowed_login_methods: list[str]
    allowed_register_methods: list[str]
    default_login_method: str
    allow_multiple_login: bool = False
    show_policy_agreement: bool = True


def _out(view) -> UserOut:
    return UserOut.model_validate(view)


# ---------------------------------------------------------------------------
# Static routes first: "/info" must not be captured by "/{user_id}".
# ---------------------------------------------------------------------------


@router.get("/info", response_model=UserInfoOut)
async def get_user_info(user: CurrentUser, accounts: Accounts) -> UserInfoOut:
    info = await accounts.get_user_info(user)
    return UserInfoOut(
        user=_out(info.user),
        role=RoleOut.model_validate(info.role) if info.role else None,
        permissions=list(info.permissions),
        has_permissions=info.has_permissions,
    )


@router.get("/roles", response_model=list[RoleOut])
async def list_roles(_actor: _requires("list"), accounts: Accounts) -> list[RoleOut]:
    return [RoleOut.model_validate(r) for r in await accounts.list_roles()]


@router.get("/login-settings", response_model=LoginSettingsModel)
async def get_login_settings(
    _actor: _requires("login-settings"),
    service: Annotated[LoginSettingsService, Depends(get_login_settings_service)],
) -> LoginSettingsModel:
    config = await service.get()
    return LoginSettingsModel(**config.to_dict())


@router.post("/login-settings", response_model=LoginSettingsModel)
async def set_login_settings(
    payload: LoginSettingsModel,
    actor: _requires("set-login-settings"),
    service: Annotated[LoginSettingsService, Depends(get_login_settings_service)],
) -> LoginSettingsModel:
    saved = await service.set(LoginSettings.from_dict(payload.model_dump()))
    logger.info("Login settings changed by user=%s", actor.id)
    return LoginSettingsModel(**saved.to_dict())


@router.get("", response_model=UserPageOut)
async def list_users(
    actor: _requires("list"),
    accounts: Accounts,
    keyword: str | None = None,
    status_: Annotated[UserStatus | None, Query(alias="status")] = None,
    role_id: UUID | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
) -> UserPageOut:
    result = await accounts.list_users(
        UserFilter(
            keyword=keyword,
            status=status_,
            role_id=role_id,
            page=page,
            page_size=page_size,
        ),
        actor,
    )
    return UserPageOut(
        items=[_out(v) for v in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
    )


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreateIn, _actor: _requires("create"), accounts: Accounts
) -> UserOut:
    view = await accounts.create(NewUser(**payload.model_dump()))
    return _out(view)


@router.post("/batch-delete")
async def batch_delete_users(
    payload: IdsIn, actor: _requires("batch-delete"), accounts: Accounts
) -> dict:
    deleted = await accounts.batch_delete(payload.ids, actor)
    return {"success": True, "deleted": deleted}


@router.post("/batch-update")
async def batch_update_users(
    payload: BatchUpdateIn, actor: _requires("batch-update"), accounts: Accounts
) -> dict:
    patch = payload.model_dump(exclude_unset=True, exclude={"ids"})
    updated = await accounts.batch_update(payload.ids, patch, actor)
    return {"success": True, "updated": updated}


@router.post("/reset-password/{user_id}")
async def reset_password(
    user_id: UUID, payload: PasswordIn, actor: _requires("reset-password"), accounts: Accounts
) -> dict:
    return {"success": await accounts.reset_password(user_id, payload.password, actor)}


@router.post("/reset-password-auto/{user_id}")
async def reset_password_auto(
    user_id: UUID, actor: _requires("reset-password-auto"), accounts: Accounts
) -> dict:
    return {"password": await accounts.reset_password_auto(user_id, actor)}


@router.post("/status/{user_id}", response_model=UserOut)
async def set_status(
    user_id: UUID, payload: StatusIn, actor: _requires("update-status"), accounts: Accounts
) -> UserOut:
    return _out(await accounts.set_status(user_id, payload.status, actor))


@router.post("/change-balance/{user_id}", response_model=UserOut)
async def change_balance(
    user_id: UUID, payload: BalanceIn, actor: _requires("change-balance"), accounts: Accounts
) -> UserOut:
    change = BalanceChange(action=payload.action, amount=payload.amount)
    return _out(await accounts.update_balance(user_id, change, actor))


# ---------------------------------------------------------------------------
# Item routes
# ---------------------------------------------------------------------------


@router.get("/{user_id}", response_model=UserOut)
async def get_user(user_id: UUID, _actor: _requires("detail"), accounts: Accounts) -> UserOut:
    return _out(await accounts.get(user_id))


@router.patch("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: UUID, payload: UserUpdateIn, actor: _requires("update"), accounts: Accounts
) -> UserOut:
    patch = payload.model_dump(exclude_unset=True)
    return _out(await accounts.update(user_id, patch, actor))


@router.delete("/{user_id}")
async def delete_user(user_id: UUID, actor: _requires("delete"), accounts: Accounts) -> dict:
    return {"success": await accounts.delete(user_id, actor)}
