from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from console.api.dependencies import get_account_service
from console.core.errors import AuthorizationError
from console.services import token_service
from console.services.accounts import AccountService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginIn(BaseModel):
    username: str
    password: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


@router.post("/login", response_model=TokenOut)
async def login(
    payload: LoginIn,
    accounts: Annotated[AccountService, Depends(get_account_service)],
) -> TokenOut:
    user = await accounts.authenticate(payload.username, payload.password)
    if user is None:
        logger.warning("Failed login username=%s", payload.username)
        raise AuthorizationError("invalid_credentials")

    logger.info("Login succeeded user=%s", user.id)
    return TokenOut(access_token=token_service.create_access_token(sub=str(user.id)))
