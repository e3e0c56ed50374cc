from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from console.api.dependencies import get_restart_coordinator, require_permission
from console.models.user import User
from console.services.supervisor import RestartCoordinator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/console/system", tags=["system"])


class RestartOut(BaseModel):
    success: bool
    message: str


@router.post("/restart", response_model=RestartOut)
async def restart_application(
    actor: Annotated[User, Depends(require_permission("system:restart"))],
    coordinator: Annotated[RestartCoordinator, Depends(get_restart_coordinator)],
) -> RestartOut:
    logger.info("Restart requested by user=%s", actor.id)
    result = coordinator.request_restart()
    return RestartOut(success=result.accepted, message=result.message)
