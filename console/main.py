from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from console.api import dependencies
from console.api.auth import router as auth_router
from console.api.health import router as health_router
from console.api.metrics_endpoint import router as metrics_router
from console.api.pages import console_router as pages_console_router
from console.api.pages import web_router as pages_web_router
from console.api.payconfig import router as payconfig_router
from console.api.system import router as system_router
from console.api.users import router as users_router
from console.core.config import SETTINGS
from console.core.errors import register_exception_handlers
from console.core.logging import setup_logging
from console.db import engine as db
from console.db.engine import lifespan_db
from console.db.redis import lifespan_redis
from console.middleware.metrics import MetricsMiddleware
from console.middleware.request_context import RequestContextMiddleware
from console.repos.pg_role_repo import PgRoleRepo
from console.repos.pg_user_repo import PgUserRepo
from console.services.accounts import AccountService
from console.services.cache import cache_service
from console.services.permissions import PermissionCache, PermissionResolver

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


async def _bootstrap_root() -> None:
    """Create the root account from ROOT_USERNAME/ROOT_PASSWORD if none exists."""
    if not SETTINGS.bootstrap_root:
        return

    if db.async_session_factory is None:
        users, roles = dependencies.user_repo, dependencies.role_repo
        accounts = AccountService(
            users, roles, PermissionCache(cache_service, PermissionResolver(users, roles))
        )
        await accounts.ensure_root(SETTINGS.root_username, SETTINGS.root_password)
        return

    async with db.async_session_factory() as session:
        users, roles = PgUserRepo(session), PgRoleRepo(session)
        accounts = AccountService(
            users, roles, PermissionCache(cache_service, PermissionResolver(users, roles))
        )
        await accounts.ensure_root(SETTINGS.root_username, SETTINGS.root_password)
        await session.commit()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order.
    async with lifespan_db():
        async with lifespan_redis():
            await _bootstrap_root()
            yield


app = FastAPI(
    title="console-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last-added runs first: RequestContext -> Metrics -> CORS -> handler.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

register_exception_handlers(app)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(system_router)
app.include_router(payconfig_router)
app.include_router(pages_console_router)
app.include_router(pages_web_router)

logger.info(
    "console-service started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
