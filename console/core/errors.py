"""Error taxonomy shared by services and the HTTP layer.

Services raise these; ``register_exception_handlers`` turns them into
JSON responses with a localized ``detail`` and a stable ``code``.
Side-effect failures (cache purge, restart probing) never use these
classes: they are caught where they happen and logged under the
``SideEffectWarning`` category instead.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette import status

from console.core import messages

logger = logging.getLogger(__name__)


class ConsoleError(Exception):
    """Base class for primary-path errors surfaced to the caller."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_code: str = "error"

    def __init__(self, code: str | None = None, **params: object) -> None:
        self.code = code or self.default_code
        self.params = params
        super().__init__(messages.render(self.code, **params))

    def localized(self, language: str) -> str:
        return messages.render(self.code, language, **self.params)


class NotFoundError(ConsoleError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"


class AuthorizationError(ConsoleError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "no_permission"


class ValidationError(ConsoleError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "validation_error"


class ConflictError(ConsoleError):
    status_code = status.HTTP_409_CONFLICT
    default_code = "conflict"


class RestartError(ConsoleError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "restart_failed"


class SideEffectWarning(Warning):
    """Category for best-effort side effects that failed."""


def report_side_effect(
    log: logging.Logger, action: str, exc: BaseException, **context: object
) -> SideEffectWarning:
    """Log a failed side effect at WARNING and return it; never raises."""
    warning = SideEffectWarning(f"{action} failed: {exc}")
    log.warning(
        "%s: %s",
        SideEffectWarning.__name__,
        warning,
        extra={k: str(v) for k, v in context.items()},
    )
    return warning


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ConsoleError)
    async def _handle_console_error(request: Request, exc: ConsoleError) -> JSONResponse:
        language = messages.pick_language(request.headers.get("accept-language"))
        logger.warning(
            "%s %s rejected: %s (%s)",
            request.method,
            request.url.path,
            exc,
            exc.code,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.localized(language), "code": exc.code},
        )
