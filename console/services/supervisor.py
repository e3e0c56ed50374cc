"""Process restart coordination.

A restart request never restarts synchronously: the handler that asked
has to get its response out first.  ``RestartCoordinator`` therefore

  1. checks and sets ``is_restarting`` with no ``await`` in between, so
     two requests interleaving on the event loop cannot both pass;
  2. schedules the real work ``RESTART_DELAY_SECONDS`` later on the
     running loop and returns "accepted" straight away;
  3. in the scheduled task, asks PM2 to restart the app when PM2 is
     managing this process, otherwise exits with code 0 and leaves the
     relaunch to whatever launched us.

A second request while one is pending is declined, not queued.  The
flag is never cleared on the success path because the process is about
to go away; a fresh process starts idle.  If the scheduled work itself
blows up the process still exits (code 1) so the flag cannot wedge.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass

from console.core.config import SETTINGS
from console.core.errors import RestartError, report_side_effect
from console.core.metrics import RESTART_REQUESTS

logger = logging.getLogger(__name__)

RESTART_DELAY_SECONDS = 1.0
EXIT_RELAUNCH = 0
EXIT_FAILURE = 1

PM2_ENV_MARKERS = ("PM2_HOME", "PM2_JSON_PROCESSING", "PM2_CLI")


@dataclass(frozen=True, slots=True)
class RestartResult:
    accepted: bool
    message: str


@dataclass(frozen=True, slots=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str


CommandRunner = Callable[..., Awaitable[CommandResult]]


async def run_command(*argv: str) -> CommandResult:
    """Run an external command and capture its output.

    Raises OSError when the executable cannot be started.
    """
    proc = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await proc.communicate()
    return CommandResult(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )


class RestartCoordinator:
    def __init__(
        self,
        *,
        app_name: str = SETTINGS.pm2_app_name,
        delay_seconds: float = RESTART_DELAY_SECONDS,
        environ: Mapping[str, str] | None = None,
        runner: CommandRunner = run_command,
        exit_func: Callable[[int], object] = os._exit,
    ) -> None:
        self._app_name = app_name
        self._delay = delay_seconds
        self._environ = environ if environ is not None else os.environ
        self._runner = runner
        self._exit = exit_func
        self._is_restarting = False
        self._pending: asyncio.Task | None = None

    @property
    def is_restarting(self) -> bool:
        return self._is_restarting

    def reset(self) -> None:
        self._is_restarting = False
        self._pending = None

    def request_restart(self) -> RestartResult:
        """Accept one restart and schedule it; decline while one is pending.

        Must be called from code running on the event loop.
        """
        if self._is_restarting:
            RESTART_REQUESTS.labels(result="declined").inc()
            logger.warning("Restart already in progress, request declined")
            return RestartResult(
                accepted=False,
                message="The application is already restarting",
            )
        self._is_restarting = True

        try:
            loop = asyncio.get_running_loop()
            self._pending = loop.create_task(self._delayed_restart())
        except Exception as exc:
            self.reset()
            logger.exception("Failed to schedule restart")
            raise RestartError("restart_failed", reason=str(exc)) from exc

        RESTART_REQUESTS.labels(result="accepted").inc()
        logger.info(
            "Restart accepted, executing in %.1fs app=%s port=%d",
            self._delay,
            self._app_name,
            SETTINGS.port,
        )
        return RestartResult(
            accepted=True,
            message="Restart command sent, the service will restart shortly",
        )

    async def _delayed_restart(self) -> None:
        await asyncio.sleep(self._delay)
        try:
            await self._restart()
        except Exception:
            logger.exception("Restart failed, forcing exit")
            self._is_restarting = False
            self._exit(EXIT_FAILURE)

    async def _restart(self) -> None:
        if not await self.detect_pm2():
            logger.info("No PM2 supervisor detected, exiting for relaunch")
            self._exit(EXIT_RELAUNCH)
            return

        logger.info("PM2 detected, restarting app=%s", self._app_name)
        try:
            result = await self._runner("pm2", "restart", self._app_name)
        except OSError as exc:
            report_side_effect(logger, "pm2 restart", exc)
            self._exit(EXIT_RELAUNCH)
            return

        if result.returncode != 0:
            report_side_effect(
                logger,
                "pm2 restart",
                RuntimeError(result.stderr.strip() or f"exit code {result.returncode}"),
            )
            self._exit(EXIT_RELAUNCH)
            return
        logger.info("PM2 restart issued for app=%s", self._app_name)

    async def detect_pm2(self) -> bool:
        if any(self._environ.get(name) for name in PM2_ENV_MARKERS):
            return True

        try:
            result = await self._runner("pm2", "jlist")
        except OSError as exc:
            # PM2 not installed: not an error, just no supervisor.
            logger.debug("pm2 not available: %s", exc)
            return False
        if result.returncode != 0:
            return False
        return f'"name":"{self._app_name}"' in result.stdout.replace(" ", "")


restart_coordinator = RestartCoordinator()
