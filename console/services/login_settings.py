from __future__ import annotations

import logging

from console.core.errors import ValidationError
from console.models.login_settings import LoginMethod, LoginSettings
from console.repos.dict_repo import DictRepo

logger = logging.getLogger(__name__)

SETTINGS_KEY = "login_settings"
SETTINGS_GROUP = "auth"

_KNOWN_METHODS = frozenset(m.value for m in LoginMethod)


def validate_login_settings(config: LoginSettings) -> None:
    """Raise ValidationError unless ``config`` is internally consistent."""
    if not config.allowed_login_methods:
        raise ValidationError("login_method_required")
    if not config.allowed_register_methods:
        raise ValidationError("register_method_required")
    if config.default_login_method not in config.allowed_login_methods:
        raise ValidationError("default_login_not_allowed")

    for method in config.allowed_login_methods:
        if method not in _KNOWN_METHODS:
            raise ValidationError("invalid_login_method", method=method)
    for method in config.allowed_register_methods:
        if method not in _KNOWN_METHODS:
            raise ValidationError("invalid_register_method", method=method)


class LoginSettingsService:
    def __init__(self, store: DictRepo) -> None:
        self._store = store

    async def get(self) -> LoginSettings:
        data = await self._store.get(SETTINGS_KEY, None, SETTINGS_GROUP)
        if data is None:
            return LoginSettings()
        return LoginSettings.from_dict(data)

    async def set(self, config: LoginSettings) -> LoginSettings:
        validate_login_settings(config)
        await self._store.set(
            SETTINGS_KEY,
            config.to_dict(),
            group=SETTINGS_GROUP,
            description="Console login settings",
        )
        logger.info(
            "Login settings saved login=%s register=%s default=%s",
            config.allowed_login_methods,
            config.allowed_register_methods,
            config.default_login_method,
        )
        return config
