from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import StrEnum


class LoginMethod(StrEnum):
    ACCOUNT = "account"
    PHONE = "phone"
    WECHAT = "wechat"


@dataclass(frozen=True, slots=True)
class LoginSettings:
    allowed_login_methods: list[str] = field(
        default_factory=lambda: [LoginMethod.ACCOUNT, LoginMethod.PHONE, LoginMethod.WECHAT]
    )
    allowed_register_methods: list[str] = field(
        default_factory=lambda: [LoginMethod.ACCOUNT, LoginMethod.PHONE]
    )
    default_login_method: str = LoginMethod.ACCOUNT
    allow_multiple_login: bool = False
    show_policy_agreement: bool = True

    def to_dict(self) -> dict:
        data = asdict(self)
        data["allowed_login_methods"] = [str(m) for m in self.allowed_login_methods]
        data["allowed_register_methods"] = [str(m) for m in self.allowed_register_methods]
        data["default_login_method"] = str(self.default_login_method)
        return data

    @staticmethod
    def from_dict(data: dict) -> LoginSettings:
        defaults = LoginSettings()
        return LoginSettings(
            allowed_login_methods=list(
                data.get("allowed_login_methods", defaults.allowed_login_methods)
            ),
            allowed_register_methods=list(
                data.get("allowed_register_methods", defaults.allowed_register_methods)
            ),
            default_login_method=data.get(
                "default_login_method", defaults.default_login_method
            ),
            allow_multiple_login=bool(
                data.get("allow_multiple_login", defaults.allow_multiple_login)
            ),
            show_policy_agreement=bool(
                data.get("show_policy_agreement", defaults.show_policy_agreement)
            ),
        )
