"""User-facing error messages, keyed by error code.

Every primary error carries a code; the HTTP layer renders it in the
caller's language picked from ``Accept-Language``.  English is the
fallback for unknown languages and for codes missing a translation.
"""

from __future__ import annotations

DEFAULT_LANGUAGE = "en"

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "user_not_found": "User not found",
        "no_permission": "No permission",
        "root_not_deletable": "Root users cannot be deleted: {ids}",
        "root_not_modifiable": "Root users can only be modified by themselves: {ids}",
        "username_required": "Username must be non-empty",
        "username_taken": "Username already exists: {username}",
        "password_required": "Password must be non-empty",
        "role_not_found": "Role not found: {role_id}",
        "invalid_balance_amount": "Balance change amount must be positive",
        "invalid_batch_field": "Field cannot be updated in bulk: {field}",
        "invalid_field": "Field cannot be updated: {field}",
        "field_not_nullable": "Field cannot be null: {field}",
        "empty_id_list": "At least one id is required",
        "login_method_required": "At least one login method must be enabled",
        "register_method_required": "At least one registration method must be enabled",
        "default_login_not_allowed": "The default login method must be one of the allowed login methods",
        "invalid_login_method": "Invalid login method: {method}",
        "invalid_register_method": "Invalid registration method: {method}",
        "invalid_credentials": "Invalid username or password",
        "payconfig_not_found": "Payment configuration not found",
        "micropage_not_found": "Micropage not found",
        "restart_failed": "Failed to restart the application: {reason}",
    },
    "zh": {
        "user_not_found": "用户不存在",
        "no_permission": "暂无权限",
        "root_not_deletable": "超级管理员不可删除: {ids}",
        "root_not_modifiable": "超级管理员仅可由本人修改: {ids}",
        "username_required": "用户名不能为空",
        "username_taken": "用户名已存在: {username}",
        "password_required": "密码不能为空",
        "role_not_found": "角色不存在: {role_id}",
        "invalid_balance_amount": "余额变动金额必须大于0",
        "invalid_batch_field": "该字段不支持批量更新: {field}",
        "invalid_field": "该字段不支持更新: {field}",
        "field_not_nullable": "该字段不能为空: {field}",
        "empty_id_list": "至少需要一个ID",
        "login_method_required": "至少需要启用一种登录方式",
        "register_method_required": "至少需要启用一种注册方式",
        "default_login_not_allowed": "默认登录方式必须在允许的登录方式列表中",
        "invalid_login_method": "无效的登录方式: {method}",
        "invalid_register_method": "无效的注册方式: {method}",
        "invalid_credentials": "用户名或密码错误",
        "payconfig_not_found": "支付配置不存在",
        "micropage_not_found": "微页面不存在",
        "restart_failed": "重启应用失败: {reason}",
    },
}


def pick_language(accept_language: str | None) -> str:
    """Return the first supported language from an Accept-Language header."""
    if not accept_language:
        return DEFAULT_LANGUAGE
    for part in accept_language.split(","):
        tag = part.split(";", 1)[0].strip().lower()
        primary = tag.split("-", 1)[0]
        if primary in MESSAGES:
            return primary
    return DEFAULT_LANGUAGE


def render(code: str, language: str = DEFAULT_LANGUAGE, **params: object) -> str:
    catalog = MESSAGES.get(language, MESSAGES[DEFAULT_LANGUAGE])
    template = catalog.get(code) or MESSAGES[DEFAULT_LANGUAGE].get(code, code)
    try:
        return template.format(**params)
    except (KeyError, IndexError):
        return template
