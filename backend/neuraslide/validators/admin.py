"""Validators for the admin console."""

from typing import Any, Optional

from neuraslide.validators.base import (
    ValidationResult,
    check_boolean,
    check_enum,
    check_number,
    check_string,
    check_string_list,
    require_any,
    start,
)

USER_ROLES = ("owner", "admin", "member", "viewer")
USER_STATUSES = ("ACTIVE", "SUSPENDED")
METRIC_PERIODS = ("day", "week", "month", "year")
ADMIN_ACTIONS = (
    "USER_SUSPENDED",
    "USER_ACTIVATED",
    "USER_DELETED",
    "AUTOMATION_DISABLED",
    "SYSTEM_MAINTENANCE",
    "BULK_OPERATION",
    "SETTINGS_UPDATED",
)
BULK_OPERATIONS = ("suspend_users", "activate_users", "delete_users", "disable_automations")
SETTING_CATEGORIES = ("general", "security", "billing", "automation", "ai")


def validate_user_list_query(
    page: Optional[int], limit: Optional[int], role: Optional[str], status: Optional[str]
) -> ValidationResult:
    result = ValidationResult()
    result.add(check_number(page, "Page", required=False, minimum=1, integer=True))
    result.add(check_number(limit, "Limit", required=False, minimum=1, maximum=100, integer=True))
    result.add(check_enum(role, "Role", USER_ROLES))
    result.add(check_enum(status, "Status", USER_STATUSES, case_insensitive=True))
    return result


def validate_user_update(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    require_any(result, data, ("name", "role", "status", "emailVerified"),
                "At least one field must be provided for update")
    result.add(check_string(data.get("name"), "Name", required=False, min_length=1, max_length=100))
    result.add(check_enum(data.get("role"), "Role", USER_ROLES))
    result.add(check_enum(data.get("status"), "Status", USER_STATUSES, case_insensitive=True))
    result.add(check_boolean(data.get("emailVerified"), "emailVerified"))
    return result


def validate_metrics_period(period: Optional[str]) -> ValidationResult:
    result = ValidationResult()
    result.add(check_enum(period, "Period", METRIC_PERIODS))
    return result


def validate_admin_action(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    action = data.get("action")
    result.add(check_enum(action, "Action", ADMIN_ACTIONS, required=True))
    if action in ("USER_SUSPENDED", "USER_ACTIVATED", "USER_DELETED", "AUTOMATION_DISABLED"):
        result.add(check_string(data.get("targetId"), "Target ID"))
    else:
        result.add(check_string(data.get("targetId"), "Target ID", required=False))
    result.add(check_string(data.get("details"), "Details", required=False, max_length=1000))
    return result


def validate_action_list_query(page: Optional[int], limit: Optional[int], action: Optional[str]) -> ValidationResult:
    result = ValidationResult()
    result.add(check_number(page, "Page", required=False, minimum=1, integer=True))
    result.add(check_number(limit, "Limit", required=False, minimum=1, maximum=100, integer=True))
    result.add(check_enum(action, "Action", ADMIN_ACTIONS))
    return result


def validate_bulk_operation(payload: Any, max_targets: int = 100) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    result.add(check_enum(data.get("operation"), "Operation", BULK_OPERATIONS, required=True))
    result.add(check_string_list(data.get("targetIds"), "Target IDs", required=True, min_items=1,
                                 max_items=max_targets, item_label="target ID"))
    result.add(check_string(data.get("reason"), "Reason", required=False, max_length=500))
    return result


def validate_settings_update(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    settings = data.get("settings")
    if settings is None:
        result.add("Settings are required")
    elif not isinstance(settings, list):
        result.add("Settings must be an array")
    elif not settings:
        result.add("Settings must contain at least 1 setting")
    else:
        for index, entry in enumerate(settings, start=1):
            if not isinstance(entry, dict):
                result.add(f"Setting {index} must be an object")
                continue
            result.add(check_string(entry.get("key"), f"Setting {index} key", min_length=1, max_length=100))
            if "value" not in entry:
                result.add(f"Setting {index} value is required")
            result.add(check_enum(entry.get("category"), f"Setting {index} category", SETTING_CATEGORIES))
    return result


def validate_settings_query(category: Optional[str]) -> ValidationResult:
    result = ValidationResult()
    result.add(check_enum(category, "Category", SETTING_CATEGORIES))
    return result
