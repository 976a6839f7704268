"""Validators for the auth endpoints."""

import re
from typing import Any, Optional

from neuraslide.validators.base import (
    EMAIL_PATTERN,
    ValidationResult,
    check_string,
    is_missing,
    start,
)

PASSWORD_MIN_LENGTH = 5
PASSWORD_MAX_LENGTH = 100

PASSWORD_RULE = f"must be {PASSWORD_MIN_LENGTH}+ characters with uppercase, lowercase, and number"
WEAK_PASSWORD = f"Password {PASSWORD_RULE}"
INVALID_EMAIL = "Please provide a valid email address"


def check_email(value: Any, label: str = "Email") -> Optional[str]:
    if is_missing(value):
        return f"{label} is required"
    if not isinstance(value, str):
        return f"{label} must be a string"
    if len(value) > 255 or not EMAIL_PATTERN.match(value.strip()):
        return INVALID_EMAIL
    return None


def is_strong_password(password: str) -> bool:
    return (
        PASSWORD_MIN_LENGTH <= len(password) <= PASSWORD_MAX_LENGTH
        and re.search(r"[a-z]", password) is not None
        and re.search(r"[A-Z]", password) is not None
        and re.search(r"\d", password) is not None
    )


def check_password(value: Any, label: str = "Password") -> Optional[str]:
    if is_missing(value):
        return f"{label} is required"
    if not isinstance(value, str):
        return f"{label} must be a string"
    if not is_strong_password(value):
        return f"{label} {PASSWORD_RULE}"
    return None


def validate_signup(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    result.add(check_email(data.get("email")))
    result.add(check_password(data.get("password")))
    result.add(check_string(data.get("name"), "Name", min_length=1, max_length=100))
    result.add(check_string(data.get("teamName"), "Team name", required=False, min_length=2, max_length=50))
    return result


def validate_login(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    result.add(check_email(data.get("email")))
    result.add(check_string(data.get("password"), "Password"))
    return result


def validate_forgot_password(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    result.add(check_email(data.get("email")))
    return result


def validate_reset_password(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    result.add(check_string(data.get("token"), "Reset token"))
    result.add(check_password(data.get("newPassword"), "New password"))
    return result


def validate_change_password(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    current = data.get("currentPassword")
    new = data.get("newPassword")
    result.add(check_string(current, "Current password"))
    result.add(check_password(new, "New password"))
    if isinstance(current, str) and isinstance(new, str) and current and current == new:
        result.add("New password must be different from current password")
    return result


def validate_verify_email(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    result.add(check_string(data.get("token"), "Verification token"))
    return result
