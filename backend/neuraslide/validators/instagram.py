"""Validators for Instagram accounts and direct messages."""

from typing import Any

from neuraslide.validators.base import (
    ValidationResult,
    check_string,
    check_url,
    is_missing,
    start,
)


def validate_connect_account(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    result.add(check_string(data.get("instagramUserId"), "Instagram user ID", max_length=64))
    result.add(check_string(data.get("username"), "Username", max_length=100))
    result.add(check_string(data.get("accessToken"), "Access token"))
    return result


def validate_send_dm(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    result.add(check_string(data.get("accountId"), "Account ID"))
    result.add(check_string(data.get("recipientId"), "Recipient ID"))
    result.add(check_string(data.get("message"), "Message", max_length=1000))
    result.add(check_url(data.get("link"), "Link", required=False))
    return result


def validate_send_dm_with_link(payload: Any) -> ValidationResult:
    result = validate_send_dm(payload)
    if isinstance(payload, dict) and is_missing(payload.get("link")):
        result.add("Link is required")
    return result
