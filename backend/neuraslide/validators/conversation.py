"""Validators for conversations and messages."""

from typing import Any, Optional

from neuraslide.validators.base import (
    ValidationResult,
    check_enum,
    check_number,
    check_object,
    check_string,
    check_string_list,
    start,
)

CONVERSATION_STATUSES = ("ACTIVE", "ARCHIVED", "BLOCKED", "PENDING", "RESOLVED")
MESSAGE_TYPES = ("TEXT", "IMAGE", "VIDEO", "AUDIO", "FILE", "STORY_REPLY", "STORY_MENTION", "QUICK_REPLY")
SORT_FIELDS = ("createdAt", "updatedAt", "lastMessageAt", "messageCount")
SORT_ORDERS = ("asc", "desc")


def validate_send_message(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    result.add(check_string(data.get("text"), "Message text", max_length=1000))
    result.add(check_string_list(data.get("mediaUrls"), "Media URLs", max_items=10, item_label="media URL"))
    result.add(check_enum(data.get("messageType"), "Message type", MESSAGE_TYPES, case_insensitive=True))
    result.add(check_object(data.get("metadata"), "Metadata"))
    return result


def validate_reply(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    result.add(check_string(data.get("messageId"), "Message ID"))
    result.add(check_string(data.get("text"), "Reply text", max_length=1000))
    result.add(check_string_list(data.get("mediaUrls"), "Media URLs", max_items=10, item_label="media URL"))
    return result


def validate_update_status(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    result.add(check_enum(data.get("status"), "Status", CONVERSATION_STATUSES, required=True, case_insensitive=True))
    return result


def validate_add_tags(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    result.add(check_string_list(data.get("tags"), "Tags", required=True, min_items=1, max_items=20,
                                 max_item_length=50, item_label="tag"))
    return result


def validate_list_query(
    page: Optional[int],
    limit: Optional[int],
    status: Optional[str],
    sort_by: Optional[str],
    sort_order: Optional[str],
) -> ValidationResult:
    result = ValidationResult()
    result.add(check_number(page, "Page", required=False, minimum=1, integer=True))
    result.add(check_number(limit, "Limit", required=False, minimum=1, maximum=100, integer=True))
    result.add(check_enum(status, "Status", CONVERSATION_STATUSES, case_insensitive=True))
    result.add(check_enum(sort_by, "Sort field", SORT_FIELDS))
    result.add(check_enum(sort_order, "Sort order", SORT_ORDERS, case_insensitive=True))
    return result


def validate_message_query(page: Optional[int], limit: Optional[int]) -> ValidationResult:
    result = ValidationResult()
    result.add(check_number(page, "Page", required=False, minimum=1, integer=True))
    result.add(check_number(limit, "Limit", required=False, minimum=1, maximum=100, integer=True))
    return result
