"""Validators for the AI assistant endpoints."""

from typing import Any, Optional

from neuraslide.validators.base import (
    ValidationResult,
    check_boolean,
    check_enum,
    check_number,
    check_object,
    check_string,
    check_string_list,
    require_any,
    start,
)

MESSAGE_ROLES = ("user", "assistant", "system")


def validate_generate(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    result.add(check_string(data.get("message"), "Message", max_length=1000))
    result.add(check_object(data.get("context"), "Context"))
    result.add(check_string(data.get("conversationId"), "Conversation ID", required=False))
    result.add(check_string(data.get("mediaId"), "Media ID", required=False, max_length=128))
    result.add(check_string(data.get("model"), "Model", required=False, max_length=100))
    result.add(check_number(data.get("temperature"), "Temperature", required=False, minimum=0, maximum=2))
    result.add(check_number(data.get("maxTokens"), "Max tokens", required=False, minimum=1, maximum=4000, integer=True))
    return result


def validate_create_conversation(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    result.add(check_string(data.get("title"), "Title", max_length=200))
    result.add(check_string(data.get("initialMessage"), "Initial message", required=False, max_length=1000))
    result.add(check_string_list(data.get("tags"), "Tags", max_items=20, max_item_length=50, item_label="tag"))
    return result


def validate_update_conversation(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    require_any(result, data, ("title", "summary", "tags", "isActive"),
                "At least one field must be provided for update")
    result.add(check_string(data.get("title"), "Title", required=False, max_length=200))
    result.add(check_string(data.get("summary"), "Summary", required=False, max_length=2000))
    result.add(check_string_list(data.get("tags"), "Tags", max_items=20, max_item_length=50, item_label="tag"))
    result.add(check_boolean(data.get("isActive"), "isActive"))
    return result


def validate_add_message(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    result.add(check_string(data.get("conversationId"), "Conversation ID"))
    result.add(check_enum(data.get("role"), "Role", MESSAGE_ROLES, required=True))
    result.add(check_string(data.get("content"), "Content", max_length=4000))
    return result


def validate_search_conversations(
    query: Optional[str], limit: Optional[int], offset: Optional[int]
) -> ValidationResult:
    result = ValidationResult()
    result.add(check_string(query, "Query", required=False, max_length=200))
    result.add(check_number(limit, "Limit", required=False, minimum=1, maximum=100, integer=True))
    result.add(check_number(offset, "Offset", required=False, minimum=0, integer=True))
    return result


def validate_training_data(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    result.add(check_string(data.get("input"), "Input", max_length=2000))
    result.add(check_string(data.get("expectedOutput"), "Expected output", max_length=2000))
    result.add(check_string(data.get("category"), "Category", min_length=2, max_length=100))
    result.add(check_string_list(data.get("tags"), "Tags", max_items=20, max_item_length=50, item_label="tag"))
    return result
