"""Validators for post contexts."""

from typing import Any, Optional

from neuraslide.validators.base import (
    ValidationResult,
    check_boolean,
    check_number,
    check_object,
    check_string,
    check_string_list,
    require_any,
    start,
)

UPDATABLE_FIELDS = (
    "title", "description", "keyPoints", "products", "pricing",
    "promotions", "faqs", "responseTone", "isActive",
)


def _check_faqs(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, list):
        return "FAQs must be an array"
    if len(value) > 50:
        return "FAQs cannot have more than 50 entries"
    for item in value:
        if not isinstance(item, dict):
            return "Each FAQ must be an object"
    return None


def _check_content(result: ValidationResult, data: dict) -> None:
    result.add(check_string(data.get("title"), "Title", required=False, max_length=200))
    result.add(check_string(data.get("description"), "Description", required=False, max_length=2000))
    result.add(check_string_list(data.get("keyPoints"), "Key points", max_items=20, max_item_length=200,
                                 item_label="key point"))
    result.add(check_string_list(data.get("products"), "Products", max_items=50, max_item_length=100,
                                 item_label="product"))
    result.add(check_object(data.get("pricing"), "Pricing"))
    result.add(check_object(data.get("promotions"), "Promotions"))
    result.add(_check_faqs(data.get("faqs")))
    result.add(check_string(data.get("responseTone"), "Response tone", required=False, max_length=50))


def validate_create_post_context(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    result.add(check_string(data.get("instagramAccountId"), "Instagram account ID"))
    result.add(check_string(data.get("mediaId"), "Media ID", max_length=128))
    result.add(check_string(data.get("caption"), "Caption", required=False, max_length=2200))
    _check_content(result, data)
    return result


def validate_update_post_context(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    require_any(result, data, UPDATABLE_FIELDS, "At least one field must be provided for update")
    _check_content(result, data)
    result.add(check_boolean(data.get("isActive"), "isActive"))
    return result


def validate_list_query(page: Optional[int], limit: Optional[int]) -> ValidationResult:
    result = ValidationResult()
    result.add(check_number(page, "Page", required=False, minimum=1, integer=True))
    result.add(check_number(limit, "Limit", required=False, minimum=1, maximum=100, integer=True))
    return result
