"""Validators for the product catalog."""

from typing import Any, Dict, Optional

from neuraslide.validators.base import (
    CURRENCY_PATTERN,
    ValidationResult,
    check_enum,
    check_number,
    check_object,
    check_string,
    check_string_list,
    is_missing,
    require_any,
    start,
)

AVAILABILITY = ("IN_STOCK", "OUT_OF_STOCK", "PRE_ORDER", "DISCONTINUED")
UPDATABLE_FIELDS = (
    "name", "description", "category", "price", "currency",
    "images", "tags", "specifications", "availability",
)


def _check_currency(value: Any) -> Optional[str]:
    if is_missing(value):
        return None
    if not isinstance(value, str):
        return "Currency must be a string"
    if not CURRENCY_PATTERN.match(value):
        return "Currency must be a 3-letter code"
    return None


def _check_fields(result: ValidationResult, data: Dict[str, Any], *, creating: bool) -> None:
    result.add(check_string(data.get("name"), "Product name", required=creating, min_length=2, max_length=100))
    result.add(check_string(data.get("description"), "Product description", required=creating,
                            min_length=10, max_length=1000))
    result.add(check_string(data.get("category"), "Product category", required=creating, min_length=2, max_length=100))
    result.add(check_number(data.get("price"), "Product price", required=creating, minimum=0))
    result.add(_check_currency(data.get("currency")))
    result.add(check_string_list(data.get("images"), "Images", max_items=10, item_label="image"))
    result.add(check_string_list(data.get("tags"), "Tags", max_items=20, max_item_length=50, item_label="tag"))
    result.add(check_object(data.get("specifications"), "Specifications"))
    result.add(check_enum(data.get("availability"), "Availability", AVAILABILITY, case_insensitive=True))


def product_errors(data: Any) -> ValidationResult:
    """Validate one product record; shared by create and bulk import."""
    result, fields = start(data)
    if fields is None:
        return result
    _check_fields(result, fields, creating=True)
    return result


def validate_create_product(payload: Any) -> ValidationResult:
    return product_errors(payload)


def validate_update_product(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    require_any(result, data, UPDATABLE_FIELDS, "At least one field must be provided for update")
    _check_fields(result, data, creating=False)
    return result


def validate_search(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    result.add(check_string(data.get("query"), "Search query", min_length=2, max_length=200))
    result.add(check_number(data.get("limit"), "Limit", required=False, minimum=1, maximum=50, integer=True))
    result.add(check_string(data.get("category"), "Category", required=False, max_length=100))

    filters = data.get("filters")
    msg = check_object(filters, "Filters")
    if msg:
        result.add(msg)
    elif filters:
        result.add(check_number(filters.get("price_min"), "Minimum price", required=False, minimum=0))
        result.add(check_number(filters.get("price_max"), "Maximum price", required=False, minimum=0))
        result.add(check_enum(filters.get("availability"), "Availability", AVAILABILITY, case_insensitive=True))
        low, high = filters.get("price_min"), filters.get("price_max")
        if isinstance(low, (int, float)) and isinstance(high, (int, float)) and low > high:
            result.add("Minimum price cannot exceed maximum price")
    return result


def validate_create_category(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    result.add(check_string(data.get("name"), "Category name", min_length=2, max_length=50))
    result.add(check_string(data.get("description"), "Category description", required=False, max_length=500))
    return result


def validate_bulk_import(payload: Any, max_items: int = 1000) -> ValidationResult:
    """Checks the envelope of the import; rows are validated one by one."""
    result, data = start(payload)
    if data is None:
        return result
    products = data.get("products")
    if products is None:
        result.add("Products are required")
    elif not isinstance(products, list):
        result.add("Products must be an array")
    elif not products:
        result.add("Products must contain at least 1 product")
    elif len(products) > max_items:
        result.add(f"Cannot import more than {max_items} products at once")

    mapping = data.get("categoryMapping")
    msg = check_object(mapping, "Category mapping")
    if msg:
        result.add(msg)
    elif mapping and not all(isinstance(v, str) for v in mapping.values()):
        result.add("Category mapping values must be strings")
    return result


def validate_list_query(page: Optional[int], limit: Optional[int], availability: Optional[str]) -> ValidationResult:
    result = ValidationResult()
    result.add(check_number(page, "Page", required=False, minimum=1, integer=True))
    result.add(check_number(limit, "Limit", required=False, minimum=1, maximum=100, integer=True))
    result.add(check_enum(availability, "Availability", AVAILABILITY, case_insensitive=True))
    return result
