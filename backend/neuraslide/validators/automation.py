"""
Validators for automations.

A trigger is either a plain keyword string or a structured object tagged by
``type``; likewise a response is literal text or a tagged object.
"""

import re
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from neuraslide.validators.base import (
    ValidationResult,
    check_boolean,
    check_enum,
    check_number,
    check_object,
    check_string,
    check_string_list,
    is_integer,
    is_missing,
    require_any,
    start,
)

AUTOMATION_STATUSES = ("ACTIVE", "INACTIVE", "DRAFT")
AUTOMATION_PRIORITIES = ("LOW", "MEDIUM", "HIGH", "URGENT")
TRIGGER_TYPES = ("keyword", "intent", "time", "user_type", "message_count")
RESPONSE_TYPES = ("ai_generated", "template", "custom", "delay")
MATCH_TYPES = ("exact", "contains", "starts_with", "ends_with")


def is_timezone(name: str) -> bool:
    if not name or len(name) > 64:
        return False
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return False
    return True


UPDATABLE_FIELDS = ("name", "description", "trigger", "response", "status", "priority", "isActive", "tags")

_TIME_OF_DAY = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


# ============================================
# TRIGGERS
# ============================================

def _trigger_body_errors(trigger: Dict[str, Any]) -> List[str]:
    kind = trigger.get("type")
    errors: List[str] = []

    if kind == "keyword":
        for msg in (
            check_string_list(trigger.get("keywords"), "Trigger keywords", required=True,
                              min_items=1, max_items=20, max_item_length=50, item_label="keyword"),
            check_enum(trigger.get("matchType"), "Trigger match type", MATCH_TYPES),
            check_boolean(trigger.get("caseSensitive"), "Trigger caseSensitive"),
        ):
            if msg:
                errors.append(msg)
    elif kind == "intent":
        for msg in (
            check_string_list(trigger.get("intents"), "Trigger intents", required=True,
                              min_items=1, max_items=10, max_item_length=50, item_label="intent"),
            check_number(trigger.get("confidence"), "Trigger confidence", required=False, minimum=0, maximum=1),
        ):
            if msg:
                errors.append(msg)
    elif kind == "time":
        time_range = trigger.get("timeRange")
        msg = check_object(time_range, "Trigger time range", required=True)
        if msg:
            errors.append(msg)
        elif not all(isinstance(time_range.get(k), str) and _TIME_OF_DAY.match(time_range[k]) for k in ("start", "end")):
            errors.append("Trigger time range start and end must be HH:MM")
        days = trigger.get("daysOfWeek")
        if days is not None and (
            not isinstance(days, list) or not all(is_integer(d) and 1 <= d <= 7 for d in days)
        ):
            errors.append("Trigger days of week must be numbers between 1 and 7")
        zone = trigger.get("timezone")
        if zone is not None and not (isinstance(zone, str) and is_timezone(zone)):
            errors.append("Trigger timezone must be a valid IANA zone")
    elif kind == "user_type":
        msg = check_string_list(trigger.get("userTypes"), "Trigger user types", required=True,
                                min_items=1, max_items=10, max_item_length=50, item_label="user type")
        if msg:
            errors.append(msg)
    elif kind == "message_count":
        for msg in (
            check_number(trigger.get("count"), "Trigger count", minimum=1, integer=True),
            check_number(trigger.get("timeWindow"), "Trigger time window", minimum=1, maximum=10080, integer=True),
        ):
            if msg:
                errors.append(msg)
    return errors


def check_trigger(value: Any, *, required: bool = True) -> List[str]:
    if is_missing(value):
        return ["Trigger is required"] if required else []
    if isinstance(value, str):
        msg = check_string(value, "Trigger", max_length=200)
        return [msg] if msg else []
    if not isinstance(value, dict):
        return ["Trigger must be a keyword string or a trigger object"]
    msg = check_enum(value.get("type"), "Trigger type", TRIGGER_TYPES, required=True)
    if msg:
        return [msg]
    return _trigger_body_errors(value)


# ============================================
# RESPONSES
# ============================================

def _custom_body_errors(response: Dict[str, Any], label: str) -> List[str]:
    errors = []
    msg = check_string(response.get("message"), f"{label} message", max_length=1000)
    if msg:
        errors.append(msg)
    msg = check_string_list(response.get("variables"), f"{label} variables", max_items=20,
                            max_item_length=50, item_label="variable")
    if msg:
        errors.append(msg)
    return errors


def _response_body_errors(response: Dict[str, Any]) -> List[str]:
    kind = response.get("type")
    errors: List[str] = []

    if kind == "ai_generated":
        for msg in (
            check_string(response.get("prompt"), "Response prompt", max_length=1000),
            check_number(response.get("maxLength"), "Response max length", required=False,
                         minimum=1, maximum=1000, integer=True),
            check_number(response.get("temperature"), "Response temperature", required=False, minimum=0, maximum=1),
            check_boolean(response.get("includeContext"), "Response includeContext"),
        ):
            if msg:
                errors.append(msg)
    elif kind == "template":
        msg = check_string(response.get("template"), "Response template", max_length=1000)
        if msg:
            errors.append(msg)
        variables = response.get("variables")
        if variables is not None and (
            not isinstance(variables, dict) or not all(isinstance(v, str) for v in variables.values())
        ):
            errors.append("Response template variables must be an object of strings")
    elif kind == "custom":
        errors.extend(_custom_body_errors(response, "Response"))
    elif kind == "delay":
        msg = check_number(response.get("delayMinutes"), "Response delay", minimum=1, maximum=1440, integer=True)
        if msg:
            errors.append(msg)
        fallback = response.get("fallbackResponse")
        msg = check_object(fallback, "Response fallback", required=True)
        if msg:
            errors.append(msg)
        else:
            errors.extend(_custom_body_errors(fallback, "Response fallback"))
    return errors


def check_response(value: Any, *, required: bool = True) -> List[str]:
    if is_missing(value):
        return ["Response is required"] if required else []
    if isinstance(value, str):
        msg = check_string(value, "Response", max_length=1000)
        return [msg] if msg else []
    if not isinstance(value, dict):
        return ["Response must be a message string or a response object"]
    msg = check_enum(value.get("type"), "Response type", RESPONSE_TYPES, required=True)
    if msg:
        return [msg]
    return _response_body_errors(value)


# ============================================
# REQUESTS
# ============================================

def _check_common(result: ValidationResult, data: Dict[str, Any], *, creating: bool) -> None:
    result.add(check_string(data.get("name"), "Automation name", required=creating, min_length=3, max_length=100))
    result.add(check_string(data.get("description"), "Description", required=False, max_length=500))
    result.errors.extend(check_trigger(data.get("trigger"), required=creating))
    result.errors.extend(check_response(data.get("response"), required=creating))
    result.add(check_enum(data.get("status"), "Status", AUTOMATION_STATUSES, case_insensitive=True))
    result.add(check_enum(data.get("priority"), "Priority", AUTOMATION_PRIORITIES, case_insensitive=True))
    result.add(check_boolean(data.get("isActive"), "isActive"))
    result.add(check_string_list(data.get("tags"), "Tags", max_items=20, max_item_length=50, item_label="tag"))


def validate_create_automation(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    _check_common(result, data, creating=True)
    return result


def validate_update_automation(payload: Any) -> ValidationResult:
    result, data = start(payload)
    if data is None:
        return result
    require_any(result, data, UPDATABLE_FIELDS, "At least one field must be provided for update")
    _check_common(result, data, creating=False)
    return result


def validate_test_message(payload: Any) -> ValidationResult:
    """Body of POST /automations/{id}/test."""
    result, data = start(payload)
    if data is None:
        return result
    result.add(check_string(data.get("message"), "Test message", max_length=1000))
    result.add(check_object(data.get("context"), "Context"))
    return result


def validate_test_automation(payload: Any) -> ValidationResult:
    """Body of POST /automations/test (ad-hoc trigger/response pair)."""
    result, data = start(payload)
    if data is None:
        return result
    result.errors.extend(check_trigger(data.get("trigger")))
    result.errors.extend(check_response(data.get("response")))
    result.add(check_string(data.get("testMessage"), "Test message", max_length=1000))
    result.add(check_object(data.get("context"), "Context"))
    return result


def validate_list_query(page: Optional[int], limit: Optional[int], status: Optional[str], priority: Optional[str]) -> ValidationResult:
    result = ValidationResult()
    result.add(check_number(page, "Page", required=False, minimum=1, integer=True))
    result.add(check_number(limit, "Limit", required=False, minimum=1, maximum=100, integer=True))
    result.add(check_enum(status, "Status", AUTOMATION_STATUSES, case_insensitive=True))
    result.add(check_enum(priority, "Priority", AUTOMATION_PRIORITIES, case_insensitive=True))
    return result
