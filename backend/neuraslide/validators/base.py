"""
Validation contract shared by every module.

A validator maps an untyped payload to a ``ValidationResult``. For each field
the required check runs first, then the type check, then range/length/enum
checks, and only the first failing rule of a field is reported. Fields are
checked independently so all failures across fields accumulate. Validators
never raise; routers call ``ensure_valid`` to turn a failed result into a
400 before the service layer is reached.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from neuraslide.infrastructure.exceptions import ValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
URL_PATTERN = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)
CURRENCY_PATTERN = re.compile(r"^[A-Za-z]{3}$")

M = TypeVar("M", bound=BaseModel)

BODY_NOT_OBJECT = "Request body must be a JSON object"


@dataclass
class ValidationResult:
    errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add(self, message: Optional[str]) -> None:
        if message:
            self.errors.append(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"isValid": self.is_valid, "errors": list(self.errors)}


def ensure_valid(result: ValidationResult) -> None:
    """Short-circuit a request whose payload failed validation."""
    if not result.is_valid:
        raise ValidationError(result.errors)


def is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


# ============================================
# FIELD RULES
# Each returns the first failing rule's message, or None.
# ============================================

def check_string(
    value: Any,
    label: str,
    *,
    required: bool = True,
    min_length: Optional[int] = None,
    max_length: Optional[int] = None,
) -> Optional[str]:
    if is_missing(value):
        return f"{label} is required" if required else None
    if not isinstance(value, str):
        return f"{label} must be a string"
    length = len(value)
    if min_length is not None and max_length is not None and not (min_length <= length <= max_length):
        return f"{label} must be between {min_length} and {max_length} characters"
    if min_length is not None and length < min_length:
        return f"{label} must be at least {min_length} characters"
    if max_length is not None and length > max_length:
        return f"{label} must be at most {max_length} characters"
    return None


def check_number(
    value: Any,
    label: str,
    *,
    required: bool = True,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None,
    integer: bool = False,
) -> Optional[str]:
    if value is None:
        return f"{label} is required" if required else None
    if integer and not is_integer(value):
        return f"{label} must be an integer"
    if not is_number(value):
        return f"{label} must be a number"
    if minimum is not None and maximum is not None and not (minimum <= value <= maximum):
        return f"{label} must be between {minimum} and {maximum}"
    if minimum is not None and value < minimum:
        return f"{label} must be at least {minimum}"
    if maximum is not None and value > maximum:
        return f"{label} must be at most {maximum}"
    return None


def check_boolean(value: Any, label: str, *, required: bool = False) -> Optional[str]:
    if value is None:
        return f"{label} is required" if required else None
    if not isinstance(value, bool):
        return f"{label} must be a boolean"
    return None


def check_enum(
    value: Any,
    label: str,
    allowed: Sequence[str],
    *,
    required: bool = False,
    case_insensitive: bool = False,
) -> Optional[str]:
    if is_missing(value):
        return f"{label} is required" if required else None
    if not isinstance(value, str):
        return f"{label} must be a string"
    candidates = [a.lower() for a in allowed] if case_insensitive else list(allowed)
    needle = value.lower() if case_insensitive else value
    if needle not in candidates:
        return f"{label} must be one of: {', '.join(allowed)}"
    return None


def check_string_list(
    value: Any,
    label: str,
    *,
    required: bool = False,
    min_items: int = 0,
    max_items: Optional[int] = None,
    max_item_length: Optional[int] = None,
    item_label: str = "item",
) -> Optional[str]:
    if value is None:
        return f"{label} is required" if required else None
    if not isinstance(value, list):
        return f"{label} must be an array"
    if len(value) < min_items:
        return f"{label} must contain at least {min_items} {item_label}{'s' if min_items != 1 else ''}"
    if max_items is not None and len(value) > max_items:
        return f"{label} cannot have more than {max_items} {item_label}s"
    for item in value:
        if not isinstance(item, str) or not item.strip():
            return f"Each {item_label} must be a non-empty string"
        if max_item_length is not None and len(item) > max_item_length:
            return f"Each {item_label} must be at most {max_item_length} characters"
    return None


def check_url(value: Any, label: str, *, required: bool = True) -> Optional[str]:
    if is_missing(value):
        return f"{label} is required" if required else None
    if not isinstance(value, str):
        return f"{label} must be a string"
    if not URL_PATTERN.match(value):
        return f"{label} must be a valid http(s) URL"
    return None


def check_object(value: Any, label: str, *, required: bool = False) -> Optional[str]:
    if value is None:
        return f"{label} is required" if required else None
    if not isinstance(value, dict):
        return f"{label} must be an object"
    return None


def start(payload: Any) -> tuple[ValidationResult, Optional[Dict[str, Any]]]:
    """Begin validating ``payload``; data is None when it is not an object."""
    result = ValidationResult()
    if not isinstance(payload, dict):
        result.add(BODY_NOT_OBJECT)
        return result, None
    return result, payload


def require_any(result: ValidationResult, data: Dict[str, Any], fields: Iterable[str], message: str) -> None:
    """Updates must carry at least one known field."""
    if not any(key in data for key in fields):
        result.add(message)


def parse_as(schema: Type[M], data: Any) -> M:
    """Load a validated payload into its pydantic schema."""
    try:
        return schema.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(
            [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        )
