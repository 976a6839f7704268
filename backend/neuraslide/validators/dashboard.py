"""Validators for the dashboard filters."""

from datetime import datetime, timezone
from typing import Optional

from neuraslide.validators.base import ValidationResult

DASHBOARD_MODULES = ("conversations", "automations", "products", "ai")
MAX_RANGE_DAYS = 90


def parse_instant(value: Optional[str]) -> Optional[datetime]:
    """ISO-8601 string to an aware UTC datetime; None when it does not parse."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def validate_dashboard_query(
    start: Optional[str], end: Optional[str], module: Optional[str]
) -> ValidationResult:
    result = ValidationResult()

    if start or end:
        if not (start and end):
            result.add("Both start and end dates are required for date range filter")
        else:
            start_at = parse_instant(start)
            end_at = parse_instant(end)
            if start_at is None:
                result.add("Invalid start date format")
            if end_at is None:
                result.add("Invalid end date format")
            if start_at and end_at:
                if start_at > end_at:
                    result.add("Start date cannot be after end date")
                elif (end_at - start_at).total_seconds() > MAX_RANGE_DAYS * 86400:
                    result.add(f"Date range cannot exceed {MAX_RANGE_DAYS} days")

    if module is not None and module not in DASHBOARD_MODULES:
        result.add(f"Invalid module filter. Must be one of: {', '.join(DASHBOARD_MODULES)}")
    return result
