from __future__ import annotations
"""Reusable validation helpers for request payloads and query strings.

Every helper raises ValidationError (400) so handlers never need scattered
`abort(400, ...)` calls and services get the same semantics outside Flask.
"""
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Optional
from app.errors import ValidationError

CUSTOM_IDENTIFIER_RE = re.compile(r'^[A-Za-z0-9-]{3,20}$')
BUILDING_CODE_RE = re.compile(r'^[A-Za-z0-9]{2,10}$')


def validate_status(new_status: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that new_status is inside allowed.

    Returns the status (to enable inline usage) or raises ValidationError.
    """
    if new_status not in allowed:
        raise ValidationError(description=f"{field_name} invalid")
    return new_status


def require_str(data: dict, key: str, min_len: int = 1, max_len: int = 255, required: bool = True) -> Optional[str]:
    raw = data.get(key)
    if raw is None:
        if required:
            raise ValidationError(description=f"{key} required")
        return None
    if not isinstance(raw, str):
        raise ValidationError(description=f"{key} must be a string")
    val = raw.strip()
    if not (min_len <= len(val) <= max_len):
        raise ValidationError(description=f"{key} must be {min_len}-{max_len} characters")
    return val


def optional_int(data: dict, key: str, positive: bool = True) -> Optional[int]:
    raw = data.get(key)
    if raw is None or raw == '':
        return None
    try:
        val = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(description=f"{key} must be an integer")
    if isinstance(raw, bool) or (positive and val <= 0):
        raise ValidationError(description=f"{key} invalid")
    return val


def optional_number(data: dict, key: str) -> Optional[float]:
    raw = data.get(key)
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or raw <= 0:
        raise ValidationError(description=f"{key} must be a positive number")
    return float(raw)


def optional_bool(data: dict, key: str) -> Optional[bool]:
    raw = data.get(key)
    if raw is None:
        return None
    if not isinstance(raw, bool):
        raise ValidationError(description=f"{key} must be a boolean")
    return raw


def parse_datetime(raw: Any, field_name: str) -> Optional[datetime]:
    """Parse ISO-8601 (date or datetime, trailing Z accepted) into an aware UTC datetime."""
    if raw is None or raw == '':
        return None
    if not isinstance(raw, str):
        raise ValidationError(description=f"{field_name} must be an ISO-8601 string")
    try:
        dt = datetime.fromisoformat(raw.replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError(description=f"{field_name} invalid")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def validate_custom_identifier(value: str) -> str:
    if not isinstance(value, str) or not CUSTOM_IDENTIFIER_RE.match(value):
        raise ValidationError(
            description='Invalid custom identifier format. Use 3-20 characters, letters, numbers, and hyphens only.'
        )
    return value


def validate_building_code(value: str) -> str:
    if not isinstance(value, str) or not BUILDING_CODE_RE.match(value):
        raise ValidationError(description='Invalid building code. Use 2-10 characters, letters and numbers only.')
    return value.upper()


__all__ = [
    'validate_status', 'require_str', 'optional_int', 'optional_number', 'optional_bool', 'parse_datetime',
    'validate_custom_identifier', 'validate_building_code',
]
