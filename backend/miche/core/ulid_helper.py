"""ULID generation and validation helpers."""

from typing import Optional

import ulid

from .exceptions import ValidationException


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ulid.ULID())


def parse_ulid(ulid_str: str) -> Optional[ulid.ULID]:
    """Parse and validate a ULID string."""
    try:
        return ulid.ULID.from_str(ulid_str)
    except (ValueError, TypeError, AttributeError):
        return None


def is_valid_ulid(ulid_str: object) -> bool:
    """Check if a value is a well-formed ULID string."""
    return isinstance(ulid_str, str) and len(ulid_str) == 26 and parse_ulid(ulid_str) is not None


def require_ulid(value: object, field: str) -> str:
    """Return ``value`` if it is a well-formed id, else raise ValidationException."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationException(f"{field} is required", code="MISSING_FIELD", details={"field": field})
    if not is_valid_ulid(value):
        raise ValidationException(
            f"{field} is not a valid identifier",
            code="INVALID_IDENTIFIER",
            details={"field": field, "value": value},
        )
    return value
