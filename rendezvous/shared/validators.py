"""Shared validation utilities"""

import re
import uuid
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def validate_uuid(value: str) -> bool:
    """Validate UUID format"""
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def validate_e164_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize a phone number to E.164 format.

    Accepts "+81 90-1234-5678" style input as well as domestic Japanese
    numbers with a leading 0 ("090-1234-5678" → "+819012345678").

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    has_plus = phone.strip().startswith("+")
    digits = re.sub(r"\D", "", phone)

    if not has_plus:
        if not digits.startswith("0"):
            raise ValueError("Phone number must be in E.164 format (e.g., +819012345678)")
        digits = "81" + digits[1:]

    # E.164 allows up to 15 digits including the country code
    if not 8 <= len(digits) <= 15:
        raise ValueError("Phone number must have between 8 and 15 digits")

    return f"+{digits}"


def validate_timezone(tz: str) -> str:
    """Validate an IANA timezone name"""
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {tz}") from e
    return tz
