import html
import re
from typing import Optional


def validate_and_sanitize_input(value: Optional[str], max_length: int = 500) -> str:
    """
    Validate and sanitize free-text user input (names, comments, titles).

    Raises:
        ValueError: If input exceeds max_length
    """
    if not value:
        return ""

    value = str(value).strip()

    if len(value) > max_length:
        raise ValueError(f"Input exceeds maximum length of {max_length} characters")

    value = html.escape(value, quote=True)

    value = re.sub(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]", "", value)

    return value
