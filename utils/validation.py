"""
Input validation utilities for client data and API inputs.
"""

import re
from typing import Optional


def normalize_phone(phone: str) -> str:
    """Strip spaces, dashes, dots and parentheses from a phone number."""
    return re.sub(r'[\s\-\.\(\)]', '', phone or "")


def validate_phone(phone: str) -> bool:
    """
    Validate phone number format.
    Accepts international format with optional + prefix.

    Args:
        phone: Phone number string

    Returns:
        True if valid format, False otherwise
    """
    if not phone or not isinstance(phone, str):
        return False

    cleaned = normalize_phone(phone)

    # Local numbers with area code are 10-11 digits, E.164 allows up to 15
    pattern = r'^\+?[1-9]\d{7,14}$'
    return bool(re.match(pattern, cleaned))


def normalize_coupon_code(code: str) -> str:
    """Coupon codes are stored and matched upper-case."""
    return (code or "").strip().upper()


def sanitize_text(text: str, max_length: Optional[int] = None) -> str:
    """
    Sanitize user input text.

    Args:
        text: Input text
        max_length: Optional maximum length

    Returns:
        Sanitized text
    """
    if not text:
        return ""

    # Remove control characters except newlines and tabs
    sanitized = re.sub(r'[\x00-\x08\x0B-\x0C\x0E-\x1F\x7F]', '', str(text))

    sanitized = sanitized.strip()

    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized
