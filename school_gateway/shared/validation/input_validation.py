"""
Input validation utilities for public form submissions.

Each validator takes a raw value and reports pass/fail without raising, so a
handler can run every check and report all problems in one response.
"""

import re
from datetime import date, datetime
from typing import Iterable, Optional, Tuple


# Maximum lengths for different input types
MAX_EMAIL_LENGTH = 255
MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 100
MIN_AGE_YEARS = 3
MAX_AGE_YEARS = 25

EMAIL_PATTERN = re.compile(r'[^\s@]+@[^\s@]+\.[^\s@]+')
PHONE_PATTERN = re.compile(r'\+?[\d\s()\-]{7,20}')


def _clean(value) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip()


def is_valid_email(email) -> bool:
    """Check ``local@domain.tld`` shape and the 255 character limit."""
    email = _clean(email)
    if not email or len(email) > MAX_EMAIL_LENGTH:
        return False
    return EMAIL_PATTERN.fullmatch(email) is not None


def is_length_between(text, min_length: int, max_length: int) -> bool:
    """Check that the trimmed text length lies within [min_length, max_length]."""
    text = _clean(text)
    if text is None:
        return False
    return min_length <= len(text) <= max_length


def is_valid_name(name) -> bool:
    return is_length_between(name, MIN_NAME_LENGTH, MAX_NAME_LENGTH)


def is_valid_phone(phone) -> bool:
    """Digits, spaces, parentheses and hyphens, optional leading plus, 7-20 characters."""
    phone = _clean(phone)
    if not phone:
        return False
    return PHONE_PATTERN.fullmatch(phone) is not None


def is_allowed_value(value, allowed: Iterable[str]) -> bool:
    """Case-insensitive membership in a fixed allow-list."""
    value = _clean(value)
    if not value:
        return False
    return value.lower() in {item.lower() for item in allowed}


def is_within_max_length(text, max_length: int) -> bool:
    """
    Optional text: absent or empty is always valid, otherwise bounded.
    Length is measured after trimming, matching what gets stored.
    """
    if text is None or text == "":
        return True
    if not isinstance(text, str):
        return False
    return len(text.strip()) <= max_length


def parse_date(value) -> Optional[date]:
    """Parse an ISO date (``YYYY-MM-DD``) or ISO timestamp into a date."""
    value = _clean(value)
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def calculate_age(date_of_birth: date, today: Optional[date] = None) -> int:
    """Age in whole years on ``today``."""
    today = today or date.today()
    had_birthday = (today.month, today.day) >= (date_of_birth.month, date_of_birth.day)
    return today.year - date_of_birth.year - (0 if had_birthday else 1)


def validate_date_of_birth(
    date_of_birth,
    min_age: int = MIN_AGE_YEARS,
    max_age: int = MAX_AGE_YEARS,
    today: Optional[date] = None,
) -> Tuple[bool, Optional[str]]:
    """
    Validate a date of birth for an admission applicant.

    Args:
        date_of_birth: Raw value from the request body
        min_age: Youngest accepted age in whole years (inclusive)
        max_age: Oldest accepted age in whole years (inclusive)
        today: Reference date, defaults to the current date

    Returns:
        Tuple of (is_valid, error_message)
    """
    parsed = parse_date(date_of_birth)
    if parsed is None:
        return False, "Invalid date format"

    age = calculate_age(parsed, today)
    if age < min_age or age > max_age:
        return False, f"Age must be between {min_age} and {max_age} years"

    return True, None


def clean_optional(text) -> Optional[str]:
    """Trim optional text, turning empty values into None."""
    text = _clean(text)
    return text or None


def is_honeypot_filled(value) -> bool:
    """
    True when a bot filled the hidden field. Only null, false, zero and the
    empty string count as untouched; lists, objects and "0" are filled.
    """
    if value is None or value is False or value == "":
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value != 0 and value == value
    return True
