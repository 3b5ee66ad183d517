"""
Shared validators for input sanitization.
"""

import re

from shared.config.constants import Limits

# Cameroon mobile numbers: +237 followed by a 9-digit subscriber number.
# MTN owns the 67x/68x prefixes, Orange the 69x prefixes.
MTN_PHONE_PATTERN = re.compile(r"^\+237(67\d|68\d)\d{6}$")
ORANGE_PHONE_PATTERN = re.compile(r"^\+237(69\d)\d{6}$")


def validate_quantity(
    quantity: int,
    min_val: int = Limits.MIN_QUANTITY,
    max_val: int = Limits.MAX_QUANTITY,
) -> int:
    """
    Validate quantity is within acceptable range.

    Raises:
        ValueError: If quantity is outside allowed range
    """
    if quantity < min_val:
        raise ValueError(f"Minimum quantity is {min_val}")
    if quantity > max_val:
        raise ValueError(f"Maximum quantity is {max_val}")
    return quantity


def sanitize_notes(notes: str | None, max_length: int = Limits.MAX_NOTES_LENGTH) -> str | None:
    """
    Trim free-text notes and strip control characters.

    Returns None for empty input so "no note" never overwrites a stored note.
    """
    if notes is None:
        return None

    notes = re.sub(r"[\x00-\x08\x0b-\x1f\x7f-\x9f]", "", notes).strip()
    if not notes:
        return None
    return notes[:max_length]


def strip_phone(phone: str) -> str:
    """Remove whitespace from a phone number."""
    return re.sub(r"\s", "", phone)


def is_valid_mtn_phone(phone: str | None) -> bool:
    """True for MTN Cameroon numbers such as "+237 677 123 456"."""
    return bool(phone) and bool(MTN_PHONE_PATTERN.match(strip_phone(phone)))


def is_valid_orange_phone(phone: str | None) -> bool:
    """True for Orange Cameroon numbers such as "+237 690 123 456"."""
    return bool(phone) and bool(ORANGE_PHONE_PATTERN.match(strip_phone(phone)))


def to_msisdn(phone: str) -> str:
    """
    Format a phone number as the MSISDN the MTN API expects.

    "+237 677 123 456" -> "237677123456"
    """
    phone = strip_phone(phone)
    if phone.startswith("+"):
        return phone[1:]
    if phone.startswith("237"):
        return phone
    return f"237{phone}"

