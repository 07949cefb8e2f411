"""Input validation helpers"""

import re

from field_tools.config.constants import PIN_PATTERN

_PIN_RE = re.compile(PIN_PATTERN)


def is_valid_pin(pin: str | None) -> bool:
    """
    Whether the string is a well-formed Quick PIN (exactly 4 ASCII digits)

    Args:
        pin: Raw input

    Returns:
        True if well formed
    """
    return pin is not None and _PIN_RE.fullmatch(pin) is not None and pin.isascii()


def normalize_nin(nin: str) -> str:
    """National ID numbers are stored upper-case"""
    return nin.strip().upper()


def normalize_plate(plate: str) -> str:
    """Upper-case and drop all whitespace"""
    return re.sub(r"\s+", "", plate).upper()


def normalize_phone(phone: str) -> str:
    """E.164 with a leading '+'"""
    phone = phone.strip()
    return phone if phone.startswith("+") else f"+{phone}"


def clean_input(text: str | None) -> str:
    """
    Trim and collapse whitespace

    Args:
        text: Raw input

    Returns:
        Cleaned text ("" for None)
    """
    if not text:
        return ""
    return " ".join(text.split())
