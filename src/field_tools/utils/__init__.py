"""Utility helpers"""

from field_tools.utils.formatter import mask_phone, render_ussd, render_whatsapp
from field_tools.utils.validator import clean_input, is_valid_pin, normalize_nin, normalize_plate

__all__ = [
    "render_ussd",
    "render_whatsapp",
    "mask_phone",
    "is_valid_pin",
    "normalize_nin",
    "normalize_plate",
    "clean_input",
]
