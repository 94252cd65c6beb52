"""
Norwegian phone normalization for Vipps.

Vipps expects MSISDN format without "+": 47 followed by the 8-digit national number.
"""
import re


def format_norwegian_phone(phone: str) -> str:
    """
    Normalize user input to 47XXXXXXXX.

    Accepts "+47 912 34 567", "0047 91234567", "91234567", "4791234567".
    """
    digits = re.sub(r"\D", "", phone or "")

    if digits.startswith("0047"):
        digits = digits[2:]

    if len(digits) == 10 and digits.startswith("47"):
        return digits

    return f"47{digits}"
