"""
Utility functions for donors app.
"""

import re


def normalize_phone_number(phone: str) -> str:
    """
    Normalize Indian mobile numbers to the format 91XXXXXXXXXX.

    Accepts various formats:
    - +91 98765 43210
    - +919876543210
    - 919876543210
    - 09876543210
    - 9876543210

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        raise ValueError("Phone number is required")

    cleaned = re.sub(r'[^\d+]', '', str(phone))
    if cleaned.startswith('+'):
        cleaned = cleaned[1:]

    if len(cleaned) == 12 and cleaned.startswith('91'):
        normalized = cleaned
    elif len(cleaned) == 11 and cleaned.startswith('0'):
        normalized = '91' + cleaned[1:]
    elif len(cleaned) == 10:
        normalized = '91' + cleaned
    else:
        raise ValueError(f"Invalid phone number format: {phone}")

    # Indian mobile numbers start with 6-9
    if not re.match(r'^91[6-9]\d{9}$', normalized):
        raise ValueError(
            f"Invalid Indian mobile number: {phone}. "
            "Must be a valid 10-digit mobile number (e.g., +91 98765 43210)"
        )

    return normalized
