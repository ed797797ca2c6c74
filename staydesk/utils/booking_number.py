"""Booking and credit note number generation utilities."""

import random
import string
from datetime import datetime

_ALPHABET = string.ascii_uppercase + string.digits


def generate_booking_number() -> str:
    """Generate a booking number in format SD-XXXXXX.

    Returns:
        str: Booking number like 'SD-A3B7K9'
    """
    random_part = "".join(random.choices(_ALPHABET, k=6))
    return f"SD-{random_part}"


def generate_credit_note_number(issued_at: datetime | None = None) -> str:
    """Generate a credit note number.

    Uniqueness is enforced by the unique index on
    credit_notes.credit_note_number.

    Returns:
        str: Credit note number like 'CN-20240115-A3B7'
    """
    date_part = (issued_at or datetime.now()).strftime("%Y%m%d")
    random_part = "".join(random.choices(_ALPHABET, k=4))
    return f"CN-{date_part}-{random_part}"
